"""Tests for the CAS transaction line parser."""

from datetime import date
from decimal import Decimal

import pytest

from cas_ledger.models import ParseSkip, Transaction, TransactionKind
from cas_ledger.transactions_parser import (
    MONTHS,
    FieldAssignment,
    FieldOrderPolicy,
    TransactionLineParser,
    TransactionTypeDetector,
    amount_price_trailing_units,
    amount_then_units,
    assign_fields,
    classify_transaction,
    parse_date_token,
    parse_transaction_line,
)


def _d(*values):
    return [Decimal(v) for v in values]


class TestParseDateToken:
    """Tests for DD-Mon-YYYY parsing."""

    def test_month_table(self):
        """Test the fixed month table has all twelve months."""
        assert len(MONTHS) == 12
        assert MONTHS["JAN"] == 1
        assert MONTHS["DEC"] == 12

    def test_parse(self):
        """Test parsing a date token."""
        assert parse_date_token("05-Jun-2023") == date(2023, 6, 5)
        assert parse_date_token("21-FEB-2019 Purchase") == date(2019, 2, 21)
        assert parse_date_token("1-jan-2024") == date(2024, 1, 1)

    def test_invalid(self):
        """Test tokens that are not calendar dates."""
        assert parse_date_token("31-Feb-2023") is None
        assert parse_date_token("05-Xyz-2023") is None
        assert parse_date_token("2023-06-05") is None
        assert parse_date_token("") is None


class TestTransactionTypeDetector:
    """Tests for keyword precedence."""

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("05-Jun-2023 Redemption 4,000.00 50.00", TransactionKind.REDEMPTION),
            ("05-Jun-2023 REDEMPTION - ONLINE 4,000.00 50.00", TransactionKind.REDEMPTION),
            ("05-Jun-2023 Withdrawal 4,000.00 (50.000)", TransactionKind.REDEMPTION),
            ("05-Jun-2023 Switch Out to X Fund 1,000.00 10.00", TransactionKind.SWITCH_OUT),
            ("05-Jun-2023 Switch-Out 1,000.00 10.00", TransactionKind.SWITCH_OUT),
            ("05-Jun-2023 Switched In from Y 1,000.00 10.00", TransactionKind.SWITCH_IN),
            ("05-Jun-2023 Switch In 1,000.00 10.00", TransactionKind.SWITCH_IN),
            ("05-Jun-2023 Dividend Reinvested 120.50 2.41", TransactionKind.DIVIDEND_REINVESTMENT),
            ("05-Jun-2023 SIP Instalment 2,000.00 25.00", TransactionKind.PURCHASE),
            ("05-Jun-2023 Systematic Investment 2,000.00 25.00", TransactionKind.PURCHASE),
            ("05-Jun-2023 SBI Bluechip Fund 8,000.00 78.50 101.91", TransactionKind.PURCHASE),
        ],
    )
    def test_detect(self, line, expected):
        """Test each kind is detected from its keywords."""
        assert TransactionTypeDetector().detect(line) == expected

    def test_redemption_wins_over_switch(self):
        """Test precedence when several keywords are present."""
        line = "05-Jun-2023 Switch Out - Redemption 1,000.00 10.00"

        assert classify_transaction(line) == TransactionKind.REDEMPTION

    def test_parenthesized_negative_wins_over_switch(self):
        """Test parenthesized negatives take precedence."""
        line = "05-Jun-2023 Switch Out 1,000.00 (10.000)"

        assert classify_transaction(line) == TransactionKind.REDEMPTION

    def test_switch_out_wins_over_dividend(self):
        """Test switch-out precedes dividend."""
        assert classify_transaction("Switch Out to Dividend Yield Fund 1.00 1.00") == TransactionKind.SWITCH_OUT

    def test_total(self):
        """Test every input maps to a kind."""
        assert classify_transaction("") == TransactionKind.PURCHASE
        assert classify_transaction("???") == TransactionKind.PURCHASE


class TestFieldOrderPolicy:
    """Tests for positional field assignment per arity."""

    def test_two_numbers(self):
        """Test amount then units with derived price."""
        result = amount_then_units(_d("4000.00", "50.00"), Decimal("0.0001"))

        assert result == FieldAssignment(
            amount=Decimal("4000.00"), units=Decimal("50.00"), price=Decimal("80.0000")
        )

    def test_two_numbers_price_rounding(self):
        """Test derived price is rounded to the price quantum."""
        result = amount_then_units(_d("100.00", "3.00"), Decimal("0.0001"))

        assert result.price == Decimal("33.3333")

    def test_two_numbers_zero_units(self):
        """Test division by zero is guarded."""
        assert amount_then_units(_d("100.00", "0.00"), Decimal("0.0001")) is None

    def test_three_numbers(self):
        """Test amount, price, units."""
        result = amount_price_trailing_units(_d("8000.00", "78.50", "101.91"), Decimal("0.0001"))

        assert result.amount == Decimal("8000.00")
        assert result.price == Decimal("78.50")
        assert result.units == Decimal("101.91")

    def test_more_than_three_numbers_takes_last_as_units(self):
        """Test intermediate columns are ignored."""
        result = amount_price_trailing_units(
            _d("10000.00", "45.67", "219.123", "1000.567"), Decimal("0.0001")
        )

        assert result.amount == Decimal("10000.00")
        assert result.price == Decimal("45.67")
        assert result.units == Decimal("1000.567")

    def test_policy_dispatch(self):
        """Test the policy picks the branch for the arity."""
        policy = FieldOrderPolicy()

        assert policy.assign(_d("1.00")) == "insufficient_numbers"
        assert policy.assign([]) == "insufficient_numbers"
        assert policy.assign(_d("100.00", "10.00")).price == Decimal("10.0000")
        assert policy.assign(_d("100.00", "9.00", "11.00", "12.00")).units == Decimal("12.00")
        assert policy.assign(_d("100.00", "10.00", "0.00")) == "zero_units"

    def test_additional_branch(self):
        """Test registering a branch for a new arity leaves others intact."""

        def five_columns(numbers, quantum):
            return FieldAssignment(amount=numbers[0], units=numbers[2], price=numbers[1])

        branches = dict(FieldOrderPolicy.DEFAULT_BRANCHES)
        branches[5] = five_columns
        policy = FieldOrderPolicy(branches=branches)

        assert policy.assign(_d("1.00", "2.00", "3.00", "4.00", "5.00")).units == Decimal("3.00")
        assert policy.assign(_d("1.00", "2.00", "3.00", "4.00")).units == Decimal("4.00")

    def test_unrepresentable_price(self):
        """Test a derived price too large for the decimal context is rejected."""
        policy = FieldOrderPolicy()

        assert policy.assign(_d("9" * 26 + ".00", "0.01")) == "invalid_number"

    def test_assign_fields(self):
        """Test the convenience function uses the default policy."""
        assert assign_fields(_d("100.00", "10.00")).units == Decimal("10.00")


class TestTransactionLineParser:
    """Tests for TransactionLineParser."""

    def test_three_numbers(self):
        """Test a purchase row with amount, price and units."""
        tx = parse_transaction_line("05-Jun-2023 SBI Bluechip Fund 8,000.00 78.50 101.91")

        assert isinstance(tx, Transaction)
        assert tx.date == date(2023, 6, 5)
        assert tx.kind == TransactionKind.PURCHASE
        assert tx.amount == Decimal("8000.00")
        assert tx.price == Decimal("78.50")
        assert tx.units == Decimal("101.91")
        assert tx.source_line == "05-Jun-2023 SBI Bluechip Fund 8,000.00 78.50 101.91"

    def test_redemption_two_numbers(self):
        """Test a redemption row with amount and units."""
        tx = parse_transaction_line("12-Aug-2023 Redemption 4,000.00 50.00")

        assert tx.kind == TransactionKind.REDEMPTION
        assert tx.amount == Decimal("4000.00")
        assert tx.units == Decimal("50.00")
        assert tx.price == Decimal("80.0000")

    def test_magnitudes_are_absolute(self):
        """Test negative and parenthesized numbers become magnitudes."""
        tx = parse_transaction_line("01-May-2023 Redemption -1,100.00 11.00 (100.000)")

        assert tx.amount == Decimal("1100.00")
        assert tx.units == Decimal("100.000")

    def test_lakh_grouping(self):
        """Test Indian digit grouping."""
        tx = parse_transaction_line("01-Apr-2023 Purchase 1,00,000.00 100.00 1,000.00")

        assert tx.amount == Decimal("100000.00")
        assert tx.units == Decimal("1000.00")

    def test_date_digits_not_taken_as_numbers(self):
        """Test only the text after the date is scanned for numbers."""
        tx = parse_transaction_line("05-Jun-2023 Purchase 100.00 10.00")

        assert tx.amount == Decimal("100.00")
        assert tx.units == Decimal("10.00")

    def test_single_number_skipped(self):
        """Test rows with fewer than two numbers are skipped."""
        result = parse_transaction_line("20-Mar-2023 Stamp Duty 0.25")

        assert isinstance(result, ParseSkip)
        assert result.reason == "insufficient_numbers"
        assert result.line == "20-Mar-2023 Stamp Duty 0.25"

    def test_missing_date_skipped(self):
        """Test rows without a leading date are skipped."""
        result = parse_transaction_line("Purchase 100.00 10.00")

        assert isinstance(result, ParseSkip)
        assert result.reason == "missing_date"

    def test_invalid_date_skipped(self):
        """Test impossible calendar dates are skipped."""
        result = parse_transaction_line("31-Feb-2023 Purchase 100.00 10.00")

        assert isinstance(result, ParseSkip)
        assert result.reason == "invalid_date"

    def test_zero_units_skipped(self):
        """Test rows with zero units are skipped."""
        result = parse_transaction_line("05-Jun-2023 Purchase 100.00 0.00")

        assert isinstance(result, ParseSkip)
        assert result.reason == "zero_units"

    def test_custom_policy(self):
        """Test parser uses an injected policy."""
        parser = TransactionLineParser(policy=FieldOrderPolicy(price_quantum=Decimal("0.01")))

        tx = parser.parse("05-Jun-2023 Purchase 100.00 3.00")

        assert tx.price == Decimal("33.33")

    def test_garbled_number_skipped(self):
        """Test an implausibly long token skips the row instead of raising."""
        result = parse_transaction_line("06-Jun-2023 garbled 99999999999999999999999999.00 0.01")

        assert isinstance(result, ParseSkip)
        assert result.reason == "invalid_number"

    def test_long_fraction_skipped(self):
        """Test tokens with more decimals than any statement figure."""
        result = parse_transaction_line("05-Jun-2023 Purchase 100.00 10.123456789")

        assert isinstance(result, ParseSkip)
        assert result.reason == "invalid_number"

    def test_largest_figures_accepted(self):
        """Test fifteen integer digits and eight decimals still parse."""
        tx = parse_transaction_line("01-Jan-2023 Purchase 100,000,000,000,000.00 1.00 999.99999999")

        assert tx.amount == Decimal("100000000000000.00")
        assert tx.units == Decimal("999.99999999")
