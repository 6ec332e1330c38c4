"""Tests for portfolio validation."""

from datetime import date
from decimal import Decimal

from cas_ledger.config import PipelineConfig
from cas_ledger.models import (
    Diagnostics,
    HoldingValuation,
    InvestorInfo,
    Portfolio,
    PortfolioSummary,
    SchemeHolding,
    Transaction,
    TransactionKind,
)
from cas_ledger.validator import PortfolioValidator, validate_pan, validate_portfolio


def _holding(folio="123"):
    holding = SchemeHolding(scheme_name="Fund A", folio_number=folio)
    holding.apply(
        Transaction(
            date=date(2023, 1, 1),
            kind=TransactionKind.PURCHASE,
            amount=Decimal("1000.00"),
            units=Decimal("100.00"),
            price=Decimal("10.00"),
        )
    )
    return holding


def _valuation(holding=None, current_value="1200.00"):
    holding = holding or _holding()
    current_value = Decimal(current_value)
    return HoldingValuation(
        holding=holding,
        avg_unit_cost=Decimal("10.0000"),
        current_unit_price=Decimal("12.0000"),
        current_value=current_value,
        unrealized_gain=current_value - holding.invested_amount,
        gain_loss_percentage=Decimal("20.00"),
    )


def _portfolio(valuations=None, investor=None, **summary_overrides):
    valuations = valuations if valuations is not None else [_valuation()]
    invested = sum((v.holding.invested_amount for v in valuations), Decimal("0"))
    current = sum((v.current_value for v in valuations), Decimal("0"))
    totals = {
        "total_invested": invested,
        "total_current_value": current,
        "total_gain": current - invested,
    }
    totals.update(summary_overrides)
    summary = PortfolioSummary(
        gain_loss_percentage=Decimal("20.00"),
        allocation={"mutual_funds": Decimal("100.00")},
        **totals,
    )
    return Portfolio(
        investor=investor or InvestorInfo(),
        holdings=tuple(valuations),
        summary=summary,
    )


class TestValidatePAN:
    """Tests for PAN validation."""

    def test_valid_pan(self):
        """Test valid PAN formats."""
        assert validate_pan("ABCDE1234F") is True
        assert validate_pan("ZZZZZ9999Z") is True

    def test_invalid_pan(self):
        """Test invalid PAN formats."""
        assert validate_pan("") is False
        assert validate_pan("ABCDE123F") is False  # Too short
        assert validate_pan("ABCDE12345F") is False  # Too long
        assert validate_pan("12345ABCDE") is False  # Wrong format
        assert validate_pan("abcde1234f") is False  # Lowercase


class TestPortfolioValidator:
    """Tests for PortfolioValidator."""

    def test_valid_portfolio(self):
        """Test a consistent portfolio passes without findings."""
        result = validate_portfolio(_portfolio())

        assert result.is_valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_empty_portfolio_is_valid(self):
        """Test a portfolio with no holdings."""
        result = validate_portfolio(_portfolio(valuations=[]))

        assert result.is_valid is True

    def test_investor_warnings(self):
        """Test malformed identity fields only warn."""
        investor = InvestorInfo(pan="ABC123", email="not-an-email", mobile="12345")

        result = validate_portfolio(_portfolio(investor=investor))

        assert result.is_valid is True
        assert len(result.warnings) == 3
        assert any("PAN" in w for w in result.warnings)

    def test_invested_amount_mismatch(self):
        """Test invested amount must match unit-adding transactions."""
        holding = _holding()
        holding.invested_amount = Decimal("900.00")

        result = PortfolioValidator().validate_holding(_valuation(holding))

        assert result.is_valid is False
        assert any("Invested amount mismatch" in e for e in result.errors)

    def test_non_positive_units(self):
        """Test retained holdings need a positive balance."""
        holding = _holding()
        holding.unit_balance = Decimal("0")

        result = PortfolioValidator().validate_holding(_valuation(holding, current_value="0.00"))

        assert result.is_valid is False
        assert any("unit balance" in e for e in result.errors)

    def test_value_mismatch_warns(self):
        """Test current value far from units x price."""
        result = PortfolioValidator().validate_holding(_valuation(current_value="1300.00"))

        assert result.is_valid is True
        assert any("Value mismatch" in w for w in result.warnings)

    def test_missing_folio_warns(self):
        """Test holdings without a folio."""
        result = PortfolioValidator().validate_holding(_valuation(_holding(folio="")))

        assert any("Missing folio" in w for w in result.warnings)

    def test_totals_mismatch(self):
        """Test summary totals must equal the sum over holdings."""
        portfolio = _portfolio(total_invested=Decimal("999.00"))

        result = validate_portfolio(portfolio)

        assert result.is_valid is False
        assert any("Total invested mismatch" in e for e in result.errors)
        assert any("Total gain inconsistent" in e for e in result.errors)

    def test_diagnostics_warnings(self):
        """Test skip ratio, orphans and exclusions are reported."""
        diagnostics = Diagnostics(
            transaction_lines=4,
            skipped_lines=2,
            orphaned_transactions=1,
            excluded_holdings=1,
        )

        result = validate_portfolio(_portfolio(), diagnostics)

        assert result.is_valid is True
        assert len(result.warnings) == 3

    def test_skip_ratio_threshold_from_config(self):
        """Test the skip ratio threshold is configurable."""
        diagnostics = Diagnostics(transaction_lines=10, skipped_lines=1)

        default = validate_portfolio(_portfolio(), diagnostics)
        strict = validate_portfolio(
            _portfolio(), diagnostics, PipelineConfig(skip_ratio_warning=0.05)
        )

        assert default.warnings == []
        assert len(strict.warnings) == 1

    def test_unvalued_holdings_warn(self):
        """Test holdings that could not be valued are reported."""
        result = validate_portfolio(_portfolio(), Diagnostics(unvalued_holdings=2))

        assert result.is_valid is True
        assert any("could not be valued" in w for w in result.warnings)
