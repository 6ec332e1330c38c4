"""
Transaction line parser for CAS statements.

This module turns a line already labelled as transaction data into a
Transaction. Statement rows have no column headers, so the numeric
fields are assigned by an explicit field-order policy keyed on how many
numbers the row carries, and the transaction kind is inferred from
keywords in the row text.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Callable, Dict, List, Optional, Tuple, Union

from cas_ledger.config import DEFAULT_CONFIG
from cas_ledger.models import ParseSkip, Transaction, TransactionKind

logger = logging.getLogger(__name__)

MONTHS: Dict[str, int] = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}

DATE_TOKEN_PATTERN = re.compile(r"^\s*(\d{1,2})-([A-Za-z]{3})-(\d{4})\b")
NUMBER_PATTERN = re.compile(r"\(?-?\d[\d,]*\.\d+\)?")

# Tokens longer than this are garbled text, not statement figures
MAX_INTEGER_DIGITS = 15
MAX_FRACTION_DIGITS = 8

# ParseSkip reason codes
MISSING_DATE = "missing_date"
INVALID_DATE = "invalid_date"
INSUFFICIENT_NUMBERS = "insufficient_numbers"
ZERO_UNITS = "zero_units"
INVALID_NUMBER = "invalid_number"


def parse_date_token(token: str) -> Optional[date]:
    """
    Parse a DD-Mon-YYYY date using the fixed month table.

    Args:
        token: Text starting with the date, e.g. "05-Jun-2023".

    Returns:
        Parsed date, or None if the token is absent or not a calendar date.
    """
    match = DATE_TOKEN_PATTERN.match(token)
    if not match:
        return None
    month = MONTHS.get(match.group(2).upper())
    if month is None:
        return None
    try:
        return date(int(match.group(3)), month, int(match.group(1)))
    except ValueError:
        return None


class TransactionTypeDetector:
    """
    Detects the transaction kind from the row text.

    Patterns are checked in precedence order and the first hit wins.
    Rows matching nothing are purchases, which also covers SIP and other
    systematic investment wording.
    """

    # Order matters: redemption wording and parenthesized negatives first
    TYPE_PATTERNS: List[Tuple[TransactionKind, List[str]]] = [
        (TransactionKind.REDEMPTION, [
            r"(?i)redemption",
            r"\(\s*\d[\d,]*\.\d+\s*\)",
        ]),
        (TransactionKind.SWITCH_OUT, [
            r"(?i)switch(?:ed)?\s*-?\s*out",
        ]),
        (TransactionKind.SWITCH_IN, [
            r"(?i)switch(?:ed)?\s*-?\s*in\b",
        ]),
        (TransactionKind.DIVIDEND_REINVESTMENT, [
            r"(?i)dividend",
        ]),
    ]

    def __init__(self):
        """Initialize the type detector with compiled patterns."""
        self.compiled_patterns: List[Tuple[TransactionKind, List[re.Pattern]]] = [
            (kind, [re.compile(p) for p in patterns])
            for kind, patterns in self.TYPE_PATTERNS
        ]

    def detect(self, line: str) -> TransactionKind:
        """
        Detect the transaction kind of a row.

        Args:
            line: Raw transaction row.

        Returns:
            Detected TransactionKind; never fails.
        """
        for kind, patterns in self.compiled_patterns:
            for pattern in patterns:
                if pattern.search(line):
                    return kind
        return TransactionKind.PURCHASE


@dataclass(frozen=True)
class FieldAssignment:
    """Amount, units and price recovered from a row's numbers."""
    amount: Decimal
    units: Decimal
    price: Decimal


ArityBranch = Callable[[List[Decimal], Decimal], Optional[FieldAssignment]]


def amount_then_units(numbers: List[Decimal], price_quantum: Decimal) -> Optional[FieldAssignment]:
    """Two numbers: amount then units, price derived as amount / units."""
    amount, units = numbers[0], numbers[1]
    if units == 0:
        return None
    price = (amount / units).quantize(price_quantum, rounding=ROUND_HALF_UP)
    return FieldAssignment(amount=amount, units=units, price=price)


def amount_price_trailing_units(
    numbers: List[Decimal], price_quantum: Decimal
) -> Optional[FieldAssignment]:
    """
    Three or more numbers: amount, price, and units from the last column.

    Trailing columns in these statements are unit balances, so anything
    between the price and the last number is ignored.
    """
    amount, price, units = numbers[0], numbers[1], numbers[-1]
    if units == 0:
        return None
    return FieldAssignment(amount=amount, units=units, price=price)


class FieldOrderPolicy:
    """
    Positional assignment of a row's numbers to amount, price and units.

    Branches are keyed by the minimum arity they handle; a row uses the
    branch with the largest key not exceeding its number count. New
    statement variants register another branch instead of editing the
    existing ones.
    """

    NAME = "positional-v1"
    DEFAULT_BRANCHES: Dict[int, ArityBranch] = {
        2: amount_then_units,
        3: amount_price_trailing_units,
    }

    def __init__(
        self,
        branches: Optional[Dict[int, ArityBranch]] = None,
        price_quantum: Decimal = DEFAULT_CONFIG.price_quantum,
    ):
        self.branches = dict(branches or self.DEFAULT_BRANCHES)
        self.price_quantum = price_quantum
        self.min_arity = min(self.branches)

    def assign(self, numbers: List[Decimal]) -> Union[FieldAssignment, str]:
        """
        Assign numbers to transaction fields.

        Args:
            numbers: Absolute values of the row's numbers in order of appearance.

        Returns:
            FieldAssignment, or a ParseSkip reason code when the row
            cannot be reconstructed.
        """
        if len(numbers) < self.min_arity:
            return INSUFFICIENT_NUMBERS
        arity = max(k for k in self.branches if k <= len(numbers))
        try:
            assignment = self.branches[arity](numbers, self.price_quantum)
        except InvalidOperation:
            # Derived price does not fit the decimal context
            return INVALID_NUMBER
        if assignment is None:
            return ZERO_UNITS
        return assignment


def assign_fields(numbers: List[Decimal]) -> Union[FieldAssignment, str]:
    """Assign numbers using the default field-order policy."""
    return FieldOrderPolicy().assign(numbers)


class TransactionLineParser:
    """
    Parser for single transaction rows.

    Failures are returned as ParseSkip values so that one bad row never
    aborts a statement.
    """

    def __init__(
        self,
        policy: Optional[FieldOrderPolicy] = None,
        type_detector: Optional[TransactionTypeDetector] = None,
    ):
        """
        Initialize the parser.

        Args:
            policy: Field-order policy; the positional default when omitted.
            type_detector: Transaction kind detector.
        """
        self.policy = policy or FieldOrderPolicy()
        self.type_detector = type_detector or TransactionTypeDetector()

    def parse(self, line: str) -> Union[Transaction, ParseSkip]:
        """
        Parse one transaction row.

        Args:
            line: Row text starting with a DD-Mon-YYYY date.

        Returns:
            Transaction, or ParseSkip describing why the row was dropped.
        """
        date_match = DATE_TOKEN_PATTERN.match(line)
        if not date_match:
            return self._skip(line, MISSING_DATE)

        tx_date = parse_date_token(line)
        if tx_date is None:
            return self._skip(line, INVALID_DATE)

        numbers = self._extract_numbers(line[date_match.end():])
        if numbers is None:
            return self._skip(line, INVALID_NUMBER)

        assignment = self.policy.assign(numbers)
        if isinstance(assignment, str):
            return self._skip(line, assignment)

        return Transaction(
            date=tx_date,
            kind=self.type_detector.detect(line),
            amount=assignment.amount,
            units=assignment.units,
            price=assignment.price,
            source_line=line,
        )

    def _extract_numbers(self, text: str) -> Optional[List[Decimal]]:
        """
        Collect every decimal number in order of appearance, as magnitudes.

        Args:
            text: Row text after the date.

        Returns:
            List of absolute values, or None if a token is not a number
            or is too long to be a statement figure.
        """
        numbers = []
        for match in NUMBER_PATTERN.finditer(text):
            raw = match.group(0).strip("()").replace(",", "")
            integer_part, _, fraction_part = raw.lstrip("-").partition(".")
            if (
                len(integer_part.lstrip("0")) > MAX_INTEGER_DIGITS
                or len(fraction_part) > MAX_FRACTION_DIGITS
            ):
                return None
            try:
                numbers.append(abs(Decimal(raw)))
            except InvalidOperation:
                return None
        return numbers

    def _skip(self, line: str, reason: str) -> ParseSkip:
        logger.debug(f"Skipping transaction line ({reason}): {line[:80]}")
        return ParseSkip(line=line, reason=reason)


def parse_transaction_line(line: str) -> Union[Transaction, ParseSkip]:
    """
    Convenience function to parse a single transaction row.

    Args:
        line: Row text starting with a date.

    Returns:
        Transaction or ParseSkip.
    """
    return TransactionLineParser().parse(line)


def classify_transaction(line: str) -> TransactionKind:
    """
    Classify a transaction row by keyword precedence.

    Args:
        line: Raw transaction row.

    Returns:
        Classified TransactionKind.
    """
    return TransactionTypeDetector().detect(line)
