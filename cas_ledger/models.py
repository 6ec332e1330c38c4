"""
Data models for the CAS ledger pipeline.

This module defines the core data structures using dataclasses for:
- Raw statement lines and their classification
- Investor information
- Transactions and the lines that could not be parsed
- Per-scheme holdings and their valuation
- The portfolio snapshot, diagnostics and validation results
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple


class LineRole(Enum):
    """Role of a single statement line."""
    SCHEME_HEADER = "scheme_header"
    FOLIO_MARKER = "folio_marker"
    TRANSACTION_DATA = "transaction_data"
    NOISE = "noise"


@dataclass(frozen=True)
class RawLine:
    """
    A line of statement text and its zero-based position.

    Attributes:
        number: Zero-based index of the line in the source text
        text: Line content with surrounding whitespace removed
    """
    number: int
    text: str


@dataclass
class InvestorInfo:
    """
    Investor identity fields found in the statement header.

    Every field is optional; a statement without identity data still
    yields a portfolio.

    Attributes:
        name: Investor name
        email: Contact email address
        mobile: Mobile number (digits only)
        pan: Permanent Account Number (10-character tax identifier)
        address: Postal address, lines joined with ", "
    """
    name: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None
    pan: Optional[str] = None
    address: Optional[str] = None

    def __post_init__(self):
        """Normalize investor data."""
        self.name = " ".join(self.name.split()) if self.name else None
        self.email = self.email.strip().lower() if self.email else None
        self.mobile = self.mobile.strip() if self.mobile else None
        self.pan = self.pan.strip().upper() if self.pan else None
        self.address = " ".join(self.address.split()) if self.address else None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "email": self.email,
            "mobile": self.mobile,
            "pan": self.pan,
            "address": self.address,
        }


@dataclass(frozen=True)
class StatementPeriod:
    """Date range covered by the statement."""
    start: date
    end: date

    def to_dict(self) -> dict:
        return {"from": self.start.isoformat(), "to": self.end.isoformat()}


class TransactionKind(Enum):
    """
    Closed set of transaction kinds the ledger tracks.

    Direction is carried by the kind; amounts and units are always
    non-negative magnitudes.
    """
    PURCHASE = "Purchase"
    REDEMPTION = "Redemption"
    SWITCH_IN = "Switch In"
    SWITCH_OUT = "Switch Out"
    DIVIDEND_REINVESTMENT = "Dividend Reinvestment"

    @property
    def adds_units(self) -> bool:
        """True for kinds that increase the unit balance and invested capital."""
        return self in UNIT_ADDING_KINDS


UNIT_ADDING_KINDS = frozenset({
    TransactionKind.PURCHASE,
    TransactionKind.SWITCH_IN,
    TransactionKind.DIVIDEND_REINVESTMENT,
})
UNIT_REDUCING_KINDS = frozenset({
    TransactionKind.REDEMPTION,
    TransactionKind.SWITCH_OUT,
})


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class Transaction:
    """
    A single parsed statement transaction.

    Attributes:
        date: Trade date
        kind: Classified transaction kind
        amount: Transaction amount in INR (non-negative)
        units: Units transacted (non-negative)
        price: Price per unit
        source_line: Statement line the transaction was parsed from
    """
    date: date
    kind: TransactionKind
    amount: Decimal
    units: Decimal
    price: Decimal
    source_line: str = ""

    def __post_init__(self):
        """Coerce numbers to Decimal and enforce non-negative magnitudes."""
        for name in ("amount", "units", "price"):
            object.__setattr__(self, name, _to_decimal(getattr(self, name)))
        if self.amount < 0:
            raise ValueError(f"Transaction amount must not be negative: {self.amount}")
        if self.units < 0:
            raise ValueError(f"Transaction units must not be negative: {self.units}")

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "transaction_type": self.kind.value,
            "amount": str(self.amount),
            "units": str(self.units),
            "price": str(self.price),
        }


@dataclass(frozen=True)
class ParseSkip:
    """
    A transaction line that could not be turned into a Transaction.

    Attributes:
        line: The offending line text
        reason: Short reason code (e.g. "insufficient_numbers")
    """
    line: str
    reason: str


@dataclass
class SchemeHolding:
    """
    Running position in one scheme under one folio.

    Holdings are keyed by (scheme_name, folio_number); the same scheme
    held under two folios is two holdings.

    Attributes:
        scheme_name: Display name of the scheme
        folio_number: Folio the units are held under
        fund_house: Asset management company, when the statement names one
        unit_balance: Units currently held
        invested_amount: Cumulative capital put into the scheme
        transactions: Transactions in source order
    """
    scheme_name: str
    folio_number: str
    fund_house: Optional[str] = None
    unit_balance: Decimal = Decimal("0")
    invested_amount: Decimal = Decimal("0")
    transactions: List[Transaction] = field(default_factory=list)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.scheme_name, self.folio_number)

    def apply(self, transaction: Transaction) -> None:
        """
        Attach a transaction and update the running balances.

        Redemptions and switch-outs reduce units but leave invested_amount
        untouched: it tracks historical capital deployed, not cost basis.
        """
        self.transactions.append(transaction)
        if transaction.kind.adds_units:
            self.unit_balance += transaction.units
            self.invested_amount += transaction.amount
        else:
            self.unit_balance -= transaction.units

    def transactions_of(self, kind: TransactionKind) -> List[Transaction]:
        return [t for t in self.transactions if t.kind == kind]


@dataclass(frozen=True)
class HoldingValuation:
    """
    A retained holding together with its derived valuation.

    Attributes:
        holding: Aggregated holding
        avg_unit_cost: invested_amount / unit_balance
        current_unit_price: Price supplied by the valuation source
        current_value: unit_balance * current_unit_price
        unrealized_gain: current_value - invested_amount
        gain_loss_percentage: unrealized_gain as a percentage of invested_amount
        sip_amount: Mean purchase amount when the holding has recurring purchases
        sip_frequency: Inferred purchase cadence when the holding has recurring purchases
    """
    holding: SchemeHolding
    avg_unit_cost: Decimal
    current_unit_price: Decimal
    current_value: Decimal
    unrealized_gain: Decimal
    gain_loss_percentage: Decimal
    sip_amount: Optional[int] = None
    sip_frequency: Optional[str] = None

    def to_dict(self) -> dict:
        h = self.holding
        record = {
            "scheme_name": h.scheme_name,
            "folio_number": h.folio_number,
            "fund_house": h.fund_house,
            "units": str(h.unit_balance),
            "avg_purchase_price": str(self.avg_unit_cost),
            "current_price": str(self.current_unit_price),
            "current_value": str(self.current_value),
            "investment_amount": str(h.invested_amount),
            "gain_loss": str(self.unrealized_gain),
            "gain_loss_percentage": str(self.gain_loss_percentage),
            "transactions": [t.to_dict() for t in h.transactions],
        }
        if self.sip_amount is not None:
            record["sip_amount"] = self.sip_amount
            record["sip_frequency"] = self.sip_frequency
        return record


@dataclass(frozen=True)
class PortfolioSummary:
    """Portfolio-level totals and the single-class allocation table."""
    total_invested: Decimal
    total_current_value: Decimal
    total_gain: Decimal
    gain_loss_percentage: Decimal
    allocation: Dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "total_investment": str(self.total_invested),
            "total_current_value": str(self.total_current_value),
            "total_gain_loss": str(self.total_gain),
            "gain_loss_percentage": str(self.gain_loss_percentage),
            "asset_allocation": {
                asset_class: {
                    "value": str(self.total_current_value),
                    "percentage": str(percentage),
                }
                for asset_class, percentage in self.allocation.items()
            },
        }


@dataclass(frozen=True)
class Portfolio:
    """
    Immutable snapshot produced from one statement.

    Attributes:
        investor: Identity fields from the statement header
        holdings: Retained holdings with their valuation
        summary: Portfolio totals
        statement_period: Period covered by the statement, if stated
        updated_at: Timestamp supplied by the caller, never read from the clock
    """
    investor: InvestorInfo
    holdings: Tuple[HoldingValuation, ...]
    summary: PortfolioSummary
    statement_period: Optional[StatementPeriod] = None
    updated_at: Optional[datetime] = None

    def get_holding(self, scheme_name: str, folio_number: str) -> Optional[HoldingValuation]:
        """Look up a holding by its (scheme, folio) key."""
        for valuation in self.holdings:
            if valuation.holding.key == (scheme_name, folio_number):
                return valuation
        return None

    def transaction_ledger(self) -> List[dict]:
        """
        Flatten every retained transaction into a record for storage.

        Returns:
            Transaction records tagged with scheme, folio and fund house,
            in holding order and then source order.
        """
        ledger = []
        for valuation in self.holdings:
            h = valuation.holding
            for tx in h.transactions:
                record = tx.to_dict()
                record.update({
                    "scheme_name": h.scheme_name,
                    "folio_number": h.folio_number,
                    "fund_house": h.fund_house,
                })
                ledger.append(record)
        return ledger

    def to_dict(self) -> dict:
        """
        Convert the portfolio to a dictionary for JSON serialization.

        Returns:
            Dictionary with investor, holdings and summary records.
        """
        return {
            "investor": self.investor.to_dict(),
            "statement_period": (
                self.statement_period.to_dict() if self.statement_period else None
            ),
            "mutual_funds": [v.to_dict() for v in self.holdings],
            "stocks": [],
            "summary": self.summary.to_dict(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class ValidationResult:
    """
    Result of consistency checks on a parsed portfolio.

    Attributes:
        is_valid: True if all critical validations pass
        errors: List of critical errors that indicate parsing failures
        warnings: List of non-critical issues that should be reviewed
    """
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add a critical error and mark result as invalid."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a non-critical warning."""
        self.warnings.append(message)

    def merge(self, other: "ValidationResult") -> None:
        """Merge another validation result into this one."""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        if not other.is_valid:
            self.is_valid = False


@dataclass
class Diagnostics:
    """
    Counts describing how much of a statement could be interpreted.

    Attributes:
        total_lines: Lines in the source text
        transaction_lines: Lines classified as transaction data
        noise_lines: Lines classified as noise
        parsed_transactions: Transaction lines parsed successfully
        skipped_lines: Transaction lines that could not be parsed
        orphaned_transactions: Parsed transactions seen before any scheme header
        excluded_holdings: Holdings dropped for a non-positive final unit balance
        unvalued_holdings: Holdings dropped because their values could not be computed
        skip_reasons: Skipped line count per reason code
        validation: Consistency checks on the resulting portfolio
    """
    total_lines: int = 0
    transaction_lines: int = 0
    noise_lines: int = 0
    parsed_transactions: int = 0
    skipped_lines: int = 0
    orphaned_transactions: int = 0
    excluded_holdings: int = 0
    unvalued_holdings: int = 0
    skip_reasons: Dict[str, int] = field(default_factory=dict)
    validation: ValidationResult = field(default_factory=ValidationResult)

    def record_skip(self, skip: ParseSkip) -> None:
        self.skipped_lines += 1
        self.skip_reasons[skip.reason] = self.skip_reasons.get(skip.reason, 0) + 1

    @property
    def skip_ratio(self) -> float:
        """Share of transaction lines that could not be parsed."""
        if not self.transaction_lines:
            return 0.0
        return self.skipped_lines / self.transaction_lines

    def to_dict(self) -> dict:
        return {
            "total_lines": self.total_lines,
            "transaction_lines": self.transaction_lines,
            "noise_lines": self.noise_lines,
            "parsed_transactions": self.parsed_transactions,
            "skipped_lines": self.skipped_lines,
            "orphaned_transactions": self.orphaned_transactions,
            "excluded_holdings": self.excluded_holdings,
            "unvalued_holdings": self.unvalued_holdings,
            "skip_reasons": dict(sorted(self.skip_reasons.items())),
            "validation": {
                "is_valid": self.validation.is_valid,
                "errors": self.validation.errors,
                "warnings": self.validation.warnings,
            },
        }
