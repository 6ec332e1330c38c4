"""
Consolidated Account Statement (CAS) ledger.

Recovers a normalized transaction ledger and per-scheme holdings from
the loosely structured text of a mutual fund CAS, and summarizes them
into a portfolio snapshot.
"""

from cas_ledger.exceptions import CASLedgerError, DocumentError, FatalParseError
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
from cas_ledger.main import parse_statement, parse_statement_pdf

__version__ = "1.0.0"
__all__ = [
    "CASLedgerError",
    "DocumentError",
    "FatalParseError",
    "Diagnostics",
    "HoldingValuation",
    "InvestorInfo",
    "Portfolio",
    "PortfolioSummary",
    "SchemeHolding",
    "Transaction",
    "TransactionKind",
    "parse_statement",
    "parse_statement_pdf",
]
