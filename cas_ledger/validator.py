"""
Validation module for parsed CAS portfolios.

This module implements consistency checks on a portfolio snapshot and
the diagnostics of the parse that produced it. Validation never raises;
findings are reported as errors and warnings.
"""

import logging
import re
from decimal import Decimal
from typing import Optional

from cas_ledger.config import DEFAULT_CONFIG, PipelineConfig
from cas_ledger.models import (
    Diagnostics,
    HoldingValuation,
    InvestorInfo,
    Portfolio,
    UNIT_ADDING_KINDS,
    ValidationResult,
)

logger = logging.getLogger(__name__)

PAN_PATTERN = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


class PortfolioValidator:
    """
    Validator for parsed portfolios.

    Implements the following rules:
    - Retained holdings have a positive unit balance
    - Invested amount equals the sum of unit-adding transaction amounts
    - Current value is consistent with units x current price
    - Portfolio totals equal the sum over holdings
    - Investor identity fields, when present, are well formed
    - The share of unparseable transaction lines stays below a threshold
    """

    def __init__(self, config: PipelineConfig = DEFAULT_CONFIG):
        """
        Initialize the validator.

        Args:
            config: Supplies the totals tolerance and skip-ratio threshold.
        """
        self.tolerance = config.totals_tolerance
        self.skip_ratio_warning = config.skip_ratio_warning

    def validate(
        self, portfolio: Portfolio, diagnostics: Optional[Diagnostics] = None
    ) -> ValidationResult:
        """
        Perform complete validation of a portfolio.

        Args:
            portfolio: Portfolio snapshot to validate.
            diagnostics: Parse diagnostics, if available.

        Returns:
            ValidationResult with errors and warnings.
        """
        result = ValidationResult()

        result.merge(self.validate_investor(portfolio.investor))
        for valuation in portfolio.holdings:
            result.merge(self.validate_holding(valuation))
        result.merge(self.validate_totals(portfolio))
        if diagnostics is not None:
            result.merge(self.validate_diagnostics(diagnostics))

        logger.info(
            f"Validation complete: valid={result.is_valid}, "
            f"errors={len(result.errors)}, warnings={len(result.warnings)}"
        )
        return result

    def validate_investor(self, investor: InvestorInfo) -> ValidationResult:
        """
        Validate investor identity fields that were found.

        Missing fields are not reported; identity data is optional.
        """
        result = ValidationResult()
        if investor.pan and not PAN_PATTERN.match(investor.pan):
            result.add_warning(f"Invalid PAN format: {investor.pan}")
        if investor.email and not EMAIL_PATTERN.match(investor.email):
            result.add_warning(f"Invalid email format: {investor.email}")
        if investor.mobile and len(investor.mobile) != 10:
            result.add_warning(f"Unexpected mobile number length: {investor.mobile}")
        return result

    def validate_holding(self, valuation: HoldingValuation) -> ValidationResult:
        """
        Validate a single valued holding.

        Args:
            valuation: Holding and its derived values.

        Returns:
            ValidationResult for the holding.
        """
        result = ValidationResult()
        holding = valuation.holding
        label = f"{holding.scheme_name[:30]} (folio {holding.folio_number or '-'})"

        if holding.unit_balance <= 0:
            result.add_error(f"Non-positive unit balance retained for {label}")

        expected_invested = sum(
            (t.amount for t in holding.transactions if t.kind in UNIT_ADDING_KINDS),
            Decimal("0"),
        )
        if expected_invested != holding.invested_amount:
            result.add_error(
                f"Invested amount mismatch for {label}: "
                f"holding={holding.invested_amount}, transactions={expected_invested}"
            )

        if valuation.avg_unit_cost < 0:
            result.add_error(f"Negative average unit cost for {label}")

        calculated = holding.unit_balance * valuation.current_unit_price
        if abs(calculated - valuation.current_value) > self.tolerance:
            result.add_warning(
                f"Value mismatch for {label}: "
                f"calculated={calculated:.2f}, stated={valuation.current_value}"
            )

        if not holding.folio_number:
            result.add_warning(f"Missing folio for holding: {holding.scheme_name[:50]}")

        return result

    def validate_totals(self, portfolio: Portfolio) -> ValidationResult:
        """Check that summary totals equal the sums over holdings."""
        result = ValidationResult()
        summary = portfolio.summary

        invested = sum((v.holding.invested_amount for v in portfolio.holdings), Decimal("0"))
        current = sum((v.current_value for v in portfolio.holdings), Decimal("0"))

        if abs(invested - summary.total_invested) > self.tolerance:
            result.add_error(
                f"Total invested mismatch: summary={summary.total_invested}, holdings={invested}"
            )
        if abs(current - summary.total_current_value) > self.tolerance:
            result.add_error(
                f"Total current value mismatch: summary={summary.total_current_value}, "
                f"holdings={current}"
            )
        if abs(summary.total_current_value - summary.total_invested - summary.total_gain) > self.tolerance:
            result.add_error(f"Total gain inconsistent with totals: {summary.total_gain}")

        return result

    def validate_diagnostics(self, diagnostics: Diagnostics) -> ValidationResult:
        """Warn about the parts of the statement that were not interpreted."""
        result = ValidationResult()

        if diagnostics.skip_ratio > self.skip_ratio_warning:
            result.add_warning(
                f"{diagnostics.skipped_lines} of {diagnostics.transaction_lines} "
                f"transaction lines could not be parsed ({diagnostics.skip_ratio:.0%})"
            )
        if diagnostics.orphaned_transactions:
            result.add_warning(
                f"{diagnostics.orphaned_transactions} transactions appeared before "
                f"any scheme header and were dropped"
            )
        if diagnostics.excluded_holdings:
            result.add_warning(
                f"{diagnostics.excluded_holdings} holdings with no remaining units were excluded"
            )
        if diagnostics.unvalued_holdings:
            result.add_warning(
                f"{diagnostics.unvalued_holdings} holdings could not be valued and were excluded"
            )
        return result


def validate_portfolio(
    portfolio: Portfolio,
    diagnostics: Optional[Diagnostics] = None,
    config: PipelineConfig = DEFAULT_CONFIG,
) -> ValidationResult:
    """
    Convenience function to validate a portfolio.

    Args:
        portfolio: Portfolio snapshot to validate.
        diagnostics: Parse diagnostics, if available.
        config: Validation thresholds.

    Returns:
        ValidationResult with errors and warnings.
    """
    return PortfolioValidator(config).validate(portfolio, diagnostics)


def validate_pan(pan: str) -> bool:
    """
    Validate a PAN format.

    Args:
        pan: PAN string to validate.

    Returns:
        True if valid, False otherwise.
    """
    return bool(PAN_PATTERN.match(pan))
