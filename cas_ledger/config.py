"""
Tunable settings for the CAS ledger pipeline.
"""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class PipelineConfig:
    """
    Settings shared by the pipeline stages.

    Attributes:
        growth_min: Lower bound of the simulated price growth factor
        growth_max: Upper bound of the simulated price growth factor
        price_places: Decimal places kept for unit prices
        value_places: Decimal places kept for money values and percentages
        asset_class: Allocation bucket that all holdings are reported under
        skip_ratio_warning: Skipped/transaction-line ratio above which the
            validator warns
        totals_tolerance: Absolute tolerance for totals consistency checks
        max_address_lines: Maximum number of header lines joined into the
            investor address
    """
    growth_min: float = 1.05
    growth_max: float = 1.25
    price_places: int = 4
    value_places: int = 2
    asset_class: str = "mutual_funds"
    skip_ratio_warning: float = 0.25
    totals_tolerance: Decimal = Decimal("0.01")
    max_address_lines: int = 4

    def __post_init__(self):
        """Reject settings that would make valuation meaningless."""
        if self.growth_min <= 0 or self.growth_max <= 0:
            raise ValueError("Growth bounds must be positive")
        if self.growth_min > self.growth_max:
            raise ValueError(
                f"growth_min ({self.growth_min}) exceeds growth_max ({self.growth_max})"
            )
        if self.price_places < 0 or self.value_places < 0:
            raise ValueError("Decimal places must not be negative")

    @property
    def price_quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.price_places)

    @property
    def value_quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.value_places)


DEFAULT_CONFIG = PipelineConfig()
