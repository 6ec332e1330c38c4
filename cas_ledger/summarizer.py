"""
Valuation and portfolio summarization.

No market data feed is wired in, so current unit prices come from a
pluggable valuation source. The default source simulates growth over the
average unit cost with an injected random generator, which keeps results
reproducible for a fixed seed.
"""

import logging
import random
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Callable, Iterable, List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from cas_ledger.config import DEFAULT_CONFIG, PipelineConfig
from cas_ledger.models import (
    HoldingValuation,
    PortfolioSummary,
    SchemeHolding,
    TransactionKind,
)

logger = logging.getLogger(__name__)

# Maps an average unit cost to a current unit price
ValuationSource = Callable[[Decimal], Decimal]

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Working precision for valuation; wide enough for any figure the parser accepts
DECIMAL_PRECISION = 60

SIP_FREQUENCIES = {
    1: "Monthly",
    3: "Quarterly",
    6: "Half-Yearly",
    12: "Yearly",
}


class SimulatedGrowthValuation:
    """
    Valuation source that applies a random growth factor to the cost.

    Attributes:
        rng: Random generator owned by this source
        growth_min: Lower bound of the growth factor
        growth_max: Upper bound of the growth factor
        price_quantum: Quantum prices are rounded to
    """

    def __init__(
        self,
        rng: random.Random,
        growth_min: float = DEFAULT_CONFIG.growth_min,
        growth_max: float = DEFAULT_CONFIG.growth_max,
        price_quantum: Decimal = DEFAULT_CONFIG.price_quantum,
    ):
        self.rng = rng
        self.growth_min = growth_min
        self.growth_max = growth_max
        self.price_quantum = price_quantum

    @classmethod
    def from_seed(
        cls, seed: Optional[int], config: PipelineConfig = DEFAULT_CONFIG
    ) -> "SimulatedGrowthValuation":
        """Build a source with its own generator seeded with `seed`."""
        return cls(
            rng=random.Random(seed),
            growth_min=config.growth_min,
            growth_max=config.growth_max,
            price_quantum=config.price_quantum,
        )

    def __call__(self, avg_cost: Decimal) -> Decimal:
        factor = Decimal(str(self.rng.uniform(self.growth_min, self.growth_max)))
        return (avg_cost * factor).quantize(self.price_quantum, rounding=ROUND_HALF_UP)


def infer_sip_frequency(dates: List[date]) -> str:
    """
    Infer the cadence of recurring purchases from their dates.

    Gaps are measured in calendar months (a remainder of 15 days or more
    counts as another month) and the median gap decides the cadence.

    Args:
        dates: Purchase dates, in any order.

    Returns:
        "Monthly", "Quarterly", "Half-Yearly", "Yearly" or "Irregular".
    """
    ordered = sorted(dates)
    gaps = []
    for earlier, later in zip(ordered, ordered[1:]):
        delta = relativedelta(later, earlier)
        gaps.append(delta.years * 12 + delta.months + (1 if delta.days >= 15 else 0))
    if not gaps:
        return "Irregular"
    median_gap = sorted(gaps)[len(gaps) // 2]
    return SIP_FREQUENCIES.get(median_gap, "Irregular")


class PortfolioSummarizer:
    """
    Derives per-holding valuation and portfolio totals.

    Derived values are computed once here and never updated afterwards.
    """

    def __init__(self, valuation: ValuationSource, config: PipelineConfig = DEFAULT_CONFIG):
        """
        Initialize the summarizer.

        Args:
            valuation: Source of current unit prices.
            config: Rounding and allocation settings.
        """
        self.valuation = valuation
        self.config = config

    def value_holding(self, holding: SchemeHolding) -> HoldingValuation:
        """
        Value a single holding.

        Args:
            holding: Aggregated holding with a positive unit balance.

        Returns:
            HoldingValuation with derived fields.

        Raises:
            InvalidOperation: If a derived value cannot be represented at
                the working precision.
        """
        price_q = self.config.price_quantum
        value_q = self.config.value_quantum

        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            avg_cost = (holding.invested_amount / holding.unit_balance).quantize(
                price_q, rounding=ROUND_HALF_UP
            )
            current_price = self.valuation(avg_cost)
            current_value = (holding.unit_balance * current_price).quantize(
                value_q, rounding=ROUND_HALF_UP
            )
            gain = (current_value - holding.invested_amount).quantize(
                value_q, rounding=ROUND_HALF_UP
            )
            gain_pct = self._percentage(gain, holding.invested_amount)

            sip_amount = None
            sip_frequency = None
            purchases = holding.transactions_of(TransactionKind.PURCHASE)
            if len(purchases) > 1:
                mean = sum((t.amount for t in purchases), ZERO) / len(purchases)
                sip_amount = int(mean.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
                sip_frequency = infer_sip_frequency([t.date for t in purchases])

        return HoldingValuation(
            holding=holding,
            avg_unit_cost=avg_cost,
            current_unit_price=current_price,
            current_value=current_value,
            unrealized_gain=gain,
            gain_loss_percentage=gain_pct,
            sip_amount=sip_amount,
            sip_frequency=sip_frequency,
        )

    def summarize(
        self, holdings: Iterable[SchemeHolding]
    ) -> Tuple[Tuple[HoldingValuation, ...], PortfolioSummary]:
        """
        Value every holding and roll them up into portfolio totals.

        A holding whose values cannot be represented is left out of the
        snapshot and logged; it never aborts the summary.

        Args:
            holdings: Retained holdings in aggregation order.

        Returns:
            Tuple of (valued holdings, summary). An empty input yields
            all-zero totals.
        """
        valued = []
        for holding in holdings:
            try:
                valued.append(self.value_holding(holding))
            except InvalidOperation:
                logger.warning(
                    f"Cannot value {holding.scheme_name[:40]} (folio {holding.folio_number}): "
                    f"invested={holding.invested_amount}, units={holding.unit_balance}"
                )
        valued = tuple(valued)

        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            total_invested = sum((v.holding.invested_amount for v in valued), ZERO)
            total_current = sum((v.current_value for v in valued), ZERO)
            total_gain = total_current - total_invested
            total_pct = self._percentage(total_gain, total_invested)

        # One instrument family per statement, so it carries the whole allocation
        summary = PortfolioSummary(
            total_invested=total_invested,
            total_current_value=total_current,
            total_gain=total_gain,
            gain_loss_percentage=total_pct,
            allocation={self.config.asset_class: HUNDRED.quantize(self.config.value_quantum)},
        )
        logger.info(
            f"Summarized {len(valued)} holdings: invested={total_invested}, "
            f"current={total_current}"
        )
        return valued, summary

    def _percentage(self, part: Decimal, whole: Decimal) -> Decimal:
        if not whole:
            return ZERO.quantize(self.config.value_quantum)
        return (part / whole * HUNDRED).quantize(
            self.config.value_quantum, rounding=ROUND_HALF_UP
        )
