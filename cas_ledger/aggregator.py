"""
Scheme aggregation for parsed CAS transactions.

Statements never repeat the scheme or folio on transaction rows; both
have to be carried forward from the most recent header lines. The
aggregator does this as a fold over the classified line stream with an
explicit accumulator, so no context outlives a single call.
"""

import logging
from dataclasses import dataclass, field
from functools import reduce
from typing import Dict, Iterable, List, Optional, Tuple, Union

from cas_ledger.line_classifier import extract_folio, extract_scheme_name, match_fund_house
from cas_ledger.models import LineRole, ParseSkip, RawLine, SchemeHolding, Transaction

logger = logging.getLogger(__name__)

LedgerEntry = Tuple[RawLine, LineRole, Union[Transaction, ParseSkip, None]]


@dataclass
class AggregationState:
    """
    Accumulator threaded through the fold.

    Attributes:
        scheme: Current scheme display name (None until a header is seen)
        folio: Current folio number ("" until a folio marker is seen)
        fund_house: Current asset management company, if named
        holdings: Holdings by (scheme, folio) key in first-seen order
        orphaned_transactions: Transactions seen before any scheme header
    """
    scheme: Optional[str] = None
    folio: str = ""
    fund_house: Optional[str] = None
    holdings: Dict[Tuple[str, str], SchemeHolding] = field(default_factory=dict)
    orphaned_transactions: int = 0


@dataclass
class AggregationResult:
    """
    Outcome of aggregating one statement.

    Attributes:
        holdings: Holdings with a positive final unit balance
        excluded: Holdings dropped for a non-positive final unit balance
        orphaned_transactions: Transactions dropped for lack of a scheme
    """
    holdings: List[SchemeHolding] = field(default_factory=list)
    excluded: List[SchemeHolding] = field(default_factory=list)
    orphaned_transactions: int = 0


class SchemeAggregator:
    """
    Groups transactions into holdings keyed by (scheme, folio).

    Purchases, switch-ins and dividend reinvestments add units and
    invested capital; redemptions and switch-outs only remove units.
    """

    def aggregate(self, entries: Iterable[LedgerEntry]) -> AggregationResult:
        """
        Fold a classified, parsed line stream into holdings.

        Args:
            entries: (RawLine, LineRole, parse result) triples in source
                order; the parse result is None for non-transaction lines.

        Returns:
            AggregationResult with retained and excluded holdings.
        """
        state = reduce(self.step, entries, AggregationState())

        result = AggregationResult(orphaned_transactions=state.orphaned_transactions)
        for holding in state.holdings.values():
            if holding.unit_balance > 0:
                result.holdings.append(holding)
            else:
                logger.warning(
                    f"Excluding {holding.scheme_name[:40]} (folio {holding.folio_number}): "
                    f"unit balance {holding.unit_balance}"
                )
                result.excluded.append(holding)

        if state.orphaned_transactions:
            logger.warning(
                f"Dropped {state.orphaned_transactions} transactions seen before any scheme header"
            )
        logger.info(
            f"Aggregated {len(state.holdings)} holdings, retained {len(result.holdings)}"
        )
        return result

    def step(self, state: AggregationState, entry: LedgerEntry) -> AggregationState:
        """
        Apply one classified line to the accumulator.

        Args:
            state: Accumulator so far.
            entry: (RawLine, LineRole, parse result) for the next line.

        Returns:
            The updated accumulator.
        """
        line, role, parsed = entry

        if role == LineRole.SCHEME_HEADER:
            state.scheme = extract_scheme_name(line.text)
            logger.debug(f"Line {line.number}: scheme -> {state.scheme}")

        elif role == LineRole.FOLIO_MARKER:
            folio = extract_folio(line.text)
            if folio is not None:
                state.folio = folio
                logger.debug(f"Line {line.number}: folio -> {state.folio}")

        elif role == LineRole.NOISE:
            fund_house = match_fund_house(line.text)
            if fund_house:
                state.fund_house = fund_house

        elif isinstance(parsed, Transaction):
            if state.scheme is None:
                state.orphaned_transactions += 1
                logger.debug(f"Line {line.number}: transaction before any scheme header")
            else:
                self._holding_for(state).apply(parsed)

        return state

    def _holding_for(self, state: AggregationState) -> SchemeHolding:
        key = (state.scheme, state.folio)
        holding = state.holdings.get(key)
        if holding is None:
            holding = SchemeHolding(
                scheme_name=state.scheme,
                folio_number=state.folio,
                fund_house=state.fund_house,
            )
            state.holdings[key] = holding
        return holding


def aggregate_holdings(entries: Iterable[LedgerEntry]) -> AggregationResult:
    """
    Convenience function to aggregate a parsed line stream.

    Args:
        entries: (RawLine, LineRole, parse result) triples in source order.

    Returns:
        AggregationResult.
    """
    return SchemeAggregator().aggregate(entries)
