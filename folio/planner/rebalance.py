"""
Rebalance planner - Share deltas that move group allocations toward targets.

Usage:
    planner = RebalancePlanner(accessor, db=db)
    plan = await planner.plan(portfolio_id, 'sector', {'Technology': 50, 'CASH': 50})
    plan.share_deltas()   # {'AAPL': -12, 'MSFT': -7}
    plan.cash_delta       # +2310.0

Stocks keep their relative weight inside their group: each stock's target
is the group target scaled by the stock's current share of the group.
Deltas are rounded to whole shares, and the reported final allocations are
computed from the rounded result so the rounding error stays visible.
Planning never mutates the portfolio.
"""

import logging
import math
from numbers import Real

from folio.analytics.grouping import GroupingEngine, group_of
from folio.database import Database
from folio.errors import DivisionByZeroError, InvalidTargetAllocationError
from folio.market_data import TimeSeriesAccessor
from folio.models import CASH, GroupAllocation, GroupingDimension, GroupingSummary, RebalancingPlan
from folio.utils import percent, round_half_up

logger = logging.getLogger(__name__)

TARGET_TOLERANCE = 1e-9


def validate_targets(targets: dict) -> dict[str, float]:
    """
    Check that targets are non-negative and sum to 100.

    The key 'cash' is accepted in any case and normalized to CASH.

    Raises:
        InvalidTargetAllocationError: Empty, negative, non-numeric or not summing to 100
    """
    if not targets:
        raise InvalidTargetAllocationError(0.0, "No target allocations given")

    normalized: dict[str, float] = {}
    for group, pct in targets.items():
        if isinstance(pct, bool) or not isinstance(pct, Real):
            raise InvalidTargetAllocationError(0.0, f"Target for {group} is not a number: {pct!r}")
        if pct < 0:
            raise InvalidTargetAllocationError(float(pct), f"Target for {group} cannot be negative: {pct}")
        key = CASH if str(group).upper() == CASH else group
        normalized[key] = normalized.get(key, 0.0) + float(pct)

    total = sum(normalized.values())
    if not math.isclose(total, 100.0, rel_tol=0.0, abs_tol=TARGET_TOLERANCE):
        raise InvalidTargetAllocationError(total)
    return normalized


def project(summary: GroupingSummary, targets: dict[str, float]) -> RebalancingPlan:
    """
    Pure projection of a grouping summary onto validated targets.

    Raises:
        DivisionByZeroError: A stock has a zero price or its group has no value
    """
    total = summary.total_value

    target_values = {group: total * pct / 100.0 for group, pct in targets.items()}
    final_values: dict[str, float] = {group: 0.0 for group in targets}
    adjustments: dict[str, float] = {}
    final_quantities: dict[str, int] = {}
    projected = total

    for symbol, snap in summary.stocks.items():
        group = group_of(snap, summary.dimension)
        group_value = summary.allocations[group].actual_value
        if group_value == 0 or snap.current_price == 0:
            raise DivisionByZeroError(f"Cannot rebalance {symbol}: zero price or zero value in group {group}")

        current_value = snap.value
        target_value = target_values.get(group, 0.0) * (current_value / group_value)
        delta = round_half_up((target_value - current_value) / snap.current_price)

        adjustments[symbol] = delta
        final_quantities[symbol] = snap.quantity + delta
        projected += delta * snap.current_price
        final_values[group] = final_values.get(group, 0.0) + current_value + delta * snap.current_price

    if CASH in targets:
        cash = summary.allocations[CASH].actual_value
        cash_delta = target_values[CASH] - cash
        adjustments[CASH] = cash_delta
        final_values[CASH] = cash + cash_delta
        projected += cash_delta

    final_allocations = {group: GroupAllocation(value, percent(value, projected)) for group, value in final_values.items()}
    return RebalancingPlan(
        adjustments=adjustments,
        projected_total_value=projected,
        final_allocations=final_allocations,
        final_quantities=final_quantities,
    )


class RebalancePlanner:
    """Builds rebalancing plans from live grouping summaries."""

    def __init__(self, accessor: TimeSeriesAccessor, db: Database | None = None, grouping: GroupingEngine | None = None):
        self._db = db or Database()
        self._grouping = grouping or GroupingEngine(accessor, self._db)

    async def plan(self, portfolio_id: int, dimension, targets: dict) -> RebalancingPlan:
        """
        Plan the trades that move a portfolio toward target group percentages.

        Args:
            portfolio_id: Portfolio to plan for
            dimension: Grouping dimension (enum or its name)
            targets: Group -> target percentage, summing to 100

        Raises:
            InvalidTargetAllocationError: Targets don't sum to 100
            InvalidArgumentError: Unsupported dimension
        """
        dimension = GroupingDimension.from_string(dimension)
        validated = validate_targets(targets)
        summary = await self._grouping.grouping_summary(portfolio_id, dimension)
        plan = project(summary, validated)
        logger.info(
            f"Portfolio #{portfolio_id} rebalance by {dimension.value}: "
            f"{sum(1 for d in plan.share_deltas().values() if d)} trades, "
            f"projected value {plan.projected_total_value:.2f}"
        )
        return plan
