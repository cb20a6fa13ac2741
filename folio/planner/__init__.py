"""
Rebalancing planner.

Usage:
    from folio.planner import RebalancePlanner

    plan = await RebalancePlanner(accessor).plan(portfolio_id, 'sector', targets)
"""

from folio.planner.rebalance import RebalancePlanner, project, validate_targets

__all__ = ["RebalancePlanner", "project", "validate_targets"]
