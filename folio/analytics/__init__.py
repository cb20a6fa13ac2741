"""Returns, volatility, history and grouping analytics."""

from folio.analytics.grouping import GroupingEngine
from folio.analytics.history import PriceHistory
from folio.analytics.returns import ReturnsEngine
from folio.analytics.volatility import VolatilityEngine, return_volatility

__all__ = ["GroupingEngine", "PriceHistory", "ReturnsEngine", "VolatilityEngine", "return_volatility"]
