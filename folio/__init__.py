"""
Folio - Portfolio analytics and rebalancing engine.

Usage:
    from folio import AnalyticsService, Database

    db = await Database('data/folio.db').connect()
    service = AnalyticsService(source=market_data, db=db)
    plan = await service.preview_rebalance(1, 'sector', {'Technology': 60, 'CASH': 40})
"""

from folio.database import Database
from folio.errors import FolioError
from folio.models import GroupingDimension, Period, VolatilityKind
from folio.service import AnalyticsService

__all__ = ["AnalyticsService", "Database", "FolioError", "GroupingDimension", "Period", "VolatilityKind"]
