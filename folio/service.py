"""
Analytics service - One entry point for every engine operation.

Usage:
    db = await Database('data/folio.db').connect()
    service = AnalyticsService(source=my_market_data, db=db)

    await service.get_returns('AAPL', 'one_month')
    await service.get_volatility('AAPL', 'annualized')
    summary = await service.get_portfolio_summary(1)
    groups = await service.get_grouped_allocation(1, 'sector')
    plan = await service.preview_rebalance(1, 'sector', {'Technology': 60, 'CASH': 40})
    workflow = await service.execute_rebalance(1, plan)

String arguments for periods, kinds and dimensions are parsed
case-insensitively; unknown values raise InvalidArgumentError.
"""

import logging
from datetime import date
from typing import Optional, Union

from folio.analytics.grouping import GroupingEngine
from folio.analytics.history import PriceHistory
from folio.analytics.returns import ReturnsEngine
from folio.analytics.volatility import VolatilityEngine
from folio.audit import AuditLog
from folio.cache import AnalyticsCache
from folio.database import Database
from folio.locks import PortfolioLocks
from folio.market_data import MarketDataSource, PriceBook, TimeSeriesAccessor
from folio.models import GroupingSummary, PriceAtDate, RebalancingPlan
from folio.planner import RebalancePlanner
from folio.portfolio import PortfolioBook
from folio.settings import Settings
from folio.stocks import StockRegistry
from folio.trading import RebalanceWorkflow, TransactionExecutor

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Wires the engine components around one database and one market-data source."""

    def __init__(
        self,
        source: MarketDataSource | None = None,
        db: Database | None = None,
        accessor: TimeSeriesAccessor | None = None,
        cache: AnalyticsCache | None = None,
    ):
        """
        Initialize the service.

        Args:
            source: Market-data provider (ignored when accessor is given)
            db: Database instance (uses default path if None)
            accessor: Prebuilt accessor
            cache: Analytics cache shared by volatility and trading
        """
        if accessor is None:
            if source is None:
                raise ValueError("A market-data source or accessor is required")
            accessor = TimeSeriesAccessor(source)
        self._accessor = accessor
        self._db = db or Database()
        self._cache = cache or AnalyticsCache()
        self._settings = Settings(self._db)
        self._audit = AuditLog(self._db)
        self._locks = PortfolioLocks()

        self.stocks = StockRegistry(accessor, self._db)
        self.book = PortfolioBook(
            accessor, self._db, audit=self._audit, stocks=self.stocks, cache=self._cache, locks=self._locks
        )
        self.history = PriceHistory(accessor)
        self.grouping = GroupingEngine(accessor, self._db, book=self.book, stocks=self.stocks)
        self.returns = ReturnsEngine(
            accessor, self._db, book=self.book, settings=self._settings, grouping=self.grouping
        )
        self.volatility = VolatilityEngine(
            accessor, self._db, grouping=self.grouping, settings=self._settings, cache=self._cache
        )
        self.planner = RebalancePlanner(accessor, self._db, grouping=self.grouping)
        self.executor = TransactionExecutor(
            accessor, self._db, audit=self._audit, settings=self._settings, cache=self._cache, locks=self._locks
        )

    # -------------------------------------------------------------------------
    # Symbol analytics
    # -------------------------------------------------------------------------

    async def get_returns(self, symbol: str, period, as_of: Optional[date] = None) -> float:
        return await self.returns.period_return(symbol.upper(), period, as_of)

    async def get_volatility(self, symbol: str, kind, as_of: Optional[date] = None) -> float:
        return await self.volatility.volatility(symbol.upper(), kind, as_of)

    async def get_price_at_date(self, symbol: str, day) -> PriceAtDate:
        return await self.returns.price_at_date(symbol.upper(), day)

    async def get_history(self, symbol: str, span, as_of: Optional[date] = None) -> list[dict]:
        return await self.history.points(symbol.upper(), span, as_of)

    async def search_tickers(self, term: str) -> list[dict]:
        return await self.stocks.search(term)

    # -------------------------------------------------------------------------
    # Portfolio analytics
    # -------------------------------------------------------------------------

    async def get_portfolio_volatility(self, portfolio_id: int, kind, as_of: Optional[date] = None) -> float:
        return await self.volatility.portfolio_volatility(portfolio_id, kind, as_of)

    async def get_weighted_return(self, portfolio_id: int, symbol: str) -> float:
        return await self.returns.weighted_return(portfolio_id, symbol)

    async def get_portfolio_summary(self, portfolio_id: int) -> dict:
        """
        Market value of the holdings with per-stock and overall returns.

        An empty portfolio reports zero value and empty return maps.
        """
        portfolio = await self.book.load(portfolio_id)
        if not portfolio.positions:
            return {"total_portfolio_value": 0.0, "stock_returns": {}, "overall_returns": {}}

        prices = PriceBook(self._accessor)
        return {
            "total_portfolio_value": await self.grouping.total_market_value(portfolio_id, prices),
            "stock_returns": await self.returns.position_returns(portfolio_id, prices),
            "overall_returns": await self.returns.overall_returns(portfolio_id, prices),
        }

    async def get_grouped_allocation(self, portfolio_id: int, dimension) -> GroupingSummary:
        return await self.grouping.grouping_summary(portfolio_id, dimension)

    # -------------------------------------------------------------------------
    # Rebalancing
    # -------------------------------------------------------------------------

    async def preview_rebalance(self, portfolio_id: int, dimension, targets: dict) -> RebalancingPlan:
        return await self.planner.plan(portfolio_id, dimension, targets)

    async def execute_rebalance(
        self,
        portfolio_id: int,
        plan: Union[RebalancingPlan, dict],
        actor: Optional[str] = None,
    ) -> RebalanceWorkflow:
        """Apply a plan (or symbol -> share delta mapping). Partial on failure, see folio.trading."""
        await self.book.load(portfolio_id)
        return await self.executor.execute(portfolio_id, plan, actor=actor)
