"""
Grouping - Market value by sector, industry, exchange or country.

Usage:
    engine = GroupingEngine(accessor, db=db)
    weight = await engine.stock_weight(portfolio_id, 'AAPL')
    values = await engine.value_by_group(portfolio_id, 'sector')
    summary = await engine.grouping_summary(portfolio_id, GroupingDimension.COUNTRY)

Each call prices every unique symbol exactly once. Stocks without a value
for the dimension, or whose value reads "CASH", are grouped under "Unknown";
remaining capital always appears as the "CASH" group of a summary.
"""

import logging
from collections import defaultdict
from typing import Optional

from folio.database import Database
from folio.errors import EmptyPortfolioError, EntityNotFoundError
from folio.market_data import PriceBook, TimeSeriesAccessor
from folio.models import (
    CASH,
    UNKNOWN_GROUP,
    GroupAllocation,
    GroupingDimension,
    GroupingSummary,
    Portfolio,
    StockSnapshot,
)
from folio.portfolio import PortfolioBook
from folio.stocks import StockRegistry
from folio.utils import percent

logger = logging.getLogger(__name__)


def group_of(snapshot: StockSnapshot, dimension: GroupingDimension) -> str:
    """
    Group label of a priced stock.

    A missing attribute maps to "Unknown", and so does a label that would
    collide with the synthetic CASH group in any letter case.
    """
    key = dimension.accessor(snapshot)
    if not key or str(key).upper() == CASH:
        return UNKNOWN_GROUP
    return key


class GroupingEngine:
    """Aggregates priced positions into allocation groups."""

    def __init__(
        self,
        accessor: TimeSeriesAccessor,
        db: Database | None = None,
        book: PortfolioBook | None = None,
        stocks: StockRegistry | None = None,
    ):
        self._accessor = accessor
        self._db = db or Database()
        self._book = book or PortfolioBook(accessor, self._db)
        self._stocks = stocks or StockRegistry(accessor, self._db)

    async def snapshots(self, portfolio: Portfolio, prices: Optional[PriceBook] = None) -> dict[str, StockSnapshot]:
        """Priced snapshot of every position, keyed by symbol."""
        if prices is None:
            prices = PriceBook(self._accessor)
        stocks = await self._stocks.get_many([p.symbol for p in portfolio.positions])
        result = {}
        for position in portfolio.positions:
            stock = stocks.get(position.symbol)
            result[position.symbol] = StockSnapshot(
                quantity=position.quantity,
                current_price=await prices.price(position.symbol),
                sector=stock.sector if stock else None,
                industry=stock.industry if stock else None,
                exchange=stock.exchange if stock else None,
                country=stock.country if stock else None,
            )
        return result

    # -------------------------------------------------------------------------
    # Weights
    # -------------------------------------------------------------------------

    async def weights(self, portfolio_id: int, prices: Optional[PriceBook] = None) -> dict[str, float]:
        """
        Market-value weight of every position. Weights sum to 1.

        Raises:
            EmptyPortfolioError: The positions have no market value
        """
        portfolio = await self._book.load(portfolio_id)
        snapshots = await self.snapshots(portfolio, prices)
        total = sum(s.value for s in snapshots.values())
        if total == 0:
            raise EmptyPortfolioError(portfolio_id)
        return {symbol: snap.value / total for symbol, snap in snapshots.items()}

    async def stock_weight(self, portfolio_id: int, symbol: str, prices: Optional[PriceBook] = None) -> float:
        weights = await self.weights(portfolio_id, prices)
        symbol = symbol.upper()
        if symbol not in weights:
            raise EntityNotFoundError("Position", f"{symbol} in portfolio #{portfolio_id}")
        return weights[symbol]

    async def total_market_value(self, portfolio_id: int, prices: Optional[PriceBook] = None) -> float:
        """Market value of all positions, cash excluded."""
        portfolio = await self._book.load(portfolio_id)
        snapshots = await self.snapshots(portfolio, prices)
        return sum(s.value for s in snapshots.values())

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    @staticmethod
    def _group_values(snapshots: dict[str, StockSnapshot], dimension: GroupingDimension) -> dict[str, float]:
        values: dict[str, float] = defaultdict(float)
        for snap in snapshots.values():
            values[group_of(snap, dimension)] += snap.value
        return dict(values)

    async def value_by_group(self, portfolio_id: int, dimension) -> dict[str, float]:
        """Market value per distinct attribute value. Cash is not included."""
        dimension = GroupingDimension.from_string(dimension)
        portfolio = await self._book.load(portfolio_id)
        snapshots = await self.snapshots(portfolio)
        return self._group_values(snapshots, dimension)

    async def grouping_summary(self, portfolio_id: int, dimension) -> GroupingSummary:
        """
        Group values and percentages of total value, CASH included.

        Percentages sum to 100 unless the portfolio is worth nothing, in which
        case every percentage is 0.
        """
        dimension = GroupingDimension.from_string(dimension)
        portfolio = await self._book.load(portfolio_id)
        snapshots = await self.snapshots(portfolio)
        values = self._group_values(snapshots, dimension)

        cash = portfolio.remaining_capital
        total = sum(values.values()) + cash
        allocations = {group: GroupAllocation(value, percent(value, total)) for group, value in values.items()}
        allocations[CASH] = GroupAllocation(cash, percent(cash, total))

        logger.debug(f"Portfolio #{portfolio_id} by {dimension.value}: {len(values)} groups, total {total:.2f}")
        return GroupingSummary(dimension=dimension, total_value=total, stocks=snapshots, allocations=allocations)
