"""
Stocks - Reference data registry.

A stock row is created the first time a symbol is referenced, from the
market-data overview, and never changed afterwards.

Usage:
    registry = StockRegistry(accessor, db=db)
    stock = await registry.get_or_create('aapl')
    matches = await registry.search('apple')
"""

import logging

from folio.database import Database
from folio.errors import EntityNotFoundError
from folio.market_data import TimeSeriesAccessor
from folio.models import Stock

logger = logging.getLogger(__name__)


class StockRegistry:
    def __init__(self, accessor: TimeSeriesAccessor, db: Database | None = None):
        self._db = db or Database()
        self._accessor = accessor

    async def get(self, symbol: str) -> Stock:
        """Get a known stock. Raises EntityNotFoundError for unseen symbols."""
        row = await self._db.get_stock(symbol.upper())
        if not row:
            raise EntityNotFoundError("Stock", symbol)
        return Stock.from_row(row)

    async def get_many(self, symbols: list[str]) -> dict[str, Stock]:
        rows = await self._db.get_stocks([s.upper() for s in symbols])
        return {symbol: Stock.from_row(row) for symbol, row in rows.items()}

    async def get_or_create(self, symbol: str) -> Stock:
        """Get a stock, fetching and storing its overview on first reference."""
        symbol = symbol.upper().strip()
        row = await self._db.get_stock(symbol)
        if row:
            return Stock.from_row(row)

        overview = await self._accessor.overview(symbol)
        stock = Stock(
            symbol=symbol,
            name=overview.get("name") or symbol,
            sector=overview.get("sector"),
            industry=overview.get("industry"),
            exchange=overview.get("exchange"),
            country=overview.get("country"),
        )
        await self._db.insert_stock(
            stock.symbol,
            name=stock.name,
            sector=stock.sector,
            industry=stock.industry,
            exchange=stock.exchange,
            country=stock.country,
        )
        logger.info(f"Added stock {stock.symbol} ({stock.name})")
        return stock

    async def search(self, term: str) -> list[dict]:
        """Equity ticker search."""
        return await self._accessor.search(term)
