"""
Market data - Typed access to an external price source.

The source itself (HTTP client, file fixture, broker API) is outside this
package; it only has to satisfy MarketDataSource. TimeSeriesAccessor turns
whatever it returns into floats and newest-first date mappings, and turns
"no data" into DataUnavailableError.

Usage:
    accessor = TimeSeriesAccessor(source)
    price = await accessor.current_price('AAPL')
    monthly = await accessor.closing_series('AAPL', SeriesWindow.MONTHLY)
"""

import logging
import re
from typing import Any, Optional, Protocol

from folio.errors import DataUnavailableError
from folio.models import SeriesWindow

logger = logging.getLogger(__name__)

_ALPHA_SYMBOL = re.compile(r"^[A-Za-z]+$")


class MarketDataSource(Protocol):
    """Contract for the external market-data provider.

    Returning None or an empty container, or raising LookupError, means the
    provider has nothing for the symbol.
    """

    async def get_quote(self, symbol: str) -> Optional[dict]:
        """Current quote with at least 'price' and 'previous_close'."""
        ...

    async def get_daily_series(self, symbol: str, full: bool = False) -> Optional[dict]:
        """Daily closes keyed by ISO date. Compact holds ~100 trading days."""
        ...

    async def get_monthly_series(self, symbol: str) -> Optional[dict]:
        """Month-end closes keyed by ISO date."""
        ...

    async def get_overview(self, symbol: str) -> Optional[dict]:
        """Name, sector, industry, exchange and country of a symbol."""
        ...

    async def search(self, term: str) -> list[dict]:
        """Free-text ticker search returning symbol, name and type."""
        ...


def _close_value(raw: Any) -> float:
    if isinstance(raw, dict):
        raw = raw.get("close", raw.get("4. close"))
    return float(raw)


class TimeSeriesAccessor:
    """Thin typed facade over a MarketDataSource. No retries."""

    def __init__(self, source: MarketDataSource):
        self._source = source

    # -------------------------------------------------------------------------
    # Quotes
    # -------------------------------------------------------------------------

    async def quote(self, symbol: str) -> dict:
        """Current quote as {'price': float, 'previous_close': float | None}."""
        try:
            data = await self._source.get_quote(symbol)
        except LookupError as e:
            raise DataUnavailableError(symbol, "quote") from e
        if not data or data.get("price") is None:
            raise DataUnavailableError(symbol, "quote")
        previous = data.get("previous_close")
        return {
            "price": float(data["price"]),
            "previous_close": float(previous) if previous is not None else None,
        }

    async def current_price(self, symbol: str) -> float:
        quote = await self.quote(symbol)
        return quote["price"]

    async def previous_close(self, symbol: str) -> float:
        quote = await self.quote(symbol)
        if quote["previous_close"] is None:
            raise DataUnavailableError(symbol, "previous close")
        return quote["previous_close"]

    # -------------------------------------------------------------------------
    # Series
    # -------------------------------------------------------------------------

    async def closing_series(self, symbol: str, window: SeriesWindow) -> dict[str, float]:
        """
        Closing prices for a window, newest date first.

        Args:
            symbol: Stock symbol
            window: DAILY_COMPACT, DAILY_FULL or MONTHLY

        Raises:
            DataUnavailableError: If the source has no series for the window
        """
        window = SeriesWindow.from_string(window)
        try:
            if window == SeriesWindow.MONTHLY:
                raw = await self._source.get_monthly_series(symbol)
            else:
                raw = await self._source.get_daily_series(symbol, full=window == SeriesWindow.DAILY_FULL)
        except LookupError as e:
            raise DataUnavailableError(symbol, f"{window.value} series") from e

        if not raw:
            raise DataUnavailableError(symbol, f"{window.value} series")

        series = {str(day)[:10]: _close_value(value) for day, value in raw.items()}
        logger.debug(f"{symbol}: {len(series)} {window.value} closes")
        return dict(sorted(series.items(), reverse=True))

    # -------------------------------------------------------------------------
    # Reference data
    # -------------------------------------------------------------------------

    async def overview(self, symbol: str) -> dict:
        """Overview record with lower-case keys."""
        try:
            data = await self._source.get_overview(symbol)
        except LookupError as e:
            raise DataUnavailableError(symbol, "overview") from e
        if not data:
            raise DataUnavailableError(symbol, "overview")
        return {str(k).lower(): v for k, v in data.items()}

    async def search(self, term: str) -> list[dict]:
        """Equity matches for a free-text term, as {'symbol', 'name'} pairs."""
        if not term or not term.strip():
            return []
        results = await self._source.search(term.strip()) or []
        matches = []
        for item in results:
            symbol = item.get("symbol") or ""
            name = item.get("name") or ""
            if _ALPHA_SYMBOL.match(symbol) and name and item.get("type") == "Equity":
                matches.append({"symbol": symbol, "name": name})
        return matches


class PriceBook:
    """
    Current prices memoized for one computation.

    Each unique symbol is priced once, so a total computed from the book
    stays stable even if the market ticks mid-computation. Create a new book
    per request.
    """

    def __init__(self, accessor: TimeSeriesAccessor):
        self._accessor = accessor
        self._prices: dict[str, float] = {}

    async def price(self, symbol: str) -> float:
        if symbol not in self._prices:
            self._prices[symbol] = await self._accessor.current_price(symbol)
        return self._prices[symbol]

    @property
    def symbols(self) -> list[str]:
        """Symbols priced so far."""
        return list(self._prices)
