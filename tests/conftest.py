"""Pytest configuration and fixtures."""

import os
import tempfile
from collections import Counter

import pytest
import pytest_asyncio

from folio.cache import AnalyticsCache
from folio.database import Database
from folio.market_data import TimeSeriesAccessor


class FakeMarketData:
    """In-memory MarketDataSource. Unknown symbols raise KeyError like a real lookup miss."""

    def __init__(self):
        self.quotes: dict[str, dict] = {}
        self.daily: dict[str, dict] = {}
        self.daily_full: dict[str, dict] = {}
        self.monthly: dict[str, dict] = {}
        self.overviews: dict[str, dict] = {}
        self.search_results: list[dict] = []
        self.calls: Counter = Counter()

    def add_stock(
        self,
        symbol,
        price,
        previous_close=None,
        sector="Technology",
        industry="Software",
        exchange="NASDAQ",
        country="USA",
        name=None,
    ):
        self.quotes[symbol] = {"price": price, "previous_close": previous_close}
        self.overviews[symbol] = {
            "Symbol": symbol,
            "Name": name or f"{symbol} Inc",
            "Sector": sector,
            "Industry": industry,
            "Exchange": exchange,
            "Country": country,
        }

    async def get_quote(self, symbol):
        self.calls[("quote", symbol)] += 1
        return self.quotes[symbol]

    async def get_daily_series(self, symbol, full=False):
        self.calls[("daily_full" if full else "daily", symbol)] += 1
        if full:
            return self.daily_full.get(symbol, self.daily.get(symbol))
        return self.daily.get(symbol)

    async def get_monthly_series(self, symbol):
        self.calls[("monthly", symbol)] += 1
        return self.monthly.get(symbol)

    async def get_overview(self, symbol):
        self.calls[("overview", symbol)] += 1
        return self.overviews[symbol]

    async def search(self, term):
        return self.search_results


@pytest_asyncio.fixture
async def temp_db():
    """Create a temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    db = Database(db_path)
    await db.connect()

    yield db

    await db.close()
    db.remove_from_cache()
    if os.path.exists(db_path):
        os.unlink(db_path)
    for ext in ["-wal", "-shm"]:
        wal_path = db_path + ext
        if os.path.exists(wal_path):
            os.unlink(wal_path)


@pytest.fixture(autouse=True)
def clear_analytics_cache():
    """Cache instances are process-wide; start every test empty."""
    AnalyticsCache.clear_all()
    yield
    AnalyticsCache.clear_all()


@pytest.fixture
def market():
    return FakeMarketData()


@pytest.fixture
def accessor(market):
    return TimeSeriesAccessor(market)


@pytest.fixture
def make_portfolio(temp_db, market):
    """
    Factory creating a stored portfolio with holdings.

    holdings: symbol -> (quantity, buy_price) or (quantity, buy_price, buy_date).
    Symbols must already be registered in the fake market.
    """

    async def _make(capital=0.0, holdings=None, name="Test", owner="tester"):
        portfolio_id = await temp_db.create_portfolio(name, owner, capital)
        for symbol, holding in (holdings or {}).items():
            quantity, buy_price = holding[0], holding[1]
            buy_date = holding[2] if len(holding) > 2 else "2024-01-02"
            overview = market.overviews[symbol]
            await temp_db.insert_stock(
                symbol,
                name=overview["Name"],
                sector=overview["Sector"],
                industry=overview["Industry"],
                exchange=overview["Exchange"],
                country=overview["Country"],
            )
            await temp_db.upsert_position(
                portfolio_id, symbol, quantity=quantity, buy_price=buy_price, buy_date=buy_date
            )
        return portfolio_id

    return _make
