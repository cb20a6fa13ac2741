"""Tests for portfolio holdings and manual position changes."""

from datetime import date

import pytest

from folio.errors import (
    EntityNotFoundError,
    InsufficientFundsError,
    InsufficientQuantityError,
    InvalidArgumentError,
)
from folio.portfolio import PortfolioBook

TODAY = date(2024, 5, 15)


@pytest.fixture
def book(temp_db, accessor):
    return PortfolioBook(accessor, db=temp_db)


@pytest.fixture
def aapl(market):
    market.add_stock("AAPL", 10.0, sector="Technology", country="USA")
    return market


class TestCreateAndLoad:
    @pytest.mark.asyncio
    async def test_create(self, book):
        portfolio = await book.create("Growth", owner="alice", capital=1000.0)
        loaded = await book.load(portfolio.id)
        assert loaded.name == "Growth"
        assert loaded.owner == "alice"
        assert loaded.remaining_capital == 1000.0
        assert loaded.positions == []

    @pytest.mark.asyncio
    async def test_negative_capital(self, book):
        with pytest.raises(InvalidArgumentError):
            await book.create("Growth", owner="alice", capital=-1.0)

    @pytest.mark.asyncio
    async def test_unknown_portfolio(self, book):
        with pytest.raises(EntityNotFoundError) as exc:
            await book.load(99)
        assert str(exc.value) == "Portfolio not found: 99"

    @pytest.mark.asyncio
    async def test_days_held(self, aapl, book, make_portfolio):
        portfolio_id = await make_portfolio(holdings={"AAPL": (1, 5.0, "2024-05-01")})
        assert await book.days_held(portfolio_id, "aapl", today=TODAY) == 14


class TestAddPosition:
    @pytest.mark.asyncio
    async def test_new_position_charges_cost(self, aapl, temp_db, book):
        portfolio = await book.create("Growth", owner="alice", capital=1000.0)

        position = await book.add_position(portfolio.id, "aapl", 5, 100.0, "2024-05-01", today=TODAY)

        assert position.symbol == "AAPL"
        assert position.cost_basis == 500.0
        loaded = await book.load(portfolio.id)
        assert loaded.remaining_capital == 500.0
        stock = await temp_db.get_stock("AAPL")
        assert stock["sector"] == "Technology"
        entries = await temp_db.get_audit_entries(actor="alice")
        assert entries[0]["action"].startswith(f"User successfully added stock AAPL in Portfolio #{portfolio.id}")

    @pytest.mark.asyncio
    async def test_repeat_purchase_replaces(self, aapl, book):
        portfolio = await book.create("Growth", owner="alice", capital=1000.0)
        await book.add_position(portfolio.id, "AAPL", 5, 100.0, "2024-05-01", today=TODAY)

        await book.add_position(portfolio.id, "AAPL", 3, 120.0, "2024-05-02", today=TODAY)

        loaded = await book.load(portfolio.id)
        assert loaded.remaining_capital == pytest.approx(1000.0 - 360.0)
        position = loaded.position("AAPL")
        assert (position.quantity, position.buy_price, position.buy_date) == (3, 120.0, date(2024, 5, 2))

    @pytest.mark.asyncio
    async def test_identical_repeat_rejected(self, aapl, book):
        portfolio = await book.create("Growth", owner="alice", capital=1000.0)
        await book.add_position(portfolio.id, "AAPL", 5, 100.0, "2024-05-01", today=TODAY)
        with pytest.raises(InvalidArgumentError):
            await book.add_position(portfolio.id, "AAPL", 5, 100.0, "2024-05-03", today=TODAY)

    @pytest.mark.asyncio
    async def test_insufficient_funds_is_audited(self, aapl, temp_db, book):
        portfolio = await book.create("Growth", owner="alice", capital=100.0)

        with pytest.raises(InsufficientFundsError):
            await book.add_position(portfolio.id, "AAPL", 5, 100.0, "2024-05-01", today=TODAY)

        loaded = await book.load(portfolio.id)
        assert loaded.positions == []
        assert loaded.remaining_capital == 100.0
        entries = await temp_db.get_audit_entries()
        assert "insufficient funds" in entries[0]["action"]

    @pytest.mark.parametrize(
        "quantity,price,day",
        [(0, 10.0, "2024-05-01"), (2, 0.0, "2024-05-01"), (2, 10.0, "2024-05-16"), (2, 10.0, "May 1st")],
    )
    @pytest.mark.asyncio
    async def test_invalid_input(self, aapl, book, quantity, price, day):
        portfolio = await book.create("Growth", owner="alice", capital=1000.0)
        with pytest.raises(InvalidArgumentError):
            await book.add_position(portfolio.id, "AAPL", quantity, price, day, today=TODAY)


class TestSellAndRemove:
    @pytest.mark.asyncio
    async def test_partial_sell_at_market_price(self, aapl, book, make_portfolio):
        portfolio_id = await make_portfolio(capital=5.0, holdings={"AAPL": (10, 8.0)})

        remaining = await book.sell_position(portfolio_id, "AAPL", 4, today=TODAY)

        assert remaining.quantity == 6
        loaded = await book.load(portfolio_id)
        assert loaded.remaining_capital == pytest.approx(45.0)
        assert loaded.position("AAPL").buy_price == 8.0

    @pytest.mark.asyncio
    async def test_full_sell_closes_position(self, aapl, book, make_portfolio):
        portfolio_id = await make_portfolio(holdings={"AAPL": (10, 8.0)})
        assert await book.sell_position(portfolio_id, "AAPL", 10, today=TODAY) is None
        assert (await book.load(portfolio_id)).positions == []

    @pytest.mark.asyncio
    async def test_oversell(self, aapl, book, make_portfolio):
        portfolio_id = await make_portfolio(holdings={"AAPL": (10, 8.0)})
        with pytest.raises(InsufficientQuantityError):
            await book.sell_position(portfolio_id, "AAPL", 11, today=TODAY)

    @pytest.mark.asyncio
    async def test_negative_sell(self, aapl, book, make_portfolio):
        portfolio_id = await make_portfolio(holdings={"AAPL": (10, 8.0)})
        with pytest.raises(InvalidArgumentError):
            await book.sell_position(portfolio_id, "AAPL", -1, today=TODAY)

    @pytest.mark.asyncio
    async def test_remove_refunds_cost_basis(self, aapl, book, make_portfolio):
        portfolio_id = await make_portfolio(capital=20.0, holdings={"AAPL": (10, 8.0)})

        refund = await book.remove_position(portfolio_id, "AAPL")

        assert refund == 80.0
        loaded = await book.load(portfolio_id)
        assert loaded.remaining_capital == 100.0
        assert loaded.positions == []

    @pytest.mark.asyncio
    async def test_remove_unheld(self, book, make_portfolio):
        portfolio_id = await make_portfolio(capital=20.0)
        with pytest.raises(EntityNotFoundError):
            await book.remove_position(portfolio_id, "AAPL")
