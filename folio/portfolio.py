"""
Portfolio - Holdings and cash with invariant-checked mutations.

Usage:
    book = PortfolioBook(accessor, db=db)
    portfolio = await book.create('Growth', owner='alice', capital=10000.0)
    await book.add_position(portfolio.id, 'AAPL', quantity=10, buy_price=150.0, buy_date='2024-03-01')
    await book.sell_position(portfolio.id, 'AAPL', 4)
    refund = await book.remove_position(portfolio.id, 'AAPL')

Remaining capital never goes negative and every change moves exactly
quantity x price between cash and holdings. Live market value is never
stored.
"""

import logging
from datetime import date
from typing import Optional

from folio.audit import AuditLog
from folio.cache import AnalyticsCache
from folio.database import Database
from folio.errors import (
    EntityNotFoundError,
    InsufficientFundsError,
    InsufficientQuantityError,
    InvalidArgumentError,
)
from folio.locks import PortfolioLocks
from folio.market_data import TimeSeriesAccessor
from folio.models import Portfolio, Position
from folio.stocks import StockRegistry
from folio.utils import parse_date

logger = logging.getLogger(__name__)


class PortfolioBook:
    """Loads portfolios and applies manual position changes."""

    def __init__(
        self,
        accessor: TimeSeriesAccessor,
        db: Database | None = None,
        audit: AuditLog | None = None,
        stocks: StockRegistry | None = None,
        cache: AnalyticsCache | None = None,
        locks: PortfolioLocks | None = None,
    ):
        """
        Initialize with optional dependency injection.

        Args:
            accessor: Market data used for sale prices and new stocks
            db: Database instance (uses default path if None)
            audit: Audit log (built on db if None)
            stocks: Stock registry (built on db and accessor if None)
            cache: Analytics cache invalidated on every change
            locks: Per-portfolio locks shared with the transaction executor
        """
        self._db = db or Database()
        self._accessor = accessor
        self._audit = audit or AuditLog(self._db)
        self._stocks = stocks or StockRegistry(accessor, self._db)
        self._cache = cache or AnalyticsCache()
        self._locks = locks or PortfolioLocks()

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def create(self, name: str, owner: str, capital: float = 0.0) -> Portfolio:
        if capital < 0:
            raise InvalidArgumentError(f"Initial capital cannot be negative, got {capital}")
        if not name or not owner:
            raise InvalidArgumentError("Portfolio name and owner are required")
        portfolio_id = await self._db.create_portfolio(name, owner, float(capital))
        logger.info(f"Created portfolio #{portfolio_id} '{name}' for {owner} with {capital:.2f}")
        return Portfolio(id=portfolio_id, name=name, owner=owner, remaining_capital=float(capital))

    async def load(self, portfolio_id: int) -> Portfolio:
        """Load a portfolio with its positions. Raises EntityNotFoundError."""
        row = await self._db.get_portfolio(portfolio_id)
        if not row:
            raise EntityNotFoundError("Portfolio", portfolio_id)
        positions = [Position.from_row(r) for r in await self._db.get_positions(portfolio_id)]
        return Portfolio(
            id=row["id"],
            name=row["name"],
            owner=row["owner"],
            remaining_capital=float(row["remaining_capital"]),
            positions=positions,
        )

    async def positions(self, portfolio_id: int) -> list[Position]:
        portfolio = await self.load(portfolio_id)
        return portfolio.positions

    async def position(self, portfolio_id: int, symbol: str) -> Position:
        row = await self._db.get_position(portfolio_id, symbol.upper())
        if not row:
            raise EntityNotFoundError("Position", f"{symbol} in portfolio #{portfolio_id}")
        return Position.from_row(row)

    async def days_held(self, portfolio_id: int, symbol: str, today: Optional[date] = None) -> int:
        """Calendar days since the position's buy date."""
        position = await self.position(portfolio_id, symbol)
        return ((today or date.today()) - position.buy_date).days

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def add_position(
        self,
        portfolio_id: int,
        symbol: str,
        quantity: int,
        buy_price: float,
        buy_date,
        actor: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Position:
        """
        Buy a stock into a portfolio.

        A repeated purchase replaces the existing quantity and buy price: the
        old cost basis is refunded and the new one charged.

        Raises:
            InvalidArgumentError: Non-positive quantity or price, future or malformed date,
                or a repeat purchase identical to the current position
            InsufficientFundsError: The purchase costs more than the remaining capital
        """
        today = today or date.today()
        symbol = symbol.upper().strip()
        if isinstance(quantity, bool) or int(quantity) != quantity or quantity <= 0:
            raise InvalidArgumentError(f"Quantity must be a positive whole number, got {quantity}")
        if buy_price is None or buy_price <= 0:
            raise InvalidArgumentError(f"Buy price must be positive, got {buy_price}")
        buy_date = parse_date(buy_date)
        if buy_date > today:
            raise InvalidArgumentError(f"Buy date {buy_date} is in the future")
        quantity = int(quantity)

        async with self._locks.hold(portfolio_id):
            portfolio = await self.load(portfolio_id)
            actor = actor or portfolio.owner
            await self._stocks.get_or_create(symbol)

            existing = portfolio.position(symbol)
            if existing:
                if existing.buy_price == buy_price and existing.quantity == quantity:
                    raise InvalidArgumentError(
                        f"{symbol} already held in portfolio #{portfolio_id} at {buy_price:.2f} x {quantity}"
                    )
                new_capital = portfolio.remaining_capital + existing.cost_basis - buy_price * quantity
                verb = "updated"
            else:
                new_capital = portfolio.remaining_capital - buy_price * quantity
                verb = "added"

            if new_capital < 0:
                await self._audit.record(
                    actor,
                    f"User tried to add stock {symbol} in Portfolio #{portfolio_id} - {portfolio.name} "
                    f"with price: {buy_price:.2f} and quantity: {quantity} but had insufficient funds",
                )
                raise InsufficientFundsError(
                    required=buy_price * quantity - (existing.cost_basis if existing else 0.0),
                    available=portfolio.remaining_capital,
                )

            position = Position(portfolio_id, symbol, quantity, float(buy_price), buy_date)
            await self._db.save_trade(
                portfolio_id,
                symbol,
                new_capital,
                {"quantity": quantity, "buy_price": position.buy_price, "buy_date": buy_date.isoformat()},
            )
            self._invalidate(portfolio_id)

        logger.info(f"Portfolio #{portfolio_id}: {verb} {symbol} {quantity} @ {buy_price:.2f}")
        await self._audit.record(
            actor,
            f"User successfully {verb} stock {symbol} in Portfolio #{portfolio_id} - {portfolio.name} "
            f"with price: {buy_price:.2f} and quantity: {quantity} on {buy_date.isoformat()}",
        )
        return position

    async def sell_position(
        self,
        portfolio_id: int,
        symbol: str,
        quantity: int,
        actor: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Optional[Position]:
        """
        Sell shares at the current market price.

        Returns the remaining position, or None once it is fully sold.

        Raises:
            InvalidArgumentError: Negative quantity
            InsufficientQuantityError: More shares than held
        """
        symbol = symbol.upper().strip()
        if quantity < 0:
            raise InvalidArgumentError(f"Quantity to sell cannot be negative, got {quantity}")

        async with self._locks.hold(portfolio_id):
            portfolio = await self.load(portfolio_id)
            position = portfolio.position(symbol)
            if position is None:
                raise EntityNotFoundError("Position", f"{symbol} in portfolio #{portfolio_id}")
            if quantity > position.quantity:
                raise InsufficientQuantityError(symbol, quantity, position.quantity)

            price = await self._accessor.current_price(symbol)
            remaining = position.quantity - quantity
            new_capital = portfolio.remaining_capital + price * quantity
            if remaining == 0:
                await self._db.save_trade(portfolio_id, symbol, new_capital, None)
                result = None
            else:
                await self._db.save_trade(portfolio_id, symbol, new_capital, {"quantity": remaining})
                position.quantity = remaining
                result = position
            self._invalidate(portfolio_id)

        day = (today or date.today()).isoformat()
        logger.info(f"Portfolio #{portfolio_id}: sold {quantity} {symbol} @ {price:.2f}")
        await self._audit.record(
            actor or portfolio.owner,
            f"User successfully sold stock {symbol} in Portfolio #{portfolio_id} - {portfolio.name} "
            f"with price: {price:.2f} and quantity: {quantity} on {day}",
        )
        return result

    async def remove_position(self, portfolio_id: int, symbol: str, actor: Optional[str] = None) -> float:
        """Delete a position, refunding its cost basis. Returns the refund."""
        symbol = symbol.upper().strip()
        async with self._locks.hold(portfolio_id):
            portfolio = await self.load(portfolio_id)
            position = portfolio.position(symbol)
            if position is None:
                raise EntityNotFoundError("Position", f"{symbol} in portfolio #{portfolio_id}")

            refund = position.cost_basis
            await self._db.save_trade(portfolio_id, symbol, portfolio.remaining_capital + refund, None)
            self._invalidate(portfolio_id)

        logger.info(f"Portfolio #{portfolio_id}: removed {symbol}, refunded {refund:.2f}")
        await self._audit.record(
            actor or portfolio.owner,
            f"User successfully deleted stock {symbol} from Portfolio #{portfolio_id} - {portfolio.name}",
        )
        return refund

    def _invalidate(self, portfolio_id: int) -> None:
        self._cache.invalidate_subject(AnalyticsCache.portfolio_key(portfolio_id))
