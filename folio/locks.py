"""
Locks - Serializes capital-changing work on one portfolio.

Every path that reads remaining capital and writes it back holds the
portfolio's lock for the whole read-price-write sequence. Manual position
changes and rebalance executions share one registry, so they queue behind
each other instead of overwriting each other's capital.

Usage:
    locks = PortfolioLocks()
    async with locks.hold(portfolio_id):
        ...

A lock is dropped from the registry as soon as nobody holds or waits on it,
so the registry only ever contains portfolios with work in flight.
"""

import asyncio
import logging
from collections import Counter
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class PortfolioLocks:
    """Named registry of per-portfolio asyncio locks."""

    _instances: dict[str, "PortfolioLocks"] = {}

    def __new__(cls, name: str = "portfolios"):
        """One registry per name, shared by every component asking for it."""
        if name not in cls._instances:
            instance = super().__new__(cls)
            instance.name = name
            instance._locks = {}
            instance._users = Counter()
            cls._instances[name] = instance
        return cls._instances[name]

    def __init__(self, name: str = "portfolios"):
        # State is set up in __new__
        pass

    @asynccontextmanager
    async def hold(self, portfolio_id: int):
        """Hold the portfolio's lock for the duration of the block."""
        lock = self._locks.setdefault(portfolio_id, asyncio.Lock())
        if lock.locked():
            logger.debug(f"Portfolio #{portfolio_id} busy, waiting for lock")
        self._users[portfolio_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[portfolio_id] -= 1
            if self._users[portfolio_id] <= 0:
                del self._users[portfolio_id]
                self._locks.pop(portfolio_id, None)

    def locked(self, portfolio_id: int) -> bool:
        lock = self._locks.get(portfolio_id)
        return lock is not None and lock.locked()

    def active(self) -> int:
        """Number of portfolios with a lock held or awaited."""
        return len(self._locks)
