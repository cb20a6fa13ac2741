"""
Settings - Engine tunables stored in the database.

Usage:
    settings = Settings(db)
    limit = await settings.get('price_lookback_limit')
    await settings.set('volatility_cache_ttl_seconds', 600)
    all_settings = await settings.all()
"""

from typing import Any

from folio.database import Database

# Default settings - applied on first run, then editable
DEFAULTS = {
    # Dates searched backwards by price_at_date before giving up
    "price_lookback_limit": 10,
    # Lifetime of cached volatility figures
    "volatility_cache_ttl_seconds": 3600,
    # Actor written to the audit log for engine-initiated trades
    "audit_actor": "system",
}


class Settings:
    """Engine settings with defaults applied."""

    def __init__(self, db: Database | None = None):
        self._db = db or Database()

    async def get(self, key: str, default: Any = None) -> Any:
        """Get a setting value."""
        value = await self._db.get_setting(key)
        if value is None:
            return default if default is not None else DEFAULTS.get(key)
        return value

    async def set(self, key: str, value: Any) -> None:
        """Set a setting value."""
        await self._db.set_setting(key, value)

    async def all(self) -> dict:
        """Get all settings with defaults applied."""
        stored = await self._db.get_all_settings()
        result = DEFAULTS.copy()
        result.update(stored)
        return result

    async def init_defaults(self) -> None:
        """Initialize default settings if not already set."""
        for key, value in DEFAULTS.items():
            existing = await self._db.get_setting(key)
            if existing is None:
                await self._db.set_setting(key, value)
