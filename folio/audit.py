"""
Audit - Append-only log of who did what to which portfolio.

Usage:
    audit = AuditLog(db)
    await audit.record('alice', 'User successfully bought stock AAPL in Portfolio #1 - Growth ...')
"""

import logging

from folio.database import Database

logger = logging.getLogger(__name__)


class AuditLog:
    """Writes audit entries after the audited action has already happened."""

    def __init__(self, db: Database | None = None):
        self._db = db or Database()

    async def record(self, actor: str, action: str) -> bool:
        """
        Append an entry.

        A failed write is logged and reported as False. It never raises, so it
        cannot change the outcome of the trade it describes.
        """
        try:
            await self._db.insert_audit_entry(actor, action)
        except Exception as e:
            logger.error(f"Failed to write audit entry for {actor} ({action}): {e}")
            return False
        return True

    async def entries(self, actor: str | None = None, limit: int = 100) -> list[dict]:
        return await self._db.get_audit_entries(actor=actor, limit=limit)
