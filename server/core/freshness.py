"""Freshness bookkeeping per cache key.

Absence of metadata, or metadata without an expiry, means "not expired".
Whether a fetch happens for missing data is decided by the emptiness of the
record table, not by this store.
"""

import time
from typing import Callable, Dict, Iterable, Optional

from core.database import Database
from core.exceptions import PersistenceError
from core.logging import get_logger

logger = get_logger(__name__)


class FreshnessStore:
    """Per-key write/expiry timestamps backed by the ``cache_metadata`` table."""

    def __init__(self, database: Database, clock: Callable[[], float] = time.time):
        self.database = database
        self._clock = clock

    async def is_expired(self, key: str) -> bool:
        """Check whether the cached copy for ``key`` has passed its expiry.

        A storage failure reports the key as expired so callers refresh.
        """
        try:
            metadata = await self.database.get_cache_metadata(key)
        except PersistenceError as e:
            logger.warning("Freshness lookup failed, treating as expired", key=key, error=str(e))
            return True
        if not metadata or metadata.expires_at is None:
            return False
        return self._clock() > metadata.expires_at

    async def mark_fresh(self, key: str, ttl: Optional[float] = None) -> None:
        """Record a write now, expiring after ``ttl`` seconds when given."""
        now = self._clock()
        expires_at = now + ttl if ttl else None
        await self.database.set_cache_metadata(key, timestamp=now, expires_at=expires_at)
        logger.debug("Cache key marked fresh", key=key, ttl=ttl)

    async def get_age(self, key: str) -> Optional[float]:
        """Seconds since ``key`` was last written, or None if unknown."""
        try:
            metadata = await self.database.get_cache_metadata(key)
        except PersistenceError:
            return None
        if not metadata:
            return None
        return self._clock() - metadata.timestamp

    async def last_updated(self, keys: Iterable[str]) -> Dict[str, Optional[float]]:
        """Last write timestamp for each of ``keys`` (None when never written)."""
        try:
            entries = await self.database.get_all_cache_metadata()
        except PersistenceError:
            entries = {}
        return {
            key: entries[key].timestamp if key in entries else None
            for key in keys
        }

    async def clear(self) -> None:
        await self.database.clear_cache_metadata()
