"""
Persistent request cache for the AgroClim Risk API.

This module provides a TTL cache of JSON payloads stored in the local
SQL store, keyed by a SHA-256 hash of the request parts. Cache failures
are never fatal: a corrupt entry is deleted and reported as a miss.
"""

import hashlib
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from agroclim import crud
from agroclim.schemas.weather import ensure_utc
from agroclim.utils.logging_config import get_logger

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ObservationCache:
    """
    TTL cache manager backed by the ``cached_requests`` table.

    An entry expires when ``now - created_at > ttl``. Sessions are opened
    per operation from ``session_factory``.
    """

    def __init__(
        self,
        session_factory,
        ttl_hours: float = 24,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_factory = session_factory
        self.ttl = timedelta(hours=ttl_hours)
        self._clock = clock

    @staticmethod
    def hash_request(parts: Iterable[Any]) -> str:
        """
        Stable cache key for a request.

        Example:
            >>> len(ObservationCache.hash_request(["station", "07015"]))
            64
        """
        joined = "|".join(str(part) for part in parts)
        return hashlib.sha256(joined.encode("utf-8")).hexdigest()

    async def get(self, key: str) -> Optional[Any]:
        """
        Get a value from the cache.

        Args:
            key: Cache key

        Returns:
            Decoded payload, or None if missing, expired or corrupt
        """
        try:
            async with self.session_factory() as db:
                entry = await crud.cached_request.get_by_hash(db, hash=key)
                if entry is None:
                    logger.debug(f"Cache MISS: {key[:12]}")
                    return None

                age = self._clock() - ensure_utc(entry.created_at)
                if age > self.ttl:
                    logger.debug(f"Cache EXPIRED: {key[:12]} (age {age})")
                    await crud.cached_request.remove_by_hash(db, hash=key)
                    return None

                try:
                    value = json.loads(entry.payload)
                except json.JSONDecodeError as e:
                    logger.warning(f"Cache entry {key[:12]} is corrupt ({e}), deleting it")
                    await crud.cached_request.remove_by_hash(db, hash=key)
                    return None
        except SQLAlchemyError as e:
            logger.error(f"Cache GET error for key '{key[:12]}': {e}")
            return None

        logger.debug(f"Cache HIT: {key[:12]}")
        return value

    async def set(self, key: str, value: Any) -> None:
        """
        Store a JSON-serialisable value under ``key``.

        Raises:
            SQLAlchemyError: If the store write fails
        """
        payload = json.dumps(value, default=str)
        async with self.session_factory() as db:
            await crud.cached_request.put(db, hash=key, payload=payload, created_at=self._clock())
        logger.debug(f"Cache SET: {key[:12]} ({len(payload)} bytes)")

    async def delete(self, key: str) -> bool:
        """
        Delete a key from the cache.

        Returns:
            True if an entry was removed
        """
        try:
            async with self.session_factory() as db:
                removed = await crud.cached_request.remove_by_hash(db, hash=key)
        except SQLAlchemyError as e:
            logger.error(f"Cache DELETE error for key '{key[:12]}': {e}")
            return False
        logger.debug(f"Cache DELETE: {key[:12]}")
        return removed > 0

    async def clear_older_than(self, ttl: Optional[timedelta] = None) -> int:
        """
        Delete every entry older than ``ttl`` (the cache TTL by default).

        Returns:
            Number of entries deleted
        """
        cutoff = self._clock() - (ttl if ttl is not None else self.ttl)
        async with self.session_factory() as db:
            deleted = await crud.cached_request.remove_older_than(db, cutoff=cutoff)
        logger.info(f"Cache CLEAR: {deleted} entries older than {cutoff.isoformat()}")
        return deleted

    async def health_check(self) -> bool:
        """
        Check if the cache store is reachable.

        Returns:
            True if a trivial query succeeds, False otherwise
        """
        try:
            async with self.session_factory() as db:
                await db.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Cache health check failed: {e}")
            return False
