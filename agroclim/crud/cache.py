"""
Request cache CRUD operations.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from agroclim.crud.base import CRUDBase
from agroclim.models.cached_request import CachedRequest
from agroclim.schemas.weather import ensure_utc


class CRUDCachedRequest(CRUDBase[CachedRequest]):
    """
    CRUD operations for CachedRequest model.
    """

    async def get_by_hash(self, db: AsyncSession, *, hash: str) -> Optional[CachedRequest]:
        result = await db.execute(
            select(CachedRequest).where(CachedRequest.hash == hash)
        )
        return result.scalars().first()

    async def put(self, db: AsyncSession, *, hash: str, payload: str, created_at: datetime) -> None:
        """Write or overwrite the payload stored under ``hash``."""
        await self.upsert(
            db,
            rows=[{"hash": hash, "payload": payload, "created_at": ensure_utc(created_at)}],
            index_elements=["hash"],
        )

    async def remove_by_hash(self, db: AsyncSession, *, hash: str) -> int:
        result = await db.execute(
            delete(CachedRequest).where(CachedRequest.hash == hash)
        )
        await db.commit()
        return result.rowcount

    async def remove_older_than(self, db: AsyncSession, *, cutoff: datetime) -> int:
        """
        Delete every entry created before ``cutoff``.

        Returns:
            Number of entries deleted
        """
        result = await db.execute(
            delete(CachedRequest).where(CachedRequest.created_at < ensure_utc(cutoff))
        )
        await db.commit()
        return result.rowcount


cached_request = CRUDCachedRequest(CachedRequest)
