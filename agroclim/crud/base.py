"""
Base CRUD operations.

This module contains base CRUD (Create, Read, Update, Delete) operations
that can be inherited by specific model CRUD classes. Writes go through
``upsert`` so that racing writers resolve to last-write-wins on the
model's natural key.
"""

from typing import Any, Dict, Generic, Sequence, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from agroclim.database import Base

ModelType = TypeVar("ModelType", bound=Base)

# Keeps each statement under SQLite's bound-parameter limit
UPSERT_CHUNK_SIZE = 500


def _dialect_insert(db: AsyncSession):
    """Return the dialect-specific ``insert`` supporting ON CONFLICT."""
    dialect = db.bind.dialect.name
    if dialect == "sqlite":
        return sqlite.insert
    if dialect == "postgresql":
        return postgresql.insert
    raise NotImplementedError(f"Upsert is not supported for dialect '{dialect}'")


class CRUDBase(Generic[ModelType]):
    """
    Base CRUD operations class.

    Provides generic operations that can be used by specific model CRUD classes.
    """

    def __init__(self, model: Type[ModelType]):
        """
        Initialize CRUD operations for a specific model.

        Args:
            model: The SQLAlchemy model class
        """
        self.model = model

    async def count(self, db: AsyncSession) -> int:
        """Number of rows in the model's table."""
        result = await db.execute(select(func.count()).select_from(self.model))
        return result.scalar_one()

    async def upsert(
        self,
        db: AsyncSession,
        *,
        rows: Sequence[Dict[str, Any]],
        index_elements: Sequence[str],
    ) -> int:
        """
        Insert rows, overwriting existing rows that share the conflict key.

        All chunks are written in the session's current transaction and
        committed once, so readers never observe a partial batch.

        Args:
            db: Database session
            rows: Column/value mappings, all with the same keys
            index_elements: Columns of the unique constraint to upsert on

        Returns:
            Number of rows written
        """
        if not rows:
            return 0

        insert = _dialect_insert(db)
        update_columns = [key for key in rows[0] if key not in index_elements]

        for offset in range(0, len(rows), UPSERT_CHUNK_SIZE):
            chunk = rows[offset:offset + UPSERT_CHUNK_SIZE]
            stmt = insert(self.model).values(list(chunk))
            set_ = {column: stmt.excluded[column] for column in update_columns}
            set_["updated_at"] = func.now()
            stmt = stmt.on_conflict_do_update(index_elements=list(index_elements), set_=set_)
            await db.execute(stmt)

        await db.commit()
        return len(rows)
