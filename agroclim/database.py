"""
Database configuration and session management.

This module contains the SQLAlchemy engine, session configuration,
and table creation utilities for the local weather store.
"""

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from agroclim.config import settings

# Create async engine
engine = create_async_engine(
    settings.SQLALCHEMY_DATABASE_URI,
    echo=settings.DEBUG,
    future=True,
)

# Create async session factory
async_session = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Base class for all database models
Base = declarative_base()


async def create_tables(bind=None):
    """
    Create all database tables.

    This function is called during application startup.
    """
    async with (bind or engine).begin() as conn:
        # Import all models to ensure they are registered with Base
        import agroclim.models  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(bind=None):
    """
    Drop all database tables.

    WARNING: This will delete all data. Use with caution.
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
