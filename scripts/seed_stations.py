"""
Seed script for the station catalog.

This script creates the local store tables if needed and writes the
bundled station snapshot (agroclim/data/stations.json) into the
stations table, so the first analysis does not depend on the remote
Infoclimat catalog.

Run this script after running database migrations:
    python -m scripts.seed_stations
"""

import asyncio
import sys
from pathlib import Path

# Add parent directory to path to import agroclim modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from agroclim.config import settings
from agroclim.database import create_tables
from agroclim.utils.logging_config import setup_logging, get_logger
from agroclim.utils.station_catalog import StationCatalog

# Setup logging
setup_logging()
logger = get_logger(__name__)


async def seed_stations() -> int:
    """Seed the station table from the bundled snapshot."""
    engine = create_async_engine(settings.SQLALCHEMY_DATABASE_URI, echo=False)
    async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    logger.info("=" * 60)
    logger.info("Starting station catalog seeding process")
    logger.info("=" * 60)

    try:
        await create_tables(bind=engine)
        written = await StationCatalog(async_session).seed_snapshot()
    finally:
        await engine.dispose()

    logger.info("=" * 60)
    logger.info("Seeding completed successfully!")
    logger.info(f"  Stations written: {written}")
    logger.info("=" * 60)
    return written


def main():
    """Main entry point for the seed script."""
    try:
        asyncio.run(seed_stations())
    except KeyboardInterrupt:
        logger.warning("Seeding interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
