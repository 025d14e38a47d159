"""
Purge expired entries from the request cache.

Entries older than the cache TTL (WEATHER_CACHE_TTL_HOURS) are removed
unless another age is given in hours.

Usage:
    python -m scripts.purge_cache
    python -m scripts.purge_cache --hours 6
"""

import argparse
import asyncio
import sys
from datetime import timedelta
from pathlib import Path

# Add parent directory to path to import agroclim modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from agroclim.config import settings
from agroclim.utils.cache import ObservationCache
from agroclim.utils.logging_config import setup_logging, get_logger

# Setup logging
setup_logging()
logger = get_logger(__name__)


async def purge_cache(hours=None) -> int:
    """Delete cache entries older than ``hours`` (the configured TTL by default)."""
    engine = create_async_engine(settings.SQLALCHEMY_DATABASE_URI, echo=False)
    async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    cache = ObservationCache(async_session, ttl_hours=settings.WEATHER_CACHE_TTL_HOURS)
    try:
        ttl = timedelta(hours=hours) if hours is not None else None
        deleted = await cache.clear_older_than(ttl)
    finally:
        await engine.dispose()

    logger.info(f"Removed {deleted} cache entries")
    return deleted


def main():
    parser = argparse.ArgumentParser(description="Purge expired request cache entries")
    parser.add_argument("--hours", type=float, default=None, help="Maximum entry age in hours")
    args = parser.parse_args()

    try:
        asyncio.run(purge_cache(args.hours))
    except KeyboardInterrupt:
        logger.warning("Purge interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
