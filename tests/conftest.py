"""
Shared fixtures for the AgroClim test suite.

Each test gets its own temporary SQLite file so stores never leak
between tests.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from agroclim.database import create_tables
from agroclim.schemas.weather import Observation, Station


@pytest.fixture
async def engine(tmp_path):
    """Async engine bound to a fresh SQLite file with all tables created."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test_weather.sqlite'}", echo=False)
    await create_tables(bind=test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory for the test store."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def make_station(station_id: str, lat: float, lon: float, name: str = None) -> Station:
    return Station(id=station_id, name=name or f"Station {station_id}", lat=lat, lon=lon)


def hourly_series(start: datetime, hours: int, **values) -> list:
    """``hours`` consecutive hourly observations sharing the same values."""
    return [Observation(ts=start + timedelta(hours=i), **values) for i in range(hours)]


def daily_series(start: datetime, days: int, **values) -> list:
    """One observation per day at noon UTC."""
    noon = start.replace(hour=12, minute=0, second=0, microsecond=0, tzinfo=timezone.utc)
    return [Observation(ts=noon + timedelta(days=i), **values) for i in range(days)]
