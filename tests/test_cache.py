"""
Tests for the persistent request cache and its CRUD layer.
"""

from datetime import datetime, timedelta, timezone

import pytest

from agroclim import crud
from agroclim.utils.cache import ObservationCache


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 8, tzinfo=timezone.utc))


@pytest.fixture
def cache(session_factory, clock):
    return ObservationCache(session_factory, ttl_hours=24, clock=clock)


def test_hash_request_is_stable():
    key = ObservationCache.hash_request(["station", "07015", "2024-01-01T00:00:00Z"])
    assert key == ObservationCache.hash_request(["station", "07015", "2024-01-01T00:00:00Z"])
    assert key != ObservationCache.hash_request(["station", "07016", "2024-01-01T00:00:00Z"])
    assert len(key) == 64


async def test_set_then_get(cache):
    await cache.set("k", [{"ts": "2024-01-01T00:00:00Z", "temperature": 4.5}])
    assert await cache.get("k") == [{"ts": "2024-01-01T00:00:00Z", "temperature": 4.5}]


async def test_entry_alive_within_ttl(cache, clock):
    await cache.set("k", {"value": 1})
    clock.advance(hours=23)
    assert await cache.get("k") == {"value": 1}


async def test_expired_entry_is_deleted(cache, clock, session_factory):
    await cache.set("k", {"value": 1})
    clock.advance(hours=25)

    assert await cache.get("k") is None
    async with session_factory() as db:
        assert await crud.cached_request.get_by_hash(db, hash="k") is None


async def test_set_overwrites_and_resets_age(cache, clock):
    await cache.set("k", {"value": 1})
    clock.advance(hours=20)
    await cache.set("k", {"value": 2})
    clock.advance(hours=20)

    assert await cache.get("k") == {"value": 2}


async def test_corrupt_payload_is_a_miss(cache, clock, session_factory):
    async with session_factory() as db:
        await crud.cached_request.put(db, hash="bad", payload="{not json", created_at=clock())

    assert await cache.get("bad") is None
    async with session_factory() as db:
        assert await crud.cached_request.get_by_hash(db, hash="bad") is None


async def test_missing_key(cache):
    assert await cache.get("absent") is None
    assert await cache.delete("absent") is False


async def test_delete(cache):
    await cache.set("k", 1)
    assert await cache.delete("k") is True
    assert await cache.get("k") is None


async def test_clear_older_than(cache, clock, session_factory):
    await cache.set("old", 1)
    clock.advance(hours=30)
    await cache.set("fresh", 2)

    assert await cache.clear_older_than() == 1
    assert await cache.get("fresh") == 2
    async with session_factory() as db:
        assert await crud.cached_request.count(db) == 1


async def test_health_check(cache):
    assert await cache.health_check() is True
