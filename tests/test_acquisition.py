"""
Tests for the observation acquisition pipeline.
"""

from datetime import datetime, timedelta, timezone

import pytest

from agroclim import crud
from agroclim.core.exceptions import MissingCredential, UpstreamUnavailable
from agroclim.schemas.weather import Observation, to_iso_utc
from agroclim.utils.acquisition import ObservationAcquisition, covers_range, merge_observations
from agroclim.utils.cache import ObservationCache

from tests.conftest import hourly_series, make_station

START = datetime(2024, 4, 1, tzinfo=timezone.utc)
END = datetime(2024, 4, 1, 23, tzinfo=timezone.utc)


class FakeObservationClient:
    """Stands in for InfoclimatClient.fetch_observations."""

    def __init__(self, observations=None, error=None):
        self.observations = observations or []
        self.error = error
        self.calls = []

    async def fetch_observations(self, station_id, start, end):
        self.calls.append((station_id, start, end))
        if self.error is not None:
            raise self.error
        return list(self.observations)


@pytest.fixture
def cache(session_factory):
    return ObservationCache(session_factory, ttl_hours=24)


def _key(station_id: str) -> str:
    return ObservationCache.hash_request(["station", station_id, to_iso_utc(START), to_iso_utc(END)])


def test_merge_later_series_wins():
    ts = START
    merged = merge_observations(
        [Observation(ts=ts, temperature=1.0), Observation(ts=ts + timedelta(hours=1), temperature=2.0)],
        [Observation(ts=ts, temperature=5.0)],
    )
    assert [o.temperature for o in merged] == [5.0, 2.0]


def test_covers_range():
    series = hourly_series(START, 24, temperature=10.0)
    assert covers_range(series, START, END)
    assert not covers_range(series[1:], START, END)
    assert not covers_range([], START, END)


async def test_covered_history_skips_upstream(session_factory, cache):
    async with session_factory() as db:
        await crud.observation.upsert_observations(
            db, station_code="07015", observations=hourly_series(START, 24, temperature=10.0)
        )
    client = FakeObservationClient()
    acquisition = ObservationAcquisition(cache, session_factory, client)

    observations = await acquisition.observations_for("07015", START, END)

    assert len(observations) == 24
    assert observations[0].ts == START
    assert client.calls == []


async def test_upstream_records_are_persisted_and_cached(session_factory, cache):
    remote = hourly_series(START - timedelta(hours=2), 28, temperature=12.0)
    client = FakeObservationClient(remote)
    acquisition = ObservationAcquisition(cache, session_factory, client)

    observations = await acquisition.observations_for("07015", START, END)

    assert len(observations) == 24
    assert all(START <= o.ts <= END for o in observations)
    assert len(client.calls) == 1
    async with session_factory() as db:
        assert await crud.observation.count(db) == 28
    assert len(await cache.get(_key("07015"))) == 24

    again = await acquisition.observations_for("07015", START, END)
    assert again == observations
    assert len(client.calls) == 1


async def test_invalid_cached_payload_is_dropped(session_factory, cache):
    await cache.set(_key("07015"), [{"ts": "not a timestamp", "temperature": "warm"}])
    client = FakeObservationClient(hourly_series(START, 24, temperature=9.0))
    acquisition = ObservationAcquisition(cache, session_factory, client)

    observations = await acquisition.observations_for("07015", START, END)

    assert len(observations) == 24
    assert len(client.calls) == 1
    assert (await cache.get(_key("07015")))[0]["temperature"] == 9.0


async def test_empty_result_is_not_cached(session_factory, cache):
    acquisition = ObservationAcquisition(cache, session_factory, FakeObservationClient())

    assert await acquisition.observations_for("07015", START, END) == []
    assert await cache.get(_key("07015")) is None


async def test_fetch_station_reports_failures(session_factory, cache):
    station = make_station("07015", 50.57, 3.098)

    missing = ObservationAcquisition(cache, session_factory, FakeObservationClient(error=MissingCredential()))
    result = await missing.fetch_station(station, START, END)
    assert not result.ok
    assert result.missing_credential

    down = ObservationAcquisition(cache, session_factory, FakeObservationClient(error=UpstreamUnavailable("down")))
    result = await down.fetch_station(station, START, END)
    assert not result.ok
    assert not result.missing_credential
    assert result.observations == []


async def test_fetch_stations_keeps_order(session_factory, cache):
    stations = [make_station("A", 45.0, 5.0), make_station("B", 45.1, 5.1)]
    client = FakeObservationClient(hourly_series(START, 24, temperature=11.0))
    acquisition = ObservationAcquisition(cache, session_factory, client)

    results = await acquisition.fetch_stations(stations, START, END)

    assert [r.station.id for r in results] == ["A", "B"]
    assert all(r.ok and len(r.observations) == 24 for r in results)
