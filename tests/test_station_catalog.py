"""
Tests for the long-lived station catalog.
"""

import asyncio

import pytest

from agroclim import crud
from agroclim.core.exceptions import AgroClimError, InvalidCoordinates, MissingCredential, UpstreamUnavailable
from agroclim.utils.station_catalog import StationCatalog, load_snapshot

from tests.conftest import make_station

REMOTE_STATIONS = [
    make_station("R1", 48.85, 2.35, "Paris-Centre"),
    make_station("R2", 45.76, 4.84, "Lyon-Centre"),
]


class FakeCatalogClient:
    """Stands in for InfoclimatClient.fetch_station_catalog."""

    def __init__(self, stations=None, error=None):
        self.stations = stations or []
        self.error = error
        self.calls = 0

    async def fetch_station_catalog(self):
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return list(self.stations)


class GatedCatalogClient:
    """First fetch blocks until released; later fetches return a newer catalog."""

    def __init__(self):
        self.release = asyncio.Event()
        self.calls = 0

    async def fetch_station_catalog(self):
        self.calls += 1
        if self.calls == 1:
            await self.release.wait()
            return [make_station("OLD", 47.0, 1.0)]
        return [make_station("NEW", 43.6, 1.44)]

def test_bundled_snapshot():
    stations = load_snapshot()
    assert len(stations) == 12
    assert all(s.id and s.name for s in stations)
    assert "07149" in {s.id for s in stations}


async def test_persisted_stations_come_first(session_factory):
    async with session_factory() as db:
        await crud.station.upsert_stations(db, stations=[make_station("P1", 47.0, 1.0)])
    client = FakeCatalogClient(REMOTE_STATIONS)

    stations = await StationCatalog(session_factory, client=client).all_stations()

    assert [s.id for s in stations] == ["P1"]
    assert client.calls == 0


async def test_remote_catalog_is_persisted(session_factory):
    client = FakeCatalogClient(REMOTE_STATIONS)

    stations = await StationCatalog(session_factory, client=client).all_stations()

    assert [s.id for s in stations] == ["R1", "R2"]
    async with session_factory() as db:
        assert [s.id for s in await crud.station.get_all(db)] == ["R1", "R2"]


async def test_snapshot_when_remote_unavailable(session_factory):
    client = FakeCatalogClient(error=MissingCredential())

    stations = await StationCatalog(session_factory, client=client).all_stations()

    assert len(stations) == 12
    async with session_factory() as db:
        assert await crud.station.count(db) == 12


async def test_concurrent_loads_are_deduplicated(session_factory):
    client = FakeCatalogClient(REMOTE_STATIONS)
    catalog = StationCatalog(session_factory, client=client)

    results = await asyncio.gather(*(catalog.all_stations() for _ in range(5)))

    assert client.calls == 1
    assert all([s.id for s in r] == ["R1", "R2"] for r in results)


async def test_refresh_failure_keeps_current_list(session_factory):
    client = FakeCatalogClient(REMOTE_STATIONS)
    catalog = StationCatalog(session_factory, client=client)
    before = await catalog.all_stations()

    client.error = UpstreamUnavailable("catalog down")
    with pytest.raises(AgroClimError):
        await catalog.refresh()

    assert await catalog.all_stations() == before


async def test_refresh_swaps_catalog(session_factory):
    client = FakeCatalogClient(REMOTE_STATIONS)
    catalog = StationCatalog(session_factory, client=client)
    await catalog.all_stations()

    client.stations = [make_station("R3", 43.6, 1.44, "Toulouse-Centre")]
    await catalog.refresh()

    assert [s.id for s in await catalog.all_stations()] == ["R3"]


async def test_refresh_during_initial_load_wins(session_factory):
    client = GatedCatalogClient()
    catalog = StationCatalog(session_factory, client=client)

    load = asyncio.ensure_future(catalog.all_stations())
    while client.calls == 0:
        await asyncio.sleep(0.01)
    refreshed = await catalog.refresh()
    client.release.set()
    loaded = await load

    assert [s.id for s in refreshed] == ["NEW"]
    assert [s.id for s in loaded] == ["NEW"]
    assert [s.id for s in await catalog.all_stations()] == ["NEW"]


async def test_refresh_without_client(session_factory):
    with pytest.raises(AgroClimError):
        await StationCatalog(session_factory).refresh()


async def test_seed_snapshot(session_factory):
    written = await StationCatalog(session_factory).seed_snapshot()
    assert written == 12


class TestNearestStations:

    async def test_nearest_ordering(self, session_factory):
        catalog = StationCatalog(session_factory)

        nearest = await catalog.nearest_stations(48.8566, 2.3522, 3)

        assert len(nearest) == 3
        assert nearest[0].id == "07149"
        distances = [s.distance_km for s in nearest]
        assert distances == sorted(distances)

    async def test_at_least_one_station(self, session_factory):
        nearest = await StationCatalog(session_factory).nearest_stations(45.76, 4.84, 0)
        assert len(nearest) == 1
        assert nearest[0].id == "07481"

    @pytest.mark.parametrize("lat,lon", [(float("nan"), 2.0), (48.0, float("inf")), (None, 2.0), ("abc", 2.0)])
    async def test_invalid_coordinates(self, session_factory, lat, lon):
        with pytest.raises(InvalidCoordinates):
            await StationCatalog(session_factory).nearest_stations(lat, lon)
