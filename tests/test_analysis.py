"""
Tests for the analysis orchestrator and the yearly weather summary.
"""

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from agroclim import crud
from agroclim.clients.http import RateLimiter
from agroclim.clients.infoclimat import SOURCE_LABEL as INFOCLIMAT_SOURCE
from agroclim.clients.infoclimat import InfoclimatClient
from agroclim.clients.open_meteo import GRID_STATION_ID
from agroclim.clients.open_meteo import SOURCE_LABEL as OPEN_METEO_SOURCE
from agroclim.config import Settings
from agroclim.core.exceptions import (
    MissingCredential,
    NoObservationsAvailable,
    NoStationsFound,
    UpstreamUnavailable,
)
from agroclim.schemas.analysis import AnalysisRequest, PhaseWindow
from agroclim.schemas.weather import Observation, StationWithDistance
from agroclim.utils.acquisition import ObservationAcquisition, StationFetchResult
from agroclim.utils.analysis import MISSING_CREDENTIAL_MESSAGE, AnalysisPipeline
from agroclim.utils.cache import ObservationCache
from agroclim.utils.station_catalog import StationCatalog
from agroclim.utils.summary import build_weather_summary

from tests.conftest import daily_series

NOW = datetime(2024, 7, 15, 10, 30, 12, tzinfo=timezone.utc)
TARGET = (45.75, 4.85)


def _station(station_id: str, distance: float) -> StationWithDistance:
    return StationWithDistance(id=station_id, name=f"Station {station_id}", lat=45.7, lon=4.9, distance_km=distance)


STATIONS = [_station("A", 5.0), _station("B", 12.0), _station("C", 30.0)]


def _history(years=(2022, 2023, 2024)):
    observations = []
    for year in years:
        observations.extend(
            daily_series(datetime(year, 4, 1), 90, temperature=18.0, temp_min=10.0, temp_max=26.0, rainfall=0.5)
        )
    return observations


class FakeCatalog:
    def __init__(self, stations):
        self.stations = stations

    async def nearest_stations(self, lat, lon, n=3):
        return self.stations[:max(1, n)] if self.stations else []


class FakeAcquisition:
    """Returns canned per-station results and records the requested window."""

    def __init__(self, outcomes):
        self.outcomes = outcomes
        self.windows = []

    async def fetch_stations(self, stations, start, end):
        self.windows.append((start, end))
        results = []
        for station in stations:
            outcome = self.outcomes.get(station.id, [])
            if isinstance(outcome, Exception):
                results.append(StationFetchResult(station=station, error=outcome))
            else:
                results.append(StationFetchResult(station=station, observations=outcome))
        return results


class FakeFallback:
    def __init__(self, observations=None, error=None):
        self.observations = observations or []
        self.error = error
        self.calls = 0

    async def fetch_observations(self, lat, lon, start, end):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.observations)


def _pipeline(outcomes, fallback=None, stations=STATIONS):
    acquisition = FakeAcquisition(outcomes)
    pipeline = AnalysisPipeline(
        catalog=FakeCatalog(stations),
        acquisition=acquisition,
        fallback=fallback or FakeFallback(),
        settings=Settings(NEAREST_STATION_COUNT=3),
        clock=lambda: NOW,
    )
    return pipeline, acquisition


def _request(**overrides) -> AnalysisRequest:
    values = dict(
        lat=TARGET[0],
        lon=TARGET[1],
        crop="blé",
        phase=PhaseWindow(start_day_of_year=100, end_day_of_year=200),
        years_back=3,
    )
    values.update(overrides)
    return AnalysisRequest(**values)


class TestAnalyze:

    async def test_partial_station_failure_still_analyses(self):
        pipeline, _ = _pipeline({"A": _history(), "B": MissingCredential(), "C": UpstreamUnavailable("down")})

        response = await pipeline.analyze(_request())

        assert response.source == INFOCLIMAT_SOURCE
        assert response.crop == "blé"
        assert response.years_analyzed == 3
        assert [s.id for s in response.stations_used] == ["A", "B", "C"]
        assert [y.year for y in response.indicators.years] == [2022, 2023, 2024]
        assert response.rainfall_quantiles.p50 is not None
        assert response.risks.heatwave.probability == 0.0
        assert 0 <= response.confidence <= 1

    async def test_analysis_window(self):
        pipeline, acquisition = _pipeline({"A": _history()})

        await pipeline.analyze(_request())

        start, end = acquisition.windows[0]
        assert start == datetime(2022, 1, 1, tzinfo=timezone.utc)
        assert end == datetime(2024, 7, 15, 10, tzinfo=timezone.utc)

    async def test_fallback_source_label(self):
        fallback = FakeFallback(_history())
        pipeline, _ = _pipeline({"A": [], "B": UpstreamUnavailable("down"), "C": []}, fallback)

        response = await pipeline.analyze(_request())

        assert fallback.calls == 1
        assert response.source == OPEN_METEO_SOURCE
        assert [s.id for s in response.stations_used] == [GRID_STATION_ID]
        assert response.years_analyzed == 3

    async def test_no_stations(self):
        pipeline, _ = _pipeline({}, stations=[])
        with pytest.raises(NoStationsFound):
            await pipeline.analyze(_request())

    async def test_missing_credential_without_fallback_data(self):
        pipeline, _ = _pipeline({"A": MissingCredential(), "B": MissingCredential(), "C": MissingCredential()})

        with pytest.raises(NoObservationsAvailable) as exc_info:
            await pipeline.analyze(_request())

        assert exc_info.value.missing_credential is True
        assert str(exc_info.value) == MISSING_CREDENTIAL_MESSAGE

    async def test_fallback_failure_is_generic(self):
        fallback = FakeFallback(error=UpstreamUnavailable("archive down"))
        pipeline, _ = _pipeline({"A": UpstreamUnavailable("down")}, fallback)

        with pytest.raises(NoObservationsAvailable) as exc_info:
            await pipeline.analyze(_request())

        assert exc_info.value.missing_credential is False

    async def test_empty_phase_gives_empty_statistics(self):
        pipeline, _ = _pipeline({"A": _history()})

        response = await pipeline.analyze(_request(phase=PhaseWindow(start_day_of_year=300, end_day_of_year=320)))

        assert response.years_analyzed == 0
        assert response.rainfall_quantiles.p50 is None
        assert response.risks.heatwave.probability is None
        assert response.trends.rainfall.ols is None


class TestSummaryAndAvailability:

    async def test_summarize_uses_fused_series(self):
        pipeline, acquisition = _pipeline({"A": _history((2023,))})

        summary = await pipeline.summarize(*TARGET, 2023)

        assert acquisition.windows[0] == (
            datetime(2023, 1, 1, tzinfo=timezone.utc),
            datetime(2023, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
        )
        assert summary.metadata.source == INFOCLIMAT_SOURCE
        assert [m.label for m in summary.monthly] == ["Avril", "Mai", "Juin"]

    async def test_availability_uses_nearest_station(self):
        pipeline, _ = _pipeline({"A": _history((2019, 2023))})

        response = await pipeline.availability(*TARGET, max_years=10)

        assert response.start_year == 2015
        assert response.end_year == 2024
        assert len(response.stations) == 1
        assert response.stations[0].id == "A"
        assert response.stations[0].available_years == [2019, 2023]

    async def test_availability_clamps_window(self):
        pipeline, _ = _pipeline({"A": []})
        response = await pipeline.availability(*TARGET, max_years=500)
        assert response.start_year == 1975

    async def test_availability_station_failure(self):
        pipeline, _ = _pipeline({"A": MissingCredential()})
        with pytest.raises(NoObservationsAvailable) as exc_info:
            await pipeline.availability(*TARGET)
        assert exc_info.value.missing_credential is True


def test_weather_summary_day_night_split():
    observations = [
        Observation(
            ts=datetime(2023, 1, 10, hour, tzinfo=timezone.utc),
            temperature=10.0 if 6 <= hour < 18 else 2.0,
            relative_humidity=80.0,
            rainfall=1.0 if hour == 3 else 0.0,
        )
        for hour in range(24)
    ]

    summary = build_weather_summary(
        observations,
        start=datetime(2023, 1, 1, tzinfo=timezone.utc),
        end=datetime(2023, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
        latitude=48.85,
        longitude=2.35,
        stations=[],
        source=INFOCLIMAT_SOURCE,
    )

    assert summary.summary.avg_day_temp == 10.0
    assert summary.summary.avg_night_temp == 2.0
    assert summary.summary.day_sample_count == 12
    assert summary.summary.total_precipitation == 1.0
    assert summary.summary.precipitation_day_count == 1
    assert summary.metadata.hourly_sample_count == 24
    assert len(summary.monthly) == 1
    assert summary.monthly[0].month_index == 0
    assert summary.monthly[0].label == "Janvier"


async def test_cancellation_leaves_no_partial_writes(session_factory):
    entered = asyncio.Event()
    release = asyncio.Event()
    arrivals = []

    async def handler(request: httpx.Request) -> httpx.Response:
        arrivals.append(request.url.params["station"])
        if len(arrivals) == 3:
            entered.set()
        await release.wait()
        return httpx.Response(200, text="date_iso;t\n2024-07-01T00:00:00Z;20\n")

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = InfoclimatClient(
        http,
        api_key="secret",
        api_base="https://infoclimat.test/observations.csv",
        stations_url="https://infoclimat.test/stations.csv",
        rate_limiter=RateLimiter(0),
    )
    cache = ObservationCache(session_factory)
    pipeline = AnalysisPipeline(
        catalog=StationCatalog(session_factory),
        acquisition=ObservationAcquisition(cache, session_factory, client),
        fallback=FakeFallback(),
        settings=Settings(NEAREST_STATION_COUNT=3),
        clock=lambda: NOW,
    )

    task = asyncio.create_task(pipeline.analyze(_request()))
    await asyncio.wait_for(entered.wait(), timeout=5)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    async with session_factory() as db:
        assert await crud.observation.count(db) == 0
        assert await crud.cached_request.count(db) == 0
    await http.aclose()
