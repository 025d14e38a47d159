"""
Tests for inverse-distance multi-station fusion.
"""

import math
from datetime import datetime, timezone

import pytest

from agroclim.core.exceptions import UpstreamUnavailable
from agroclim.schemas.weather import Observation
from agroclim.utils.acquisition import StationFetchResult
from agroclim.utils.fusion import MIN_DISTANCE_KM, fuse_observations, fuse_results, station_weight
from agroclim.utils.spatial import EARTH_RADIUS_KM, haversine_distance_km

from tests.conftest import make_station

TS = datetime(2024, 6, 1, 12, tzinfo=timezone.utc)


def _lon_at_km(km: float) -> float:
    """Longitude on the equator ``km`` east of (0, 0)."""
    return math.degrees(km / EARTH_RADIUS_KM)


def test_haversine_distance():
    assert haversine_distance_km(48.8566, 2.3522, 45.7640, 4.8357) == pytest.approx(391.5, abs=0.1)
    assert haversine_distance_km(0, 0, 0, _lon_at_km(10)) == pytest.approx(10.0)


def test_single_station_is_identity():
    station = make_station("A", 45.0, 5.0)
    series = [
        Observation(ts=TS, temperature=21.5, rainfall=0.4, wind_speed=3.2),
        Observation(ts=TS.replace(hour=13), temperature=22.25, relative_humidity=55.0),
    ]

    fused = fuse_observations([station], [series], 45.3, 5.4)

    assert fused == series


def test_two_station_weighted_mean():
    near = make_station("near", 0.0, _lon_at_km(10))
    far = make_station("far", 0.0, _lon_at_km(40))

    fused = fuse_observations(
        [near, far],
        [[Observation(ts=TS, temperature=20.0)], [Observation(ts=TS, temperature=10.0)]],
        0.0,
        0.0,
    )

    d_near = haversine_distance_km(0, 0, near.lat, near.lon)
    d_far = haversine_distance_km(0, 0, far.lat, far.lon)
    expected = (20 / d_near + 10 / d_far) / (1 / d_near + 1 / d_far)
    assert len(fused) == 1
    assert fused[0].temperature == round(expected, 2)
    assert fused[0].temperature == pytest.approx(18.0, abs=0.01)


def test_missing_field_does_not_take_part():
    a = make_station("A", 0.0, _lon_at_km(10))
    b = make_station("B", 0.0, _lon_at_km(40))

    fused = fuse_observations(
        [a, b],
        [
            [Observation(ts=TS, temperature=20.0, rainfall=None)],
            [Observation(ts=TS, temperature=None, rainfall=4.0)],
        ],
        0.0,
        0.0,
    )

    assert fused[0].temperature == 20.0
    assert fused[0].rainfall == 4.0
    assert fused[0].pressure is None


def test_union_of_timestamps_sorted():
    a = make_station("A", 0.0, 0.1)
    b = make_station("B", 0.0, 0.2)
    later = TS.replace(hour=18)

    fused = fuse_observations(
        [a, b],
        [[Observation(ts=later, temperature=15.0)], [Observation(ts=TS, temperature=25.0)]],
        0.0,
        0.0,
    )

    assert [obs.ts for obs in fused] == [TS, later]


def test_coincident_station_uses_distance_floor():
    station = make_station("A", 45.0, 5.0)
    assert station_weight(station, 45.0, 5.0) == pytest.approx(1 / MIN_DISTANCE_KM)


def test_failed_results_contribute_nothing():
    ok = StationFetchResult(station=make_station("A", 0.0, 0.1), observations=[Observation(ts=TS, temperature=12.0)])
    failed = StationFetchResult(station=make_station("B", 0.0, 0.05), error=UpstreamUnavailable("down"))

    fused = fuse_results([ok, failed], 0.0, 0.0)

    assert [obs.temperature for obs in fused] == [12.0]
    assert fuse_results([failed], 0.0, 0.0) == []
