"""
Multi-station fusion.

Combines several stations' observation series into one series for a
target point by inverse-distance weighting, independently per field and
per instant. A station without a finite value for a field at an instant
does not take part in that field's weighted mean.
"""

import math
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from agroclim.schemas.weather import OBSERVATION_FIELDS, Observation, Station
from agroclim.utils.acquisition import StationFetchResult
from agroclim.utils.spatial import haversine_distance_km

# Distance floor (km) for near-coincident points
MIN_DISTANCE_KM = 0.1


def station_weight(station: Station, target_lat: float, target_lon: float) -> float:
    """Inverse-distance weight of a station for the target point."""
    distance = haversine_distance_km(target_lat, target_lon, station.lat, station.lon)
    return 1.0 / max(distance, MIN_DISTANCE_KM)


def fuse_observations(
    stations: Sequence[Station],
    per_station_series: Sequence[Sequence[Observation]],
    target_lat: float,
    target_lon: float,
) -> List[Observation]:
    """
    Fuse station series into one inverse-distance-weighted series.

    Args:
        stations: Stations, aligned with ``per_station_series``
        per_station_series: One observation series per station
        target_lat: Target latitude
        target_lon: Target longitude

    Returns:
        Fused observations ascending by timestamp, values rounded to 2 dp
    """
    # ts -> field -> [weighted sum, total weight]
    accumulators: Dict[datetime, Dict[str, List[float]]] = {}

    for station, series in zip(stations, per_station_series):
        if not series:
            continue
        weight = station_weight(station, target_lat, target_lon)
        for obs in series:
            fields = accumulators.setdefault(obs.ts, {})
            for name in OBSERVATION_FIELDS:
                value = getattr(obs, name)
                if value is None or not math.isfinite(value):
                    continue
                acc = fields.setdefault(name, [0.0, 0.0])
                acc[0] += value * weight
                acc[1] += weight

    fused = []
    for ts in sorted(accumulators):
        fields = accumulators[ts]
        values: Dict[str, Optional[float]] = {}
        for name in OBSERVATION_FIELDS:
            acc = fields.get(name)
            values[name] = round(acc[0] / acc[1], 2) if acc and acc[1] > 0 else None
        fused.append(Observation(ts=ts, **values))
    return fused


def fuse_results(
    results: Sequence[StationFetchResult],
    target_lat: float,
    target_lon: float,
) -> List[Observation]:
    """Fuse per-station fetch results; failed fetches contribute nothing."""
    successful: List[Tuple[Station, Sequence[Observation]]] = [
        (result.station, result.observations) for result in results if result.ok
    ]
    if not successful:
        return []
    stations, series = zip(*successful)
    return fuse_observations(stations, series, target_lat, target_lon)
