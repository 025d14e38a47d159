"""
Open-Meteo archive client, the gridded fallback source.

Hourly reanalysis values are mapped onto station-style observations;
the day's min/max temperature and precipitation sum are attached to
every hour of that day. Wind speeds are converted from km/h to m/s.
"""

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from agroclim.clients.http import with_retries
from agroclim.clients.infoclimat import parse_timestamp, to_number
from agroclim.core.exceptions import UpstreamUnavailable
from agroclim.schemas.weather import Observation, StationWithDistance, ensure_utc
from agroclim.utils.logging_config import get_logger

logger = get_logger(__name__)

SOURCE_LABEL = "Open-Meteo (Archive API - fallback)"
GRID_STATION_ID = "open-meteo-grid"

HOURLY_VARIABLES = "temperature_2m,relativehumidity_2m,windspeed_10m,windgusts_10m,pressure_msl,precipitation"
DAILY_VARIABLES = "precipitation_sum,temperature_2m_min,temperature_2m_max"


def grid_station(lat: float, lon: float) -> StationWithDistance:
    """Synthetic station standing for the grid cell at the query point."""
    return StationWithDistance(
        id=GRID_STATION_ID,
        name="Open-Meteo (grille)",
        city=None,
        lat=lat,
        lon=lon,
        altitude=None,
        type="grid",
        distance_km=0.0,
    )


def kmh_to_ms(value: Any) -> Optional[float]:
    numeric = to_number(value)
    if numeric is None:
        return None
    return round(numeric / 3.6, 2)


def _series(block: Dict[str, Any], name: str) -> Sequence[Any]:
    values = block.get(name)
    return values if isinstance(values, list) else []


def _at(values: Sequence[Any], index: int) -> Any:
    return values[index] if index < len(values) else None


def parse_archive_payload(payload: Dict[str, Any]) -> List[Observation]:
    """Map an archive JSON response onto hourly observations."""
    hourly = payload.get("hourly") or {}
    daily = payload.get("daily") or {}

    daily_min: Dict[str, float] = {}
    daily_max: Dict[str, float] = {}
    daily_rain: Dict[str, float] = {}
    for index, day in enumerate(_series(daily, "time")):
        if not isinstance(day, str) or not day:
            continue
        key = day[:10]
        for target, name in (
            (daily_rain, "precipitation_sum"),
            (daily_min, "temperature_2m_min"),
            (daily_max, "temperature_2m_max"),
        ):
            value = to_number(_at(_series(daily, name), index))
            if value is not None:
                target[key] = round(value, 2)

    temperature = _series(hourly, "temperature_2m")
    humidity = _series(hourly, "relativehumidity_2m")
    wind = _series(hourly, "windspeed_10m")
    gust = _series(hourly, "windgusts_10m")
    pressure = _series(hourly, "pressure_msl")
    precipitation = _series(hourly, "precipitation")

    observations = []
    for index, raw_ts in enumerate(_series(hourly, "time")):
        ts = parse_timestamp(raw_ts) if isinstance(raw_ts, str) else None
        if ts is None:
            continue
        day_key = ts.strftime("%Y-%m-%d")
        observations.append(
            Observation(
                ts=ts,
                temperature=to_number(_at(temperature, index)),
                temp_min=daily_min.get(day_key),
                temp_max=daily_max.get(day_key),
                rainfall=to_number(_at(precipitation, index)),
                rainfall_24h=daily_rain.get(day_key),
                wind_speed=kmh_to_ms(_at(wind, index)),
                wind_gust=kmh_to_ms(_at(gust, index)),
                relative_humidity=to_number(_at(humidity, index)),
                pressure=to_number(_at(pressure, index)),
            )
        )
    return observations


class OpenMeteoClient:
    """Client for the Open-Meteo historical archive (no key required)."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        archive_url: str,
        max_retries: int = 3,
        retry_base_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.http = http
        self.archive_url = archive_url
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._sleep = sleep

    async def fetch_observations(self, lat: float, lon: float, start: datetime, end: datetime) -> List[Observation]:
        """
        Hourly gridded observations for the point over ``[start, end]``.

        Raises:
            UpstreamUnavailable: If every attempt failed
        """
        params = {
            "latitude": f"{lat:.4f}",
            "longitude": f"{lon:.4f}",
            "start_date": ensure_utc(start).strftime("%Y-%m-%d"),
            "end_date": ensure_utc(end).strftime("%Y-%m-%d"),
            "timezone": "UTC",
            "hourly": HOURLY_VARIABLES,
            "daily": DAILY_VARIABLES,
        }

        async def attempt() -> Dict[str, Any]:
            response = await self.http.get(self.archive_url, params=params)
            response.raise_for_status()
            try:
                return response.json()
            except ValueError as e:
                raise UpstreamUnavailable("Open-Meteo archive returned invalid JSON") from e

        payload = await with_retries(
            attempt,
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
            description=f"Open-Meteo archive for ({lat:.4f}, {lon:.4f})",
            sleep=self._sleep,
        )
        observations = parse_archive_payload(payload)
        logger.info(f"Fetched {len(observations)} gridded observations for ({lat:.4f}, {lon:.4f}) from Open-Meteo")
        return observations
