"""
Infoclimat open data client.

Fetches station observations and the station catalog as ';'-delimited
CSV. Column names vary between exports, so each field is looked up
through a list of known aliases.
"""

import asyncio
import io
import math
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import httpx
import pandas as pd
from pandas.errors import EmptyDataError

from agroclim.clients.http import RateLimiter, with_retries
from agroclim.core.exceptions import MissingCredential
from agroclim.schemas.weather import Observation, Station, ensure_utc, to_iso_utc
from agroclim.utils.logging_config import get_logger

logger = get_logger(__name__)

SOURCE_LABEL = "Infoclimat (Open Data)"

# Observation CSV columns
TIMESTAMP_COLUMNS = ("date_iso", "date", "time")
OBSERVATION_COLUMNS = {
    "temperature": ("t", "temperature"),
    "temp_min": ("tn", "tmin"),
    "temp_max": ("tx", "tmax"),
    "rainfall": ("rr", "precip", "rr1h"),
    "rainfall_24h": ("rr24", "precip24"),
    "wind_speed": ("ff", "wind_avg"),
    "wind_gust": ("fx", "wind_gust"),
    "relative_humidity": ("humidity", "rh"),
    "pressure": ("p", "pressure"),
}

# Station catalog CSV columns
STATION_ID_COLUMNS = ("id", "station", "station_id", "code", "identifiant", "numero")
STATION_LAT_COLUMNS = ("lat", "latitude", "lat_dd", "latdec", "latitude_dd", "latitude_dec")
STATION_LON_COLUMNS = ("lon", "longitude", "lon_dd", "londec", "longitude_dd", "longitude_dec")
STATION_NAME_COLUMNS = ("name", "nom", "station_name", "label", "nom_station", "station_nom", "station_label")
STATION_CITY_COLUMNS = ("city", "commune", "ville", "nom_commune", "lieu", "localite")
STATION_ALTITUDE_COLUMNS = ("altitude", "alt", "elevation", "alt_m", "hauteur")
STATION_TYPE_COLUMNS = ("type", "categorie", "category", "nature", "station_type")


def to_number(value: Any) -> Optional[float]:
    """
    Parse a numeric cell, accepting decimal commas.

    Returns None for empty, missing or non-finite values.

    Example:
        >>> to_number(" 12,5 ")
        12.5
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        normalized = value.replace(",", ".", 1).strip()
        if not normalized:
            return None
        try:
            parsed = float(normalized)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-like timestamp; naive values are taken as UTC."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def read_csv_frame(text: str) -> pd.DataFrame:
    """
    Read ';'-delimited CSV with a header row.

    Cells are kept as text and column names are stripped and
    lower-cased. Blank lines, '#' comment lines, malformed rows and a
    leading byte order mark are skipped.
    """
    try:
        frame = pd.read_csv(
            io.StringIO(text.lstrip("\ufeff")),
            sep=";",
            comment="#",
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            index_col=False,
            on_bad_lines="skip",
        )
    except EmptyDataError:
        return pd.DataFrame()
    frame.columns = frame.columns.str.strip().str.lower()
    return frame


def _column(frame: pd.DataFrame, aliases: Iterable[str]) -> Optional[pd.Series]:
    """First column present among ``aliases``."""
    for alias in aliases:
        if alias in frame.columns:
            return frame[alias]
    return None


def numeric_column(frame: pd.DataFrame, aliases: Iterable[str]) -> pd.Series:
    """
    Numeric values of the first matching column, accepting decimal commas.

    Empty, unparseable and non-finite cells become NaN.
    """
    column = _column(frame, aliases)
    if column is None:
        return pd.Series(float("nan"), index=frame.index)
    normalized = column.fillna("").astype(str).str.strip().str.replace(",", ".", n=1, regex=False)
    values = pd.to_numeric(normalized, errors="coerce").astype(float)
    return values.where(values.abs() != math.inf)


def text_column(frame: pd.DataFrame, aliases: Iterable[str]) -> pd.Series:
    """Stripped text of the first matching column; '' where absent."""
    column = _column(frame, aliases)
    if column is None:
        return pd.Series("", index=frame.index, dtype=object)
    return column.fillna("").astype(str).str.strip()


def _cell(value: Any) -> Optional[float]:
    return None if pd.isna(value) else float(value)


def parse_observations_csv(text: str) -> List[Observation]:
    """Parse an observation export; rows with a bad timestamp are dropped."""
    frame = read_csv_frame(text)
    if frame.empty:
        return []

    timestamps = text_column(frame, TIMESTAMP_COLUMNS)
    columns = {field: numeric_column(frame, aliases) for field, aliases in OBSERVATION_COLUMNS.items()}

    observations = []
    for index, raw_ts in timestamps.items():
        ts = parse_timestamp(raw_ts)
        if ts is None:
            continue
        values = {field: _cell(series.at[index]) for field, series in columns.items()}
        observations.append(Observation(ts=ts, **values))
    return observations


def parse_stations_csv(text: str) -> List[Station]:
    """Parse the station catalog; rows without an id or coordinates are dropped."""
    frame = read_csv_frame(text)
    if frame.empty:
        return []

    ids = text_column(frame, STATION_ID_COLUMNS)
    names = text_column(frame, STATION_NAME_COLUMNS)
    cities = text_column(frame, STATION_CITY_COLUMNS)
    types = text_column(frame, STATION_TYPE_COLUMNS)
    lats = numeric_column(frame, STATION_LAT_COLUMNS)
    lons = numeric_column(frame, STATION_LON_COLUMNS)
    altitudes = numeric_column(frame, STATION_ALTITUDE_COLUMNS)

    stations = []
    for index, station_id in ids.items():
        lat = _cell(lats.at[index])
        lon = _cell(lons.at[index])
        if not station_id or lat is None or lon is None:
            continue
        stations.append(
            Station(
                id=station_id,
                name=names.at[index] or station_id,
                city=cities.at[index] or None,
                lat=lat,
                lon=lon,
                altitude=_cell(altitudes.at[index]),
                type=types.at[index] or None,
            )
        )
    return stations


class InfoclimatClient:
    """
    Rate-limited, retrying client for the Infoclimat open data API.

    The rate limiter is shared by every call on the instance, so one
    instance should serve the whole process.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        api_key: Optional[str],
        api_base: str,
        stations_url: str,
        rate_limiter: RateLimiter,
        max_retries: int = 3,
        retry_base_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.http = http
        self.api_key = api_key
        self.api_base = api_base
        self.stations_url = stations_url
        self.rate_limiter = rate_limiter
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._sleep = sleep

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise MissingCredential("INFOCLIMAT_API_KEY")
        return self.api_key

    async def _get_text(self, url: str, params: Dict[str, str], description: str) -> str:
        async def attempt() -> str:
            await self.rate_limiter.wait()
            response = await self.http.get(url, params=params)
            response.raise_for_status()
            return response.text

        return await with_retries(
            attempt,
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
            description=description,
            sleep=self._sleep,
        )

    async def fetch_observations(self, station_id: str, start: datetime, end: datetime) -> List[Observation]:
        """
        Fetch a station's observations for ``[start, end]``.

        Raises:
            MissingCredential: If no API key is configured (never retried)
            UpstreamUnavailable: If every attempt failed
        """
        token = self._require_api_key()
        params = {
            "station": station_id,
            "start": to_iso_utc(start),
            "end": to_iso_utc(end),
            "token": token,
        }
        text = await self._get_text(self.api_base, params, f"Infoclimat observations for station {station_id}")
        observations = parse_observations_csv(text)
        logger.info(f"Fetched {len(observations)} observations for station {station_id} from Infoclimat")
        return observations

    async def fetch_station_catalog(self) -> List[Station]:
        """
        Fetch the remote station catalog.

        Raises:
            MissingCredential: If no API key is configured
            UpstreamUnavailable: If every attempt failed
        """
        token = self._require_api_key()
        text = await self._get_text(self.stations_url, {"token": token}, "Infoclimat station catalog")
        stations = parse_stations_csv(text)
        logger.info(f"Fetched {len(stations)} stations from the Infoclimat catalog")
        return stations
