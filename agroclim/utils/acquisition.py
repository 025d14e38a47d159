"""
Observation acquisition pipeline.

For one station and time range: request cache, then persisted history,
then the rate-limited upstream API for ranges the history does not
cover. Upstream records are persisted and the filtered result cached
only once a complete response has been received.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from agroclim import crud
from agroclim.clients.infoclimat import InfoclimatClient
from agroclim.core.exceptions import AgroClimError, MissingCredential
from agroclim.schemas.weather import Observation, Station, ensure_utc, to_iso_utc
from agroclim.utils.cache import ObservationCache
from agroclim.utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StationFetchResult:
    """Outcome of fetching one station: its series, or why it failed."""

    station: Station
    observations: List[Observation] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def missing_credential(self) -> bool:
        return isinstance(self.error, MissingCredential)


def merge_observations(*series: Iterable[Observation]) -> List[Observation]:
    """
    Merge series by timestamp, later series winning on duplicates.

    Returns:
        Deduplicated observations ascending by timestamp
    """
    merged: Dict[datetime, Observation] = {}
    for observations in series:
        for obs in observations:
            merged[obs.ts] = obs
    return [merged[ts] for ts in sorted(merged)]


def covers_range(observations: Sequence[Observation], start: datetime, end: datetime) -> bool:
    """True when the sorted series spans the whole of ``[start, end]``."""
    if not observations:
        return False
    return observations[0].ts <= start and observations[-1].ts >= end


class ObservationAcquisition:
    """
    Fetches station observations through cache, local history and upstream.

    Shared across requests; holds no per-call state.
    """

    def __init__(
        self,
        cache: ObservationCache,
        session_factory,
        client: InfoclimatClient,
    ):
        self.cache = cache
        self.session_factory = session_factory
        self.client = client

    async def observations_for(self, station_id: str, start: datetime, end: datetime) -> List[Observation]:
        """
        Observations of a station within ``[start, end]`` inclusive.

        Raises:
            MissingCredential: If the upstream API key is not configured
            UpstreamUnavailable: If the upstream fetch failed after retries
            SQLAlchemyError: If the history store cannot be read or written
        """
        start = ensure_utc(start)
        end = ensure_utc(end)
        key = self.cache.hash_request(["station", station_id, to_iso_utc(start), to_iso_utc(end)])

        cached = await self._cached_observations(key)
        if cached:
            logger.debug(f"Station {station_id}: {len(cached)} observations from cache")
            return cached

        async with self.session_factory() as db:
            stored = await crud.observation.get_in_range(db, station_code=station_id, start=start, end=end)

        observations = stored
        if not covers_range(stored, start, end):
            logger.debug(f"Station {station_id}: local history incomplete ({len(stored)} rows), fetching upstream")
            remote = merge_observations(await self.client.fetch_observations(station_id, start, end))
            observations = merge_observations(stored, remote)
            if remote:
                async with self.session_factory() as db:
                    await crud.observation.upsert_observations(db, station_code=station_id, observations=remote)

        filtered = [obs for obs in observations if start <= obs.ts <= end]
        if filtered:
            await self._write_cache(key, filtered)
        return filtered

    async def fetch_station(self, station: Station, start: datetime, end: datetime) -> StationFetchResult:
        """
        Fetch one station, converting expected failures into a failed result.

        Cancellation is not intercepted.
        """
        try:
            observations = await self.observations_for(station.id, start, end)
        except (AgroClimError, SQLAlchemyError) as e:
            logger.warning(f"Station {station.id} ({station.name}) unavailable: {e}")
            return StationFetchResult(station=station, error=e)
        return StationFetchResult(station=station, observations=observations)

    async def fetch_stations(
        self,
        stations: Sequence[Station],
        start: datetime,
        end: datetime,
    ) -> List[StationFetchResult]:
        """Fetch every station concurrently; results keep the stations' order."""
        return list(
            await asyncio.gather(*(self.fetch_station(station, start, end) for station in stations))
        )

    async def _cached_observations(self, key: str) -> List[Observation]:
        payload = await self.cache.get(key)
        if not isinstance(payload, list) or not payload:
            return []
        try:
            return [Observation.model_validate(item) for item in payload]
        except ValidationError as e:
            logger.warning(f"Cached observations failed validation ({e.error_count()} errors), deleting entry")
            await self.cache.delete(key)
            return []

    async def _write_cache(self, key: str, observations: Sequence[Observation]) -> None:
        try:
            await self.cache.set(key, [obs.model_dump(mode="json") for obs in observations])
        except SQLAlchemyError as e:
            logger.warning(f"Unable to cache {len(observations)} observations: {e}")
