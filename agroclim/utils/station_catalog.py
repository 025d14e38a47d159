"""
Long-lived station catalog.

The catalog is loaded once per process, from the persisted station
table, else the remote Infoclimat catalog, else the bundled snapshot
(the latter two are persisted on success). Readers always see a
complete immutable snapshot; ``refresh`` swaps the reference.
"""

import asyncio
import json
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from agroclim import crud
from agroclim.clients.infoclimat import InfoclimatClient
from agroclim.core.exceptions import AgroClimError, InvalidCoordinates
from agroclim.schemas.weather import Station, StationWithDistance
from agroclim.utils.logging_config import get_logger
from agroclim.utils.spatial import haversine_distance_km, is_valid_coordinate

logger = get_logger(__name__)

SNAPSHOT_PATH = Path(__file__).resolve().parent.parent / "data" / "stations.json"

_STATIONS_RESOURCE = "stations"


def load_snapshot(path: Path = SNAPSHOT_PATH) -> List[Station]:
    """Read the bundled station snapshot, skipping entries without id or coordinates."""
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    stations = []
    for entry in raw:
        station_id = entry.get("id")
        lat = entry.get("lat")
        lon = entry.get("lon")
        if not isinstance(station_id, str) or not station_id or not is_valid_coordinate(lat, lon):
            continue
        stations.append(
            Station(
                id=station_id,
                name=entry.get("name") or station_id,
                city=entry.get("city"),
                lat=lat,
                lon=lon,
                altitude=entry.get("altitude"),
                type=entry.get("type"),
            )
        )
    return stations


class StationCatalog:
    """
    Station store shared by every request of the process.

    Concurrent callers during a load await the same in-flight task; a
    caller being cancelled does not cancel the shared load.
    """

    def __init__(
        self,
        session_factory,
        client: Optional[InfoclimatClient] = None,
        snapshot_path: Path = SNAPSHOT_PATH,
    ):
        self.session_factory = session_factory
        self.client = client
        self.snapshot_path = snapshot_path
        self._stations: Optional[Tuple[Station, ...]] = None
        self._in_flight: Dict[str, asyncio.Future] = {}

    async def all_stations(self) -> List[Station]:
        """Every known station, loading the catalog on first use."""
        snapshot = self._stations
        if snapshot is not None:
            return list(snapshot)

        task = self._in_flight.get(_STATIONS_RESOURCE)
        if task is None:
            task = asyncio.ensure_future(self._load())
            self._in_flight[_STATIONS_RESOURCE] = task
            task.add_done_callback(lambda _: self._in_flight.pop(_STATIONS_RESOURCE, None))

        return list(await asyncio.shield(task))

    async def nearest_stations(self, lat: float, lon: float, n: int = 3) -> List[StationWithDistance]:
        """
        Stations closest to a point, ascending by distance.

        Args:
            lat: Latitude in degrees
            lon: Longitude in degrees
            n: Number of stations wanted (at least 1 is returned)

        Raises:
            InvalidCoordinates: If lat/lon are not finite numbers
        """
        if not is_valid_coordinate(lat, lon):
            raise InvalidCoordinates(lat, lon)
        lat, lon = float(lat), float(lon)

        stations = await self.all_stations()
        ranked = sorted(
            ((haversine_distance_km(lat, lon, s.lat, s.lon), s) for s in stations),
            key=lambda pair: pair[0],
        )
        return [
            StationWithDistance(**station.model_dump(), distance_km=distance)
            for distance, station in ranked[:max(1, n)]
        ]

    async def refresh(self) -> List[Station]:
        """
        Re-fetch the remote catalog and swap the in-memory snapshot.

        On failure the current snapshot is kept and the error propagates.
        """
        if self.client is None:
            raise AgroClimError("No remote station catalog configured")
        stations = await self.client.fetch_station_catalog()
        if not stations:
            raise AgroClimError("Remote station catalog is empty")
        await self._persist(stations)
        self._stations = tuple(stations)
        logger.info(f"Station catalog refreshed: {len(stations)} stations")
        return list(stations)

    async def seed_snapshot(self) -> int:
        """Persist the bundled snapshot into the station table."""
        stations = load_snapshot(self.snapshot_path)
        async with self.session_factory() as db:
            written = await crud.station.upsert_stations(db, stations=stations)
        logger.info(f"Seeded {written} stations from {self.snapshot_path.name}")
        return written

    async def _load(self) -> Tuple[Station, ...]:
        stations = await self._load_persisted()
        if stations:
            logger.info(f"Loaded {len(stations)} stations from the local store")
        else:
            stations = await self._load_remote()
        if not stations:
            stations = load_snapshot(self.snapshot_path)
            logger.info(f"Loaded {len(stations)} stations from the bundled snapshot")
            await self._persist(stations)

        # a refresh that completed meanwhile wins over this older result
        if self._stations is None:
            self._stations = tuple(stations)
        return self._stations

    async def _load_persisted(self) -> List[Station]:
        try:
            async with self.session_factory() as db:
                return await crud.station.get_all(db)
        except SQLAlchemyError as e:
            logger.error(f"Unable to read persisted stations: {e}")
            return []

    async def _load_remote(self) -> List[Station]:
        if self.client is None:
            return []
        try:
            stations = await self.client.fetch_station_catalog()
        except AgroClimError as e:
            logger.warning(f"Remote station catalog unavailable: {e}")
            return []
        if stations:
            logger.info(f"Loaded {len(stations)} stations from the remote catalog")
            await self._persist(stations)
        return stations

    async def _persist(self, stations: List[Station]) -> None:
        try:
            async with self.session_factory() as db:
                await crud.station.upsert_stations(db, stations=stations)
        except SQLAlchemyError as e:
            logger.error(f"Unable to persist {len(stations)} stations: {e}")
