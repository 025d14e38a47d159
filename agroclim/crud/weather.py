"""
Weather data CRUD operations.

This module contains CRUD operations for the persisted station catalog
and the raw per-station observation history.
"""

from datetime import datetime
from typing import List, Sequence

from sqlalchemy import and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from agroclim.crud.base import CRUDBase
from agroclim.models.observation import Observation
from agroclim.models.station import Station
from agroclim import schemas
from agroclim.schemas.weather import OBSERVATION_FIELDS, ensure_utc


class CRUDStation(CRUDBase[Station]):
    """
    CRUD operations for Station model.
    """

    async def get_all(self, db: AsyncSession) -> List[schemas.Station]:
        """Every persisted station, ordered by code."""
        result = await db.execute(select(Station).order_by(Station.code))
        return [self.to_schema(row) for row in result.scalars().all()]

    async def upsert_stations(self, db: AsyncSession, *, stations: Sequence[schemas.Station]) -> int:
        """
        Persist catalog stations keyed by code.

        Args:
            db: Database session
            stations: Stations to write

        Returns:
            Number of stations written
        """
        rows = [
            {
                "code": s.id,
                "name": s.name,
                "city": s.city,
                "latitude": s.lat,
                "longitude": s.lon,
                "altitude": s.altitude,
                "station_type": s.type,
            }
            for s in stations
        ]
        return await self.upsert(db, rows=rows, index_elements=["code"])

    @staticmethod
    def to_schema(row: Station) -> schemas.Station:
        return schemas.Station(
            id=row.code,
            name=row.name,
            city=row.city,
            lat=row.latitude,
            lon=row.longitude,
            altitude=row.altitude,
            type=row.station_type,
        )


class CRUDObservation(CRUDBase[Observation]):
    """
    CRUD operations for Observation model.

    Timestamps are bound as aware UTC values; rows read back from
    backends that drop the offset (SQLite) are taken as UTC.
    """

    async def get_in_range(
        self,
        db: AsyncSession,
        *,
        station_code: str,
        start: datetime,
        end: datetime,
    ) -> List[schemas.Observation]:
        """
        Get observations within an inclusive time range for a station.

        Args:
            db: Database session
            station_code: Station code
            start: Start of range
            end: End of range

        Returns:
            Observations ordered by timestamp
        """
        result = await db.execute(
            select(Observation)
            .where(
                and_(
                    Observation.station_code == station_code,
                    Observation.ts >= ensure_utc(start),
                    Observation.ts <= ensure_utc(end)
                )
            )
            .order_by(Observation.ts)
        )
        return [self.to_schema(row) for row in result.scalars().all()]

    async def upsert_observations(
        self,
        db: AsyncSession,
        *,
        station_code: str,
        observations: Sequence[schemas.Observation],
    ) -> int:
        """
        Persist observations for a station, one row per timestamp.

        Later writes for the same (station, ts) overwrite earlier ones.
        """
        rows = []
        for obs in observations:
            row = {"station_code": station_code, "ts": ensure_utc(obs.ts)}
            for field in OBSERVATION_FIELDS:
                row[field] = getattr(obs, field)
            rows.append(row)
        return await self.upsert(db, rows=rows, index_elements=["station_code", "ts"])

    @staticmethod
    def to_schema(row: Observation) -> schemas.Observation:
        values = {field: getattr(row, field) for field in OBSERVATION_FIELDS}
        return schemas.Observation(ts=ensure_utc(row.ts), **values)


station = CRUDStation(Station)
observation = CRUDObservation(Observation)
