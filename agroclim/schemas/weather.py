"""
Weather data schemas.

This module contains Pydantic schemas for stations and observations as
they flow through the acquisition, fusion and analysis pipeline.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import Field, field_validator

from agroclim.schemas.base import BaseSchema, FrozenSchema


OBSERVATION_FIELDS = (
    "temperature",
    "temp_min",
    "temp_max",
    "rainfall",
    "rainfall_24h",
    "wind_speed",
    "wind_gust",
    "relative_humidity",
    "pressure",
)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso_utc(value: datetime) -> str:
    """ISO 8601 UTC string with a 'Z' suffix, e.g. '2024-01-01T00:00:00Z'."""
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


class Station(FrozenSchema):
    """Weather station as resolved from the catalog."""

    id: str = Field(..., description="Stable upstream station identifier")
    name: str = Field(..., description="Display name")
    city: Optional[str] = Field(None, description="Municipality")
    lat: float = Field(..., description="Latitude in degrees")
    lon: float = Field(..., description="Longitude in degrees")
    altitude: Optional[float] = Field(None, description="Altitude in metres")
    type: Optional[str] = Field(None, description="Station category tag")


class StationWithDistance(Station):
    """Station annotated with its great-circle distance to the query point."""

    distance_km: float = Field(..., description="Distance to the target point (km)")


class Observation(FrozenSchema):
    """
    One instant's weather reading.

    Every measurement is optional: a missing sensor reading stays None.
    """

    ts: datetime = Field(..., description="Observation instant (UTC)")
    temperature: Optional[float] = Field(None, description="Mean air temperature (°C)")
    temp_min: Optional[float] = Field(None, description="Minimum air temperature (°C)")
    temp_max: Optional[float] = Field(None, description="Maximum air temperature (°C)")
    rainfall: Optional[float] = Field(None, description="Rainfall over the reporting period (mm)")
    rainfall_24h: Optional[float] = Field(None, alias="rainfall24h", description="Rainfall over 24 hours (mm)")
    wind_speed: Optional[float] = Field(None, description="Mean wind speed (m/s)")
    wind_gust: Optional[float] = Field(None, description="Wind gust speed (m/s)")
    relative_humidity: Optional[float] = Field(None, description="Relative humidity (%)")
    pressure: Optional[float] = Field(None, description="Pressure (hPa)")

    @field_validator("ts")
    @classmethod
    def normalise_timestamp(cls, v: datetime) -> datetime:
        """Store every instant as aware UTC."""
        return ensure_utc(v)


class StationListResponse(BaseSchema):
    """Station catalog listing."""

    stations: List[Station]
    source: str


class StationAvailability(StationWithDistance):
    """Station with the calendar years for which it holds observations."""

    available_years: List[int] = Field(default_factory=list, description="Years with at least one observation")


class AvailabilityResponse(BaseSchema):
    """Data availability around a coordinate."""

    stations: List[StationAvailability]
    start_year: int
    end_year: int
