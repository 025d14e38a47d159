"""
Pydantic schemas for the yearly weather summary.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from agroclim.schemas.base import FrozenSchema
from agroclim.schemas.weather import StationWithDistance


class YearSummary(FrozenSchema):
    """Descriptive statistics over the whole requested year."""

    avg_day_temp: Optional[float] = Field(None, description="Mean temperature between 06:00 and 18:00 UTC (°C)")
    avg_night_temp: Optional[float] = Field(None, description="Mean temperature outside 06:00-18:00 UTC (°C)")
    avg_humidity: Optional[float] = Field(None, description="Mean relative humidity (%)")
    avg_wind_speed: Optional[float] = Field(None, description="Mean wind speed (m/s)")
    total_precipitation: float = Field(0.0, description="Total precipitation (mm)")
    day_sample_count: int = 0
    night_sample_count: int = 0
    humidity_sample_count: int = 0
    wind_sample_count: int = 0
    precipitation_day_count: int = Field(0, description="Distinct days with precipitation")


class MonthlySummary(FrozenSchema):
    """Summary for one calendar month holding data."""

    month_index: int = Field(..., ge=0, le=11, description="0-based month index")
    label: str
    avg_day_temp: Optional[float] = None
    avg_night_temp: Optional[float] = None
    avg_humidity: Optional[float] = None
    avg_wind_speed: Optional[float] = None
    total_precipitation: float = 0.0
    precipitation_day_count: int = 0
    has_data: bool = False


class SummaryMetadata(FrozenSchema):
    start_date: datetime
    end_date: datetime
    latitude: float
    longitude: float
    hourly_sample_count: int
    source: str
    stations_used: List[StationWithDistance]


class WeatherSummaryResponse(FrozenSchema):
    """Yearly weather summary around a coordinate."""

    summary: YearSummary
    monthly: List[MonthlySummary]
    metadata: SummaryMetadata
