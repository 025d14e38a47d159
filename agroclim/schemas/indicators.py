"""
Pydantic schemas for agro-climatic indicators.

This module defines:
- IndicatorOptions: thresholds and bases driving the indicator engine
- YearIndicators: the indicator bundle computed for one phase window
- SeriesStatistics / AggregatedIndicators: the cross-year roll-up

Threshold-keyed maps use explicit identifiers ("base5", "ge20", ...)
built from the configured lists, see threshold_key() and base_key().
"""

from typing import Dict, List, Optional

from pydantic import Field, field_validator

from agroclim.schemas.base import BaseSchema, FrozenSchema


def _format_number(value: float) -> str:
    return f"{value:g}"


def base_key(base: float) -> str:
    """Map key for a degree-day base temperature, e.g. 5 -> 'base5'."""
    return f"base{_format_number(base)}"


def threshold_key(threshold: float) -> str:
    """Map key for an at-or-above threshold, e.g. 20 -> 'ge20'."""
    return f"ge{_format_number(threshold)}"


class HeatwaveThreshold(BaseSchema):
    """Heatwave definition: consecutive days at or above a temperature."""

    threshold: float = Field(..., description="Daily maximum temperature threshold (°C)")
    min_length: int = Field(3, ge=1, description="Minimum run length (observations) for an event")


class IndicatorOptions(BaseSchema):
    """Computation parameters for the indicator engine."""

    gdd_bases: List[float] = Field(default_factory=lambda: [5.0, 10.0], description="Growing degree-day bases (°C)")
    hdd_bases: List[float] = Field(default_factory=lambda: [0.0], description="Heating degree-day bases (°C)")
    heatwave_thresholds: List[HeatwaveThreshold] = Field(
        default_factory=lambda: [
            HeatwaveThreshold(threshold=30, min_length=3),
            HeatwaveThreshold(threshold=32, min_length=3),
            HeatwaveThreshold(threshold=35, min_length=3),
        ],
        description="Heatwave threshold/min-length pairs",
    )
    dry_day_threshold: float = Field(1.0, description="Rainfall below this is a dry observation (mm)")
    heavy_rain_thresholds: List[float] = Field(
        default_factory=lambda: [20.0, 30.0, 50.0], description="Heavy rain thresholds (mm)"
    )
    wind_mean_thresholds: List[float] = Field(
        default_factory=lambda: [8.0, 10.0, 15.0], description="Mean wind thresholds (m/s)"
    )
    wind_gust_thresholds: List[float] = Field(
        default_factory=lambda: [15.0, 20.0, 25.0], description="Wind gust thresholds (m/s)"
    )
    spring_freeze_end_doy: int = Field(200, ge=1, le=366, description="Last day of year searched for spring frost")
    autumn_freeze_start_doy: int = Field(213, ge=1, le=366, description="First day of year searched for autumn frost")

    @field_validator("heatwave_thresholds")
    @classmethod
    def unique_heatwave_thresholds(cls, v: List[HeatwaveThreshold]) -> List[HeatwaveThreshold]:
        """Heatwave stats are keyed by threshold alone, so each may appear once."""
        keys = [threshold_key(hw.threshold) for hw in v]
        duplicates = sorted({key for key in keys if keys.count(key) > 1})
        if duplicates:
            raise ValueError(f"Duplicate heatwave thresholds: {', '.join(duplicates)}")
        return v


# ============================================================================
# PER-YEAR INDICATORS
# ============================================================================

class RunStatistics(FrozenSchema):
    """Qualifying runs of consecutive observations."""

    events: int = Field(0, description="Number of qualifying runs")
    total_days: int = Field(0, description="Summed length of qualifying runs")
    longest: int = Field(0, description="Longest qualifying run")


class FreezeDays(FrozenSchema):
    le0: int = Field(..., description="Observations with Tmin <= 0°C")
    le_minus2: int = Field(..., description="Observations with Tmin <= -2°C")
    le_minus4: int = Field(..., description="Observations with Tmin <= -4°C")


class HeatDays(FrozenSchema):
    ge30: int = Field(..., description="Observations with Tmax >= 30°C")
    ge32: int = Field(..., description="Observations with Tmax >= 32°C")
    ge35: int = Field(..., description="Observations with Tmax >= 35°C")


class RainfallIndicators(FrozenSchema):
    total: float = Field(..., description="Total rainfall (mm)")
    dry_days: int = Field(..., description="Observations below the dry-day threshold")
    max_dry_spell: int = Field(..., description="Longest run of dry observations")
    heavy_rain_days: Dict[str, int] = Field(..., description="Observations at or above each heavy rain threshold")


class WindIndicators(FrozenSchema):
    mean_days: Dict[str, int] = Field(..., description="Observations at or above each mean wind threshold")
    gust_days: Dict[str, int] = Field(..., description="Observations at or above each gust threshold")


class FreezeEvents(FrozenSchema):
    last_spring_freeze_doy: Optional[int] = Field(None, description="Latest spring frost day of year")
    first_autumn_freeze_doy: Optional[int] = Field(None, description="First autumn frost day of year")


class YearIndicators(FrozenSchema):
    """Indicator bundle for one year's phase window."""

    year: int
    gdd: Dict[str, float]
    hdd: Dict[str, float]
    freeze_days: FreezeDays
    heat_days: HeatDays
    heatwaves: Dict[str, RunStatistics]
    rainfall: RainfallIndicators
    wind: WindIndicators
    freeze_events: FreezeEvents


# ============================================================================
# CROSS-YEAR STATISTICS
# ============================================================================

class SeriesStatistics(FrozenSchema):
    """Descriptive statistics of one indicator across years."""

    mean: Optional[float] = None
    stdev: Optional[float] = None
    p10: Optional[float] = None
    p50: Optional[float] = None
    p90: Optional[float] = None


class FreezeDayStatistics(FrozenSchema):
    le0: SeriesStatistics
    le_minus2: SeriesStatistics
    le_minus4: SeriesStatistics


class HeatDayStatistics(FrozenSchema):
    ge30: SeriesStatistics
    ge32: SeriesStatistics
    ge35: SeriesStatistics


class HeatwaveStatistics(FrozenSchema):
    events: SeriesStatistics
    total_days: SeriesStatistics
    longest: SeriesStatistics


class FreezeEventStatistics(FrozenSchema):
    last_spring_freeze_doy: SeriesStatistics
    first_autumn_freeze_doy: SeriesStatistics


class IndicatorStatistics(FrozenSchema):
    gdd: Dict[str, SeriesStatistics]
    hdd: Dict[str, SeriesStatistics]
    rainfall_total: SeriesStatistics
    dry_days: SeriesStatistics
    max_dry_spell: SeriesStatistics
    heavy_rain_days: Dict[str, SeriesStatistics]
    freeze_days: FreezeDayStatistics
    heat_days: HeatDayStatistics
    heatwaves: Dict[str, HeatwaveStatistics]
    wind_mean_days: Dict[str, SeriesStatistics]
    wind_gust_days: Dict[str, SeriesStatistics]
    freeze_events: FreezeEventStatistics


class AggregatedIndicators(FrozenSchema):
    """Per-year indicators plus their cross-year statistics."""

    years: List[YearIndicators]
    stats: IndicatorStatistics
