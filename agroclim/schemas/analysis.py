"""
Pydantic schemas for the climate risk analysis request and response.
"""

from typing import List, Literal, Optional

from pydantic import Field

from agroclim.schemas.base import BaseSchema, FrozenSchema
from agroclim.schemas.indicators import AggregatedIndicators, IndicatorOptions
from agroclim.schemas.weather import StationWithDistance


TrendArrow = Literal["↑", "→", "↓"]


class PhaseWindow(BaseSchema):
    """Crop growth phase as a day-of-year window (may wrap the year end)."""

    start_day_of_year: int = Field(..., ge=1, le=366, description="First day of year of the phase")
    end_day_of_year: int = Field(..., ge=1, le=366, description="Last day of year of the phase")


class AnalysisRequest(BaseSchema):
    """Analysis query sent by the map application."""

    lat: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    lon: float = Field(..., ge=-180, le=180, description="Longitude in degrees")
    crop: str = Field(..., min_length=1, description="Crop label, echoed back")
    phase: PhaseWindow
    years_back: int = Field(5, ge=1, le=50, description="Number of calendar years to analyse")
    indicator_options: Optional[IndicatorOptions] = Field(
        None, description="Overrides for indicator thresholds and bases"
    )


class ProbabilityRecord(FrozenSchema):
    """Empirical exceedance probability over the analysed years."""

    probability: Optional[float] = Field(None, ge=0, le=1)
    sample_size: int = Field(..., ge=0)
    occurrences: int = Field(..., ge=0)


class OLSTrend(FrozenSchema):
    slope: float
    intercept: float
    r2: float


class MannKendallResult(FrozenSchema):
    tau: float
    p_value: float


class TrendSummary(FrozenSchema):
    direction: TrendArrow
    ols: Optional[OLSTrend] = None
    mann_kendall: Optional[MannKendallResult] = None


class TrendsSummary(FrozenSchema):
    rainfall: TrendSummary
    gdd: TrendSummary


class RiskSummary(FrozenSchema):
    heatwave: Optional[ProbabilityRecord] = None
    dry_spell: Optional[ProbabilityRecord] = None
    extreme_heat: Optional[ProbabilityRecord] = None
    late_frost: Optional[ProbabilityRecord] = None


class RainfallQuantiles(FrozenSchema):
    p10: Optional[float] = None
    p50: Optional[float] = None
    p90: Optional[float] = None


class AnalysisResponse(FrozenSchema):
    """Structured climate risk result rendered by the map application."""

    crop: str
    phase: PhaseWindow
    years_analyzed: int = Field(..., ge=0)
    stations_used: List[StationWithDistance]
    indicators: AggregatedIndicators
    risks: RiskSummary
    rainfall_quantiles: RainfallQuantiles
    trends: TrendsSummary
    confidence: float = Field(..., ge=0, le=1)
    source: str
