# Pydantic schemas package

from agroclim.schemas.base import BaseSchema, FrozenSchema
from agroclim.schemas.weather import (
    Station,
    StationWithDistance,
    Observation,
    StationListResponse,
    StationAvailability,
    AvailabilityResponse,
)
from agroclim.schemas.indicators import (
    IndicatorOptions,
    HeatwaveThreshold,
    RunStatistics,
    YearIndicators,
    SeriesStatistics,
    AggregatedIndicators,
)
from agroclim.schemas.analysis import (
    PhaseWindow,
    AnalysisRequest,
    AnalysisResponse,
    ProbabilityRecord,
    OLSTrend,
    MannKendallResult,
    TrendSummary,
)
from agroclim.schemas.summary import WeatherSummaryResponse, MonthlySummary

__all__ = [
    "BaseSchema", "FrozenSchema",
    "Station", "StationWithDistance", "Observation",
    "StationListResponse", "StationAvailability", "AvailabilityResponse",
    "IndicatorOptions", "HeatwaveThreshold", "RunStatistics", "YearIndicators",
    "SeriesStatistics", "AggregatedIndicators",
    "PhaseWindow", "AnalysisRequest", "AnalysisResponse", "ProbabilityRecord",
    "OLSTrend", "MannKendallResult", "TrendSummary",
    "WeatherSummaryResponse", "MonthlySummary",
]
