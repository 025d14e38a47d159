"""
Climate risk analysis orchestrator.

Wires the pipeline for one request: nearest stations, concurrent
per-station acquisition, inverse-distance fusion, gridded fallback,
phase slicing, per-year indicators, cross-year aggregation, risks,
trends and confidence.

A pipeline is built per request from the long-lived services; it keeps
no state between calls.
"""

from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from agroclim.clients.infoclimat import SOURCE_LABEL as INFOCLIMAT_SOURCE
from agroclim.clients.open_meteo import SOURCE_LABEL as OPEN_METEO_SOURCE
from agroclim.clients.open_meteo import OpenMeteoClient, grid_station
from agroclim.config import Settings
from agroclim.core.exceptions import AgroClimError, NoObservationsAvailable, NoStationsFound
from agroclim.schemas.analysis import (
    AnalysisRequest,
    AnalysisResponse,
    RainfallQuantiles,
    RiskSummary,
    TrendsSummary,
    TrendSummary,
)
from agroclim.schemas.indicators import YearIndicators, threshold_key
from agroclim.schemas.summary import WeatherSummaryResponse
from agroclim.schemas.weather import (
    AvailabilityResponse,
    Observation,
    StationAvailability,
    StationWithDistance,
)
from agroclim.utils.acquisition import ObservationAcquisition, StationFetchResult
from agroclim.utils.aggregation import aggregate_indicators, quantile
from agroclim.utils.fusion import fuse_results
from agroclim.utils.indicators import indicators_for_slice
from agroclim.utils.logging_config import get_logger
from agroclim.utils.phase import slice_by_phase
from agroclim.utils.risk import (
    compute_confidence_score,
    empirical_probability,
    inter_station_spread,
    linear_trend,
    mann_kendall,
    trend_direction,
)
from agroclim.utils.station_catalog import StationCatalog
from agroclim.utils.summary import build_weather_summary

logger = get_logger(__name__)

MISSING_CREDENTIAL_MESSAGE = (
    "Unable to reach the Infoclimat API: set the INFOCLIMAT_API_KEY environment variable."
)
NO_OBSERVATIONS_MESSAGE = "No weather observations are available for this location and period."

# Risk predicates
HEATWAVE_KEY = threshold_key(35)
DRY_SPELL_MIN_DAYS = 10
EXTREME_HEAT_MIN_DAYS = 3


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _trend(years: Sequence[int], values: Sequence[Optional[float]]) -> TrendSummary:
    ols = linear_trend(years, values)
    mk = mann_kendall(values)
    if ols is not None:
        slope = ols.slope
    elif mk is not None:
        slope = mk.tau
    else:
        slope = None
    return TrendSummary(direction=trend_direction(slope), ols=ols, mann_kendall=mk)


def _heatwave_events(entry: YearIndicators) -> int:
    stats = entry.heatwaves.get(HEATWAVE_KEY)
    return stats.events if stats is not None else 0


class AnalysisPipeline:
    """
    Request-scoped analysis pipeline.

    Args:
        catalog: Long-lived station catalog
        acquisition: Long-lived observation acquisition
        fallback: Gridded fallback client
        settings: Application settings
        clock: Current time source (UTC)
    """

    def __init__(
        self,
        catalog: StationCatalog,
        acquisition: ObservationAcquisition,
        fallback: OpenMeteoClient,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.catalog = catalog
        self.acquisition = acquisition
        self.fallback = fallback
        self.settings = settings
        self._clock = clock

    async def _nearest(self, lat: float, lon: float, n: int) -> List[StationWithDistance]:
        stations = await self.catalog.nearest_stations(lat, lon, n)
        if not stations:
            raise NoStationsFound(f"No weather station available near ({lat}, {lon})")
        return stations

    async def _gather_observations(
        self,
        lat: float,
        lon: float,
        start: datetime,
        end: datetime,
    ) -> Tuple[List[StationWithDistance], List[StationFetchResult], List[Observation], str]:
        """
        Stations, per-station results, fused series and source label.

        Falls back to the gridded provider when the fused series is empty.

        Raises:
            NoStationsFound: If the catalog returns no station
            NoObservationsAvailable: If every source returned nothing
        """
        stations = await self._nearest(lat, lon, self.settings.NEAREST_STATION_COUNT)
        results = await self.acquisition.fetch_stations(stations, start, end)
        fused = fuse_results(results, lat, lon)
        if fused:
            return stations, results, fused, INFOCLIMAT_SOURCE

        logger.info(f"No station data near ({lat:.4f}, {lon:.4f}), using the Open-Meteo fallback")
        try:
            gridded = await self.fallback.fetch_observations(lat, lon, start, end)
        except AgroClimError as e:
            logger.warning(f"Open-Meteo fallback unavailable: {e}")
            gridded = []

        if not gridded:
            missing_credential = any(result.missing_credential for result in results)
            raise NoObservationsAvailable(
                MISSING_CREDENTIAL_MESSAGE if missing_credential else NO_OBSERVATIONS_MESSAGE,
                missing_credential=missing_credential,
            )
        return [grid_station(lat, lon)], [], gridded, OPEN_METEO_SOURCE

    async def analyze(self, request: AnalysisRequest) -> AnalysisResponse:
        """
        Run the climate risk analysis for a point and a crop phase.

        Raises:
            InvalidCoordinates: If lat/lon are not finite
            NoStationsFound: If no station is known
            NoObservationsAvailable: If no source has data for the window
        """
        now = self._clock()
        start = datetime(now.year - request.years_back + 1, 1, 1, tzinfo=timezone.utc)
        end = now.replace(minute=0, second=0, microsecond=0)
        phase_start = request.phase.start_day_of_year
        phase_end = request.phase.end_day_of_year

        stations, results, fused, source = await self._gather_observations(request.lat, request.lon, start, end)

        slices = slice_by_phase(fused, phase_start, phase_end)
        year_indicators = [indicators_for_slice(s, request.indicator_options) for s in slices]
        aggregated = aggregate_indicators(year_indicators)
        year_indicators = aggregated.years

        years = [entry.year for entry in year_indicators]
        rainfall_totals = [entry.rainfall.total for entry in year_indicators]

        gdd_keys = list(aggregated.stats.gdd)
        if gdd_keys:
            gdd_values = [entry.gdd.get(gdd_keys[0]) for entry in year_indicators]
            gdd_trend = _trend(years, gdd_values)
        else:
            gdd_trend = TrendSummary(direction=trend_direction(None))

        risks = RiskSummary(
            heatwave=empirical_probability(
                [_heatwave_events(entry) for entry in year_indicators], lambda v: v > 0
            ),
            dry_spell=empirical_probability(
                [entry.rainfall.max_dry_spell for entry in year_indicators], lambda v: v >= DRY_SPELL_MIN_DAYS
            ),
            extreme_heat=empirical_probability(
                [entry.heat_days.ge35 for entry in year_indicators], lambda v: v >= EXTREME_HEAT_MIN_DAYS
            ),
            late_frost=empirical_probability(
                [entry.freeze_events.last_spring_freeze_doy for entry in year_indicators],
                lambda v: v > phase_start,
            ),
        )

        completeness = min(1.0, len(year_indicators) / request.years_back) if request.years_back else 0.0
        spread = inter_station_spread(
            {result.station.id: result.observations for result in results if result.ok},
            phase_start,
            phase_end,
        )
        confidence = compute_confidence_score(len(year_indicators), completeness, spread)

        logger.info(
            f"Analysis for ({request.lat:.4f}, {request.lon:.4f}) crop={request.crop}: "
            f"{len(year_indicators)} year(s), {len(stations)} station(s), source={source}, confidence={confidence}"
        )

        return AnalysisResponse(
            crop=request.crop,
            phase=request.phase,
            years_analyzed=len(year_indicators),
            stations_used=stations,
            indicators=aggregated,
            risks=risks,
            rainfall_quantiles=RainfallQuantiles(
                p10=quantile(rainfall_totals, 0.1),
                p50=quantile(rainfall_totals, 0.5),
                p90=quantile(rainfall_totals, 0.9),
            ),
            trends=TrendsSummary(rainfall=_trend(years, rainfall_totals), gdd=gdd_trend),
            confidence=confidence,
            source=source,
        )

    async def summarize(self, lat: float, lon: float, year: int) -> WeatherSummaryResponse:
        """
        Descriptive weather summary of one calendar year around a point.

        Raises:
            InvalidCoordinates: If lat/lon are not finite
            NoStationsFound: If no station is known
            NoObservationsAvailable: If no source has data for the year
        """
        start = datetime(year, 1, 1, tzinfo=timezone.utc)
        end = datetime(year, 12, 31, 23, 59, 59, tzinfo=timezone.utc)

        stations, _, fused, source = await self._gather_observations(lat, lon, start, end)
        return build_weather_summary(
            fused,
            start=start,
            end=end,
            latitude=lat,
            longitude=lon,
            stations=stations,
            source=source,
        )

    async def availability(self, lat: float, lon: float, max_years: int = 10) -> AvailabilityResponse:
        """
        Calendar years with observations at the nearest station.

        ``max_years`` is clamped to [1, 50]; the window ends on Dec 31 of
        the current year.

        Raises:
            InvalidCoordinates: If lat/lon are not finite
            NoStationsFound: If no station is known
            NoObservationsAvailable: If the station could not be fetched
        """
        max_years = min(50, max(1, max_years))
        end_year = self._clock().year
        start_year = max(1900, end_year - max_years + 1)
        start = datetime(start_year, 1, 1, tzinfo=timezone.utc)
        end = datetime(end_year, 12, 31, 23, 59, 59, tzinfo=timezone.utc)

        stations = await self._nearest(lat, lon, 1)
        results = await self.acquisition.fetch_stations(stations, start, end)

        availability = []
        for result in results:
            if not result.ok:
                raise NoObservationsAvailable(
                    MISSING_CREDENTIAL_MESSAGE if result.missing_credential else NO_OBSERVATIONS_MESSAGE,
                    missing_credential=result.missing_credential,
                )
            available_years = sorted({obs.ts.year for obs in result.observations})
            availability.append(
                StationAvailability(**result.station.model_dump(), available_years=available_years)
            )

        return AvailabilityResponse(stations=availability, start_year=start_year, end_year=end_year)
