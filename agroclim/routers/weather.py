"""
Weather analysis router.

This module contains endpoints for the crop climate risk analysis, the
yearly weather summary, data availability and the station catalog.
"""

from datetime import datetime, timezone
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import ValidationError
from slowapi import Limiter
from slowapi.util import get_remote_address

from agroclim.core.exceptions import (
    AgroClimError,
    InvalidCoordinates,
    NoObservationsAvailable,
    NoStationsFound,
)
from agroclim.dependencies.services import Services, get_pipeline, get_services
from agroclim.schemas.analysis import AnalysisRequest, AnalysisResponse, PhaseWindow
from agroclim.schemas.summary import WeatherSummaryResponse
from agroclim.schemas.weather import AvailabilityResponse, StationListResponse
from agroclim.clients.infoclimat import SOURCE_LABEL
from agroclim.utils.analysis import AnalysisPipeline
from agroclim.utils.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/weather",
    tags=["Climate Risk Analysis"],
    responses={
        400: {"description": "Invalid request"},
        404: {"description": "No weather station found"},
        503: {"description": "No observations available"},
    },
)

limiter = Limiter(key_func=get_remote_address)


def raise_http_error(exc: AgroClimError) -> NoReturn:
    """Translate a domain error into the matching HTTPException."""
    if isinstance(exc, InvalidCoordinates):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, NoStationsFound):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, NoObservationsAvailable):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    logger.error(f"Unhandled analysis error: {exc}")
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Weather analysis failed") from exc


async def _run_analysis(pipeline: AnalysisPipeline, payload: AnalysisRequest) -> AnalysisResponse:
    try:
        return await pipeline.analyze(payload)
    except AgroClimError as e:
        raise_http_error(e)


@router.get("/analyze", response_model=AnalysisResponse)
@limiter.limit("30/minute")
async def analyze_from_query(
    request: Request,
    lat: float = Query(..., description="Latitude in degrees"),
    lon: float = Query(..., description="Longitude in degrees"),
    crop: str = Query("culture", description="Crop label, echoed back"),
    phase_start: int = Query(..., alias="phaseStart", description="Phase start day of year"),
    phase_end: int = Query(..., alias="phaseEnd", description="Phase end day of year"),
    years_back: int = Query(5, alias="yearsBack", description="Number of years to analyse"),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
):
    """
    Climate risk analysis for a point and crop phase, from query parameters.

    Rate limit: 30 requests per minute
    """
    try:
        payload = AnalysisRequest(
            lat=lat,
            lon=lon,
            crop=crop.strip() or "culture",
            phase=PhaseWindow(start_day_of_year=phase_start, end_day_of_year=phase_end),
            years_back=years_back,
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.errors(include_url=False, include_context=False),
        ) from e

    return await _run_analysis(pipeline, payload)


@router.post("/analyze", response_model=AnalysisResponse)
@limiter.limit("30/minute")
async def analyze(
    request: Request,
    payload: AnalysisRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline),
):
    """
    Climate risk analysis for a point and crop phase.

    The body may override indicator thresholds with ``indicatorOptions``.

    Rate limit: 30 requests per minute
    """
    return await _run_analysis(pipeline, payload)


@router.get("/summary", response_model=WeatherSummaryResponse)
@limiter.limit("30/minute")
async def get_weather_summary(
    request: Request,
    lat: float = Query(..., ge=-90, le=90, description="Latitude in degrees"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude in degrees"),
    year: Optional[int] = Query(None, ge=1900, le=2100, description="Calendar year (defaults to the current year)"),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
):
    """
    Yearly weather summary around a point, with a monthly breakdown.

    Rate limit: 30 requests per minute
    """
    target_year = year if year is not None else datetime.now(timezone.utc).year
    try:
        return await pipeline.summarize(lat, lon, target_year)
    except AgroClimError as e:
        raise_http_error(e)


@router.get("/availability", response_model=AvailabilityResponse)
@limiter.limit("30/minute")
async def get_data_availability(
    request: Request,
    lat: float = Query(..., ge=-90, le=90, description="Latitude in degrees"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude in degrees"),
    max_years: int = Query(10, alias="maxYears", description="Look-back window in years (clamped to 1-50)"),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
):
    """
    Calendar years with observations at the nearest station.

    Rate limit: 30 requests per minute
    """
    try:
        return await pipeline.availability(lat, lon, max_years)
    except AgroClimError as e:
        raise_http_error(e)


@router.get("/stations", response_model=StationListResponse)
@limiter.limit("100/minute")
async def get_weather_stations(
    request: Request,
    refresh: bool = Query(False, description="Re-fetch the remote catalog first"),
    services: Services = Depends(get_services),
):
    """
    Get the station catalog.

    A failed refresh is logged and the current catalog is returned.

    Rate limit: 100 requests per minute
    """
    if refresh:
        try:
            await services.catalog.refresh()
        except AgroClimError as e:
            logger.warning(f"Unable to refresh stations from Infoclimat: {e}")

    stations = await services.catalog.all_stations()
    return StationListResponse(stations=stations, source=SOURCE_LABEL)
