"""
Service dependencies.

The station catalog, request cache and upstream clients live for the
whole process and are stored on ``app.state.services``. Each request
gets a fresh AnalysisPipeline built from them.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Depends, Request

from agroclim.clients.http import RateLimiter, build_http_client
from agroclim.clients.infoclimat import InfoclimatClient
from agroclim.clients.open_meteo import OpenMeteoClient
from agroclim.config import Settings, settings as default_settings
from agroclim.database import async_session
from agroclim.utils.acquisition import ObservationAcquisition
from agroclim.utils.analysis import AnalysisPipeline
from agroclim.utils.cache import ObservationCache
from agroclim.utils.logging_config import get_logger
from agroclim.utils.station_catalog import StationCatalog

logger = get_logger(__name__)


@dataclass
class Services:
    """Long-lived stores and clients shared by every request."""

    settings: Settings
    http: httpx.AsyncClient
    cache: ObservationCache
    infoclimat: InfoclimatClient
    open_meteo: OpenMeteoClient
    catalog: StationCatalog
    acquisition: ObservationAcquisition

    async def aclose(self) -> None:
        await self.http.aclose()


def build_services(
    settings: Settings = default_settings,
    session_factory=async_session,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Services:
    """
    Wire the long-lived services from settings.

    Args:
        settings: Application settings
        session_factory: Async session factory for the local store
        transport: Optional httpx transport (tests use MockTransport)
    """
    http = build_http_client(settings.HTTP_USER_AGENT, settings.HTTP_TIMEOUT_SECONDS, transport)
    retry_base_delay = settings.WEATHER_API_RETRY_BASE_DELAY_MS / 1000

    infoclimat = InfoclimatClient(
        http,
        api_key=settings.INFOCLIMAT_API_KEY,
        api_base=settings.INFOCLIMAT_API_BASE,
        stations_url=settings.INFOCLIMAT_STATIONS_URL,
        rate_limiter=RateLimiter(settings.WEATHER_API_MIN_INTERVAL_MS / 1000),
        max_retries=settings.WEATHER_API_MAX_RETRIES,
        retry_base_delay=retry_base_delay,
    )
    open_meteo = OpenMeteoClient(
        http,
        archive_url=settings.OPEN_METEO_ARCHIVE_URL,
        max_retries=settings.WEATHER_API_MAX_RETRIES,
        retry_base_delay=retry_base_delay,
    )
    cache = ObservationCache(session_factory, ttl_hours=settings.WEATHER_CACHE_TTL_HOURS)

    if not settings.INFOCLIMAT_API_KEY:
        logger.warning("INFOCLIMAT_API_KEY is not set: station observations will be unavailable")

    return Services(
        settings=settings,
        http=http,
        cache=cache,
        infoclimat=infoclimat,
        open_meteo=open_meteo,
        catalog=StationCatalog(session_factory, client=infoclimat),
        acquisition=ObservationAcquisition(cache, session_factory, infoclimat),
    )


def get_services(request: Request) -> Services:
    """
    Dependency returning the process-wide services.

    They are normally created in the application lifespan; they are
    built on first use when the lifespan did not run.
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = build_services()
        request.app.state.services = services
    return services


def get_pipeline(services: Services = Depends(get_services)) -> AnalysisPipeline:
    """Dependency building a request-scoped analysis pipeline."""
    return AnalysisPipeline(
        catalog=services.catalog,
        acquisition=services.acquisition,
        fallback=services.open_meteo,
        settings=services.settings,
    )
