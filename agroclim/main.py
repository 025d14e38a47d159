"""
Main FastAPI application for the AgroClim Risk API.

This module contains the main FastAPI application instance, its
lifespan (local store tables and long-lived services) and the root
endpoints.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from agroclim.config import settings
from agroclim.database import create_tables
from agroclim.dependencies.services import Services, build_services, get_services
from agroclim.routers.weather import router as weather_router
from agroclim.utils.logging_config import setup_logging, get_logger

# Initialize logging
setup_logging()
logger = get_logger(__name__)

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Creates the local store tables and the long-lived services on
    startup, and closes the upstream HTTP client on shutdown.
    """
    # Startup
    logger.info("=" * 60)
    logger.info("AgroClim Risk API - Application starting up")
    logger.info(f"Environment: {'Development' if settings.DEBUG else 'Production'}")
    logger.info(f"API Version: {settings.API_V1_STR}")
    logger.info(f"Database: {settings.SQLALCHEMY_DATABASE_URI.split('://')[0]}")
    logger.info("=" * 60)

    await create_tables()
    logger.info("Local store tables ready")

    app.state.services = build_services(settings)

    yield

    # Shutdown
    logger.info("=" * 60)
    logger.info("AgroClim Risk API - Application shutting down")
    logger.info("=" * 60)
    services = getattr(app.state, "services", None)
    if services is not None:
        await services.aclose()


app = FastAPI(
    title=settings.SERVER_NAME,
    description="Agro-climatic risk indicators for a point and a crop growth phase",
    version=API_VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return malformed input as 400 with the validation details."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


# Set up CORS
if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.get("/")
@limiter.limit(f"{settings.RATE_LIMIT_REQUESTS}/{settings.RATE_LIMIT_WINDOW}seconds")
async def root(request: Request):
    """
    Root endpoint returning API information.
    """
    return {
        "message": f"Welcome to {settings.SERVER_NAME}",
        "version": API_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
        "analyze": f"{settings.API_V1_STR}/weather/analyze",
    }


@app.get("/health")
@limiter.limit("60/minute")  # More generous limit for health checks
async def health_check(request: Request, services: Services = Depends(get_services)):
    """
    Health check endpoint.

    Reports the cache store reachability alongside liveness.
    """
    cache_ok = await services.cache.health_check()
    return {
        "status": "healthy" if cache_ok else "degraded",
        "cache": "ok" if cache_ok else "unavailable",
    }


# Include routers
app.include_router(weather_router, prefix=settings.API_V1_STR)
