"""
Application configuration using Pydantic settings.

This module contains all configuration settings for the application,
loaded from environment variables with sensible defaults.
"""

import os
from typing import List, Optional, Union

from pydantic import field_validator, ValidationInfo, ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden with environment variables.
    """

    # API Configuration
    API_V1_STR: str = "/api/v1"

    # Server Configuration
    SERVER_NAME: str = "AgroClim Risk API"
    DEBUG: bool = False

    # CORS Configuration
    # Note: Using Union[str, List] to avoid pydantic-settings 2.6+ JSON parsing issues
    BACKEND_CORS_ORIGINS: Union[str, List[str]] = "http://localhost:3000,http://localhost:5173"

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(
        cls, v: Union[str, List[str]]
    ) -> List[str]:
        """
        Parse CORS origins from environment variable.

        Supports:
        - Comma-separated string: "http://localhost,http://example.com"
        - Already parsed list: ["http://localhost"]
        - Empty string: returns empty list
        """
        if v is None or v == "":
            return []
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, list):
            return v
        raise ValueError(f"Invalid CORS origins format: {v}")

    # Local store (stations, observation history, request cache)
    WEATHER_DB_PATH: str = "weather.sqlite"

    SQLALCHEMY_DATABASE_URI: Optional[str] = None

    @field_validator("SQLALCHEMY_DATABASE_URI", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str], info: ValidationInfo) -> str:
        """Assemble database connection string from the local store path."""
        if isinstance(v, str) and v:
            return v

        # Check for DATABASE_URL (Render/Railway/Heroku style)
        database_url = os.getenv('DATABASE_URL')
        if database_url:
            if database_url.startswith('postgres://'):
                database_url = database_url.replace('postgres://', 'postgresql+asyncpg://', 1)
            elif database_url.startswith('postgresql://'):
                database_url = database_url.replace('postgresql://', 'postgresql+asyncpg://', 1)
            return database_url

        db_path = info.data.get('WEATHER_DB_PATH') or "weather.sqlite"
        return f"sqlite+aiosqlite:///{db_path}"

    # Rate Limiting (inbound API)
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW: int = 60  # seconds

    # Infoclimat open data (station observations + station catalog)
    INFOCLIMAT_API_KEY: Optional[str] = None
    INFOCLIMAT_API_BASE: str = "https://www.infoclimat.fr/opendata/produits-stations.csv"
    INFOCLIMAT_STATIONS_URL: str = "https://www.infoclimat.fr/opendata/stations.csv"

    # Open-Meteo archive (gridded fallback, no key required)
    OPEN_METEO_ARCHIVE_URL: str = "https://archive-api.open-meteo.com/v1/archive"

    HTTP_USER_AGENT: str = "AgroClim/WeatherAnalysis"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Upstream fetch policy
    WEATHER_CACHE_TTL_HOURS: float = 24
    WEATHER_API_MIN_INTERVAL_MS: int = 900
    WEATHER_API_MAX_RETRIES: int = 3
    WEATHER_API_RETRY_BASE_DELAY_MS: int = 500

    # Number of stations fused per analysis
    NEAREST_STATION_COUNT: int = 3

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


# Create global settings instance
settings = Settings()
