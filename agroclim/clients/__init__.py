# Upstream API clients package

from agroclim.clients.http import RateLimiter, with_retries, build_http_client
from agroclim.clients.infoclimat import InfoclimatClient
from agroclim.clients.open_meteo import OpenMeteoClient

__all__ = [
    "RateLimiter", "with_retries", "build_http_client",
    "InfoclimatClient", "OpenMeteoClient",
]
