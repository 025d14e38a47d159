"""
Domain exceptions for the AgroClim Risk API.

Routers translate these into HTTP errors; the computation modules raise
only InvalidArgument.
"""

from typing import Optional


class AgroClimError(Exception):
    """Base class for all domain errors."""


class InvalidCoordinates(AgroClimError):
    """Latitude/longitude are not finite numbers."""

    def __init__(self, lat, lon):
        self.lat = lat
        self.lon = lon
        super().__init__(f"Invalid coordinates: lat={lat!r}, lon={lon!r}")


class MissingCredential(AgroClimError):
    """The upstream API key is not configured. Never retried."""

    def __init__(self, variable: str = "INFOCLIMAT_API_KEY"):
        self.variable = variable
        super().__init__(f"Missing {variable} environment variable")


class UpstreamUnavailable(AgroClimError):
    """Upstream returned non-2xx or failed at network level after all retries."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class NoStationsFound(AgroClimError):
    """The station catalog returned zero candidates."""


class NoObservationsAvailable(AgroClimError):
    """Stations and fallback all returned nothing for the period."""

    def __init__(self, message: str, missing_credential: bool = False):
        self.missing_credential = missing_credential
        super().__init__(message)


class InvalidArgument(AgroClimError, ValueError):
    """A computation received an argument outside its domain."""
