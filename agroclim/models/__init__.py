# Database models package

from agroclim.models.base import BaseModel
from agroclim.models.station import Station
from agroclim.models.observation import Observation
from agroclim.models.cached_request import CachedRequest

__all__ = [
    "BaseModel",
    "Station",
    "Observation",
    "CachedRequest",
]
