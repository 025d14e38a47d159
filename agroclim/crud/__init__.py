# CRUD operations package

from agroclim.crud.base import CRUDBase
from agroclim.crud.weather import CRUDStation, CRUDObservation, station, observation
from agroclim.crud.cache import CRUDCachedRequest, cached_request

__all__ = [
    "CRUDBase",
    "CRUDStation", "CRUDObservation", "CRUDCachedRequest",
    "station", "observation", "cached_request",
]
