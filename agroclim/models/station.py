"""
Weather station database model.

This module contains the Station model, the persisted copy of the
Infoclimat station catalog used to resolve the nearest stations.
"""

from sqlalchemy import Column, String, Float

from agroclim.models.base import BaseModel


class Station(BaseModel):
    """
    Weather station information.

    Each station has a stable upstream identifier (e.g. '07015')
    stored in ``code`` and is located at specific coordinates.
    """

    __tablename__ = "stations"

    code = Column(String(50), unique=True, index=True, nullable=False, comment="Upstream station identifier")
    name = Column(String(200), nullable=False, comment="Station name")
    city = Column(String(200), nullable=True, comment="Municipality the station belongs to")
    latitude = Column(Float, nullable=False, comment="Latitude in degrees")
    longitude = Column(Float, nullable=False, comment="Longitude in degrees")
    altitude = Column(Float, nullable=True, comment="Altitude in metres")
    station_type = Column(String(50), nullable=True, comment="Station category tag")

    def __repr__(self):
        return f"<Station(id={self.id}, code='{self.code}', name='{self.name}')>"
