"""
Station observation database model.

This module contains the Observation model holding the raw per-station
history fetched from Infoclimat, so already covered intervals are not
requested again.
"""

from sqlalchemy import Column, DateTime, Float, String, Index, UniqueConstraint

from agroclim.models.base import BaseModel


class Observation(BaseModel):
    """
    One instant's weather reading for a station.

    One row per (station_code, ts); re-fetched readings overwrite the
    stored ones.
    """

    __tablename__ = "observations"

    station_code = Column(String(50), nullable=False, index=True, comment="Upstream station identifier")
    ts = Column(DateTime(timezone=True), nullable=False, comment="Observation instant (UTC)")

    temperature = Column(Float, nullable=True, comment="Mean air temperature in °C")
    temp_min = Column(Float, nullable=True, comment="Minimum air temperature in °C")
    temp_max = Column(Float, nullable=True, comment="Maximum air temperature in °C")
    rainfall = Column(Float, nullable=True, comment="Rainfall over the reporting period in mm")
    rainfall_24h = Column(Float, nullable=True, comment="Rainfall over 24 hours in mm")
    wind_speed = Column(Float, nullable=True, comment="Mean wind speed in m/s")
    wind_gust = Column(Float, nullable=True, comment="Wind gust speed in m/s")
    relative_humidity = Column(Float, nullable=True, comment="Relative humidity in %")
    pressure = Column(Float, nullable=True, comment="Pressure in hPa")

    __table_args__ = (
        UniqueConstraint('station_code', 'ts', name='uq_observation_station_ts'),
        Index('idx_observation_station_ts', 'station_code', 'ts'),
    )

    def __repr__(self):
        return f"<Observation(station_code='{self.station_code}', ts={self.ts})>"
