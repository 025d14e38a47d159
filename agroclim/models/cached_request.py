"""
Request cache database model.

Stores JSON payloads keyed by a SHA-256 hash of the request parameters.
Only the ObservationCache in agroclim.utils.cache reads or writes it.
"""

from sqlalchemy import Column, String, Text

from agroclim.models.base import BaseModel


class CachedRequest(BaseModel):
    """Cached JSON payload; expiry is computed from created_at."""

    __tablename__ = "cached_requests"

    hash = Column(String(64), unique=True, index=True, nullable=False, comment="SHA-256 of the request parts")
    payload = Column(Text, nullable=False, comment="JSON-serialised payload")

    def __repr__(self):
        return f"<CachedRequest(hash='{self.hash[:12]}...', created_at={self.created_at})>"
