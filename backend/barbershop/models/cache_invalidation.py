from sqlalchemy import Column, Integer, String, Text, DateTime

from .base import BaseModel


class CacheInvalidation(BaseModel):
    """Outbox row for a cache tag that could not be invalidated in time."""

    __tablename__ = "cache_invalidations"

    id = Column(Integer, primary_key=True, index=True)
    tag = Column(String, nullable=False, index=True)
    attempt_count = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    delivered_at = Column(DateTime, nullable=True, index=True)
