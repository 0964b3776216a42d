from datetime import datetime, timezone

from sqlalchemy import Column, DateTime

from ..database import Base


def utc_now() -> datetime:
    """Naive UTC timestamp, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel(Base):
    """Abstract parent for every barbershop table: audit timestamps only."""

    __abstract__ = True

    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)
