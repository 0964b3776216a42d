from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    ForeignKey,
    JSON,
    Table,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from ..database import Base


barber_services = Table(
    "barber_services",
    Base.metadata,
    Column("barber_id", Integer, ForeignKey("barbers.id", ondelete="CASCADE"), primary_key=True),
    Column("service_id", Integer, ForeignKey("services.id", ondelete="CASCADE"), primary_key=True),
)


def default_schedule() -> dict:
    """Two sittings Monday to Saturday, closed on Sunday."""
    weekday = {
        "available": True,
        "windows": [
            {"start": "08:00", "end": "12:00"},
            {"start": "13:00", "end": "19:00"},
        ],
    }
    schedule = {
        day: {"available": weekday["available"], "windows": [dict(w) for w in weekday["windows"]]}
        for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
    }
    schedule["sunday"] = {"available": False, "windows": []}
    return schedule


class Barber(BaseModel):
    __tablename__ = "barbers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    specialty = Column(String, nullable=True)
    experience_years = Column(Integer, default=0, nullable=False)
    description = Column(Text, nullable=True)
    schedule = Column(JSON, nullable=False, default=default_schedule)
    featured = Column(Boolean, default=False, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    average_rating = Column(Float, default=0.0, nullable=False)
    total_reviews = Column(Integer, default=0, nullable=False)

    user = relationship("User", back_populates="barber_profile")
    services = relationship("Service", secondary=barber_services, back_populates="barbers")
    bookings = relationship("Booking", back_populates="barber")
    reviews = relationship("Review", back_populates="barber")
    featured_position = relationship(
        "FeaturedPosition",
        back_populates="barber",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def name(self):
        return self.user.name if self.user is not None else None
