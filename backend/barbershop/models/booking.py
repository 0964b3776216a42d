from sqlalchemy import Column, Integer, DateTime, Numeric, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel
from .booking_status import BookingStatus, CancelledBy
from .types import CaseInsensitiveEnum


class Booking(BaseModel):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    barber_id = Column(Integer, ForeignKey("barbers.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(
        CaseInsensitiveEnum(BookingStatus, name="bookingstatus"),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True,
    )
    # Snapshot of the service price at booking time
    price = Column(Numeric(10, 2), nullable=False)
    total_revenue = Column(Numeric(10, 2), nullable=True)
    payment_method = Column(String, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(CaseInsensitiveEnum(CancelledBy, name="cancelledby"), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    customer = relationship("User", foreign_keys=[customer_id], back_populates="bookings_as_customer")
    barber = relationship("Barber", back_populates="bookings")
    service = relationship("Service", back_populates="bookings")
    slot_claims = relationship(
        "BookingSlot",
        back_populates="booking",
        cascade="all, delete-orphan",
    )
    review = relationship(
        "Review",
        back_populates="booking",
        uselist=False,
        cascade="all, delete-orphan",
    )
