from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class BookingSlot(BaseModel):
    """One 30-minute grid cell held by a pending or confirmed booking.

    The unique ``(barber_id, slot_start)`` pair is what keeps two live
    bookings of the same barber from overlapping when requests race.
    """

    __tablename__ = "booking_slots"
    __table_args__ = (
        UniqueConstraint("barber_id", "slot_start", name="uq_booking_slot_barber_start"),
    )

    id = Column(Integer, primary_key=True, index=True)
    barber_id = Column(Integer, ForeignKey("barbers.id"), nullable=False)
    booking_id = Column(
        Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    slot_start = Column(DateTime, nullable=False)

    booking = relationship("Booking", back_populates="slot_claims")
