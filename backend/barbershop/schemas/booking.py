from pydantic import BaseModel, Field
from typing import Optional, Annotated
from datetime import datetime
from decimal import Decimal

from ..models.booking_status import BookingStatus, CancelledBy


class BookingBase(BaseModel):
    barber_id: int
    service_id: int
    start_time: datetime
    notes: Optional[str] = None


class BookingCreate(BookingBase):
    # Only honoured when a barber or admin books on behalf of a customer
    customer_id: Optional[int] = None


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    payment_method: Optional[str] = None
    reason: Optional[str] = None


class BookingResponse(BookingBase):
    id: int
    customer_id: int
    duration_minutes: int
    status: BookingStatus
    price: Annotated[Decimal, Field()]
    total_revenue: Optional[Decimal] = None
    payment_method: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[CancelledBy] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }
