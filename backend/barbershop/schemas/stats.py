from pydantic import BaseModel
from typing import List
from datetime import date, datetime
from decimal import Decimal

from ..models.booking_status import BookingStatus


class StatusBucket(BaseModel):
    status: BookingStatus
    count: int
    revenue: Decimal


class ServiceBucket(BaseModel):
    service_id: int
    service_name: str
    count: int
    revenue: Decimal


class BarberStats(BaseModel):
    barber_id: int
    start: datetime
    end: datetime
    total_bookings: int
    total_revenue: Decimal
    by_status: List[StatusBucket]
    by_service: List[ServiceBucket]


class ShopStats(BaseModel):
    start: datetime
    end: datetime
    total_bookings: int
    total_revenue: Decimal
    by_status: List[StatusBucket]


class DailyReportEntry(BaseModel):
    barber_id: int
    barber_name: str
    completed: int
    revenue: Decimal


class DailyReport(BaseModel):
    date: date
    total_completed: int
    total_revenue: Decimal
    by_payment_method: dict[str, Decimal]
    barbers: List[DailyReportEntry]
