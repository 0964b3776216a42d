"""Read-only booking rollups for barbers and the shop."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from ..models.booking_status import BookingStatus
from ..utils.errors import NotFound


def _money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(Decimal("0.01"))


def _window_filter(query, start: datetime, end: datetime):
    # Half-open [start, end) on the booking start
    return query.filter(models.Booking.start_time >= start, models.Booking.start_time < end)


def _by_status(query) -> List[dict]:
    rows = (
        query.with_entities(
            models.Booking.status,
            func.count(models.Booking.id),
            func.coalesce(func.sum(models.Booking.total_revenue), 0),
        )
        .group_by(models.Booking.status)
        .all()
    )
    buckets = [
        {"status": BookingStatus(status), "count": int(count), "revenue": _money(revenue)}
        for status, count, revenue in rows
    ]
    order = list(BookingStatus)
    buckets.sort(key=lambda b: order.index(b["status"]))
    return buckets


def get_barber_stats(db: Session, barber_id: int, start: datetime, end: datetime) -> dict:
    """Bookings of one barber in ``[start, end)`` grouped by status and service."""
    if end <= start:
        raise ValueError("end must be after start")
    if db.query(models.Barber.id).filter(models.Barber.id == barber_id).first() is None:
        raise NotFound(f"Barber {barber_id} not found")
    base = _window_filter(
        db.query(models.Booking).filter(models.Booking.barber_id == barber_id), start, end
    )
    by_status = _by_status(base)

    service_rows = (
        base.join(models.Service, models.Booking.service_id == models.Service.id)
        .filter(models.Booking.status == BookingStatus.COMPLETED)
        .with_entities(
            models.Service.id,
            models.Service.name,
            func.count(models.Booking.id),
            func.coalesce(func.sum(models.Booking.total_revenue), 0),
        )
        .group_by(models.Service.id, models.Service.name)
        .order_by(models.Service.name.asc())
        .all()
    )
    by_service = [
        {
            "service_id": service_id,
            "service_name": name,
            "count": int(count),
            "revenue": _money(revenue),
        }
        for service_id, name, count, revenue in service_rows
    ]
    return {
        "barber_id": barber_id,
        "start": start,
        "end": end,
        "total_bookings": sum(b["count"] for b in by_status),
        "total_revenue": _money(sum((b["revenue"] for b in by_status), Decimal("0"))),
        "by_status": by_status,
        "by_service": by_service,
    }


def get_shop_stats(db: Session, start: datetime, end: datetime) -> dict:
    if end <= start:
        raise ValueError("end must be after start")
    by_status = _by_status(_window_filter(db.query(models.Booking), start, end))
    return {
        "start": start,
        "end": end,
        "total_bookings": sum(b["count"] for b in by_status),
        "total_revenue": _money(sum((b["revenue"] for b in by_status), Decimal("0"))),
        "by_status": by_status,
    }


def get_daily_report(db: Session, day: date) -> dict:
    """Completed bookings on ``day`` per barber and per payment method."""
    start = datetime.combine(day, time.min)
    rows = (
        _window_filter(db.query(models.Booking), start, start + timedelta(days=1))
        .filter(models.Booking.status == BookingStatus.COMPLETED)
        .all()
    )
    per_barber: dict[int, dict] = {}
    per_method: dict[str, Decimal] = defaultdict(lambda: Decimal("0.00"))
    for booking in rows:
        revenue = _money(booking.total_revenue)
        entry = per_barber.setdefault(
            booking.barber_id,
            {
                "barber_id": booking.barber_id,
                "barber_name": booking.barber.name or "",
                "completed": 0,
                "revenue": Decimal("0.00"),
            },
        )
        entry["completed"] += 1
        entry["revenue"] += revenue
        per_method[booking.payment_method or "unknown"] += revenue
    barbers = sorted(per_barber.values(), key=lambda e: (-e["revenue"], e["barber_id"]))
    return {
        "date": day,
        "total_completed": len(rows),
        "total_revenue": _money(sum((e["revenue"] for e in barbers), Decimal("0"))),
        "by_payment_method": dict(per_method),
        "barbers": barbers,
    }


def get_completed_dates(
    db: Session,
    barber_id: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[date]:
    """Distinct days on which the barber completed at least one booking."""
    query = db.query(models.Booking.start_time).filter(
        models.Booking.barber_id == barber_id,
        models.Booking.status == BookingStatus.COMPLETED,
    )
    if start is not None:
        query = query.filter(models.Booking.start_time >= datetime.combine(start, time.min))
    if end is not None:
        query = query.filter(models.Booking.start_time < datetime.combine(end, time.min))
    return sorted({row.start_time.date() for row in query.all()})
