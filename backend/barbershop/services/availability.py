"""Bookable slot computation for a barber on a given day.

Slots live on a fixed 30-minute grid. A barber's ``schedule`` maps each
weekday name to either a single legacy window::

    {"start": "09:00", "end": "17:00", "available": true}

or a list of windows::

    {"available": true, "windows": [{"start": "08:00", "end": "12:00"}, ...]}

All datetimes are naive shop-local wall-clock times.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from .. import models
from ..core.config import settings
from ..utils import redis_cache
from ..utils.errors import NotFound

logger = logging.getLogger(__name__)

SLOT_MINUTES = 30
SLOT_DELTA = timedelta(minutes=SLOT_MINUTES)
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

Window = Tuple[datetime, datetime]


def shop_now() -> datetime:
    """Current wall-clock time in the shop's zone, without tzinfo."""
    tz_name = settings.SHOP_TIMEZONE or "UTC"
    if tz_name.upper() == "UTC":
        return datetime.now(timezone.utc).replace(tzinfo=None)
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)


def to_shop_time(moment: datetime) -> datetime:
    """Convert an aware datetime to naive shop-local time; naive input passes through."""
    if moment.tzinfo is None:
        return moment
    tz_name = settings.SHOP_TIMEZONE or "UTC"
    return moment.astimezone(ZoneInfo(tz_name)).replace(tzinfo=None)


def parse_hhmm(value: str) -> time:
    parts = str(value).strip().split(":")
    if len(parts) != 2:
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    hours, minutes = parts
    return time(int(hours), int(minutes))


def is_on_grid(moment: datetime) -> bool:
    return moment.second == 0 and moment.microsecond == 0 and moment.minute % SLOT_MINUTES == 0


def align_up(moment: datetime) -> datetime:
    """Round ``moment`` up to the next grid boundary (no-op when on the grid)."""
    if is_on_grid(moment):
        return moment
    floored = moment.replace(minute=moment.minute - moment.minute % SLOT_MINUTES, second=0, microsecond=0)
    return floored + SLOT_DELTA


def day_policy(schedule: Optional[dict], day: date) -> Optional[dict]:
    if not schedule:
        return None
    return schedule.get(WEEKDAYS[day.weekday()])


def day_windows(schedule: Optional[dict], day: date) -> List[Window]:
    """Return the working windows for ``day`` as datetimes, empty when closed."""
    policy = day_policy(schedule, day)
    if not policy or not policy.get("available", False):
        return []
    raw = policy.get("windows")
    if raw is None:
        raw = [{"start": policy.get("start"), "end": policy.get("end")}]
    windows: List[Window] = []
    for item in raw:
        if not item or not item.get("start") or not item.get("end"):
            continue
        start = datetime.combine(day, parse_hhmm(item["start"]))
        end = datetime.combine(day, parse_hhmm(item["end"]))
        if end > start:
            windows.append((start, end))
    windows.sort()
    return windows


def validate_schedule(schedule: dict) -> dict:
    """Normalise a schedule payload, raising ``ValueError`` on malformed input."""
    if not isinstance(schedule, dict):
        raise ValueError("schedule must be an object keyed by weekday")
    unknown = set(schedule) - set(WEEKDAYS)
    if unknown:
        raise ValueError(f"unknown weekday(s): {', '.join(sorted(unknown))}")
    normalised = {}
    for day in WEEKDAYS:
        policy = schedule.get(day) or {"available": False}
        if not isinstance(policy, dict):
            raise ValueError(f"{day}: expected an object")
        available = bool(policy.get("available", False))
        raw = policy.get("windows")
        if raw is None and policy.get("start") and policy.get("end"):
            raw = [{"start": policy["start"], "end": policy["end"]}]
        windows = []
        for item in raw or []:
            if not isinstance(item, dict) or not item.get("start") or not item.get("end"):
                raise ValueError(f"{day}: each window needs a start and an end")
            start, end = parse_hhmm(item["start"]), parse_hhmm(item["end"])
            if end <= start:
                raise ValueError(f"{day}: window end must be after start")
            windows.append({"start": start.strftime("%H:%M"), "end": end.strftime("%H:%M")})
        if available and not windows:
            raise ValueError(f"{day}: an available day needs at least one window")
        normalised[day] = {"available": available, "windows": windows}
    return normalised


def generate_slots(
    schedule: Optional[dict],
    day: date,
    now: Optional[datetime] = None,
    duration_minutes: Optional[int] = None,
) -> List[datetime]:
    """Enumerate candidate slot starts for ``day``.

    With ``now`` given, only slots strictly after it are kept. With
    ``duration_minutes`` given, a slot must leave room for the whole service
    before its window closes.
    """
    windows = day_windows(schedule, day)
    if not windows:
        return []
    length = timedelta(minutes=duration_minutes) if duration_minutes else None
    slots = set()
    for start, end in windows:
        t = align_up(start)
        while t < end:
            if length is None or t + length <= end:
                if now is None or t > now:
                    slots.add(t)
            t += SLOT_DELTA
    return sorted(slots)


def slot_fits(schedule: Optional[dict], start: datetime, duration_minutes: int) -> bool:
    """True when ``start`` is on the grid and the service fits one window."""
    if not is_on_grid(start):
        return False
    finish = start + timedelta(minutes=duration_minutes)
    for w_start, w_end in day_windows(schedule, start.date()):
        if w_start <= start and finish <= w_end:
            return True
    return False


def _overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def filter_conflicts(
    candidates: Sequence[datetime],
    bookings: Iterable,
    duration_minutes: Optional[int] = None,
) -> List[datetime]:
    """Drop candidates overlapping any pending/confirmed booking.

    ``bookings`` are objects with ``start_time``, ``duration_minutes`` and
    ``status``; terminal ones are ignored. A candidate occupies
    ``[slot, slot + duration)``, one grid cell when no duration is given.
    """
    busy = [
        (b.start_time, b.start_time + timedelta(minutes=b.duration_minutes))
        for b in bookings
        if b.status in models.LIVE_STATUSES
    ]
    length = timedelta(minutes=duration_minutes) if duration_minutes else SLOT_DELTA
    return [
        slot
        for slot in candidates
        if not any(_overlaps(slot, slot + length, b_start, b_end) for b_start, b_end in busy)
    ]


def live_bookings_near(db: Session, barber_id: int, day: date) -> List[models.Booking]:
    """Pending/confirmed bookings that could overlap ``day``."""
    day_start = datetime.combine(day, time.min)
    return (
        db.query(models.Booking)
        .filter(
            models.Booking.barber_id == barber_id,
            models.Booking.status.in_(list(models.LIVE_STATUSES)),
            models.Booking.start_time >= day_start - timedelta(days=1),
            models.Booking.start_time < day_start + timedelta(days=1),
        )
        .all()
    )


def get_active_barber(db: Session, barber_id: int) -> models.Barber:
    barber = (
        db.query(models.Barber)
        .join(models.User, models.Barber.user_id == models.User.id)
        .filter(
            models.Barber.id == barber_id,
            models.Barber.is_active.is_(True),
            models.User.is_active.is_(True),
        )
        .first()
    )
    if barber is None:
        raise NotFound(f"Barber {barber_id} not found")
    return barber


def get_active_service(db: Session, service_id: int) -> models.Service:
    service = (
        db.query(models.Service)
        .filter(models.Service.id == service_id, models.Service.is_active.is_(True))
        .first()
    )
    if service is None:
        raise NotFound(f"Service {service_id} not found")
    return service


def get_available_slots(
    db: Session,
    barber_id: int,
    day: date,
    service_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[datetime]:
    """Bookable slot starts for a barber on ``day``.

    The conflict-pruned day is cached per (barber, date, duration); the
    ``now`` filter runs after the cache so cached entries never go stale
    with the clock.
    """
    barber = get_active_barber(db, barber_id)
    duration = None
    if service_id is not None:
        duration = get_active_service(db, service_id).duration_minutes
    now = now or shop_now()

    if not day_windows(barber.schedule, day):
        return []

    pruned = redis_cache.get_cached_availability(barber_id, day, duration)
    if pruned is None:
        generation = redis_cache.availability_generation(barber_id)
        candidates = generate_slots(barber.schedule, day, duration_minutes=duration)
        pruned = filter_conflicts(candidates, live_bookings_near(db, barber_id, day), duration)
        if generation is not None:
            redis_cache.cache_availability(barber_id, day, pruned, duration, generation=generation)
        logger.debug("availability computed barber=%s day=%s slots=%s", barber_id, day, len(pruned))
    return [slot for slot in pruned if slot > now]
