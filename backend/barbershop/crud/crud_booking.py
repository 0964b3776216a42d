import logging
import math
import time
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .. import models, schemas
from ..core.config import settings
from ..models.booking_status import BookingStatus, TERMINAL_STATUSES
from ..services import availability
from ..services.booking_lifecycle import Actor, ActorRole, apply_transition
from ..utils import redis_cache
from ..utils.errors import (
    Forbidden,
    InvalidSlot,
    InvalidTransition,
    NotFound,
    SlotConflict,
    Unavailable,
)
from . import crud_review

logger = logging.getLogger(__name__)

EXPIRED_REASON = "Booking expired before confirmation"


def _backoff(attempt: int) -> None:
    time.sleep(settings.DB_RETRY_BACKOFF_SECONDS * attempt)


def slot_cells(start: datetime, duration_minutes: int) -> List[datetime]:
    """Grid cells covered by ``[start, start + duration)``."""
    count = max(1, math.ceil(duration_minutes / availability.SLOT_MINUTES))
    return [start + i * availability.SLOT_DELTA for i in range(count)]


class CRUDBooking:
    def get_booking(self, db: Session, booking_id: int) -> Optional[models.Booking]:
        return db.query(models.Booking).filter(models.Booking.id == booking_id).first()

    def get_bookings_by_customer(
        self, db: Session, customer_id: int, skip: int = 0, limit: int = 100
    ) -> List[models.Booking]:
        return (
            db.query(models.Booking)
            .filter(models.Booking.customer_id == customer_id)
            .order_by(models.Booking.start_time.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_bookings_by_barber(
        self, db: Session, barber_id: int, skip: int = 0, limit: int = 100
    ) -> List[models.Booking]:
        return (
            db.query(models.Booking)
            .filter(models.Booking.barber_id == barber_id)
            .order_by(models.Booking.start_time.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def _resolve_customer_id(self, db: Session, booking_in: schemas.BookingCreate, actor: Actor) -> int:
        if actor.role == ActorRole.USER:
            return actor.user_id
        if actor.role == ActorRole.BARBER and booking_in.barber_id != actor.barber_id:
            raise Forbidden("Barbers can only book into their own calendar")
        customer_id = booking_in.customer_id or actor.user_id
        customer = (
            db.query(models.User)
            .filter(models.User.id == customer_id, models.User.is_active.is_(True))
            .first()
        )
        if customer is None:
            raise NotFound(f"Customer {customer_id} not found")
        return customer.id

    def create_booking(
        self,
        db: Session,
        booking_in: schemas.BookingCreate,
        actor: Actor,
        now: Optional[datetime] = None,
    ) -> models.Booking:
        """Create a booking after checking the slot and claiming its grid cells.

        The booking row and its ``booking_slots`` claims are inserted in one
        transaction; a unique violation on the claims means another request
        took an overlapping slot first.
        """
        customer_id = self._resolve_customer_id(db, booking_in, actor)
        barber = availability.get_active_barber(db, booking_in.barber_id)
        service = availability.get_active_service(db, booking_in.service_id)
        if barber.services and service not in barber.services:
            raise NotFound(f"Service {service.id} is not offered by barber {barber.id}")

        now = now or availability.shop_now()
        start = availability.to_shop_time(booking_in.start_time)
        if start <= now:
            raise InvalidSlot("Booking start must be in the future", {"start_time": "past"})
        if not availability.slot_fits(barber.schedule, start, service.duration_minutes):
            raise InvalidSlot(
                "Requested time is outside the barber's working hours",
                {"start_time": "unavailable"},
            )

        existing = availability.live_bookings_near(db, barber.id, start.date())
        if not availability.filter_conflicts([start], existing, service.duration_minutes):
            raise SlotConflict("This time slot is already booked", {"start_time": "taken"})

        status = BookingStatus.PENDING if actor.role == ActorRole.USER else BookingStatus.CONFIRMED
        barber_id, service_id = barber.id, service.id
        price, duration = service.price, service.duration_minutes

        attempts = settings.DB_WRITE_RETRIES
        for attempt in range(1, attempts + 1):
            db_booking = models.Booking(
                customer_id=customer_id,
                barber_id=barber_id,
                service_id=service_id,
                start_time=start,
                duration_minutes=duration,
                status=status,
                price=price,
                notes=booking_in.notes,
            )
            db_booking.slot_claims = [
                models.BookingSlot(barber_id=barber_id, slot_start=cell)
                for cell in slot_cells(start, duration)
            ]
            db.add(db_booking)
            try:
                db.commit()
                break
            except IntegrityError:
                db.rollback()
                logger.info("slot claim lost barber=%s start=%s", barber_id, start)
                raise SlotConflict("This time slot is already booked", {"start_time": "taken"})
            except OperationalError as exc:
                db.rollback()
                logger.warning(
                    "booking insert failed attempt=%s/%s err=%s", attempt, attempts, exc
                )
                if attempt == attempts:
                    raise Unavailable("Booking storage is temporarily unavailable")
                _backoff(attempt)

        db.refresh(db_booking)
        logger.info(
            "booking created id=%s barber=%s start=%s status=%s",
            db_booking.id,
            barber_id,
            start,
            status.value,
        )
        redis_cache.invalidate_tags(db, [redis_cache.availability_tag(barber_id)])
        return db_booking

    def transition(
        self,
        db: Session,
        booking_id: int,
        requested: BookingStatus,
        actor: Actor,
        payment_method: Optional[str] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> models.Booking:
        """Move a booking to ``requested``, committing once or not at all.

        A concurrent update is detected through the version counter; the
        booking is then reloaded and the request evaluated again.
        """
        now = now or availability.shop_now()
        attempts = settings.DB_WRITE_RETRIES
        for attempt in range(1, attempts + 1):
            db_booking = self.get_booking(db, booking_id)
            if db_booking is None:
                raise NotFound(f"Booking {booking_id} not found")
            apply_transition(db_booking, requested, actor, now, payment_method, reason)
            if db_booking.status in TERMINAL_STATUSES:
                db_booking.slot_claims = []
            try:
                db.commit()
                break
            except StaleDataError:
                db.rollback()
                db.expire_all()
                logger.info("booking id=%s changed concurrently, re-evaluating", booking_id)
            except OperationalError as exc:
                db.rollback()
                logger.warning(
                    "booking transition failed id=%s attempt=%s/%s err=%s",
                    booking_id,
                    attempt,
                    attempts,
                    exc,
                )
                _backoff(attempt)
        else:
            raise Unavailable("Booking storage is temporarily unavailable")

        db.refresh(db_booking)
        redis_cache.invalidate_tags(db, [redis_cache.availability_tag(db_booking.barber_id)])
        return db_booking

    def purge(self, db: Session, booking_id: int, actor: Actor) -> None:
        """Hard-delete a terminal booking (admin only)."""
        if actor.role != ActorRole.ADMIN:
            raise Forbidden("Only admins can delete bookings")
        db_booking = self.get_booking(db, booking_id)
        if db_booking is None:
            raise NotFound(f"Booking {booking_id} not found")
        if db_booking.status not in TERMINAL_STATUSES:
            raise InvalidTransition(
                db_booking.status, "purged", actor.role, reason="only finished bookings can be deleted"
            )
        barber_id = db_booking.barber_id
        had_review = db_booking.review is not None
        db.delete(db_booking)
        if had_review:
            db.flush()
            crud_review.refresh_barber_rating(db, barber_id)
        db.commit()
        logger.info("booking id=%s purged by admin=%s", booking_id, actor.user_id)
        if had_review:
            redis_cache.invalidate_tags(db, [redis_cache.BARBERS_TAG])

    def cancel_expired_pending(self, db: Session, now: Optional[datetime] = None) -> int:
        """Cancel pending bookings whose start has passed; returns how many."""
        now = now or availability.shop_now()
        cutoff = now - timedelta(minutes=settings.PENDING_EXPIRY_GRACE_MINUTES)
        expired_ids = [
            row.id
            for row in db.query(models.Booking.id)
            .filter(
                models.Booking.status == BookingStatus.PENDING,
                models.Booking.start_time < cutoff,
            )
            .all()
        ]
        cancelled = 0
        barber_ids = set()
        for booking_id in expired_ids:
            db_booking = self.get_booking(db, booking_id)
            if db_booking is None or db_booking.status != BookingStatus.PENDING:
                continue
            apply_transition(
                db_booking, BookingStatus.CANCELLED, Actor.system(), now, reason=EXPIRED_REASON
            )
            db_booking.slot_claims = []
            try:
                db.commit()
            except StaleDataError:
                # Confirmed or cancelled by someone else meanwhile
                db.rollback()
                continue
            cancelled += 1
            barber_ids.add(db_booking.barber_id)
        if barber_ids:
            redis_cache.invalidate_tags(
                db, [redis_cache.availability_tag(bid) for bid in sorted(barber_ids)]
            )
        if cancelled:
            logger.info("cancelled %s expired pending bookings", cancelled)
        return cancelled


booking = CRUDBooking()
