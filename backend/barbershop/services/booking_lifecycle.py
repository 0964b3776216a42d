"""Booking state machine: allowed edges, role permissions and side effects.

Persistence lives in ``crud.crud_booking``; the functions here only inspect
and mutate a ``Booking`` instance so the rules can be exercised without a
database.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Optional, Tuple

from .. import models
from ..models import BookingStatus, CancelledBy
from ..utils.errors import (
    Forbidden,
    InvalidTransition,
    MissingCancellationReason,
    MissingPaymentMethod,
)

MAX_REASON_WORDS = 100
MAX_REASON_CHARS = 500


class ActorRole(str, enum.Enum):
    USER = "user"
    BARBER = "barber"
    ADMIN = "admin"
    # Internal maintenance jobs; never derived from a request
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    role: ActorRole
    user_id: Optional[int] = None
    barber_id: Optional[int] = None

    @classmethod
    def from_user(cls, user: models.User) -> "Actor":
        role = ActorRole(getattr(user.role, "value", user.role))
        barber_id = None
        if role == ActorRole.BARBER and user.barber_profile is not None:
            barber_id = user.barber_profile.id
        return cls(role=role, user_id=user.id, barber_id=barber_id)

    @classmethod
    def system(cls) -> "Actor":
        return cls(role=ActorRole.SYSTEM)


_STAFF = frozenset({ActorRole.BARBER, ActorRole.ADMIN})

TRANSITIONS: Dict[Tuple[BookingStatus, BookingStatus], FrozenSet[ActorRole]] = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED): _STAFF,
    (BookingStatus.PENDING, BookingStatus.CANCELLED): frozenset(
        {ActorRole.USER, ActorRole.BARBER, ActorRole.ADMIN, ActorRole.SYSTEM}
    ),
    (BookingStatus.PENDING, BookingStatus.COMPLETED): _STAFF,
    (BookingStatus.CONFIRMED, BookingStatus.COMPLETED): _STAFF,
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED): frozenset(
        {ActorRole.USER, ActorRole.BARBER, ActorRole.ADMIN}
    ),
    (BookingStatus.CONFIRMED, BookingStatus.NO_SHOW): _STAFF,
}


def allowed_targets(current: BookingStatus, role: ActorRole) -> list[BookingStatus]:
    return [to for (frm, to), roles in TRANSITIONS.items() if frm == current and role in roles]


def check_ownership(booking: models.Booking, actor: Actor) -> None:
    if actor.role == ActorRole.USER and booking.customer_id != actor.user_id:
        raise Forbidden("You can only manage your own bookings")
    if actor.role == ActorRole.BARBER and (
        actor.barber_id is None or booking.barber_id != actor.barber_id
    ):
        raise Forbidden("Barbers can only manage bookings assigned to them")


def clean_reason(reason: Optional[str], role: ActorRole) -> Optional[str]:
    """Return the trimmed cancellation reason or raise when the role needs one."""
    text = (reason or "").strip()
    if not text:
        if role in (ActorRole.USER, ActorRole.BARBER):
            raise MissingCancellationReason()
        return None
    if len(text) > MAX_REASON_CHARS or len(text.split()) > MAX_REASON_WORDS:
        raise MissingCancellationReason(
            f"Cancellation reason must be at most {MAX_REASON_WORDS} words "
            f"and {MAX_REASON_CHARS} characters"
        )
    return text


def validate_transition(
    booking: models.Booking,
    requested: BookingStatus,
    actor: Actor,
    now: datetime,
    payment_method: Optional[str] = None,
    reason: Optional[str] = None,
) -> None:
    current = BookingStatus(booking.status)
    requested = BookingStatus(requested)

    if current.is_terminal or (current, requested) not in TRANSITIONS:
        raise InvalidTransition(current, requested, actor.role)
    if actor.role not in TRANSITIONS[(current, requested)]:
        raise Forbidden(f"Role {actor.role.value} may not move a {current.value} booking to {requested.value}")
    check_ownership(booking, actor)

    if requested == BookingStatus.CONFIRMED and booking.start_time <= now:
        raise InvalidTransition(current, requested, actor.role, reason="booking start is not in the future")
    if requested == BookingStatus.NO_SHOW and booking.start_time >= now:
        raise InvalidTransition(current, requested, actor.role, reason="booking start is not in the past")
    if requested == BookingStatus.COMPLETED and not (payment_method or "").strip():
        raise MissingPaymentMethod()
    if requested == BookingStatus.CANCELLED:
        clean_reason(reason, actor.role)


def apply_transition(
    booking: models.Booking,
    requested: BookingStatus,
    actor: Actor,
    now: datetime,
    payment_method: Optional[str] = None,
    reason: Optional[str] = None,
) -> models.Booking:
    """Validate and apply ``requested`` to ``booking`` in memory.

    Slot claims are released by the caller in the same commit.
    """
    validate_transition(booking, requested, actor, now, payment_method, reason)
    requested = BookingStatus(requested)

    if requested == BookingStatus.COMPLETED:
        booking.total_revenue = booking.price
        booking.payment_method = payment_method.strip().lower()
    elif requested == BookingStatus.CANCELLED:
        booking.cancellation_reason = clean_reason(reason, actor.role)
        booking.cancelled_by = CancelledBy(actor.role.value)
        booking.cancelled_at = now
    booking.status = requested
    return booking
