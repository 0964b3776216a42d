import logging
from typing import Any, List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import crud
from ..database import get_db
from ..schemas import BookingCreate, BookingResponse, BookingStatusUpdate
from ..services.booking_lifecycle import Actor, ActorRole
from ..utils.errors import Forbidden, NotFound
from .dependencies import get_current_actor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    *,
    db: Session = Depends(get_db),
    booking_in: BookingCreate,
    actor: Actor = Depends(get_current_actor),
) -> Any:
    """Book a slot. Customers get a pending booking; barbers and admins
    booking on a customer's behalf get it confirmed straight away."""
    return crud.booking.create_booking(db, booking_in, actor)


@router.get("/my-bookings", response_model=List[BookingResponse])
def read_my_bookings(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> Any:
    if actor.role == ActorRole.BARBER and actor.barber_id is not None:
        return crud.booking.get_bookings_by_barber(db, actor.barber_id, skip=skip, limit=limit)
    return crud.booking.get_bookings_by_customer(db, actor.user_id, skip=skip, limit=limit)


@router.get("/{booking_id}", response_model=BookingResponse)
def read_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> Any:
    db_booking = crud.booking.get_booking(db, booking_id)
    if db_booking is None:
        raise NotFound(f"Booking {booking_id} not found")
    allowed = (
        actor.role == ActorRole.ADMIN
        or db_booking.customer_id == actor.user_id
        or (actor.barber_id is not None and db_booking.barber_id == actor.barber_id)
    )
    if not allowed:
        raise Forbidden("Not allowed to view this booking", {"booking_id": "forbidden"})
    return db_booking


@router.patch("/{booking_id}/status", response_model=BookingResponse)
def update_booking_status(
    booking_id: int,
    status_update: BookingStatusUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> Any:
    return crud.booking.transition(
        db,
        booking_id,
        status_update.status,
        actor,
        payment_method=status_update.payment_method,
        reason=status_update.reason,
    )


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
def purge_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> Response:
    crud.booking.purge(db, booking_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
