import logging
from datetime import date, datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import crud
from ..database import get_db
from ..models.user import User, UserRole
from ..schemas import (
    AvailabilityResponse,
    BarberCreate,
    BarberResponse,
    BarberScheduleUpdate,
    BarberStats,
    CompletedDatesResponse,
    FeaturedUpdate,
    ReviewResponse,
)
from ..services import availability, featured_guard, stats
from ..utils import redis_cache
from ..utils.errors import Forbidden, NotFound, error_response
from .dependencies import get_current_admin, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_barber_or_404(db: Session, barber_id: int):
    db_barber = crud.barber.get_barber(db, barber_id)
    if db_barber is None:
        raise NotFound(f"Barber {barber_id} not found")
    return db_barber


def _ensure_admin_or_self(current_user: User, barber_id: int) -> None:
    if current_user.role == UserRole.ADMIN:
        return
    profile = current_user.barber_profile
    if current_user.role == UserRole.BARBER and profile is not None and profile.id == barber_id:
        return
    raise Forbidden("Not allowed to access this barber's data", {"barber_id": "forbidden"})


@router.get("/", response_model=List[BarberResponse])
def list_barbers(
    featured: bool = Query(False, description="Only featured barbers"),
    db: Session = Depends(get_db),
) -> Any:
    """List active barbers, featured first. Served from cache when warm."""
    cached = redis_cache.get_cached_barber_list(featured_only=featured)
    if cached is not None:
        return cached
    generation = redis_cache.barber_list_generation()
    barbers = crud.barber.list_active(db, featured_only=featured)
    payload = [BarberResponse.model_validate(b).model_dump(mode="json") for b in barbers]
    if generation is not None:
        redis_cache.cache_barber_list(payload, featured_only=featured, generation=generation)
    return payload


@router.post("/", response_model=BarberResponse, status_code=status.HTTP_201_CREATED)
def promote_barber(
    barber_in: BarberCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
) -> Any:
    try:
        return crud.barber.promote(db, barber_in)
    except ValueError as exc:
        raise error_response(str(exc), {"user_id": "already_barber"}, status.HTTP_409_CONFLICT)


@router.get("/{barber_id}", response_model=BarberResponse)
def read_barber(barber_id: int, db: Session = Depends(get_db)) -> Any:
    return availability.get_active_barber(db, barber_id)


@router.put("/{barber_id}/schedule", response_model=BarberResponse)
def update_schedule(
    barber_id: int,
    schedule_in: BarberScheduleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    _ensure_admin_or_self(current_user, barber_id)
    db_barber = availability.get_active_barber(db, barber_id)
    return crud.barber.update_schedule(db, db_barber, schedule_in.schedule)


@router.delete("/{barber_id}", response_model=BarberResponse)
def deactivate_barber(
    barber_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
) -> Any:
    db_barber = _get_barber_or_404(db, barber_id)
    return crud.barber.deactivate(db, db_barber)


@router.patch("/{barber_id}/featured", response_model=BarberResponse)
def set_featured(
    barber_id: int,
    featured_in: FeaturedUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
) -> Any:
    return featured_guard.set_featured(db, barber_id, featured_in.featured)


@router.get("/{barber_id}/availability", response_model=AvailabilityResponse)
def get_availability(
    barber_id: int,
    day: date = Query(..., alias="date"),
    service_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
) -> Any:
    slots = availability.get_available_slots(db, barber_id, day, service_id=service_id)
    return {"barber_id": barber_id, "date": day, "service_id": service_id, "slots": slots}


@router.get("/{barber_id}/stats", response_model=BarberStats)
def get_barber_stats(
    barber_id: int,
    start: datetime = Query(...),
    end: datetime = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    _ensure_admin_or_self(current_user, barber_id)
    try:
        return stats.get_barber_stats(
            db, barber_id, availability.to_shop_time(start), availability.to_shop_time(end)
        )
    except ValueError as exc:
        raise error_response(str(exc), {"end": "before_start"}, status.HTTP_400_BAD_REQUEST)


@router.get("/{barber_id}/completed-dates", response_model=CompletedDatesResponse)
def get_completed_dates(
    barber_id: int,
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    _ensure_admin_or_self(current_user, barber_id)
    _get_barber_or_404(db, barber_id)
    dates = stats.get_completed_dates(db, barber_id, start, end)
    return {"barber_id": barber_id, "dates": dates}


@router.get("/{barber_id}/reviews", response_model=List[ReviewResponse])
def list_barber_reviews(
    barber_id: int,
    skip: int = 0,
    limit: int = Query(50, le=200),
    db: Session = Depends(get_db),
) -> Any:
    _get_barber_or_404(db, barber_id)
    return crud.review.get_reviews_by_barber(db, barber_id, skip=skip, limit=limit)
