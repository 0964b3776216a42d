from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import crud
from ..database import get_db
from ..models.user import User
from ..schemas import ReviewCreate, ReviewResponse
from ..utils import redis_cache
from .dependencies import get_current_user

router = APIRouter()


@router.post("/", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
def create_review(
    review_in: ReviewCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Review a completed booking; refreshes the barber's rating."""
    db_review = crud.review.create_review(db, review_in, customer_id=current_user.id)
    # Ratings are part of the public barber listing
    redis_cache.invalidate_tags(db, [redis_cache.BARBERS_TAG])
    return db_review
