from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import models, schemas
from ..models.booking_status import BookingStatus
from ..utils.errors import AlreadyReviewed, Forbidden, InvalidTransition, NotFound


def refresh_barber_rating(db: Session, barber_id: int) -> None:
    """Recompute ``average_rating``/``total_reviews`` from the reviews table.

    Does not commit; callers commit alongside the change that triggered it.
    """
    avg, count = (
        db.query(func.avg(models.Review.rating), func.count(models.Review.id))
        .filter(models.Review.barber_id == barber_id)
        .one()
    )
    barber = db.query(models.Barber).filter(models.Barber.id == barber_id).first()
    if barber is None:
        return
    barber.average_rating = round(float(avg), 2) if avg is not None else 0.0
    barber.total_reviews = int(count or 0)


class CRUDReview:
    def get_review(self, db: Session, review_id: int) -> Optional[models.Review]:
        return db.query(models.Review).filter(models.Review.id == review_id).first()

    def get_reviews_by_barber(
        self, db: Session, barber_id: int, skip: int = 0, limit: int = 100
    ) -> List[models.Review]:
        return (
            db.query(models.Review)
            .filter(models.Review.barber_id == barber_id)
            .order_by(models.Review.created_at.desc(), models.Review.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def create_review(
        self, db: Session, review_in: schemas.ReviewCreate, customer_id: int
    ) -> models.Review:
        db_booking = (
            db.query(models.Booking).filter(models.Booking.id == review_in.booking_id).first()
        )
        if db_booking is None:
            raise NotFound(f"Booking {review_in.booking_id} not found")
        if db_booking.customer_id != customer_id:
            raise Forbidden("You can only review your own bookings")
        if db_booking.status != BookingStatus.COMPLETED:
            raise InvalidTransition(
                db_booking.status,
                "reviewed",
                "user",
                reason="only completed bookings can be reviewed",
            )

        db_review = models.Review(
            booking_id=db_booking.id,
            customer_id=customer_id,
            barber_id=db_booking.barber_id,
            rating=review_in.rating,
            comment=review_in.comment,
        )
        db.add(db_review)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            raise AlreadyReviewed("You have already reviewed this barber")
        refresh_barber_rating(db, db_booking.barber_id)
        db.commit()
        db.refresh(db_review)
        return db_review


review = CRUDReview()
