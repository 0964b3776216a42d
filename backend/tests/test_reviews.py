from decimal import Decimal

import pytest

from barbershop import models
from barbershop.crud import crud_booking, crud_review
from barbershop.models import BookingStatus
from barbershop.schemas import ReviewCreate
from barbershop.services.booking_lifecycle import Actor, ActorRole
from barbershop.utils.errors import AlreadyReviewed, Forbidden, InvalidTransition, NotFound
from factories import at, make_barber, make_booking, make_service, make_user


def _completed(db, barber=None, customer=None, hour=9):
    barber = barber or make_barber(db)
    customer = customer or make_user(db)
    service = make_service(db)
    booking = make_booking(
        db, barber, customer, service, at(hour, 0),
        status=BookingStatus.COMPLETED, total_revenue=Decimal("25.00"), payment_method="cash",
    )
    return barber, customer, booking


def test_review_refreshes_barber_rating(db):
    barber, customer, booking = _completed(db)
    _, other_customer, other_booking = _completed(db, barber=barber, hour=10)

    crud_review.review.create_review(db, ReviewCreate(booking_id=booking.id, rating=5), customer.id)
    crud_review.review.create_review(
        db, ReviewCreate(booking_id=other_booking.id, rating=4, comment="Good"), other_customer.id
    )

    db.refresh(barber)
    assert barber.total_reviews == 2
    assert barber.average_rating == 4.5
    reviews = crud_review.review.get_reviews_by_barber(db, barber.id)
    assert {r.rating for r in reviews} == {4, 5}


def test_only_completed_bookings_can_be_reviewed(db):
    barber = make_barber(db)
    customer = make_user(db)
    booking = make_booking(db, barber, customer, make_service(db), at(9, 0))
    with pytest.raises(InvalidTransition):
        crud_review.review.create_review(db, ReviewCreate(booking_id=booking.id, rating=5), customer.id)


def test_only_the_customer_can_review(db):
    _, _, booking = _completed(db)
    with pytest.raises(Forbidden):
        crud_review.review.create_review(db, ReviewCreate(booking_id=booking.id, rating=5), make_user(db).id)


def test_unknown_booking(db):
    with pytest.raises(NotFound):
        crud_review.review.create_review(db, ReviewCreate(booking_id=99, rating=5), 1)


def test_one_review_per_customer_and_barber(db):
    barber, customer, booking = _completed(db)
    _, _, second = _completed(db, barber=barber, customer=customer, hour=10)
    crud_review.review.create_review(db, ReviewCreate(booking_id=booking.id, rating=5), customer.id)

    with pytest.raises(AlreadyReviewed):
        crud_review.review.create_review(db, ReviewCreate(booking_id=second.id, rating=1), customer.id)

    db.refresh(barber)
    assert barber.total_reviews == 1
    assert barber.average_rating == 5.0


def test_purging_a_reviewed_booking_recomputes_rating(db):
    barber, customer, booking = _completed(db)
    crud_review.review.create_review(db, ReviewCreate(booking_id=booking.id, rating=3), customer.id)

    crud_booking.booking.purge(db, booking.id, Actor(role=ActorRole.ADMIN, user_id=1))

    db.refresh(barber)
    assert barber.total_reviews == 0
    assert barber.average_rating == 0.0
    assert db.query(models.Review).count() == 0
