import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from barbershop import models
from barbershop.crud import crud_booking
from barbershop.models import BookingStatus
from barbershop.schemas import BookingCreate
from barbershop.services.booking_lifecycle import Actor, ActorRole
from barbershop.utils.errors import Forbidden, InvalidSlot, NotFound, SlotConflict
from factories import NOW, at, make_admin, make_barber, make_booking, make_service, make_user


def _book(db, barber, service, start, actor, **kwargs):
    return crud_booking.booking.create_booking(
        db,
        BookingCreate(barber_id=barber.id, service_id=service.id, start_time=start, **kwargs),
        actor,
        now=NOW,
    )


def _customer_actor(user):
    return Actor(role=ActorRole.USER, user_id=user.id)


def test_customer_booking_starts_pending_with_snapshot(db):
    barber = make_barber(db)
    service = make_service(db, price="25000", duration=60)
    customer = make_user(db)

    booking = _book(db, barber, service, at(9, 0), _customer_actor(customer), notes="skin fade")

    assert booking.status == BookingStatus.PENDING
    assert booking.customer_id == customer.id
    assert booking.price == Decimal("25000")
    assert booking.duration_minutes == 60
    assert booking.notes == "skin fade"
    assert sorted(c.slot_start for c in booking.slot_claims) == [at(9, 0), at(9, 30)]


def test_customer_cannot_book_on_behalf_of_someone_else(db):
    barber = make_barber(db)
    service = make_service(db)
    customer, other = make_user(db), make_user(db)

    booking = _book(db, barber, service, at(9, 0), _customer_actor(customer), customer_id=other.id)

    assert booking.customer_id == customer.id


def test_barber_booking_own_calendar_is_confirmed(db):
    barber = make_barber(db)
    service = make_service(db)
    customer = make_user(db)
    actor = Actor(role=ActorRole.BARBER, user_id=barber.user_id, barber_id=barber.id)

    booking = _book(db, barber, service, at(9, 0), actor, customer_id=customer.id)

    assert booking.status == BookingStatus.CONFIRMED
    assert booking.customer_id == customer.id


def test_barber_cannot_book_into_another_calendar(db):
    barber, other = make_barber(db), make_barber(db)
    service = make_service(db)
    actor = Actor(role=ActorRole.BARBER, user_id=other.user_id, barber_id=other.id)

    with pytest.raises(Forbidden):
        _book(db, barber, service, at(9, 0), actor, customer_id=make_user(db).id)


def test_admin_booking_is_confirmed(db):
    barber = make_barber(db)
    service = make_service(db)
    admin = make_admin(db)
    customer = make_user(db)

    booking = _book(
        db, barber, service, at(9, 0), Actor(role=ActorRole.ADMIN, user_id=admin.id), customer_id=customer.id
    )

    assert booking.status == BookingStatus.CONFIRMED


@pytest.mark.parametrize(
    "start,duration",
    [
        (at(9, 15), 30),  # off the grid
        (at(12, 0), 30),  # lunch gap
        (at(11, 30), 60),  # runs past the morning window
        (at(19, 0), 30),  # after closing
    ],
)
def test_slot_outside_working_hours_is_invalid(db, start, duration):
    barber = make_barber(db)
    service = make_service(db, duration=duration)
    with pytest.raises(InvalidSlot):
        _book(db, barber, service, start, _customer_actor(make_user(db)))


def test_slot_in_the_past_is_invalid(db):
    barber = make_barber(db)
    service = make_service(db)
    past_monday = at(9, 0) - timedelta(days=7)
    with pytest.raises(InvalidSlot):
        _book(db, barber, service, past_monday, _customer_actor(make_user(db)))


def test_overlapping_booking_is_a_conflict(db):
    barber = make_barber(db)
    service = make_service(db, duration=60)
    _book(db, barber, service, at(9, 0), _customer_actor(make_user(db)))

    with pytest.raises(SlotConflict):
        _book(db, barber, service, at(9, 30), _customer_actor(make_user(db)))
    assert db.query(models.Booking).count() == 1


def test_other_barber_is_not_affected(db):
    barber, other = make_barber(db), make_barber(db)
    service = make_service(db)
    _book(db, barber, service, at(9, 0), _customer_actor(make_user(db)))
    booking = _book(db, other, service, at(9, 0), _customer_actor(make_user(db)))
    assert booking.barber_id == other.id


def test_unique_slot_claim_stops_a_write_that_skipped_the_overlap_check(db):
    barber = make_barber(db)
    service = make_service(db)
    customer = make_user(db)
    make_booking(db, barber, customer, service, at(10, 0))

    # The application-level check only sees live bookings; hide the row from it
    db.query(models.Booking).update({models.Booking.status: BookingStatus.CANCELLED})
    db.commit()

    with pytest.raises(SlotConflict):
        _book(db, barber, service, at(10, 0), _customer_actor(customer))


def test_slot_is_bookable_again_after_cancellation(db):
    barber = make_barber(db)
    service = make_service(db)
    customer = make_user(db)
    first = _book(db, barber, service, at(9, 0), _customer_actor(customer))

    crud_booking.booking.transition(
        db, first.id, BookingStatus.CANCELLED, _customer_actor(customer), reason="Running late", now=NOW
    )
    second = _book(db, barber, service, at(9, 0), _customer_actor(make_user(db)))

    assert second.status == BookingStatus.PENDING
    assert db.query(models.BookingSlot).count() == 1


def test_inactive_service_is_not_found(db):
    barber = make_barber(db)
    service = make_service(db)
    service.is_active = False
    db.commit()
    with pytest.raises(NotFound):
        _book(db, barber, service, at(9, 0), _customer_actor(make_user(db)))


def test_service_not_offered_by_barber_is_not_found(db):
    offered = make_service(db)
    other = make_service(db)
    barber = make_barber(db, services=[offered])
    with pytest.raises(NotFound):
        _book(db, barber, other, at(9, 0), _customer_actor(make_user(db)))


def test_concurrent_requests_for_one_slot_book_it_once(file_session_factory):
    setup = file_session_factory()
    barber = make_barber(setup)
    service = make_service(setup)
    customers = [make_user(setup), make_user(setup)]
    barber_id, service_id = barber.id, service.id
    customer_ids = [c.id for c in customers]
    setup.close()

    barrier = threading.Barrier(2)
    results = []
    lock = threading.Lock()

    def attempt(customer_id):
        db = file_session_factory()
        try:
            barrier.wait()
            crud_booking.booking.create_booking(
                db,
                BookingCreate(barber_id=barber_id, service_id=service_id, start_time=at(10, 0)),
                Actor(role=ActorRole.USER, user_id=customer_id),
                now=NOW,
            )
            outcome = "ok"
        except SlotConflict:
            outcome = "conflict"
        finally:
            db.close()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=attempt, args=(cid,)) for cid in customer_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == ["conflict", "ok"]
    check = file_session_factory()
    assert check.query(models.Booking).count() == 1
    assert check.query(models.BookingSlot).count() == 1
    check.close()


def test_audit_timestamps_are_naive_utc(db):
    barber = make_barber(db)
    before = datetime.now(timezone.utc).replace(tzinfo=None)
    booking = _book(db, barber, make_service(db), at(9, 0), _customer_actor(make_user(db)))
    after = datetime.now(timezone.utc).replace(tzinfo=None)

    assert booking.created_at.tzinfo is None
    assert before <= booking.created_at <= after
    assert booking.updated_at.tzinfo is None
