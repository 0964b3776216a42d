from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from barbershop.models import BookingStatus
from barbershop.services import stats
from barbershop.utils.errors import NotFound
from factories import MONDAY, at, make_barber, make_booking, make_service, make_user

WEEK_START = datetime(2024, 5, 6)
WEEK_END = WEEK_START + timedelta(days=7)


def _seed(db):
    barber = make_barber(db, name="Sam")
    cut = make_service(db, price="20.00", name="Cut")
    beard = make_service(db, price="15.00", name="Beard")
    customer = make_user(db)
    make_booking(
        db, barber, customer, cut, at(9, 0),
        status=BookingStatus.COMPLETED, total_revenue=Decimal("20.00"), payment_method="cash",
    )
    make_booking(
        db, barber, customer, cut, at(10, 0),
        status=BookingStatus.COMPLETED, total_revenue=Decimal("20.00"), payment_method="card",
    )
    make_booking(
        db, barber, customer, beard, at(11, 0),
        status=BookingStatus.COMPLETED, total_revenue=Decimal("15.00"), payment_method="cash",
    )
    # Completed without a recorded revenue counts as zero
    make_booking(db, barber, customer, beard, at(13, 0), status=BookingStatus.COMPLETED)
    make_booking(db, barber, customer, cut, at(14, 0), status=BookingStatus.CANCELLED)
    make_booking(db, barber, customer, cut, at(15, 0), status=BookingStatus.PENDING)
    make_booking(db, barber, customer, cut, at(16, 0), status=BookingStatus.NO_SHOW)
    # Outside the window
    make_booking(
        db, barber, customer, cut, WEEK_END + timedelta(hours=9),
        status=BookingStatus.COMPLETED, total_revenue=Decimal("20.00"), payment_method="cash",
    )
    return barber, cut, beard


def test_barber_stats_by_status(db):
    barber, _, _ = _seed(db)
    result = stats.get_barber_stats(db, barber.id, WEEK_START, WEEK_END)

    by_status = {b["status"]: b for b in result["by_status"]}
    assert by_status[BookingStatus.COMPLETED]["count"] == 4
    assert by_status[BookingStatus.COMPLETED]["revenue"] == Decimal("55.00")
    assert by_status[BookingStatus.CANCELLED]["count"] == 1
    assert by_status[BookingStatus.CANCELLED]["revenue"] == Decimal("0.00")
    assert by_status[BookingStatus.PENDING]["count"] == 1
    assert by_status[BookingStatus.NO_SHOW]["count"] == 1
    assert BookingStatus.CONFIRMED not in by_status
    assert result["total_bookings"] == 7
    assert result["total_revenue"] == Decimal("55.00")


def test_barber_stats_by_service_counts_completed_only(db):
    barber, cut, beard = _seed(db)
    result = stats.get_barber_stats(db, barber.id, WEEK_START, WEEK_END)

    by_service = {b["service_id"]: b for b in result["by_service"]}
    assert by_service[cut.id] == {
        "service_id": cut.id,
        "service_name": "Cut",
        "count": 2,
        "revenue": Decimal("40.00"),
    }
    assert by_service[beard.id]["count"] == 2
    assert by_service[beard.id]["revenue"] == Decimal("15.00")


def test_window_is_half_open(db):
    barber, _, _ = _seed(db)
    result = stats.get_barber_stats(db, barber.id, at(9, 0), at(10, 0))
    assert result["total_bookings"] == 1

    result = stats.get_barber_stats(db, barber.id, WEEK_END, WEEK_END + timedelta(days=1))
    assert result["total_bookings"] == 1


def test_empty_window(db):
    barber = make_barber(db)
    result = stats.get_barber_stats(db, barber.id, WEEK_START, WEEK_END)
    assert result["by_status"] == []
    assert result["by_service"] == []
    assert result["total_revenue"] == Decimal("0.00")


def test_stats_reject_inverted_window(db):
    barber = make_barber(db)
    with pytest.raises(ValueError):
        stats.get_barber_stats(db, barber.id, WEEK_END, WEEK_START)


def test_stats_for_unknown_barber(db):
    with pytest.raises(NotFound):
        stats.get_barber_stats(db, 999, WEEK_START, WEEK_END)


def test_shop_stats(db):
    _seed(db)
    other = make_barber(db)
    service = make_service(db, price="30.00")
    make_booking(
        db, other, make_user(db), service, at(9, 0),
        status=BookingStatus.COMPLETED, total_revenue=Decimal("30.00"), payment_method="card",
    )
    result = stats.get_shop_stats(db, WEEK_START, WEEK_END)
    assert result["total_bookings"] == 8
    assert result["total_revenue"] == Decimal("85.00")


def test_daily_report(db):
    barber, _, _ = _seed(db)
    report = stats.get_daily_report(db, MONDAY)

    assert report["total_completed"] == 4
    assert report["total_revenue"] == Decimal("55.00")
    assert report["by_payment_method"] == {
        "cash": Decimal("35.00"),
        "card": Decimal("20.00"),
        "unknown": Decimal("0.00"),
    }
    assert report["barbers"] == [
        {"barber_id": barber.id, "barber_name": "Sam", "completed": 4, "revenue": Decimal("55.00")}
    ]


def test_completed_dates(db):
    barber, _, _ = _seed(db)
    assert stats.get_completed_dates(db, barber.id) == [MONDAY, (WEEK_END + timedelta(hours=9)).date()]
    assert stats.get_completed_dates(db, barber.id, end=WEEK_END.date()) == [MONDAY]
