import enum


class BookingStatus(str, enum.Enum):
    """Lifecycle states of a booking."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


# Bookings in these states hold their time slot; terminal ones are history.
LIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
)


class CancelledBy(str, enum.Enum):
    USER = "user"
    BARBER = "barber"
    ADMIN = "admin"
    SYSTEM = "system"
