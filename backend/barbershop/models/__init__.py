from .user import User, UserRole
from .barber import Barber, barber_services, default_schedule
from .service import Service
from .booking import Booking
from .booking_status import BookingStatus, CancelledBy, LIVE_STATUSES, TERMINAL_STATUSES
from .booking_slot import BookingSlot
from .featured_position import FeaturedPosition, FEATURED_QUOTA
from .review import Review
from .cache_invalidation import CacheInvalidation

__all__ = [
    "User",
    "UserRole",
    "Barber",
    "barber_services",
    "default_schedule",
    "Service",
    "Booking",
    "BookingStatus",
    "CancelledBy",
    "LIVE_STATUSES",
    "TERMINAL_STATUSES",
    "BookingSlot",
    "FeaturedPosition",
    "FEATURED_QUOTA",
    "Review",
    "CacheInvalidation",
]
