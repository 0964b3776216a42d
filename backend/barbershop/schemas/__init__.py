from .user import UserBase, UserCreate, UserResponse
from .service import ServiceBase, ServiceCreate, ServiceUpdate, ServiceResponse
from .barber import (
    BarberBase,
    BarberCreate,
    BarberScheduleUpdate,
    FeaturedUpdate,
    BarberResponse,
    AvailabilityResponse,
    CompletedDatesResponse,
)
from .booking import BookingBase, BookingCreate, BookingStatusUpdate, BookingResponse
from .review import ReviewBase, ReviewCreate, ReviewResponse
from .stats import (
    StatusBucket,
    ServiceBucket,
    BarberStats,
    ShopStats,
    DailyReportEntry,
    DailyReport,
)
