from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime

from ..services.availability import validate_schedule
from .service import ServiceResponse


class BarberBase(BaseModel):
    specialty: Optional[str] = None
    experience_years: int = Field(default=0, ge=0)
    description: Optional[str] = None


class BarberCreate(BarberBase):
    """Promote an existing user to barber."""

    user_id: int
    schedule: Optional[Dict[str, Any]] = None
    service_ids: List[int] = []

    @field_validator("schedule")
    @classmethod
    def check_schedule(cls, v):
        return validate_schedule(v) if v is not None else v


class BarberScheduleUpdate(BaseModel):
    schedule: Dict[str, Any]

    @field_validator("schedule")
    @classmethod
    def check_schedule(cls, v):
        return validate_schedule(v)


class FeaturedUpdate(BaseModel):
    featured: bool


class BarberResponse(BarberBase):
    id: int
    user_id: int
    name: Optional[str] = None
    schedule: Dict[str, Any]
    featured: bool
    is_active: bool
    average_rating: float
    total_reviews: int
    services: List[ServiceResponse] = []
    created_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }


class AvailabilityResponse(BaseModel):
    barber_id: int
    date: date
    service_id: Optional[int] = None
    slots: List[datetime]


class CompletedDatesResponse(BaseModel):
    barber_id: int
    dates: List[date]
