from pydantic import BaseModel, Field
from typing import Optional, Annotated
from datetime import datetime
from decimal import Decimal


class ServiceBase(BaseModel):
    name: str
    description: Optional[str] = None
    price: Annotated[Decimal, Field(ge=0, max_digits=10, decimal_places=2)]
    duration_minutes: Annotated[int, Field(gt=0, le=8 * 60)]


class ServiceCreate(ServiceBase):
    pass


# Price/duration edits only affect future bookings; existing ones keep their snapshot
class ServiceUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Annotated[Decimal, Field(ge=0, max_digits=10, decimal_places=2)]] = None
    duration_minutes: Optional[Annotated[int, Field(gt=0, le=8 * 60)]] = None
    is_active: Optional[bool] = None


class ServiceResponse(ServiceBase):
    id: int
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }
