from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class ReviewBase(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=1000)


class ReviewCreate(ReviewBase):
    booking_id: int


class ReviewResponse(ReviewBase):
    id: int
    booking_id: int
    customer_id: int
    barber_id: int
    created_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }
