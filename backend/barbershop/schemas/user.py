from pydantic import BaseModel
from typing import Optional

from ..models.user import UserRole


class UserBase(BaseModel):
    name: str
    email: str
    phone_number: Optional[str] = None


class UserCreate(UserBase):
    role: UserRole = UserRole.USER


class UserResponse(UserBase):
    id: int
    role: UserRole
    is_active: bool

    model_config = {
        "from_attributes": True
    }
