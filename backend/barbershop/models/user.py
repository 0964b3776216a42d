from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship
import enum

from .base import BaseModel
from .types import CaseInsensitiveEnum


class UserRole(str, enum.Enum):
    USER = "user"
    BARBER = "barber"
    ADMIN = "admin"


class User(BaseModel):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone_number = Column(String, nullable=True)
    role = Column(
        CaseInsensitiveEnum(UserRole, name="userrole"),
        nullable=False,
        default=UserRole.USER,
    )
    is_active = Column(Boolean, default=True, nullable=False)

    barber_profile = relationship("Barber", back_populates="user", uselist=False)
    bookings_as_customer = relationship(
        "Booking", foreign_keys="Booking.customer_id", back_populates="customer"
    )
    reviews = relationship("Review", back_populates="customer")
