from sqlalchemy import Column, Integer, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel

FEATURED_QUOTA = 3


class FeaturedPosition(BaseModel):
    __tablename__ = "featured_positions"
    __table_args__ = (
        CheckConstraint(
            f"position >= 1 AND position <= {FEATURED_QUOTA}",
            name="ck_featured_position_range",
        ),
    )

    position = Column(Integer, primary_key=True, autoincrement=False)
    barber_id = Column(
        Integer, ForeignKey("barbers.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    barber = relationship("Barber", back_populates="featured_position")
