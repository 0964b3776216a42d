import logging
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import models, schemas
from ..models.user import UserRole
from ..utils import redis_cache
from ..utils.errors import NotFound

logger = logging.getLogger(__name__)


def active_barbers_query(db: Session):
    """Barbers whose profile and user account are both active."""
    return (
        db.query(models.Barber)
        .join(models.User, models.Barber.user_id == models.User.id)
        .filter(models.Barber.is_active.is_(True), models.User.is_active.is_(True))
    )


class CRUDBarber:
    def get_barber(self, db: Session, barber_id: int) -> Optional[models.Barber]:
        return db.query(models.Barber).filter(models.Barber.id == barber_id).first()

    def get_barber_by_user(self, db: Session, user_id: int) -> Optional[models.Barber]:
        return db.query(models.Barber).filter(models.Barber.user_id == user_id).first()

    def list_active(self, db: Session, featured_only: bool = False) -> List[models.Barber]:
        query = active_barbers_query(db)
        if featured_only:
            query = query.filter(models.Barber.featured.is_(True))
        return query.order_by(
            models.Barber.featured.desc(),
            models.Barber.average_rating.desc(),
            models.Barber.id.asc(),
        ).all()

    def _load_services(self, db: Session, service_ids: List[int]) -> List[models.Service]:
        if not service_ids:
            return []
        services = (
            db.query(models.Service).filter(models.Service.id.in_(service_ids)).all()
        )
        missing = set(service_ids) - {s.id for s in services}
        if missing:
            raise NotFound(f"Unknown service id(s): {', '.join(str(i) for i in sorted(missing))}")
        return services

    def promote(self, db: Session, barber_in: schemas.BarberCreate) -> models.Barber:
        """Turn an existing user into a barber, reactivating an old profile if any."""
        user = (
            db.query(models.User)
            .filter(models.User.id == barber_in.user_id, models.User.is_active.is_(True))
            .first()
        )
        if user is None:
            raise NotFound(f"User {barber_in.user_id} not found")
        db_barber = self.get_barber_by_user(db, user.id)
        if db_barber is not None and db_barber.is_active:
            raise ValueError(f"User {user.id} is already a barber")
        if db_barber is None:
            db_barber = models.Barber(user_id=user.id)
            db.add(db_barber)
        db_barber.specialty = barber_in.specialty
        db_barber.experience_years = barber_in.experience_years
        db_barber.description = barber_in.description
        if barber_in.schedule is not None:
            db_barber.schedule = barber_in.schedule
        elif db_barber.schedule is None:
            db_barber.schedule = models.default_schedule()
        db_barber.services = self._load_services(db, barber_in.service_ids)
        db_barber.is_active = True
        if user.role != UserRole.ADMIN:
            user.role = UserRole.BARBER
        db.commit()
        db.refresh(db_barber)
        logger.info("user id=%s promoted to barber id=%s", user.id, db_barber.id)
        redis_cache.invalidate_tags(db, [redis_cache.BARBERS_TAG])
        return db_barber

    def update_schedule(self, db: Session, db_barber: models.Barber, schedule: dict) -> models.Barber:
        db_barber.schedule = schedule
        db.commit()
        db.refresh(db_barber)
        redis_cache.invalidate_tags(
            db, [redis_cache.BARBERS_TAG, redis_cache.availability_tag(db_barber.id)]
        )
        return db_barber

    def deactivate(self, db: Session, db_barber: models.Barber) -> models.Barber:
        """Soft-delete a barber; a featured spot is released in the same commit."""
        db_barber.is_active = False
        db_barber.featured = False
        db_barber.featured_position = None
        db.commit()
        db.refresh(db_barber)
        logger.info("barber id=%s deactivated", db_barber.id)
        redis_cache.invalidate_tags(
            db, [redis_cache.BARBERS_TAG, redis_cache.availability_tag(db_barber.id)]
        )
        return db_barber


barber = CRUDBarber()
