from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import models, schemas


class CRUDService:
    def get_service(self, db: Session, service_id: int) -> Optional[models.Service]:
        return db.query(models.Service).filter(models.Service.id == service_id).first()

    def get_services(self, db: Session, include_inactive: bool = False) -> List[models.Service]:
        query = db.query(models.Service)
        if not include_inactive:
            query = query.filter(models.Service.is_active.is_(True))
        return query.order_by(models.Service.name.asc()).all()

    def create_service(self, db: Session, service_in: schemas.ServiceCreate) -> models.Service:
        db_service = models.Service(**service_in.model_dump())
        db.add(db_service)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ValueError(f"A service named {service_in.name!r} already exists")
        db.refresh(db_service)
        return db_service

    def update_service(
        self, db: Session, db_service: models.Service, service_in: schemas.ServiceUpdate
    ) -> models.Service:
        # Bookings keep their own price/duration snapshot
        update_data = service_in.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            setattr(db_service, key, value)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ValueError(f"A service named {service_in.name!r} already exists")
        db.refresh(db_service)
        return db_service


service = CRUDService()
