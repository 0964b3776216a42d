from typing import Any, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import crud
from ..database import get_db
from ..models.user import User
from ..schemas import ServiceCreate, ServiceResponse, ServiceUpdate
from ..utils.errors import NotFound, error_response
from .dependencies import get_current_admin

router = APIRouter()


@router.get("/", response_model=List[ServiceResponse])
def list_services(include_inactive: bool = False, db: Session = Depends(get_db)) -> Any:
    return crud.service.get_services(db, include_inactive=include_inactive)


@router.post("/", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    service_in: ServiceCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
) -> Any:
    try:
        return crud.service.create_service(db, service_in)
    except ValueError as exc:
        raise error_response(str(exc), {"name": "duplicate"}, status.HTTP_409_CONFLICT)


@router.put("/{service_id}", response_model=ServiceResponse)
def update_service(
    service_id: int,
    service_in: ServiceUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
) -> Any:
    db_service = crud.service.get_service(db, service_id)
    if db_service is None:
        raise NotFound(f"Service {service_id} not found")
    try:
        return crud.service.update_service(db, db_service, service_in)
    except ValueError as exc:
        raise error_response(str(exc), {"name": "duplicate"}, status.HTTP_409_CONFLICT)
