from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session, joinedload

from ..database import get_db
from ..models.user import User, UserRole
from ..services.booking_lifecycle import Actor
from ..utils.errors import Forbidden


def get_current_user(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the caller from the ``X-User-Id`` header set by the gateway."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing or unknown X-User-Id header",
    )
    if not x_user_id or not x_user_id.strip().isdigit():
        raise credentials_exception
    user = (
        db.query(User)
        .options(joinedload(User.barber_profile))
        .filter(User.id == int(x_user_id.strip()))
        .first()
    )
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise Forbidden("Inactive user", {"user_id": "inactive"})
    return user


def get_current_actor(current_user: User = Depends(get_current_user)) -> Actor:
    return Actor.from_user(current_user)


def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.ADMIN:
        raise Forbidden("Admin privileges required.", {"role": "admin_required"})
    return current_user
