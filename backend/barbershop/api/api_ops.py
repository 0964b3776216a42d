from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from ..services.ops_scheduler import run_maintenance
from .dependencies import get_current_admin

router = APIRouter(tags=["ops"])


@router.post("/ops/scheduler/tick", status_code=status.HTTP_202_ACCEPTED)
def ops_tick(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    """Run maintenance tasks once and return a summary (admin only).

    Useful for manual testing or external cron when the background loop is disabled.
    """
    summary = run_maintenance(db)
    return {"status": "ok", **summary}
