from datetime import date, datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from ..schemas import DailyReport, ShopStats
from ..services import stats
from ..services.availability import to_shop_time
from ..utils.errors import error_response
from .dependencies import get_current_admin

router = APIRouter()


@router.get("/daily", response_model=DailyReport)
def daily_report(
    day: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
) -> Any:
    return stats.get_daily_report(db, day)


@router.get("/summary", response_model=ShopStats)
def shop_summary(
    start: datetime = Query(...),
    end: datetime = Query(...),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
) -> Any:
    try:
        return stats.get_shop_stats(db, to_shop_time(start), to_shop_time(end))
    except ValueError as exc:
        raise error_response(str(exc), {"end": "before_start"}, status.HTTP_400_BAD_REQUEST)
