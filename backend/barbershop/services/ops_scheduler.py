from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..crud import crud_booking
from ..database import SessionLocal
from ..utils import redis_cache

logger = logging.getLogger(__name__)


def handle_expired_pending(db: Session, now: Optional[datetime] = None) -> dict:
    """Cancel pending bookings nobody confirmed before their start time."""
    cancelled = crud_booking.booking.cancel_expired_pending(db, now=now)
    return {"expired_cancelled": cancelled}


def handle_cache_outbox(db: Session) -> dict:
    """Re-deliver cache invalidations that failed earlier."""
    replayed = redis_cache.replay_invalidations(db)
    return {"cache_invalidations_replayed": replayed}


def run_maintenance(db: Optional[Session] = None, now: Optional[datetime] = None) -> dict:
    """Run all maintenance tasks once and return a summary.

    Without ``db`` each task gets its own short-lived session so a slow task
    does not hold a connection for the whole cycle.
    """
    if db is not None:
        return {**handle_expired_pending(db, now), **handle_cache_outbox(db)}

    with SessionLocal() as session:
        expired = handle_expired_pending(session, now)
    with SessionLocal() as session:
        outbox = handle_cache_outbox(session)
    summary = {**expired, **outbox}
    logger.info("maintenance run complete %s", summary)
    return summary
