"""Quota guard for featured barbers.

At most ``FEATURED_QUOTA`` active barbers may be featured at once. The count
check gives a friendly error; the ``featured_positions`` table (three
possible primary keys, one row per barber) is what actually stops two
concurrent requests from both taking the last spot.
"""

from __future__ import annotations

import logging
import time

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from .. import models
from ..core.config import settings
from ..crud.crud_barber import active_barbers_query
from ..models.featured_position import FEATURED_QUOTA
from ..utils import redis_cache
from ..utils.errors import QuotaExceeded, Unavailable
from .availability import get_active_barber

logger = logging.getLogger(__name__)


def featured_count(db: Session, exclude_barber_id: int | None = None) -> int:
    query = active_barbers_query(db).filter(models.Barber.featured.is_(True))
    if exclude_barber_id is not None:
        query = query.filter(models.Barber.id != exclude_barber_id)
    return query.with_entities(func.count(models.Barber.id)).scalar() or 0


def _release_stale_positions(db: Session) -> None:
    """Drop positions held by barbers that are no longer active."""
    stale = (
        db.query(models.FeaturedPosition)
        .join(models.Barber, models.FeaturedPosition.barber_id == models.Barber.id)
        .join(models.User, models.Barber.user_id == models.User.id)
        .filter((models.Barber.is_active.is_(False)) | (models.User.is_active.is_(False)))
        .all()
    )
    for position in stale:
        logger.info("releasing featured position %s held by inactive barber %s", position.position, position.barber_id)
        position.barber.featured = False
        db.delete(position)
    if stale:
        db.flush()


def _claim_position(db: Session, barber: models.Barber) -> None:
    _release_stale_positions(db)
    taken = {row.position for row in db.query(models.FeaturedPosition.position).all()}
    free = [p for p in range(1, FEATURED_QUOTA + 1) if p not in taken]
    if not free:
        raise QuotaExceeded(
            f"At most {FEATURED_QUOTA} barbers can be featured at the same time",
            {"featured": "quota_exceeded"},
        )
    db.add(models.FeaturedPosition(position=free[0], barber_id=barber.id))
    barber.featured = True


def set_featured(db: Session, barber_id: int, desired: bool) -> models.Barber:
    """Feature or un-feature a barber, enforcing the quota.

    Raises ``NotFound`` for unknown or inactive barbers, ``QuotaExceeded`` when
    the quota is full, and ``Unavailable`` when storage keeps failing.
    """
    attempts = settings.DB_WRITE_RETRIES
    for attempt in range(1, attempts + 1):
        barber = get_active_barber(db, barber_id)
        try:
            if desired:
                if barber.featured and barber.featured_position is not None:
                    return barber
                if featured_count(db, exclude_barber_id=barber.id) >= FEATURED_QUOTA:
                    raise QuotaExceeded(
                        f"At most {FEATURED_QUOTA} barbers can be featured at the same time",
                        {"featured": "quota_exceeded"},
                    )
                _claim_position(db, barber)
            else:
                if not barber.featured and barber.featured_position is None:
                    return barber
                barber.featured_position = None
                barber.featured = False
            db.commit()
            break
        except IntegrityError:
            # Someone claimed the same position first; re-read and re-check
            db.rollback()
            db.expire_all()
            logger.info("featured position race for barber %s, retrying", barber_id)
        except OperationalError as exc:
            db.rollback()
            logger.warning(
                "set_featured failed barber=%s attempt=%s/%s err=%s", barber_id, attempt, attempts, exc
            )
            if attempt == attempts:
                raise Unavailable("Featured barber storage is temporarily unavailable")
            time.sleep(settings.DB_RETRY_BACKOFF_SECONDS * attempt)
        except QuotaExceeded:
            db.rollback()
            raise
    else:
        raise QuotaExceeded(
            f"At most {FEATURED_QUOTA} barbers can be featured at the same time",
            {"featured": "quota_exceeded"},
        )

    db.refresh(barber)
    logger.info("barber id=%s featured=%s", barber.id, barber.featured)
    redis_cache.invalidate_tags(db, [redis_cache.BARBERS_TAG])
    return barber
