#!/usr/bin/env python3
"""
Outbox worker: replays cache invalidations that could not reach Redis.

Environment:
  - SQLALCHEMY_DATABASE_URL (from app config)
  - REDIS_URL (same as the API's cache)
  - OUTBOX_POLL_INTERVAL_MS (default 1000)
  - OUTBOX_MAX_BATCH (default 200)

Replaying a tag twice is harmless, so this can run alongside API instances
and the in-process maintenance loop.
"""
from __future__ import annotations

import logging
import os
import sys
import time

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", "backend")))

from sqlalchemy import func  # noqa: E402

from barbershop.core.observability import setup_logging  # noqa: E402
from barbershop.database import get_db_session  # noqa: E402
from barbershop.models import CacheInvalidation  # noqa: E402
from barbershop.utils import redis_cache  # noqa: E402

logger = logging.getLogger("outbox_worker")


def run_once(max_batch: int = 200) -> int:
    with get_db_session() as db:
        return redis_cache.replay_invalidations(db, limit=max_batch)


def pending_count() -> int:
    with get_db_session() as db:
        return (
            db.query(func.count(CacheInvalidation.id))
            .filter(CacheInvalidation.delivered_at.is_(None))
            .scalar()
            or 0
        )


def main() -> None:
    setup_logging()
    interval_ms = int(os.getenv("OUTBOX_POLL_INTERVAL_MS") or 1000)
    max_batch = int(os.getenv("OUTBOX_MAX_BATCH") or 200)
    last_lag_log = 0.0
    while True:
        try:
            delivered = run_once(max_batch=max_batch)
            if delivered:
                logger.info("outbox_delivered count=%s", delivered)
        except Exception:  # pragma: no cover - keep polling
            logger.exception("outbox replay failed")
        now = time.monotonic()
        if now - last_lag_log >= 10.0:
            try:
                logger.info("outbox_lag count=%s", pending_count())
            except Exception:  # pragma: no cover
                logger.exception("outbox lag query failed")
            last_lag_log = now
        time.sleep(interval_ms / 1000.0)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
