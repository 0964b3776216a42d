"""Read-through Redis cache with tag-based invalidation.

Each cached key is recorded in a Redis set per tag (``tag:{name}``);
invalidating a tag bumps its generation counter (``gen:{name}``) and deletes
every key in its set. Readers snapshot the generation before querying the
database and only store their result if no invalidation ran in between.
Invalidations that keep failing are parked in the ``cache_invalidations``
outbox and replayed by the maintenance job.
"""

import logging
import os
import random
import time
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

import redis
from sqlalchemy.orm import Session

from barbershop.core.config import settings
from barbershop.models import CacheInvalidation
from barbershop.models.base import utc_now
from .json_utils import dumps, loads

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None

BARBERS_TAG = "barbers"
BARBER_LIST_KEY_PREFIX = "barbers:list"
AVAILABILITY_KEY_PREFIX = "availability"
TAG_KEY_PREFIX = "tag"
GENERATION_KEY_PREFIX = "gen"


class _NullRedis:
    """No-op Redis client used when Redis is disabled.

    Methods mirror the minimal surface used in this module so callers can
    proceed without needing try/except around get_redis_client().
    """

    def get(self, key: str):
        return None

    def setex(self, key: str, expire: int, value: str):
        return None

    def sadd(self, key: str, *members: str):
        return 0

    def smembers(self, key: str):
        return set()

    def delete(self, *keys: str):
        return 0

    def incr(self, key: str):
        return 0

    def mget(self, keys):
        return [None] * len(keys)

    def close(self):
        return None


def get_redis_client() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        url = (getattr(settings, "REDIS_URL", "") or "").strip()
        # Allow disabling via empty/none/disabled/false
        if not url or url.lower() in {"none", "disabled", "false", "0"}:
            _redis_client = _NullRedis()  # type: ignore[assignment]
            return _redis_client
        conn_to = float(os.getenv("REDIS_CONNECT_TIMEOUT") or 0.5)
        read_to = float(os.getenv("REDIS_SOCKET_TIMEOUT") or 0.5)
        _redis_client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=conn_to,
            socket_timeout=read_to,
        )
    return _redis_client


def _apply_jitter(expire: int) -> int:
    """Return a TTL with a small random jitter to prevent cache stampedes."""
    return expire + random.randint(0, max(1, expire // 10))


def _tag_key(tag: str) -> str:
    return f"{TAG_KEY_PREFIX}:{tag}"


def _generation_key(tag: str) -> str:
    return f"{GENERATION_KEY_PREFIX}:{tag}"


def availability_tag(barber_id: int) -> str:
    return f"{AVAILABILITY_KEY_PREFIX}:{barber_id}"


# ─── GENERIC TAGGED CACHE ──────────────────────────────────────────────────────
def tag_generations(tags: Iterable[str]) -> Optional[Dict[str, int]]:
    """Snapshot the generation of each tag; ``None`` when Redis is unreachable.

    Take the snapshot before reading the database and hand it to
    ``cache_set`` so a result read before an invalidation is never stored.
    """
    tags = list(dict.fromkeys(tags))
    client = get_redis_client()
    try:
        values = client.mget([_generation_key(tag) for tag in tags]) if tags else []
    except redis.exceptions.RedisError as exc:
        logger.warning("Could not read cache generations: %s", exc)
        return None
    return {tag: int(value or 0) for tag, value in zip(tags, values)}


def _write_if_current(client, key: str, payload: str, expire: int, tags: List[str], generation: Dict[str, int]) -> bool:
    gen_keys = [_generation_key(tag) for tag in tags]
    with client.pipeline() as pipe:
        try:
            if gen_keys:
                pipe.watch(*gen_keys)
                current = [int(value or 0) for value in pipe.mget(gen_keys)]
                if current != [generation.get(tag, 0) for tag in tags]:
                    logger.info("Skipped caching %s: invalidated while loading", key)
                    return False
            pipe.multi()
            pipe.setex(key, expire, payload)
            for tag in tags:
                pipe.sadd(_tag_key(tag), key)
            pipe.execute()
        except redis.exceptions.WatchError:
            logger.info("Skipped caching %s: invalidated while storing", key)
            return False
    return True


def cache_set(
    key: str,
    value: Any,
    expire: int,
    tags: Iterable[str] = (),
    generation: Optional[Dict[str, int]] = None,
) -> bool:
    """Store ``value`` as JSON under ``key`` and register it with each tag.

    With a ``generation`` snapshot from ``tag_generations`` the write is
    dropped if any tag was invalidated since the snapshot. Returns whether
    the value was stored.
    """
    client = get_redis_client()
    if isinstance(client, _NullRedis):
        return False
    tags = list(dict.fromkeys(tags))
    try:
        if generation is not None:
            return _write_if_current(client, key, dumps(value), _apply_jitter(expire), tags, generation)
        client.setex(key, _apply_jitter(expire), dumps(value))
        for tag in tags:
            client.sadd(_tag_key(tag), key)
    except redis.exceptions.RedisError as exc:
        logger.warning("Could not cache %s: %s", key, exc)
        return False
    return True


def cache_get(key: str) -> Any:
    client = get_redis_client()
    try:
        data = client.get(key)
    except redis.exceptions.RedisError as exc:
        logger.warning("Redis unavailable: %s", exc)
        return None
    if not data:
        return None
    try:
        return loads(data)
    except ValueError as exc:
        # A corrupt entry is treated as a miss
        logger.warning("Could not decode cache entry %s: %s", key, exc)
        return None


def invalidate_tag(tag: str) -> int:
    """Delete every key registered under ``tag``.

    Raises ``redis.exceptions.RedisError`` so callers can retry or park the
    invalidation in the outbox.
    """
    client = get_redis_client()
    tag_key = _tag_key(tag)
    # Bump first so a reader that loaded before this point cannot store
    client.incr(_generation_key(tag))
    keys = list(client.smembers(tag_key) or ())
    deleted = 0
    if keys:
        deleted = client.delete(*keys) or 0
    client.delete(tag_key)
    return int(deleted)


def enqueue_invalidation(db: Session, tag: str, error: Optional[str] = None) -> CacheInvalidation:
    row = CacheInvalidation(tag=tag, attempt_count=1, last_error=error)
    db.add(row)
    db.commit()
    logger.warning("cache_invalidation_parked tag=%s id=%s err=%s", tag, row.id, error)
    return row


def invalidate_tags(db: Session, tags: Iterable[str]) -> bool:
    """Invalidate ``tags`` with bounded retries, parking failures in the outbox.

    Returns ``True`` when every tag was delivered immediately.
    """
    attempts = settings.CACHE_INVALIDATION_RETRIES
    delivered_all = True
    for tag in dict.fromkeys(tags):
        last_error: Optional[str] = None
        for attempt in range(1, attempts + 1):
            try:
                invalidate_tag(tag)
                last_error = None
                break
            except redis.exceptions.RedisError as exc:
                last_error = str(exc)
                logger.warning(
                    "cache invalidation failed tag=%s attempt=%s/%s err=%s",
                    tag,
                    attempt,
                    attempts,
                    exc,
                )
                if attempt < attempts:
                    time.sleep(settings.DB_RETRY_BACKOFF_SECONDS * attempt)
        if last_error is not None:
            delivered_all = False
            enqueue_invalidation(db, tag, last_error)
    return delivered_all


def replay_invalidations(db: Session, limit: int = 100) -> int:
    """Re-deliver parked invalidations. Returns the number delivered."""
    rows: List[CacheInvalidation] = (
        db.query(CacheInvalidation)
        .filter(CacheInvalidation.delivered_at.is_(None))
        .order_by(CacheInvalidation.id.asc())
        .limit(limit)
        .all()
    )
    delivered = 0
    for row in rows:
        row.attempt_count = (row.attempt_count or 0) + 1
        try:
            invalidate_tag(row.tag)
        except redis.exceptions.RedisError as exc:
            row.last_error = str(exc)
            logger.warning("cache outbox replay failed id=%s tag=%s err=%s", row.id, row.tag, exc)
            continue
        row.delivered_at = utc_now()
        row.last_error = None
        delivered += 1
    if rows:
        db.commit()
    return delivered


# ─── BARBER LIST CACHE ─────────────────────────────────────────────────────────
def _barber_list_key(featured_only: bool) -> str:
    return f"{BARBER_LIST_KEY_PREFIX}:{'featured' if featured_only else 'all'}"


def get_cached_barber_list(featured_only: bool = False) -> Optional[list]:
    return cache_get(_barber_list_key(featured_only))


def barber_list_generation() -> Optional[Dict[str, int]]:
    return tag_generations((BARBERS_TAG,))


def cache_barber_list(
    data: list,
    featured_only: bool = False,
    expire: Optional[int] = None,
    generation: Optional[Dict[str, int]] = None,
) -> bool:
    return cache_set(
        _barber_list_key(featured_only),
        data,
        expire or settings.BARBER_LIST_CACHE_TTL,
        tags=(BARBERS_TAG,),
        generation=generation,
    )


# ─── AVAILABILITY CACHE ────────────────────────────────────────────────────────
def _availability_key(barber_id: int, when: date, duration_minutes: Optional[int]) -> str:
    return f"{AVAILABILITY_KEY_PREFIX}:{barber_id}:{when.isoformat()}:{duration_minutes or 0}"


def get_cached_availability(
    barber_id: int, when: date, duration_minutes: Optional[int] = None
) -> Optional[List[datetime]]:
    data = cache_get(_availability_key(barber_id, when, duration_minutes))
    if data is None:
        return None
    try:
        return [datetime.fromisoformat(item) for item in data]
    except (TypeError, ValueError) as exc:
        logger.warning("Could not decode availability cache for barber %s: %s", barber_id, exc)
        return None


def availability_generation(barber_id: int) -> Optional[Dict[str, int]]:
    return tag_generations((availability_tag(barber_id),))


def cache_availability(
    barber_id: int,
    when: date,
    slots: List[datetime],
    duration_minutes: Optional[int] = None,
    expire: Optional[int] = None,
    generation: Optional[Dict[str, int]] = None,
) -> bool:
    return cache_set(
        _availability_key(barber_id, when, duration_minutes),
        [s.isoformat() for s in slots],
        expire or settings.AVAILABILITY_CACHE_TTL,
        tags=(availability_tag(barber_id),),
        generation=generation,
    )


def close_redis_client() -> None:
    """Close the global Redis client if it exists."""
    global _redis_client
    if _redis_client is not None:
        try:
            _redis_client.close()
        except redis.exceptions.RedisError as exc:  # pragma: no cover - best effort
            logger.warning("Error closing Redis client: %s", exc)
        _redis_client = None
