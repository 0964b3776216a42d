from datetime import datetime

import redis

from barbershop import models
from barbershop.utils import redis_cache
from factories import MONDAY, at


class FlakyRedis:
    """Wraps a fake client and fails the first ``failures`` tag reads."""

    def __init__(self, inner, failures):
        self.inner = inner
        self.failures = failures

    def smembers(self, key):
        if self.failures > 0:
            self.failures -= 1
            raise redis.exceptions.ConnectionError("redis down")
        return self.inner.smembers(key)

    def __getattr__(self, name):
        return getattr(self.inner, name)


def test_cache_set_and_get(fake_redis):
    redis_cache.cache_set("k", {"a": 1}, expire=10, tags=("t",))
    assert redis_cache.cache_get("k") == {"a": 1}
    assert redis_cache.cache_get("missing") is None


def test_invalidate_tag_removes_only_tagged_keys(fake_redis):
    redis_cache.cache_set("a", 1, expire=10, tags=("one",))
    redis_cache.cache_set("b", 2, expire=10, tags=("one", "two"))
    redis_cache.cache_set("c", 3, expire=10, tags=("two",))

    assert redis_cache.invalidate_tag("one") == 2

    assert redis_cache.cache_get("a") is None
    assert redis_cache.cache_get("b") is None
    assert redis_cache.cache_get("c") == 3


def test_corrupt_entry_is_a_miss(fake_redis):
    fake_redis.set("broken", "{not json")
    assert redis_cache.cache_get("broken") is None


def test_barber_list_cache_is_tagged(fake_redis):
    data = [{"id": 1, "name": "Sam"}]
    redis_cache.cache_barber_list(data, expire=10)
    assert redis_cache.get_cached_barber_list() == data
    assert redis_cache.get_cached_barber_list(featured_only=True) is None

    redis_cache.invalidate_tag(redis_cache.BARBERS_TAG)
    assert redis_cache.get_cached_barber_list() is None


def test_availability_cache_keeps_datetimes_and_duration_apart(fake_redis):
    slots = [at(9, 0), at(9, 30)]
    redis_cache.cache_availability(7, MONDAY, slots, duration_minutes=30)

    assert redis_cache.get_cached_availability(7, MONDAY, 30) == slots
    assert redis_cache.get_cached_availability(7, MONDAY) is None
    assert isinstance(redis_cache.get_cached_availability(7, MONDAY, 30)[0], datetime)

    redis_cache.invalidate_tag(redis_cache.availability_tag(7))
    assert redis_cache.get_cached_availability(7, MONDAY, 30) is None


def test_transient_failure_is_retried(db, fake_redis, monkeypatch):
    flaky = FlakyRedis(fake_redis, failures=1)
    monkeypatch.setattr(redis_cache, "get_redis_client", lambda: flaky)
    redis_cache.cache_set("a", 1, expire=10, tags=("barbers",))

    assert redis_cache.invalidate_tags(db, ["barbers"]) is True
    assert redis_cache.cache_get("a") is None
    assert db.query(models.CacheInvalidation).count() == 0


def test_persistent_failure_goes_to_outbox_and_is_replayed(db, fake_redis, monkeypatch):
    flaky = FlakyRedis(fake_redis, failures=100)
    monkeypatch.setattr(redis_cache, "get_redis_client", lambda: flaky)
    redis_cache.cache_set("a", 1, expire=10, tags=("barbers",))

    assert redis_cache.invalidate_tags(db, ["barbers"]) is False

    row = db.query(models.CacheInvalidation).one()
    assert row.tag == "barbers"
    assert row.delivered_at is None
    assert "redis down" in row.last_error
    assert redis_cache.cache_get("a") == 1

    # Still failing: stays parked
    assert redis_cache.replay_invalidations(db) == 0
    db.refresh(row)
    assert row.delivered_at is None
    assert row.attempt_count == 2

    flaky.failures = 0
    assert redis_cache.replay_invalidations(db) == 1
    db.refresh(row)
    assert row.delivered_at is not None
    assert redis_cache.cache_get("a") is None
    assert redis_cache.replay_invalidations(db) == 0


def test_disabled_redis_is_a_no_op(monkeypatch):
    client = redis_cache._NullRedis()
    monkeypatch.setattr(redis_cache, "get_redis_client", lambda: client)

    redis_cache.cache_set("k", 1, expire=10, tags=("t",))
    assert redis_cache.cache_get("k") is None
    assert redis_cache.invalidate_tag("t") == 0


def test_write_is_dropped_after_invalidation_since_snapshot(fake_redis):
    generation = redis_cache.tag_generations(("barbers",))
    assert generation == {"barbers": 0}

    redis_cache.invalidate_tag("barbers")

    assert redis_cache.cache_set("a", 1, expire=10, tags=("barbers",), generation=generation) is False
    assert redis_cache.cache_get("a") is None
    assert redis_cache.tag_generations(("barbers",)) == {"barbers": 1}


def test_write_with_current_snapshot_is_stored_and_tagged(fake_redis):
    redis_cache.invalidate_tag("barbers")
    generation = redis_cache.tag_generations(("barbers",))

    assert redis_cache.cache_set("a", 1, expire=10, tags=("barbers",), generation=generation) is True
    assert redis_cache.cache_get("a") == 1

    redis_cache.invalidate_tag("barbers")
    assert redis_cache.cache_get("a") is None


def test_other_tags_do_not_block_a_write(fake_redis):
    generation = redis_cache.availability_generation(1)
    redis_cache.invalidate_tag(redis_cache.availability_tag(2))

    assert redis_cache.cache_availability(1, MONDAY, [at(9, 0)], generation=generation) is True
    assert redis_cache.get_cached_availability(1, MONDAY) == [at(9, 0)]


def test_unreachable_redis_gives_no_snapshot(monkeypatch):
    class DownRedis:
        def mget(self, keys):
            raise redis.exceptions.ConnectionError("redis down")

    monkeypatch.setattr(redis_cache, "get_redis_client", lambda: DownRedis())
    assert redis_cache.barber_list_generation() is None
