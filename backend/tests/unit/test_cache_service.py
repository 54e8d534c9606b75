from datetime import date, datetime, timedelta
from unittest.mock import Mock

from redis.exceptions import RedisError

from lounge.services.cache_service import (
    CacheKeyBuilder,
    CacheNamespace,
    CacheService,
    CircuitBreaker,
    CircuitState,
)


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


class TestCacheKeyBuilder:
    def test_builds_namespaced_keys(self) -> None:
        key = CacheKeyBuilder.build(CacheNamespace.TIME_SLOTS, date(2030, 1, 14), 60, None)

        assert key == "lounge:slots:2030-01-14:60"

    def test_namespace_prefix(self) -> None:
        assert CacheKeyBuilder.namespace_prefix(CacheNamespace.TODAY_BOOKINGS) == "lounge:today:"


class TestMemoryCache:
    def test_default_ttls_per_namespace(self) -> None:
        cache = CacheService()

        assert cache.ttl_for(CacheNamespace.STATIONS) == 300
        assert cache.ttl_for(CacheNamespace.TIME_SLOTS) == 300
        assert cache.ttl_for(CacheNamespace.TODAY_BOOKINGS) == 60

    def test_get_returns_value_and_write_time(self) -> None:
        clock = FakeClock(datetime(2030, 1, 14, 12))
        cache = CacheService(clock=clock)

        cache.set("lounge:slots:a", [1, 2], ttl=300)
        entry = cache.get("lounge:slots:a")

        assert entry is not None
        assert entry.value == [1, 2]
        assert entry.stored_at == clock.now

    def test_entries_expire_after_ttl(self) -> None:
        clock = FakeClock(datetime(2030, 1, 14, 12))
        cache = CacheService(clock=clock)
        cache.set("lounge:today:x", {"a": 1}, ttl=60)

        clock.advance(59)
        assert cache.get("lounge:today:x") is not None

        clock.advance(1)
        assert cache.get("lounge:today:x") is None

    def test_namespace_ttl_used_when_not_given(self) -> None:
        clock = FakeClock(datetime(2030, 1, 14, 12))
        cache = CacheService(clock=clock)
        cache.set(cache.key(CacheNamespace.TODAY_BOOKINGS, date(2030, 1, 14)), [])

        clock.advance(61)
        assert cache.get(cache.key(CacheNamespace.TODAY_BOOKINGS, date(2030, 1, 14))) is None

    def test_writes_always_refresh(self) -> None:
        cache = CacheService()
        cache.set("lounge:stations:all", ["old"], ttl=300)
        cache.set("lounge:stations:all", ["new"], ttl=300)

        assert cache.get("lounge:stations:all").value == ["new"]

    def test_delete_prefix_and_clear(self) -> None:
        cache = CacheService()
        cache.set("lounge:slots:2030-01-14:60", [], ttl=300)
        cache.set("lounge:slots:2030-01-14:90", [], ttl=300)
        cache.set("lounge:slots:2030-01-15:60", [], ttl=300)
        cache.set("lounge:today:2030-01-14", [], ttl=60)

        assert cache.delete_prefix("lounge:slots:2030-01-14:") == 2
        assert cache.get("lounge:slots:2030-01-15:60") is not None

        assert cache.delete_namespace(CacheNamespace.TODAY_BOOKINGS) == 1
        cache.clear()
        assert cache.get("lounge:slots:2030-01-15:60") is None

    def test_stats_track_hits_and_misses(self) -> None:
        cache = CacheService()
        cache.set("lounge:stations:all", [], ttl=300)
        cache.get("lounge:stations:all")
        cache.get("lounge:stations:missing")

        stats = cache.get_stats()

        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["backend"] == "memory"
        assert stats["hit_rate"] == "50.00%"


class TestRedisBackend:
    def test_values_round_trip_through_json(self) -> None:
        store = {}
        redis_client = Mock()
        redis_client.setex.side_effect = lambda key, ttl, payload: store.__setitem__(key, payload)
        redis_client.get.side_effect = store.get
        cache = CacheService(redis_client=redis_client)

        cache.set("lounge:slots:k", [{"start_time": "11:00:00"}], ttl=300)
        entry = cache.get("lounge:slots:k")

        redis_client.setex.assert_called_once()
        assert redis_client.setex.call_args.args[1] == 300
        assert entry.value == [{"start_time": "11:00:00"}]
        assert isinstance(entry.stored_at, datetime)

    def test_redis_errors_degrade_to_memory(self) -> None:
        redis_client = Mock()
        redis_client.setex.side_effect = RedisError("down")
        redis_client.get.side_effect = RedisError("down")
        cache = CacheService(redis_client=redis_client)

        assert cache.set("lounge:slots:k", [1], ttl=300) is True
        entry = cache.get("lounge:slots:k")

        assert entry is not None and entry.value == [1]
        assert cache.get_stats()["errors"] == 2


class TestCircuitBreaker:
    def test_opens_after_threshold_and_recovers(self) -> None:
        clock = FakeClock(datetime(2030, 1, 14, 12))
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60, clock=clock)
        def failing() -> None:
            raise RedisError("down")


        for _ in range(2):
            try:
                breaker.call(failing)
            except RedisError:
                pass

        assert breaker.state == CircuitState.OPEN

        clock.advance(60)
        assert breaker.state == CircuitState.HALF_OPEN

        assert breaker.call(lambda: "ok") == "ok"
        assert breaker.state == CircuitState.CLOSED
