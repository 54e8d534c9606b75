# backend/lounge/services/cache_service.py
"""
Cache Service for the lounge booking engine.

Three namespaces with their own TTLs:
- stations: bookable station list
- slots: resolved time slots per (date, duration[, station type])
- today: today's bookings for the staff view

Values must be JSON-serializable. Redis is used when configured, behind a
circuit breaker; otherwise (or while the circuit is open) an in-process
memory store serves the same interface.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
import json
import logging
import threading
from typing import Any, Callable, Dict, Optional, TypeVar, Union

import redis
from redis import Redis
from redis.exceptions import RedisError

from ..core.config import settings
from ..monitoring.prometheus_metrics import prometheus_metrics
from .base import BaseService

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject calls
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitOpen(Exception):
    """Raised by CircuitBreaker.call while the circuit rejects calls."""


class CircuitBreaker:
    """
    Circuit breaker for the Redis backend.

    After failure_threshold consecutive failures the circuit opens and calls
    are rejected until recovery_timeout seconds have passed.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        expected_exception: type[BaseException] = RedisError,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self._clock = clock

        self._failure_count: int = 0
        self._last_failure_time: Optional[datetime] = None
        self._state: CircuitState = CircuitState.CLOSED
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        with self._lock:
            if self._state == CircuitState.OPEN and self._last_failure_time:
                elapsed = (self._clock() - self._last_failure_time).total_seconds()
                if elapsed >= self.recovery_timeout:
                    self._state = CircuitState.HALF_OPEN
            return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Execute func with circuit breaker protection.

        Raises:
            CircuitOpen: the circuit is open
            expected_exception: func failed
        """
        if self.state == CircuitState.OPEN:
            name = getattr(func, "__name__", "call")
            raise CircuitOpen(f"Circuit breaker is OPEN, skipping {name}")

        try:
            result = func(*args, **kwargs)
        except self.expected_exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def _on_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                logger.info("Circuit breaker recovered, closing circuit")

    def _on_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()

            if self._failure_count >= self.failure_threshold:
                if self._state != CircuitState.OPEN:
                    logger.warning(f"Circuit breaker opened after {self._failure_count} failures")
                self._state = CircuitState.OPEN


class CacheNamespace(str, Enum):
    STATIONS = "stations"
    TIME_SLOTS = "slots"
    TODAY_BOOKINGS = "today"


class CacheKeyBuilder:
    """Standardized cache key generation."""

    ROOT = "lounge"

    @staticmethod
    def build(namespace: Union[CacheNamespace, str], *parts: Union[str, int, date, time]) -> str:
        """
        Build a cache key from parts.

        Examples:
            build(CacheNamespace.TIME_SLOTS, date(2024, 3, 9), 60) -> 'lounge:slots:2024-03-09:60'
        """
        ns = namespace.value if isinstance(namespace, CacheNamespace) else namespace
        formatted = [CacheKeyBuilder.ROOT, ns]
        for part in parts:
            if part is None:
                continue
            if isinstance(part, (date, datetime, time)):
                formatted.append(part.isoformat())
            elif isinstance(part, Enum):
                formatted.append(str(part.value))
            else:
                formatted.append(str(part))
        return ":".join(formatted)

    @staticmethod
    def namespace_prefix(namespace: Union[CacheNamespace, str]) -> str:
        ns = namespace.value if isinstance(namespace, CacheNamespace) else namespace
        return f"{CacheKeyBuilder.ROOT}:{ns}:"


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and the time it was written."""

    value: Any
    stored_at: datetime

    def age_seconds(self, now: datetime) -> float:
        return (now - self.stored_at).total_seconds()


class CacheService(BaseService):
    """
    Key/value cache shared by the booking services.

    Constructed once per process (or per test) and passed explicitly to the
    services that need it.
    """

    def __init__(
        self,
        redis_client: Optional[Redis] = None,
        ttls: Optional[Dict[CacheNamespace, int]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(db=None)
        self.logger = logging.getLogger(__name__)
        self.redis: Optional[Redis] = redis_client
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=5, recovery_timeout=60, expected_exception=RedisError
        )
        self.key_builder = CacheKeyBuilder()
        self._clock = clock

        self.ttls: Dict[CacheNamespace, int] = {
            CacheNamespace.STATIONS: settings.stations_cache_ttl_seconds,
            CacheNamespace.TIME_SLOTS: settings.time_slots_cache_ttl_seconds,
            CacheNamespace.TODAY_BOOKINGS: settings.today_bookings_cache_ttl_seconds,
        }
        if ttls:
            self.ttls.update(ttls)

        # In-memory store: key -> (entry, expires_at)
        self._memory: Dict[str, tuple[CacheEntry, datetime]] = {}
        self._memory_lock = threading.Lock()

        self._stats: Dict[str, int] = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "deletes": 0,
            "errors": 0,
        }

    @property
    def backend(self) -> str:
        if self.redis is not None and self.circuit_breaker.state != CircuitState.OPEN:
            return "redis"
        return "memory"

    def ttl_for(self, namespace: CacheNamespace) -> int:
        return self.ttls[namespace]

    def key(self, namespace: CacheNamespace, *parts: Any) -> str:
        return self.key_builder.build(namespace, *parts)

    # Core Cache Operations

    @BaseService.measure_operation("cache_get")
    def get(self, key: str) -> Optional[CacheEntry]:
        """Get an entry, or None on miss, expiry, or backend error."""
        entry: Optional[CacheEntry] = None
        try:
            if self.backend == "redis":
                entry = self._get_from_redis(key)
            else:
                entry = self._get_from_memory(key)
        except (RedisError, CircuitOpen) as e:
            self.logger.warning(f"Cache get error for key {key}, using memory: {e}")
            self._stats["errors"] += 1
            entry = self._get_from_memory(key)
        except (ValueError, TypeError) as e:
            self.logger.error(f"Corrupt cache entry for key {key}: {e}")
            self._stats["errors"] += 1
            entry = None

        if entry is None:
            self._stats["misses"] += 1
            self.logger.debug(f"Cache miss: {key}")
        else:
            self._stats["hits"] += 1
            self.logger.debug(f"Cache hit: {key}")
        prometheus_metrics.record_cache_lookup(_namespace_of(key), entry is not None)
        return entry

    @BaseService.measure_operation("cache_set")
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a value; always overwrites."""
        if ttl is None:
            ttl = self.ttls.get(_namespace_enum(key), settings.time_slots_cache_ttl_seconds)
        entry = CacheEntry(value=value, stored_at=self._clock())

        try:
            if self.backend == "redis":
                payload = json.dumps(
                    {"value": value, "stored_at": entry.stored_at.isoformat()}, default=str
                )
                redis_client = self.redis
                assert redis_client is not None
                self.circuit_breaker.call(redis_client.setex, key, ttl, payload)
            else:
                self._set_in_memory(key, entry, ttl)
        except (RedisError, CircuitOpen) as e:
            self.logger.warning(f"Cache set error for key {key}, using memory: {e}")
            self._stats["errors"] += 1
            self._set_in_memory(key, entry, ttl)
        except (TypeError, ValueError) as e:
            self.logger.error(f"Cannot serialize cache value for key {key}: {e}")
            self._stats["errors"] += 1
            return False

        self._stats["sets"] += 1
        return True

    @BaseService.measure_operation("cache_delete")
    def delete(self, key: str) -> bool:
        """Delete a key from every backend that may hold it."""
        deleted = self._delete_from_memory(key)
        redis_client = self.redis
        if redis_client is not None:
            try:
                deleted = bool(self.circuit_breaker.call(redis_client.delete, key)) or deleted
            except (RedisError, CircuitOpen) as e:
                self.logger.warning(f"Cache delete error for key {key}: {e}")
                self._stats["errors"] += 1
        if deleted:
            self._stats["deletes"] += 1
        return deleted

    @BaseService.measure_operation("cache_delete_prefix")
    def delete_prefix(self, prefix: str) -> int:
        """Delete all keys starting with prefix."""
        with self._memory_lock:
            keys = [k for k in self._memory if k.startswith(prefix)]
            for k in keys:
                del self._memory[k]
        count = len(keys)

        redis_client = self.redis
        if redis_client is not None:
            try:
                count += self.circuit_breaker.call(self._delete_prefix_redis, redis_client, prefix)
            except (RedisError, CircuitOpen) as e:
                self.logger.warning(f"Cache delete prefix error for {prefix}: {e}")
                self._stats["errors"] += 1

        self._stats["deletes"] += count
        self.logger.debug(f"Deleted {count} keys with prefix: {prefix}")
        return count

    def delete_namespace(self, namespace: CacheNamespace) -> int:
        return self.delete_prefix(CacheKeyBuilder.namespace_prefix(namespace))

    def clear(self) -> None:
        """Drop every lounge key."""
        self.delete_prefix(f"{CacheKeyBuilder.ROOT}:")

    def get_stats(self) -> Dict[str, Any]:
        total = self._stats["hits"] + self._stats["misses"]
        return {
            **self._stats,
            "hit_rate": f"{(self._stats['hits'] / total * 100):.2f}%" if total else "0.00%",
            "backend": self.backend,
            "memory_keys": len(self._memory),
            "circuit_breaker": {
                "state": self.circuit_breaker.state.value,
                "failure_count": self.circuit_breaker.failure_count,
            },
        }

    # Backends

    def _get_from_redis(self, key: str) -> Optional[CacheEntry]:
        redis_client = self.redis
        assert redis_client is not None
        raw = self.circuit_breaker.call(redis_client.get, key)
        if raw is None:
            return None
        data = json.loads(raw)
        return CacheEntry(value=data["value"], stored_at=datetime.fromisoformat(data["stored_at"]))

    @staticmethod
    def _delete_prefix_redis(redis_client: Redis, prefix: str) -> int:
        count = 0
        for key in redis_client.scan_iter(match=f"{prefix}*"):
            if redis_client.delete(key):
                count += 1
        return count

    def _get_from_memory(self, key: str) -> Optional[CacheEntry]:
        with self._memory_lock:
            item = self._memory.get(key)
            if item is None:
                return None
            entry, expires_at = item
            if self._clock() >= expires_at:
                del self._memory[key]
                return None
            return entry

    def _set_in_memory(self, key: str, entry: CacheEntry, ttl: int) -> None:
        with self._memory_lock:
            self._memory[key] = (entry, entry.stored_at + timedelta(seconds=ttl))

    def _delete_from_memory(self, key: str) -> bool:
        with self._memory_lock:
            return self._memory.pop(key, None) is not None


def _namespace_of(key: str) -> str:
    parts = key.split(":")
    return parts[1] if len(parts) > 1 else "unknown"


def _namespace_enum(key: str) -> Optional[CacheNamespace]:
    try:
        return CacheNamespace(_namespace_of(key))
    except ValueError:
        return None


def build_cache_service(redis_url: Optional[str] = None) -> CacheService:
    """
    Create the process cache.

    Uses Redis when a URL is configured and reachable, memory otherwise.
    """
    url = redis_url if redis_url is not None else settings.redis_url
    if not url:
        logger.info("No Redis URL configured, using in-memory cache")
        return CacheService()

    try:
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_keepalive=True,
            socket_connect_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        client.ping()
        logger.info("Connected to Redis cache")
        return CacheService(redis_client=client)
    except (RedisError, ConnectionError) as e:
        logger.warning(f"Redis not available: {e}. Using in-memory fallback.")
        return CacheService()
