"""
Breaker around the external generation provider (pybreaker).
State lives in Redis so every Celery worker trips and recovers together.
"""
import logging
from datetime import datetime, timezone

import pybreaker
import redis

from babypeek.core.config import settings
from babypeek.utils.metrics import circuit_breaker_state

logger = logging.getLogger(__name__)

GENERATION_BREAKER = "generation"
KEY_PREFIX = "babypeek:cb"


class RedisCircuitBreakerStorage(pybreaker.CircuitBreakerStorage):
    """pybreaker storage: state, failure/success counters and opened_at in Redis keys."""

    def __init__(self, name: str, client: redis.Redis | None = None) -> None:
        super().__init__(name)
        self._name = name
        self.client = client or redis.Redis.from_url(settings.redis_url, decode_responses=True)
        # open state outlives the reset window so half-open is reached through opened_at
        self._state_ttl = settings.cb_open_seconds * 2

    def _key(self, part: str) -> str:
        return f"{KEY_PREFIX}:{self._name}:{part}"

    def _read_int(self, part: str) -> int:
        raw = self.client.get(self._key(part))
        return int(raw) if raw else 0

    def _bump(self, part: str) -> None:
        key = self._key(part)
        self.client.incr(key)
        self.client.expire(key, settings.cb_open_seconds)

    @property
    def state(self) -> str:
        return self.client.get(self._key("state")) or pybreaker.STATE_CLOSED

    @state.setter
    def state(self, value: str) -> None:
        self.client.set(self._key("state"), value, ex=self._state_ttl)
        circuit_breaker_state.labels(name=self._name).set(int(value == pybreaker.STATE_OPEN))

    @property
    def counter(self) -> int:
        return self._read_int("failures")

    @property
    def success_counter(self) -> int:
        return self._read_int("successes")

    def increment_counter(self) -> None:
        self._bump("failures")

    def reset_counter(self) -> None:
        self.client.delete(self._key("failures"))

    def increment_success_counter(self) -> None:
        self._bump("successes")

    def reset_success_counter(self) -> None:
        self.client.delete(self._key("successes"))

    @property
    def opened_at(self) -> datetime | None:
        raw = self.client.get(self._key("opened_at"))
        if not raw:
            return None
        return datetime.fromtimestamp(float(raw), tz=timezone.utc)

    @opened_at.setter
    def opened_at(self, value: datetime) -> None:
        self.client.set(self._key("opened_at"), str(value.timestamp()), ex=self._state_ttl)


class BreakerLogListener(pybreaker.CircuitBreakerListener):
    def __init__(self, name: str) -> None:
        self.name = name

    def state_change(self, cb: pybreaker.CircuitBreaker, old_state, new_state) -> None:
        logger.warning(
            "circuit_breaker_state_change",
            extra={
                "breaker_name": self.name,
                "old_state": getattr(old_state, "name", old_state),
                "new_state": getattr(new_state, "name", new_state),
            },
        )

    def failure(self, cb: pybreaker.CircuitBreaker, exc: BaseException) -> None:
        logger.info(
            "circuit_breaker_failure",
            extra={"breaker_name": self.name, "error": type(exc).__name__},
        )


_breakers: dict[str, pybreaker.CircuitBreaker] = {}


def get_circuit_breaker(name: str = GENERATION_BREAKER) -> pybreaker.CircuitBreaker:
    """One breaker per name and process, backed by shared Redis state."""
    breaker = _breakers.get(name)
    if breaker is None:
        breaker = pybreaker.CircuitBreaker(
            fail_max=settings.cb_failure_threshold,
            reset_timeout=settings.cb_open_seconds,
            state_storage=RedisCircuitBreakerStorage(name),
            listeners=[BreakerLogListener(name)],
            name=name,
        )
        _breakers[name] = breaker
    return breaker
