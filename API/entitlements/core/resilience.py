"""Retries and circuit breaking for the downstream AI webhooks (chat, MCQ generation)."""
import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock

import httpx

RETRYABLE_DOWNSTREAM_ERRORS: tuple[type[Exception], ...] = (
    TimeoutError,
    ConnectionError,
    asyncio.TimeoutError,
    httpx.TransportError,
)


async def retry_with_backoff(
    async_func,
    *,
    max_retries: int = 3,
    base_delay_seconds: float = 0.5,
    retryable_errors: tuple[type[Exception], ...] = RETRYABLE_DOWNSTREAM_ERRORS,
):
    """Run async_func up to max_retries times (at least once), doubling the pause after each transport failure."""
    attempts = max(1, max_retries)
    delay = base_delay_seconds
    for attempt in range(1, attempts + 1):
        try:
            return await async_func()
        except retryable_errors:  # type: ignore[misc]
            if attempt == attempts:
                raise
            await asyncio.sleep(delay)
            delay *= 2


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """Stops calling a downstream service after consecutive failures; lets one probe through after a cool-down."""

    name: str
    failure_threshold: int = 4
    recovery_timeout_seconds: float = 30.0
    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    total_failures: int = 0
    rejected_calls: int = 0
    opened_at: float = 0.0
    _probe_in_flight: bool = False
    _lock: Lock = field(default_factory=Lock, repr=False)

    def can_execute(self) -> bool:
        with self._lock:
            if self.state == CircuitState.OPEN and time.monotonic() - self.opened_at >= self.recovery_timeout_seconds:
                self.state = CircuitState.HALF_OPEN
                self._probe_in_flight = False
            if self.state == CircuitState.CLOSED:
                return True
            if self.state == CircuitState.HALF_OPEN and not self._probe_in_flight:
                self._probe_in_flight = True
                return True
            self.rejected_calls += 1
            return False

    def record_success(self) -> None:
        with self._lock:
            self.state = CircuitState.CLOSED
            self.consecutive_failures = 0
            self._probe_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            self.consecutive_failures += 1
            self.total_failures += 1
            if self.state == CircuitState.HALF_OPEN or self.consecutive_failures >= self.failure_threshold:
                self.state = CircuitState.OPEN
                self.opened_at = time.monotonic()
                self._probe_in_flight = False

    def status(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "consecutive_failures": self.consecutive_failures,
            "total_failures": self.total_failures,
            "rejected_calls": self.rejected_calls,
        }


_breakers: dict[str, CircuitBreaker] = {}
_breakers_lock = Lock()


def get_breaker(name: str) -> CircuitBreaker:
    with _breakers_lock:
        return _breakers.setdefault(name, CircuitBreaker(name=name))


def get_breakers_status() -> dict[str, dict]:
    with _breakers_lock:
        return {name: breaker.status() for name, breaker in _breakers.items()}


def reset_breakers() -> None:
    """Forget all breaker state (e.g. between tests)."""
    with _breakers_lock:
        _breakers.clear()
