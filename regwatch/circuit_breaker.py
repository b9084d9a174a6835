"""Circuit breaker for async calls to flaky collaborators.

Wraps the optional summary API and the notification webhooks so a dead
endpoint is skipped quickly instead of costing a timeout on every alert.

State machine: CLOSED -> OPEN -> HALF_OPEN -> CLOSED.

- CLOSED: calls pass through; consecutive failures are counted.
- OPEN: calls raise CircuitOpenError until ``recovery_timeout`` elapses.
- HALF_OPEN: one probe call; success closes, failure re-opens.

Usage:
    breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60.0, name="slack")
    try:
        await breaker.call(post_message, payload)
    except CircuitOpenError:
        ...
"""

import enum
import logging
import time
from typing import Any, Callable, Coroutine, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

StateListener = Callable[[str, "CircuitState", "CircuitState"], None]


class CircuitState(str, enum.Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitOpenError(Exception):
    """Raised when calling through an open circuit breaker."""


class CircuitBreaker:
    """Guards an async callable with failure counting and cool-off.

    Args:
        failure_threshold: Consecutive failures before opening.
        recovery_timeout: Seconds before a recovery probe is allowed.
        name: Name used in logs and state-change callbacks.
        on_state_change: Called with (name, old, new) on every transition.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        name: str = "circuit_breaker",
        on_state_change: StateListener | None = None,
    ) -> None:
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._name = name
        self._on_state_change = on_state_change
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._last_failure_time: float = 0.0

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        """Current circuit state."""
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def _transition(self, new_state: CircuitState) -> None:
        old = self._state
        if old == new_state:
            return
        self._state = new_state
        logger.info("Circuit breaker %s: %s -> %s", self._name, old.value, new_state.value)
        if self._on_state_change is not None:
            self._on_state_change(self._name, old, new_state)

    def allow_request(self) -> bool:
        """Whether a call may go through now (moves OPEN to HALF_OPEN when due)."""
        if self._state != CircuitState.OPEN:
            return True
        if time.monotonic() - self._last_failure_time >= self._recovery_timeout:
            self._transition(CircuitState.HALF_OPEN)
            return True
        return False

    def record_success(self) -> None:
        self._consecutive_failures = 0
        self._transition(CircuitState.CLOSED)

    def record_failure(self) -> None:
        self._consecutive_failures += 1
        self._last_failure_time = time.monotonic()
        if self._state == CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN)
        elif self._consecutive_failures >= self._failure_threshold:
            self._transition(CircuitState.OPEN)

    async def call(
        self,
        fn: Callable[..., Coroutine[Any, Any, T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Execute ``fn`` through the breaker.

        Raises:
            CircuitOpenError: The circuit is open and still cooling off.
        """
        if not self.allow_request():
            raise CircuitOpenError(f"Circuit breaker {self._name} is OPEN")

        try:
            result = await fn(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise

        self.record_success()
        return result
