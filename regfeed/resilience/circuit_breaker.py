"""Circuit breaker state machine: closed -> open -> half_open -> closed | open."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

from regfeed.core.errors import CircuitOpenError
from regfeed.core.logging import get_logger

log = get_logger("resilience.circuit_breaker")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Counts consecutive failed calls and short-circuits once tripped.

    After ``reset_timeout`` seconds in the open state the breaker turns
    half-open and admits a single trial call. The trial's outcome decides
    between closing and re-opening.
    """

    def __init__(
        self,
        failure_threshold: int,
        reset_timeout: float,
        clock: Callable[[], float] = time.monotonic,
        name: str = "source",
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.name = name
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        self._maybe_half_open()
        return self._state

    @property
    def failures(self) -> int:
        return self._failures

    def _maybe_half_open(self) -> None:
        if self._state is CircuitState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.reset_timeout:
                self._transition(CircuitState.HALF_OPEN)
                self._trial_in_flight = False

    def _transition(self, new_state: CircuitState) -> None:
        if new_state is self._state:
            return
        log.info(f"Circuit {self.name}: {self._state.value} -> {new_state.value}")
        self._state = new_state

    def retry_in(self) -> float:
        if self._state is not CircuitState.OPEN or self._opened_at is None:
            return 0.0
        return max(0.0, self.reset_timeout - (self._clock() - self._opened_at))

    def before_call(self) -> None:
        """Raise CircuitOpenError unless a call may proceed right now."""
        state = self.state
        if state is CircuitState.OPEN:
            raise CircuitOpenError(
                f"circuit open for {self.name}, retry in {self.retry_in():.0f}s",
                source=self.name,
                retry_in=self.retry_in(),
            )
        if state is CircuitState.HALF_OPEN:
            if self._trial_in_flight:
                raise CircuitOpenError(
                    f"circuit half-open for {self.name}, trial call already in flight",
                    source=self.name,
                )
            self._trial_in_flight = True

    def release_trial(self) -> None:
        """Free the half-open slot when a trial call is cancelled before finishing."""
        self._trial_in_flight = False

    def record_success(self) -> None:
        self._failures = 0
        self._opened_at = None
        self._trial_in_flight = False
        self._transition(CircuitState.CLOSED)

    def record_failure(self) -> None:
        self._failures += 1
        self._trial_in_flight = False
        if self._state is CircuitState.HALF_OPEN or self._failures >= self.failure_threshold:
            self._opened_at = self._clock()
            if self._state is not CircuitState.OPEN:
                log.warning(f"Circuit {self.name} opened after {self._failures} consecutive failures")
            self._transition(CircuitState.OPEN)

    def snapshot(self) -> Dict[str, Any]:
        state = self.state
        return {
            "state": state.value,
            "circuit_open": state is CircuitState.OPEN,
            "failures": self._failures,
            "retry_in_seconds": round(self.retry_in(), 1),
        }
