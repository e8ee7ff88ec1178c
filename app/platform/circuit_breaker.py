"""
Circuit breaker for best-effort dependencies (the durable scan mirror).

closed     -> calls flow; a failure opens the circuit
open       -> calls are skipped until the cooldown has elapsed
half_open  -> one probe call is allowed; success closes, failure re-opens
"""
import enum
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CircuitState(enum.Enum):
    closed = "closed"
    open = "open"
    half_open = "half_open"


class CircuitBreaker:

    def __init__(
        self,
        name: str,
        cooldown_seconds: float = 30.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.name = name
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock or time.monotonic
        self._state = CircuitState.closed
        self._opened_at: Optional[float] = None
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.open and self._cooldown_elapsed():
            return CircuitState.half_open
        return self._state

    def allow_request(self) -> bool:
        state = self.state
        if state == CircuitState.closed:
            return True
        if state == CircuitState.half_open and not self._probe_in_flight:
            self._state = CircuitState.half_open
            self._probe_in_flight = True
            logger.info(f"Circuit '{self.name}' half-open, probing dependency")
            return True
        return False

    def record_success(self) -> None:
        if self._state != CircuitState.closed:
            logger.info(f"Circuit '{self.name}' closed, dependency healthy again")
        self._state = CircuitState.closed
        self._opened_at = None
        self._probe_in_flight = False

    def record_failure(self) -> None:
        if self._state == CircuitState.closed:
            logger.warning(
                f"Circuit '{self.name}' opened, skipping calls for {self.cooldown_seconds}s"
            )
        self._state = CircuitState.open
        self._opened_at = self._clock()
        self._probe_in_flight = False

    def _cooldown_elapsed(self) -> bool:
        return self._opened_at is not None and (
            self._clock() - self._opened_at >= self.cooldown_seconds
        )
