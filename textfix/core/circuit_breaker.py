"""Circuit breaker guarding calls to the LLM provider.

Three states:
  CLOSED    calls pass through
  OPEN      too many consecutive failures, calls are rejected at once
  HALF_OPEN cooldown elapsed, the next call is let through as a probe

Rate-limit and malformed-reply failures do not count: the provider is up,
it just said no or said something odd.
"""

import asyncio
import logging
import time
from collections.abc import Coroutine
from enum import Enum
from typing import Any

from textfix.core.errors import (
    ProviderRateLimitedError,
    ProviderResponseMalformedError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

_NOT_COUNTED = (ProviderRateLimitedError, ProviderResponseMalformedError)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(ProviderUnavailableError):
    """Raised when the circuit is open and calls are being rejected."""

    def __init__(self, name: str, retry_after: float):
        super().__init__(f"Circuit breaker '{name}' is OPEN, retry in {retry_after:.0f}s")
        self.breaker_name = name
        self.retry_after = retry_after


class CircuitBreaker:
    """Async-safe circuit breaker for the correction provider."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 3,
        cooldown_seconds: int = 60,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float = 0.0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        """Current state; an OPEN circuit reads as HALF_OPEN once cooled down."""
        if self._state == CircuitState.OPEN and self._remaining_cooldown() <= 0:
            return CircuitState.HALF_OPEN
        return self._state

    def _remaining_cooldown(self) -> float:
        return self.cooldown_seconds - (time.monotonic() - self._opened_at)

    def snapshot(self) -> dict:
        """State summary for the health endpoint."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failures": self._failure_count,
        }

    async def call(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """Await *coro* through the breaker.

        Raises CircuitBreakerOpen (closing *coro* unawaited) while OPEN.
        """
        async with self._lock:
            current = self.state
            if current == CircuitState.OPEN:
                coro.close()
                raise CircuitBreakerOpen(self.name, self._remaining_cooldown())
            if current == CircuitState.HALF_OPEN:
                logger.info("Circuit '%s' HALF_OPEN, allowing probe request", self.name)

        try:
            result = await coro
        except _NOT_COUNTED:
            raise
        except Exception:
            await self._on_failure()
            raise

        await self._on_success()
        return result

    async def _on_success(self) -> None:
        async with self._lock:
            if self._state != CircuitState.CLOSED:
                logger.info("Circuit '%s' recovered, CLOSED", self.name)
            self._state = CircuitState.CLOSED
            self._failure_count = 0

    async def _on_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            probe_failed = self.state == CircuitState.HALF_OPEN
            if probe_failed or self._failure_count >= self.failure_threshold:
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()
                logger.warning(
                    "Circuit '%s' OPEN after %d failure(s) (cooldown %ds)",
                    self.name, self._failure_count, self.cooldown_seconds,
                )

    def reset(self) -> None:
        """Manually reset the circuit to CLOSED (useful in tests)."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = 0.0
