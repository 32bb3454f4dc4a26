"""
Circuit breaker protecting the media server from repeated calls while it is
unreachable.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Optional

log = logging.getLogger(__name__)


class CircuitState(Enum):
    """States of the circuit breaker."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Blocking requests
    HALF_OPEN = "half_open"  # Testing if the server recovered


class CircuitBreakerError(Exception):
    """Raised when the circuit is open and a call is refused."""


class CircuitBreaker:
    """
    Counts consecutive transport failures and refuses calls once the
    threshold is reached, until ``recovery_timeout`` has elapsed.

    Only exceptions listed in ``tracked_exceptions`` count as failures, so an
    HTTP 404 for one item does not trip the breaker for the whole server.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        success_threshold: int = 1,
        tracked_exceptions: tuple[type[BaseException], ...] = (Exception,),
    ):
        """
        Args:
            failure_threshold: Consecutive failures before opening the circuit.
            recovery_timeout: Seconds to wait before letting a probe call through.
            success_threshold: Consecutive probe successes needed to close again.
            tracked_exceptions: Exception types that count as failures.
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self.tracked_exceptions = tracked_exceptions

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    def _check_state(self) -> None:
        """Moves from OPEN to HALF_OPEN once the recovery timeout has elapsed."""
        if self._state != CircuitState.OPEN or self._last_failure_time is None:
            return

        elapsed = time.monotonic() - self._last_failure_time
        if elapsed >= self.recovery_timeout:
            log.info(
                f"[yellow]Server circuit half-open, probing after {elapsed:.0f}s[/yellow]"
            )
            self._state = CircuitState.HALF_OPEN
            self._success_count = 0

    async def _on_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    log.info("[green]✓ Server reachable again, circuit closed.[/green]")
                    self._state = CircuitState.CLOSED
                    self._success_count = 0

    async def _on_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            self._last_failure_time = time.monotonic()

            if self._state == CircuitState.HALF_OPEN:
                log.warning("[yellow]Server probe failed, circuit open again.[/yellow]")
                self._state = CircuitState.OPEN
                self._failure_count = 0
                self._success_count = 0
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self.failure_threshold
            ):
                log.error(
                    f"[red]✗ Circuit opened after {self._failure_count} consecutive "
                    f"failures. Calls blocked for {self.recovery_timeout}s.[/red]"
                )
                self._state = CircuitState.OPEN

    async def __aenter__(self):
        async with self._lock:
            self._check_state()
            if self._state == CircuitState.OPEN:
                raise CircuitBreakerError(
                    f"Circuit is open. Will try to recover after "
                    f"{self.recovery_timeout} seconds."
                )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            await self._on_success()
        elif issubclass(exc_type, self.tracked_exceptions):
            await self._on_failure()
        return False
