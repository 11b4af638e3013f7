from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from darkmatter.config.persistence import DEFAULT_WATCHDOG_TIMEOUT_MS
from darkmatter.logging_config import reset_operation, set_operation

from .collaborators import NotificationSink
from .errors import OperationInProgressError
from .session import SessionContext

LOGGER = logging.getLogger(__name__)

__all__ = ["OperationGuard", "TIMEOUT_MESSAGE"]

TIMEOUT_MESSAGE = "Operation timed out. Try again."


class OperationGuard:
    """Single-flight lock around save/load/new with a bounded watchdog.

    The editor runs on one event loop, so a flag is enough for mutual
    exclusion; the watchdog covers an operation stuck on a suspension point
    (typically a prompt that never resolves).  Each acquisition bumps a
    generation counter so a late ``release`` from an operation whose hold was
    already force-released cannot free a newer holder.
    """

    def __init__(
        self,
        context: SessionContext,
        notifier: Optional[NotificationSink] = None,
        *,
        timeout_ms: int = DEFAULT_WATCHDOG_TIMEOUT_MS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.context = context
        self.notifier = notifier
        self.timeout_ms = timeout_ms
        self._clock = clock
        self._generation = 0
        self._watchdog: Optional[asyncio.TimerHandle] = None
        self.timeouts = 0

    @property
    def held(self) -> bool:
        return self.context.guard_held

    @property
    def generation(self) -> int:
        return self._generation

    def try_acquire(self, operation: str = "operation") -> bool:
        if self.context.guard_held:
            LOGGER.warning(
                "Project operation already in progress",
                extra={"requested": operation, "holder": self.context.guard_operation},
            )
            return False
        self._generation += 1
        self.context.guard_held = True
        self.context.guard_acquired_at = self._clock()
        self.context.guard_operation = operation
        return True

    def release(self, generation: Optional[int] = None) -> bool:
        """Free the guard; returns False when ``generation`` is stale."""

        if generation is not None and generation != self._generation:
            return False
        self._cancel_watchdog()
        if not self.context.guard_held:
            return False
        self.context.guard_held = False
        self.context.guard_acquired_at = None
        self.context.guard_operation = None
        return True

    def arm_watchdog(self, timeout_ms: Optional[int] = None) -> None:
        """Force-release the current hold if it outlives ``timeout_ms``.

        Must be called from a coroutine running on the event loop.
        """

        self._cancel_watchdog()
        delay = (timeout_ms if timeout_ms is not None else self.timeout_ms) / 1000.0
        loop = asyncio.get_running_loop()
        self._watchdog = loop.call_later(delay, self._expire, self._generation)

    @asynccontextmanager
    async def hold(
        self, operation: str, *, timeout_ms: Optional[int] = None
    ) -> AsyncIterator[int]:
        if not self.try_acquire(operation):
            raise OperationInProgressError(operation, self.context.guard_operation)
        generation = self._generation
        token = set_operation(operation)
        self.arm_watchdog(timeout_ms)
        try:
            yield generation
        finally:
            self.release(generation)
            reset_operation(token)

    def shutdown(self) -> None:
        self._cancel_watchdog()

    def _cancel_watchdog(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None

    def _expire(self, generation: int) -> None:
        self._watchdog = None
        if generation != self._generation or not self.context.guard_held:
            return
        LOGGER.warning(
            "Project operation timed out, resetting state",
            extra={"holder": self.context.guard_operation},
        )
        self.context.guard_held = False
        self.context.guard_acquired_at = None
        self.context.guard_operation = None
        self.timeouts += 1
        if self.notifier is not None:
            self.notifier.toast("warn", TIMEOUT_MESSAGE)
