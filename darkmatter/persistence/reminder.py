from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from darkmatter.config.persistence import (
    DEFAULT_REMINDER_PERIOD_S,
    DEFAULT_REMINDER_THRESHOLD_S,
)

from .collaborators import NotificationSink
from .session import SessionContext

LOGGER = logging.getLogger(__name__)

__all__ = ["REMINDER_MESSAGE", "SaveReminderScheduler"]

REMINDER_MESSAGE = (
    "It's been a while since your last save. Don't forget to save your project!"
)


class SaveReminderScheduler:
    """Nudge the user when the project has not been saved for a while.

    Reads the session only; the single write is ``reminder_visible``.
    """

    def __init__(
        self,
        context: SessionContext,
        notifier: Optional[NotificationSink],
        *,
        threshold_s: float = DEFAULT_REMINDER_THRESHOLD_S,
        period_s: float = DEFAULT_REMINDER_PERIOD_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.context = context
        self.notifier = notifier
        self.threshold_s = threshold_s
        self.period_s = period_s
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def check(self) -> bool:
        """Emit the reminder if it is due; returns True when one was shown."""

        ctx = self.context
        if ctx.guard_held or not ctx.reminder_enabled or ctx.reminder_visible:
            return False
        if self._clock() - ctx.last_successful_save_at < self.threshold_s:
            return False
        ctx.reminder_visible = True
        LOGGER.info("Showing save reminder")
        if self.notifier is not None:
            self.notifier.toast("info", REMINDER_MESSAGE, meta={"kind": "reminder"})
        return True

    def dismiss(self) -> None:
        self.context.reminder_visible = False

    def set_enabled(self, enabled: bool) -> None:
        self.context.reminder_enabled = bool(enabled)
        if not enabled:
            self.dismiss()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.period_s)
            try:
                self.check()
            except Exception:
                LOGGER.exception("Save reminder check failed")
