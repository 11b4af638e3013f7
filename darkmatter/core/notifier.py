from __future__ import annotations

import logging
from time import time
from typing import Callable, Dict, List

LOGGER = logging.getLogger(__name__)

LEVELS = ("info", "warn", "error", "success")
_LOG_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class Notifier:
    """Collects user-facing notices and fans them out to listeners."""

    def __init__(self, max_history: int = 200):
        self.history: List[Dict] = []
        self.enabled = True
        self._listeners: List[Callable[[Dict], None]] = []
        self._max_history = max_history

    def attach(self, callback: Callable[[Dict], None]) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def detach(self, callback: Callable[[Dict], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def toast(self, level: str, msg: str, *, meta: Dict | None = None) -> Dict:
        if level not in LEVELS:
            level = "info"
        evt = {"ts": time(), "level": level, "msg": msg, "meta": meta or {}}
        self.history.append(evt)
        if len(self.history) > self._max_history:
            self.history = self.history[-self._max_history :]
        LOGGER.log(_LOG_LEVELS[level], "[toast] %s", msg, extra={"level_name": level})
        if not self.enabled:
            return evt
        for callback in list(self._listeners):
            try:
                callback(evt)
            except Exception:
                LOGGER.exception("Notifier listener failed")
        return evt

    def list(self) -> List[Dict]:
        return list(self.history)

    def messages(self, level: str | None = None) -> List[str]:
        return [
            evt["msg"] for evt in self.history if level is None or evt["level"] == level
        ]

    def clear(self) -> None:
        self.history.clear()
