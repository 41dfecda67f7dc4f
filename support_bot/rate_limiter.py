from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger("support_bot.rate_limit")


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Fixed-window message counter per client key."""

    def __init__(
        self,
        max_per_window: int,
        window_sec: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._max = max_per_window
        self._window_sec = window_sec
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check(self, key: str) -> bool:
        """Purpose: Count one request for a key and say whether it is allowed.
        Inputs/Outputs: Input is a client key; output is False once the window is full.
        Side Effects / State: Starts a new window on first use or after the old one ends.
        Dependencies: clock for the window boundaries.
        Failure Modes: None.
        If Removed: A single client can flood the completion service.
        Testing Notes: Max requests pass, the next fails, and a later window resets.
        """
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self._window_sec)
                return True
            if window.count >= self._max:
                logger.info("rate limit client=%s count=%d", key, window.count)
                return False
            window.count += 1
            return True

    def sweep(self, now: Optional[float] = None) -> int:
        current = self._clock() if now is None else now
        with self._lock:
            expired = [key for key, window in list(self._windows.items()) if current > window.reset_at]
            for key in expired:
                del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
