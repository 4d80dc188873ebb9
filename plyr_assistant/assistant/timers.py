"""
Sleep timer: pauses playback after a delay.
"""

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def minutes_until(hour: int, minute: int, now: Optional[datetime] = None) -> int:
    """Minutes until the next occurrence of a wall-clock time (at least 1)."""
    now = now or datetime.now()
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return max(1, int((target - now).total_seconds() // 60))


def duration_minutes(value: int, unit: str, now: Optional[datetime] = None) -> int:
    """
    Convert a parsed sleep duration to minutes.

    Args:
        value: Number from the utterance
        unit: "minutes", "hours" or "absolute" (minutes after midnight)
        now: Reference time for absolute values

    Raises:
        ValueError: unknown unit
    """
    if unit == "minutes":
        return value
    if unit == "hours":
        return value * 60
    if unit == "absolute":
        return minutes_until(value // 60, value % 60, now)
    raise ValueError(f"Unknown sleep timer unit: {unit}")


class SleepTimer:
    """
    One-shot timer that runs an action (usually pausing playback).

    Starting a new timer replaces the running one.
    """

    def __init__(self, timer_factory: Callable[[float, Callable[[], None]], threading.Timer] = threading.Timer):
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._deadline: Optional[float] = None

    def start(self, minutes: int, action: Callable[[], None]) -> None:
        timer = None

        def _fire():
            with self._lock:
                # A replaced or cancelled timer may still fire
                if self._timer is not timer:
                    return
                self._timer = None
                self._deadline = None
            logger.info("Sleep timer expired")
            try:
                action()
            except Exception:
                logger.exception("Sleep timer action failed")

        with self._lock:
            self._cancel_locked()
            timer = self._timer_factory(minutes * 60.0, _fire)
            timer.daemon = True
            self._timer = timer
            self._deadline = time.monotonic() + minutes * 60.0
            timer.start()
        logger.info("Sleep timer set for %d minutes", minutes)

    def cancel(self) -> bool:
        """Cancel the running timer. Returns True if one was running."""
        with self._lock:
            return self._cancel_locked()

    @property
    def active(self) -> bool:
        with self._lock:
            return self._timer is not None

    @property
    def remaining_minutes(self) -> Optional[float]:
        with self._lock:
            if self._deadline is None:
                return None
            return max(0.0, (self._deadline - time.monotonic()) / 60.0)

    def _cancel_locked(self) -> bool:
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        self._deadline = None
        return True
