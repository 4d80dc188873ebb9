"""
Pull-to-activate gesture handling.

A continuous drag is turned into one of two outcomes: a long hold past the
threshold opens the conversation view, a quick flick past the threshold
starts a voice session. Outcomes are delivered as ``ActivationEvent``
objects on a queue read by a single consumer.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ActivationState(Enum):
    """Gesture state."""

    IDLE = "idle"
    PULLING = "pulling"


class ActivationOutcome(Enum):
    """Result of a finished gesture."""

    HOLD = "hold"  # Open the conversation view
    QUICK_RELEASE = "quick_release"  # Start a voice session
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ActivationEvent:
    outcome: ActivationOutcome
    pull: float = 0.0


Rect = tuple[float, float, float, float]  # left, top, right, bottom


@dataclass
class ActivationConfig:
    """Gesture tuning."""

    activation_threshold: float = 120.0
    max_pull: float = 200.0
    base_resistance: float = 0.6
    min_resistance: float = 0.15
    hold_duration_s: float = 0.6
    exclusion_zones: list[Rect] = field(default_factory=list)

    def __post_init__(self):
        if self.max_pull <= 0:
            raise ValueError("max_pull must be positive")
        if not 0 < self.activation_threshold <= self.max_pull:
            raise ValueError("activation_threshold must be within (0, max_pull]")


TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


class ActivationStateMachine:
    """
    Debounces a drag gesture into HOLD / QUICK_RELEASE outcomes.

    Usage:
        events = queue.Queue()
        machine = ActivationStateMachine(ActivationConfig(), events)
        machine.on_drag_start(200, 40)
        machine.on_drag(150)
        machine.on_release()
        events.get()  # ActivationEvent(QUICK_RELEASE, ...)
    """

    def __init__(
        self,
        config: Optional[ActivationConfig] = None,
        events: Optional[queue.Queue] = None,
        timer_factory: TimerFactory = threading.Timer,
    ):
        self.config = config or ActivationConfig()
        self.events: queue.Queue = events if events is not None else queue.Queue()
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self.state = ActivationState.IDLE
        self._pull = 0.0
        self._timer: Optional[threading.Timer] = None
        self._timer_id = 0  # Bumped whenever the hold timer changes, invalidates stale callbacks

    @property
    def pull(self) -> float:
        with self._lock:
            return self._pull

    @property
    def pull_fraction(self) -> float:
        """Pull progress from 0.0 to 1.0, relative to the threshold."""
        with self._lock:
            return min(1.0, self._pull / self.config.activation_threshold)

    def on_drag_start(self, x: float, y: float) -> bool:
        """Begin a gesture. Returns False if it starts in an exclusion zone."""
        with self._lock:
            if self._in_exclusion_zone(x, y):
                logger.debug("Drag start at (%.0f, %.0f) inside exclusion zone", x, y)
                return False
            self._reset_locked()
            self.state = ActivationState.PULLING
            return True

    def on_drag(self, delta: float) -> None:
        with self._lock:
            if self.state is not ActivationState.PULLING:
                return

            cfg = self.config
            resistance = max(cfg.min_resistance, cfg.base_resistance * (1 - self._pull / cfg.max_pull))
            was_above = self._pull >= cfg.activation_threshold
            self._pull = min(cfg.max_pull, max(0.0, self._pull + delta * resistance))
            is_above = self._pull >= cfg.activation_threshold

            if is_above and not was_above:
                self._start_hold_timer()
            elif was_above and not is_above:
                self._cancel_timer()

    def on_release(self) -> None:
        with self._lock:
            if self.state is not ActivationState.PULLING:
                return
            if self._timer is not None:
                self._emit(ActivationOutcome.QUICK_RELEASE)
            self._reset_locked()

    def on_cancel(self) -> None:
        with self._lock:
            if self.state is ActivationState.PULLING:
                self._emit(ActivationOutcome.CANCELLED)
            self._reset_locked()

    def _on_hold_elapsed(self, timer_id: int) -> None:
        with self._lock:
            if timer_id != self._timer_id or self._timer is None:
                return
            self._timer = None
            if self._pull >= self.config.activation_threshold:
                self._emit(ActivationOutcome.HOLD)
                self._reset_locked()

    def _start_hold_timer(self) -> None:
        self._cancel_timer()
        self._timer_id += 1
        timer_id = self._timer_id
        timer = self._timer_factory(self.config.hold_duration_s, lambda: self._on_hold_elapsed(timer_id))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            self._timer_id += 1

    def _reset_locked(self) -> None:
        self._cancel_timer()
        self._pull = 0.0
        self.state = ActivationState.IDLE

    def _emit(self, outcome: ActivationOutcome) -> None:
        logger.debug("Activation outcome: %s (pull=%.1f)", outcome.value, self._pull)
        self.events.put(ActivationEvent(outcome, self._pull))

    def _in_exclusion_zone(self, x: float, y: float) -> bool:
        return any(
            left <= x <= right and top <= y <= bottom
            for left, top, right, bottom in self.config.exclusion_zones
        )
