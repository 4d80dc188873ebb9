"""Tests for the pull-to-activate gesture state machine."""

import queue

import pytest

from plyr_assistant.assistant.activation import (
    ActivationConfig,
    ActivationOutcome,
    ActivationState,
    ActivationStateMachine,
)


class FakeTimer:
    """Manually fired stand-in for threading.Timer."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function()


class TimerFactory:
    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> FakeTimer:
        return self.timers[-1]


def _drain(events: queue.Queue) -> list:
    out = []
    while not events.empty():
        out.append(events.get_nowait())
    return out


@pytest.fixture
def timers():
    return TimerFactory()


@pytest.fixture
def events():
    return queue.Queue()


@pytest.fixture
def machine(events, timers):
    config = ActivationConfig(exclusion_zones=[(0, 0, 100, 50)])
    return ActivationStateMachine(config, events, timer_factory=timers)


class TestDragStart:
    def test_starts_pulling(self, machine):
        assert machine.on_drag_start(300, 300) is True
        assert machine.state is ActivationState.PULLING

    def test_exclusion_zone_ignored(self, machine):
        assert machine.on_drag_start(50, 20) is False
        assert machine.state is ActivationState.IDLE
        machine.on_drag(500)
        assert machine.pull == 0.0

    def test_drag_while_idle_ignored(self, machine, timers):
        machine.on_drag(500)
        assert machine.pull == 0.0
        assert timers.timers == []


class TestResistance:
    def test_first_drag_uses_base_resistance(self, machine):
        machine.on_drag_start(300, 300)
        machine.on_drag(100)
        assert machine.pull == pytest.approx(60.0)

    def test_resistance_grows_with_pull(self, machine):
        machine.on_drag_start(300, 300)
        machine.on_drag(100)  # 60
        machine.on_drag(100)  # 60 + 100 * 0.6 * (1 - 60/200) = 102
        assert machine.pull == pytest.approx(102.0)

    def test_clamped_to_max_pull(self, machine):
        machine.on_drag_start(300, 300)
        machine.on_drag(10_000)
        assert machine.pull == pytest.approx(200.0)
        assert machine.pull_fraction == 1.0

    def test_clamped_at_zero(self, machine):
        machine.on_drag_start(300, 300)
        machine.on_drag(-100)
        assert machine.pull == 0.0

    def test_min_resistance_near_max(self, machine):
        machine.on_drag_start(300, 300)
        machine.on_drag(10_000)  # 200
        machine.on_drag(-100)  # resistance floor 0.15
        assert machine.pull == pytest.approx(185.0)


class TestOutcomes:
    def test_quick_release(self, machine, events, timers):
        machine.on_drag_start(300, 300)
        machine.on_drag(300)  # 180, above threshold
        assert timers.last.started
        assert timers.last.interval == pytest.approx(0.6)

        machine.on_release()

        emitted = _drain(events)
        assert [e.outcome for e in emitted] == [ActivationOutcome.QUICK_RELEASE]
        assert emitted[0].pull == pytest.approx(180.0)
        assert timers.last.cancelled
        assert machine.state is ActivationState.IDLE
        assert machine.pull == 0.0

    def test_quick_release_only_once(self, machine, events, timers):
        machine.on_drag_start(300, 300)
        machine.on_drag(300)
        machine.on_release()
        machine.on_release()
        timers.last.fire()  # late timer after release
        assert [e.outcome for e in _drain(events)] == [ActivationOutcome.QUICK_RELEASE]

    def test_hold(self, machine, events, timers):
        machine.on_drag_start(300, 300)
        machine.on_drag(300)
        timers.last.fire()

        assert [e.outcome for e in _drain(events)] == [ActivationOutcome.HOLD]
        assert machine.state is ActivationState.IDLE

        machine.on_release()
        assert _drain(events) == []

    def test_release_below_threshold(self, machine, events, timers):
        machine.on_drag_start(300, 300)
        machine.on_drag(100)  # 60, below 120
        machine.on_release()
        assert _drain(events) == []
        assert timers.timers == []

    def test_dropping_below_threshold_cancels_timer(self, machine, events, timers):
        machine.on_drag_start(300, 300)
        machine.on_drag(300)  # 180
        timer = timers.last
        machine.on_drag(-1000)  # back to 0
        assert timer.cancelled

        timer.fire()  # stale callback is ignored
        machine.on_release()
        assert _drain(events) == []

    def test_recrossing_starts_new_timer(self, machine, events, timers):
        machine.on_drag_start(300, 300)
        machine.on_drag(300)
        first = timers.last
        machine.on_drag(-1000)
        machine.on_drag(300)
        second = timers.last
        assert second is not first

        first.fire()
        assert _drain(events) == []
        second.fire()
        assert [e.outcome for e in _drain(events)] == [ActivationOutcome.HOLD]

    def test_cancel_while_pulling(self, machine, events, timers):
        machine.on_drag_start(300, 300)
        machine.on_drag(300)
        machine.on_cancel()
        assert [e.outcome for e in _drain(events)] == [ActivationOutcome.CANCELLED]
        assert timers.last.cancelled
        assert machine.state is ActivationState.IDLE

    def test_cancel_while_idle_is_silent(self, machine, events):
        machine.on_cancel()
        assert _drain(events) == []

    def test_timer_is_daemon(self, machine, timers):
        machine.on_drag_start(300, 300)
        machine.on_drag(300)
        assert timers.last.daemon is True


class TestActivationConfig:
    def test_threshold_must_fit(self):
        with pytest.raises(ValueError):
            ActivationConfig(activation_threshold=300, max_pull=200)

    def test_max_pull_positive(self):
        with pytest.raises(ValueError):
            ActivationConfig(max_pull=0)

    def test_default_queue(self):
        machine = ActivationStateMachine()
        assert isinstance(machine.events, queue.Queue)
