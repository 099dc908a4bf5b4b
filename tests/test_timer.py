"""Tests for the focus timer state machine and its driver."""

import threading
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from focusflow.core.timer import (
    SWITCH_PROMPT,
    CancelSession,
    ChangeType,
    CompleteSession,
    CreateSession,
    FocusTimer,
    IntervalTicker,
    Pause,
    PlayTone,
    Reset,
    Resume,
    SessionStarted,
    Start,
    StartFailed,
    StartTicking,
    StopTicking,
    Tick,
    TimerState,
    TimerStatus,
    format_clock,
    initial_state,
    transition,
)

NOW = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


def _running(time_left=1500, session_id="s1"):
    return TimerState(
        timer_type="pomodoro", duration=1500, time_left=time_left,
        status=TimerStatus.RUNNING, session_id=session_id,
    )


# ----------------------------------------------------------------------
# Pure transitions
# ----------------------------------------------------------------------

class TestTransition:
    def test_initial_state(self):
        state = initial_state()
        assert state.timer_type == "pomodoro"
        assert state.time_left == 1500
        assert state.status == TimerStatus.IDLE

    def test_start_requests_session(self):
        state, effects = transition(initial_state(), Start("t1"))
        assert state.starting is True
        assert state.status == TimerStatus.IDLE
        assert effects == [CreateSession("t1", "pomodoro", 1500)]

    def test_start_while_starting_is_ignored(self):
        state, _ = transition(initial_state(), Start())
        again, effects = transition(state, Start())
        assert again == state
        assert effects == []

    def test_session_started_runs(self):
        state, _ = transition(initial_state(), Start())
        state, effects = transition(state, SessionStarted("s1"))
        assert state.status == TimerStatus.RUNNING
        assert state.session_id == "s1"
        assert state.starting is False
        assert effects == [StartTicking()]

    def test_start_failed_stays_idle(self):
        state, _ = transition(initial_state(), Start())
        state, effects = transition(state, StartFailed("boom"))
        assert state.status == TimerStatus.IDLE
        assert state.starting is False
        assert effects == []

    def test_start_while_running_is_ignored(self):
        state = _running()
        assert transition(state, Start()) == (state, [])

    def test_pause_and_resume(self):
        paused, effects = transition(_running(900), Pause())
        assert paused.status == TimerStatus.PAUSED
        assert paused.time_left == 900
        assert effects == [StopTicking()]

        resumed, effects = transition(paused, Resume())
        assert resumed.status == TimerStatus.RUNNING
        assert effects == [StartTicking()]

    def test_pause_when_idle_is_ignored(self):
        state = initial_state()
        assert transition(state, Pause()) == (state, [])

    def test_tick_only_counts_while_running(self):
        paused = TimerState("pomodoro", 1500, 900, TimerStatus.PAUSED, "s1")
        assert transition(paused, Tick(NOW)) == (paused, [])

    def test_tick_decrements(self):
        state, effects = transition(_running(10), Tick(NOW))
        assert state.time_left == 9
        assert effects == []

    def test_last_tick_completes_session(self):
        state, effects = transition(_running(1), Tick(NOW))
        assert state.status == TimerStatus.IDLE
        assert state.time_left == 1500
        assert state.session_id is None
        assert effects == [StopTicking(), CompleteSession("s1", NOW), PlayTone()]

    def test_reset_cancels_session(self):
        state, effects = transition(_running(600), Reset())
        assert state.status == TimerStatus.IDLE
        assert state.time_left == 1500
        assert effects == [StopTicking(), CancelSession("s1")]

    def test_reset_when_idle_is_ignored(self):
        state = initial_state()
        assert transition(state, Reset()) == (state, [])

    def test_change_type_when_idle(self):
        state, effects = transition(initial_state(), ChangeType("short-break", 300))
        assert state.timer_type == "short-break"
        assert state.time_left == 300
        assert effects == []

    def test_change_type_while_running_cancels(self):
        state, effects = transition(_running(600), ChangeType("long-break", 900))
        assert state.status == TimerStatus.IDLE
        assert state.duration == 900
        assert state.session_id is None
        assert effects == [StopTicking(), CancelSession("s1")]

    def test_progress_is_clamped(self):
        assert TimerState("pomodoro", 100, 150).progress == 0.0
        assert TimerState("pomodoro", 100, -5).progress == 1.0
        assert TimerState("pomodoro", 100, 25).progress == pytest.approx(0.75)
        assert TimerState("pomodoro", 0, 0).progress == 0.0


def test_format_clock():
    assert format_clock(1500) == "25:00"
    assert format_clock(61) == "01:01"
    assert format_clock(0) == "00:00"
    assert format_clock(-3) == "00:00"


# ----------------------------------------------------------------------
# Driver
# ----------------------------------------------------------------------

class FakeTicker:
    def __init__(self, callback):
        self.callback = callback
        self.running = False
        self.starts = 0
        self.cancels = 0

    def start(self):
        self.running = True
        self.starts += 1

    def cancel(self):
        self.running = False
        self.cancels += 1


@pytest.fixture
def gateway():
    gw = MagicMock()
    gw.start_session.return_value = {"success": True, "session": {"id": "s1"}}
    gw.complete_session.return_value = {"success": True}
    gw.cancel_session.return_value = {"success": True}
    return gw


@pytest.fixture
def tickers():
    return []


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def timer(gateway, tickers, notifier):
    def factory(callback):
        ticker = FakeTicker(callback)
        tickers.append(ticker)
        return ticker

    return FocusTimer(
        gateway,
        durations={"pomodoro": 3},
        notifier=notifier,
        ticker_factory=factory,
        clock=lambda: NOW,
    )


class TestFocusTimer:
    def test_start_creates_session_and_ticks(self, timer, gateway, tickers):
        assert timer.start("t1") is True
        gateway.start_session.assert_called_once_with("t1", "pomodoro", 3)
        assert timer.state.status == TimerStatus.RUNNING
        assert timer.state.session_id == "s1"
        assert tickers[0].running is True

    def test_start_twice_creates_one_session(self, timer, gateway):
        timer.start()
        timer.start()
        assert gateway.start_session.call_count == 1

    def test_failed_start_stays_idle(self, timer, gateway, tickers):
        gateway.start_session.return_value = {"error": "Unauthorized", "code": "UNAUTHORIZED"}
        assert timer.start() is False
        assert timer.state.status == TimerStatus.IDLE
        assert timer.state.starting is False
        assert tickers[0].starts == 0

    def test_start_exception_stays_idle(self, timer, gateway):
        gateway.start_session.side_effect = RuntimeError("db down")
        assert timer.start() is False
        assert timer.state.status == TimerStatus.IDLE

    def test_countdown_completes_once(self, timer, gateway, tickers, notifier):
        timer.start()
        timer.tick()
        timer.tick()
        assert timer.state.time_left == 1
        timer.tick()

        gateway.complete_session.assert_called_once_with("s1", NOW)
        notifier.assert_called_once_with()
        assert timer.state.status == TimerStatus.IDLE
        assert timer.state.time_left == 3
        assert tickers[0].running is False

        timer.tick()
        assert gateway.complete_session.call_count == 1

    def test_pause_freezes_countdown(self, timer, tickers):
        timer.start()
        timer.tick()
        timer.pause()
        assert tickers[0].running is False
        timer.tick()
        assert timer.state.time_left == 2
        timer.resume()
        assert tickers[0].running is True
        assert timer.state.status == TimerStatus.RUNNING

    def test_reset_cancels_session(self, timer, gateway):
        timer.start()
        timer.tick()
        timer.reset()
        gateway.cancel_session.assert_called_once_with("s1")
        assert timer.state.status == TimerStatus.IDLE
        assert timer.state.time_left == 3

    def test_reset_tolerates_cancel_failure(self, timer, gateway):
        gateway.cancel_session.side_effect = RuntimeError("offline")
        timer.start()
        timer.reset()
        assert timer.state.status == TimerStatus.IDLE

    def test_change_type_when_idle_does_not_prompt(self, timer):
        confirm = MagicMock(return_value=False)
        assert timer.change_type("short-break", confirm=confirm) is True
        confirm.assert_not_called()
        assert timer.state.timer_type == "short-break"
        assert timer.state.time_left == 300

    def test_change_type_declined_keeps_running(self, timer, gateway):
        timer.start()
        confirm = MagicMock(return_value=False)
        assert timer.change_type("long-break", confirm=confirm) is False
        confirm.assert_called_once_with(SWITCH_PROMPT)
        assert timer.state.status == TimerStatus.RUNNING
        gateway.cancel_session.assert_not_called()

    def test_change_type_confirmed_cancels_session(self, timer, gateway):
        timer.start()
        assert timer.change_type("long-break", confirm=lambda prompt: True) is True
        gateway.cancel_session.assert_called_once_with("s1")
        assert timer.state.status == TimerStatus.IDLE
        assert timer.state.timer_type == "long-break"
        assert timer.state.time_left == 900

    def test_change_type_unknown(self, timer):
        with pytest.raises(ValueError):
            timer.change_type("nap")

    def test_notifier_failure_is_ignored(self, timer, notifier):
        notifier.side_effect = OSError("no audio")
        timer.start()
        for _ in range(3):
            timer.tick()
        assert timer.state.status == TimerStatus.IDLE

    def test_snapshot(self, timer):
        timer.start("t1")
        timer.tick()
        snap = timer.snapshot()
        assert snap["type"] == "pomodoro"
        assert snap["status"] == "running"
        assert snap["timeLeft"] == 2
        assert snap["display"] == "00:02"
        assert snap["sessionId"] == "s1"
        assert snap["taskId"] == "t1"
        assert snap["progress"] == pytest.approx(1 / 3, abs=1e-3)


# ----------------------------------------------------------------------
# IntervalTicker
# ----------------------------------------------------------------------

class TestIntervalTicker:
    def test_fires_repeatedly(self):
        fired = threading.Event()
        calls = []

        def callback():
            calls.append(1)
            if len(calls) >= 2:
                fired.set()

        ticker = IntervalTicker(callback, interval=0.01)
        ticker.start()
        try:
            assert fired.wait(2.0)
        finally:
            ticker.cancel()

    def test_cancel_before_first_tick(self):
        calls = []
        ticker = IntervalTicker(lambda: calls.append(1), interval=0.05)
        ticker.start()
        ticker.cancel()
        time.sleep(0.15)
        assert calls == []
