"""Focus timer for FocusFlow.

The timer is split in two:

- :func:`transition` is a pure function ``(state, event) -> (state, effects)``.
  It never touches storage, clocks or audio; it only says what should happen.
- :class:`FocusTimer` is the driver.  It feeds events into ``transition`` and
  executes the returned effects: session-store calls, starting/stopping the
  one-second ticker and the completion tone.

Events arriving in a state that does not accept them are ignored.
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Union

from focusflow.core.models import SessionType

logger = logging.getLogger(__name__)


DEFAULT_DURATIONS: dict[str, int] = {
    SessionType.POMODORO.value: 25 * 60,
    SessionType.SHORT_BREAK.value: 5 * 60,
    SessionType.LONG_BREAK.value: 15 * 60,
}

SWITCH_PROMPT = "Timer is running. Switch anyway?"


class TimerStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(frozen=True)
class TimerState:
    timer_type: str
    duration: int  # full length of the current type, seconds
    time_left: int
    status: TimerStatus = TimerStatus.IDLE
    session_id: Optional[str] = None
    task_id: Optional[str] = None
    starting: bool = False  # a session create call is in flight

    @property
    def progress(self) -> float:
        if self.duration <= 0:
            return 0.0
        fraction = (self.duration - self.time_left) / self.duration
        return min(1.0, max(0.0, fraction))


def initial_state(timer_type: str = SessionType.POMODORO.value, durations: Optional[dict[str, int]] = None) -> TimerState:
    full = (durations or DEFAULT_DURATIONS)[timer_type]
    return TimerState(timer_type=timer_type, duration=full, time_left=full)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Start:
    task_id: Optional[str] = None


@dataclass(frozen=True)
class SessionStarted:
    session_id: str


@dataclass(frozen=True)
class StartFailed:
    reason: str = ""


@dataclass(frozen=True)
class Pause:
    pass


@dataclass(frozen=True)
class Resume:
    pass


@dataclass(frozen=True)
class Reset:
    pass


@dataclass(frozen=True)
class Tick:
    now: datetime


@dataclass(frozen=True)
class ChangeType:
    timer_type: str
    duration: int


Event = Union[Start, SessionStarted, StartFailed, Pause, Resume, Reset, Tick, ChangeType]


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CreateSession:
    task_id: Optional[str]
    timer_type: str
    duration: int


@dataclass(frozen=True)
class CompleteSession:
    session_id: str
    end_time: datetime


@dataclass(frozen=True)
class CancelSession:
    session_id: str


@dataclass(frozen=True)
class StartTicking:
    pass


@dataclass(frozen=True)
class StopTicking:
    pass


@dataclass(frozen=True)
class PlayTone:
    pass


Effect = Union[CreateSession, CompleteSession, CancelSession, StartTicking, StopTicking, PlayTone]


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def transition(state: TimerState, event: Event) -> tuple[TimerState, list[Effect]]:
    """Return the next state and the effects the driver must run."""
    status = state.status

    if isinstance(event, Start):
        if status != TimerStatus.IDLE or state.starting:
            return state, []
        return (
            replace(state, starting=True, task_id=event.task_id),
            [CreateSession(event.task_id, state.timer_type, state.duration)],
        )

    if isinstance(event, SessionStarted):
        if status != TimerStatus.IDLE or not state.starting:
            return state, []
        return replace(state, status=TimerStatus.RUNNING, session_id=event.session_id, starting=False), [StartTicking()]

    if isinstance(event, StartFailed):
        if not state.starting:
            return state, []
        return replace(state, starting=False, session_id=None), []

    if isinstance(event, Pause):
        if status != TimerStatus.RUNNING:
            return state, []
        return replace(state, status=TimerStatus.PAUSED), [StopTicking()]

    if isinstance(event, Resume):
        if status != TimerStatus.PAUSED:
            return state, []
        return replace(state, status=TimerStatus.RUNNING), [StartTicking()]

    if isinstance(event, Reset):
        if status not in (TimerStatus.RUNNING, TimerStatus.PAUSED):
            return state, []
        effects: list[Effect] = [StopTicking()]
        if state.session_id:
            effects.append(CancelSession(state.session_id))
        return _back_to_idle(state), effects

    if isinstance(event, Tick):
        if status != TimerStatus.RUNNING:
            return state, []
        remaining = max(0, state.time_left - 1)
        if remaining > 0:
            return replace(state, time_left=remaining), []
        effects = [StopTicking()]
        if state.session_id:
            effects.append(CompleteSession(state.session_id, event.now))
        effects.append(PlayTone())
        return _back_to_idle(state), effects

    if isinstance(event, ChangeType):
        if state.starting:
            return state, []
        effects = []
        if status != TimerStatus.IDLE:
            effects.append(StopTicking())
            if state.session_id:
                effects.append(CancelSession(state.session_id))
        return (
            TimerState(
                timer_type=event.timer_type,
                duration=event.duration,
                time_left=event.duration,
                task_id=state.task_id,
            ),
            effects,
        )

    return state, []


def _back_to_idle(state: TimerState) -> TimerState:
    return replace(state, status=TimerStatus.IDLE, time_left=state.duration, session_id=None, starting=False)


def format_clock(seconds: int) -> str:
    """Render remaining seconds as ``MM:SS``."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------

class SessionGateway(Protocol):
    """Session calls the timer makes, already bound to one user."""

    def start_session(self, task_id: Optional[str], session_type: str, duration: int) -> dict[str, Any]: ...

    def complete_session(self, session_id: str, end_time: datetime) -> dict[str, Any]: ...

    def cancel_session(self, session_id: str) -> dict[str, Any]: ...


class Ticker(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


class IntervalTicker:
    """Calls *callback* every *interval* seconds on a daemon timer thread.

    Each tick schedules the next one, so two ticks never overlap.  Every
    ``start`` opens a new generation; callbacks from an older generation are
    dropped, so a cancelled ticker never fires again.
    """

    def __init__(self, callback: Callable[[], None], interval: float = 1.0) -> None:
        self.callback = callback
        self.interval = interval
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._generation = 0
        self._active = False

    def start(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._active = True
            self._schedule(self._generation)

    def cancel(self) -> None:
        with self._lock:
            self._active = False
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _schedule(self, generation: int) -> None:
        self._timer = threading.Timer(self.interval, self._fire, args=(generation,))
        self._timer.daemon = True
        self._timer.start()

    def _current(self, generation: int) -> bool:
        with self._lock:
            return self._active and generation == self._generation

    def _fire(self, generation: int) -> None:
        if not self._current(generation):
            return
        try:
            self.callback()
        except Exception:
            logger.exception("Timer tick failed")
        with self._lock:
            if self._active and generation == self._generation:
                self._schedule(generation)


class FocusTimer:
    """Runs the timer state machine against real collaborators.

    *sessions* persists the focus session, *notifier* plays the completion
    tone, *confirm* answers the switch prompt while a timer is active.
    """

    def __init__(
        self,
        sessions: SessionGateway,
        durations: Optional[dict[str, int]] = None,
        notifier: Optional[Callable[[], None]] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        ticker_factory: Optional[Callable[[Callable[[], None]], Ticker]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.sessions = sessions
        self.durations = dict(DEFAULT_DURATIONS)
        if durations:
            self.durations.update(durations)
        self._notifier = notifier
        self._confirm = confirm or (lambda prompt: False)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        factory = ticker_factory or (lambda cb: IntervalTicker(cb))
        self._ticker: Ticker = factory(self.tick)
        self._lock = threading.RLock()
        self.state = initial_state(SessionType.POMODORO.value, self.durations)

    # ----- Public API -----

    def start(self, task_id: Optional[str] = None) -> bool:
        """Create a session and begin counting down.  Returns ``True`` on success."""
        with self._lock:
            self._dispatch(Start(task_id))
            return self.state.status == TimerStatus.RUNNING

    def pause(self) -> None:
        with self._lock:
            self._dispatch(Pause())

    def resume(self) -> None:
        with self._lock:
            self._dispatch(Resume())

    def reset(self) -> None:
        with self._lock:
            self._dispatch(Reset())

    def tick(self) -> None:
        """Advance the countdown by one second.  Called by the ticker."""
        with self._lock:
            self._dispatch(Tick(self._clock()))

    def change_type(self, timer_type: str, confirm: Optional[Callable[[str], bool]] = None) -> bool:
        """Switch timer type.  Returns ``False`` when the user declined."""
        if timer_type not in self.durations:
            raise ValueError(f"Unknown timer type: {timer_type!r}")
        with self._lock:
            if self.state.status != TimerStatus.IDLE:
                ask = confirm or self._confirm
                if not ask(SWITCH_PROMPT):
                    return False
            self._dispatch(ChangeType(timer_type, self.durations[timer_type]))
            return True

    def snapshot(self) -> dict[str, Any]:
        state = self.state
        return {
            "type": state.timer_type,
            "status": state.status.value,
            "timeLeft": state.time_left,
            "duration": state.duration,
            "progress": round(state.progress, 4),
            "display": format_clock(state.time_left),
            "sessionId": state.session_id,
            "taskId": state.task_id,
        }

    def shutdown(self) -> None:
        self._ticker.cancel()

    # ----- Effect execution -----

    def _dispatch(self, event: Event) -> None:
        pending: list[Event] = [event]
        while pending:
            self.state, effects = transition(self.state, pending.pop(0))
            for effect in effects:
                follow_up = self._run(effect)
                if follow_up is not None:
                    pending.append(follow_up)

    def _run(self, effect: Effect) -> Optional[Event]:
        if isinstance(effect, CreateSession):
            return self._create_session(effect)
        if isinstance(effect, StartTicking):
            self._ticker.start()
        elif isinstance(effect, StopTicking):
            self._ticker.cancel()
        elif isinstance(effect, CancelSession):
            self._best_effort("cancel", lambda: self.sessions.cancel_session(effect.session_id))
        elif isinstance(effect, CompleteSession):
            self._best_effort(
                "complete", lambda: self.sessions.complete_session(effect.session_id, effect.end_time)
            )
        elif isinstance(effect, PlayTone):
            self._play_tone()
        return None

    def _create_session(self, effect: CreateSession) -> Event:
        try:
            result = self.sessions.start_session(effect.task_id, effect.timer_type, effect.duration)
        except Exception:
            logger.exception("Failed to start focus session")
            return StartFailed("exception")
        session = result.get("session") if result.get("success") else None
        if not session:
            logger.info("Focus session not started: %s", result.get("error"))
            return StartFailed(result.get("error", ""))
        return SessionStarted(session["id"])

    def _best_effort(self, action: str, fn: Callable[[], dict[str, Any]]) -> None:
        try:
            result = fn()
        except Exception:
            logger.exception("Failed to %s focus session", action)
            return
        if result and "error" in result:
            logger.warning("Could not %s focus session: %s", action, result["error"])

    def _play_tone(self) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier()
        except Exception:
            logger.debug("Completion tone unavailable", exc_info=True)
