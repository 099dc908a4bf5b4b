"""Application shell for FocusFlow.

Wires the store, services, timers and the task event bus from config and
serves the JSON API.  One :class:`FocusTimer` and one event bus exist per
signed-in user; both live only as long as the process.
"""

import logging
import os
import threading
from datetime import datetime
from typing import Any, Optional

from focusflow.core.assistant import TaskAssistant
from focusflow.core.auth import AuthService
from focusflow.core.config import get_section, load_config
from focusflow.core.events import RecentTaskEvents, TaskEventBus
from focusflow.core.llm import LLMClient
from focusflow.core.models import SessionType
from focusflow.core.sessions import SessionService
from focusflow.core.tasks import TaskService
from focusflow.core.timer import FocusTimer
from focusflow.persistence.store import FocusStore
from focusflow.platform.sound import TonePlayer
from focusflow.reporting.insights import InsightGenerator

logger = logging.getLogger(__name__)


class UserSessionGateway:
    """Session calls for the timer, bound to one user."""

    def __init__(self, sessions: SessionService, user_id: str) -> None:
        self.sessions = sessions
        self.user_id = user_id

    def start_session(self, task_id: Optional[str], session_type: str, duration: int) -> dict[str, Any]:
        return self.sessions.start_session(self.user_id, task_id, session_type, duration)

    def complete_session(self, session_id: str, end_time: datetime) -> dict[str, Any]:
        return self.sessions.complete_session(self.user_id, session_id, end_time)

    def cancel_session(self, session_id: str) -> dict[str, Any]:
        return self.sessions.cancel_session(self.user_id, session_id)


class FocusFlowApp:
    """Main application object; the web layer reaches everything through it."""

    def __init__(self, config_path: Optional[str] = None, config: Optional[dict[str, Any]] = None) -> None:
        self.config_path = config_path
        self.config = config if config is not None else load_config(config_path)
        self.store: Optional[FocusStore] = None
        self.auth: Optional[AuthService] = None
        self.tasks: Optional[TaskService] = None
        self.sessions: Optional[SessionService] = None
        self.assistant: Optional[TaskAssistant] = None
        self.insights: Optional[InsightGenerator] = None
        self.notifier = None
        self._timers: dict[str, FocusTimer] = {}
        self._buses: dict[str, TaskEventBus] = {}
        self._feeds: dict[str, RecentTaskEvents] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Initialize all components and serve the API until interrupted."""
        from focusflow.ui.web import run_server

        self.init_components()
        try:
            run_server(self, host=self.config.get("host", "127.0.0.1"), port=int(self.config.get("port", 5000)))
        finally:
            self.stop()

    def stop(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.shutdown()
        if self.store is not None:
            self.store.close()
            self.store = None
        logger.info("FocusFlow stopped")

    def timer_for(self, user_id: str) -> FocusTimer:
        with self._lock:
            timer = self._timers.get(user_id)
            if timer is None:
                timer = FocusTimer(
                    UserSessionGateway(self.sessions, user_id),
                    durations=self.timer_durations(),
                    notifier=self.notifier,
                )
                self._timers[user_id] = timer
            return timer

    def events_for(self, user_id: str) -> TaskEventBus:
        with self._lock:
            bus = self._buses.get(user_id)
            if bus is None:
                bus = TaskEventBus()
                feed = RecentTaskEvents()
                bus.subscribe(feed)
                self._buses[user_id] = bus
                self._feeds[user_id] = feed
            return bus

    def recent_events(self, user_id: str) -> RecentTaskEvents:
        self.events_for(user_id)
        return self._feeds[user_id]

    def timer_durations(self) -> dict[str, int]:
        timer_cfg = get_section(self.config, "timer")
        return {
            SessionType.POMODORO.value: int(timer_cfg["pomodoro_seconds"]),
            SessionType.SHORT_BREAK.value: int(timer_cfg["short_break_seconds"]),
            SessionType.LONG_BREAK.value: int(timer_cfg["long_break_seconds"]),
        }

    # ------------------------------------------------------------------
    # Component initialization
    # ------------------------------------------------------------------

    def init_components(self) -> None:
        """Wire up all FocusFlow components from config."""
        config = self.config

        # Database
        db_path = config.get("database_path", "~/.focusflow/focusflow.db")
        if db_path != ":memory:":
            db_path = os.path.expanduser(db_path)
            os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self.store = FocusStore(db_path)
        self.store.init_db()

        # Services
        self.auth = AuthService(self.store)
        self.tasks = TaskService(self.store)
        self.sessions = SessionService(self.store)

        # Chat assistant
        chat_cfg = get_section(config, "chat")
        chat_llm = LLMClient.from_config(chat_cfg)
        if not chat_llm.configured:
            logger.warning("Chat model credential missing (%s); chat disabled", chat_cfg.get("api_key_env"))
        self.assistant = TaskAssistant(self.tasks, chat_llm, context_limit=int(chat_cfg["context_task_limit"]))

        # Insights
        insights_cfg = get_section(config, "insights")
        self.insights = InsightGenerator(LLMClient.from_config(insights_cfg))

        # Completion tone
        self.notifier = TonePlayer()
        logger.info("FocusFlow components initialized (database: %s)", db_path)
