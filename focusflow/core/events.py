"""Task update notifications.

After the chat assistant changes a task, interested views need to refresh.
:class:`TaskEventBus` is a small observer registry owned by the application
shell and handed to whoever publishes or listens; delivery is synchronous and
fire-and-forget, and a failing listener never affects the others.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class TaskEventType(Enum):
    CREATED = "task-created"
    UPDATED = "task-updated"
    DELETED = "task-deleted"


@dataclass(frozen=True)
class TaskEventData:
    type: TaskEventType
    task: Optional[dict[str, Any]]
    timestamp: int  # milliseconds since the epoch

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "task": self.task, "timestamp": self.timestamp}


Listener = Callable[[TaskEventData], None]


class TaskEventBus:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event_type: TaskEventType, task: Optional[dict[str, Any]] = None) -> TaskEventData:
        event = TaskEventData(type=event_type, task=task, timestamp=int(time.time() * 1000))
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Task event listener failed for %s", event_type.value)
        return event


def publish_function_result(
    bus: TaskEventBus, name: str, args: dict[str, Any], result: Any
) -> Optional[TaskEventData]:
    """Announce the effect of an assistant function call, if it changed a task."""
    if not isinstance(result, dict):
        return None
    if name == "createTask" and result.get("task"):
        return bus.publish(TaskEventType.CREATED, result["task"])
    if name == "updateTask" and result.get("task"):
        return bus.publish(TaskEventType.UPDATED, result["task"])
    if name == "deleteTask" and result.get("success"):
        return bus.publish(TaskEventType.DELETED, {"id": args.get("id")})
    return None


class RecentTaskEvents:
    """Listener that keeps the latest events so polling clients can catch up."""

    def __init__(self, maxlen: int = 50) -> None:
        self._events: deque[TaskEventData] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def __call__(self, event: TaskEventData) -> None:
        with self._lock:
            self._events.append(event)

    def since(self, timestamp: int = 0) -> list[TaskEventData]:
        with self._lock:
            return [e for e in self._events if e.timestamp > timestamp]
