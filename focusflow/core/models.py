"""Core data models for FocusFlow.

Defines the dataclasses and enums shared across the application:
- Accounts: User
- Tasks: TaskStatus, TaskPriority, Task
- Focus sessions: SessionType, SessionStatus, FocusSession
- Reporting: DailyFocus, TaskStats, SessionStats, PeakHour, AnalyticsReport,
  InsightsResult
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

@dataclass
class User:
    """A registered account. ``password_hash`` never leaves the server."""
    id: str
    email: str
    password_hash: str
    name: Optional[str]
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "email": self.email, "name": self.name}


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

class TaskStatus(Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class TaskPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class Task:
    """A to-do item owned by exactly one user."""
    id: str
    title: str
    user_id: str
    created_at: datetime
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None

    @property
    def is_open(self) -> bool:
        return self.status != TaskStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "userId": self.user_id,
            "createdAt": _iso(self.created_at),
        }


# ---------------------------------------------------------------------------
# Focus sessions
# ---------------------------------------------------------------------------

class SessionType(Enum):
    """Built-in timer types. Sessions may also carry a custom label."""
    POMODORO = "pomodoro"
    SHORT_BREAK = "short-break"
    LONG_BREAK = "long-break"


class SessionStatus(Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self != SessionStatus.RUNNING


@dataclass
class FocusSession:
    """A timed interval of work or break.

    ``type`` is a plain string: one of the :class:`SessionType` values or a
    custom label chosen by the user.
    """
    id: str
    type: str
    duration: int  # seconds
    status: SessionStatus
    start_time: datetime
    user_id: str
    end_time: Optional[datetime] = None
    task_id: Optional[str] = None
    task_title: Optional[str] = None  # joined from tasks when listing

    @property
    def focus_minutes(self) -> int:
        """Whole minutes between start and end; 0 while no end is recorded."""
        if self.end_time is None:
            return 0
        return int((self.end_time - self.start_time).total_seconds() // 60)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "type": self.type,
            "duration": self.duration,
            "status": self.status.value,
            "startTime": _iso(self.start_time),
            "endTime": _iso(self.end_time),
            "userId": self.user_id,
            "taskId": self.task_id,
        }
        if self.task_title is not None:
            data["task"] = {"title": self.task_title}
        return data


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------

@dataclass
class DailyFocus:
    """Focus minutes and session count for one UTC calendar day."""
    date: date
    minutes: int = 0
    sessions: int = 0


@dataclass
class TaskStats:
    total: int = 0
    todo: int = 0
    in_progress: int = 0
    completed: int = 0
    high_priority: int = 0
    medium_priority: int = 0
    low_priority: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "todo": self.todo,
            "inProgress": self.in_progress,
            "completed": self.completed,
            "highPriority": self.high_priority,
            "mediumPriority": self.medium_priority,
            "lowPriority": self.low_priority,
        }


@dataclass
class SessionStats:
    total: int = 0
    completed: int = 0
    cancelled: int = 0
    total_minutes: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "completed": self.completed,
            "cancelled": self.cancelled,
            "totalMinutes": self.total_minutes,
        }


@dataclass
class PeakHour:
    hour: int  # 0-23, local time
    count: int


@dataclass
class AnalyticsReport:
    """Aggregated focus data over a trailing window of days."""
    window_days: int
    daily: list[DailyFocus] = field(default_factory=list)  # ascending by date
    task_stats: TaskStats = field(default_factory=TaskStats)
    session_stats: SessionStats = field(default_factory=SessionStats)
    peak_hours: list[PeakHour] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "dailyData": [
                {"date": d.date.isoformat(), "minutes": d.minutes, "sessions": d.sessions}
                for d in self.daily
            ],
            "taskStats": self.task_stats.to_dict(),
            "sessionStats": self.session_stats.to_dict(),
            "peakHours": [{"hour": p.hour, "count": p.count} for p in self.peak_hours],
        }


@dataclass
class InsightsResult:
    """Coaching tips, plus the reason the fallback was used (if any)."""
    insights: list[str]
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"insights": list(self.insights)}
        if self.error:
            data["error"] = self.error
        return data
