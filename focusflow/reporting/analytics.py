"""Analytics aggregation over focus sessions and tasks."""

from collections import Counter
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, Optional

from focusflow.core.models import (
    AnalyticsReport,
    DailyFocus,
    FocusSession,
    PeakHour,
    SessionStats,
    SessionStatus,
    Task,
    TaskPriority,
    TaskStats,
    TaskStatus,
)

PEAK_HOUR_COUNT = 5


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def aggregate(
    sessions: Iterable[FocusSession],
    tasks: Iterable[Task],
    window_days: int,
    now: Optional[datetime] = None,
    local_tz: Optional[tzinfo] = None,
) -> AnalyticsReport:
    """Build an :class:`AnalyticsReport`.

    Only sessions started within the last *window_days* days count; tasks are
    tallied without a window.  Days are UTC calendar dates, peak hours use
    *local_tz* (the server's local zone when ``None``).
    """
    now = _aware(now or datetime.now(timezone.utc))
    cutoff = now - timedelta(days=window_days)
    windowed = [s for s in sessions if _aware(s.start_time) >= cutoff]

    return AnalyticsReport(
        window_days=window_days,
        daily=daily_focus(windowed),
        task_stats=task_stats(tasks),
        session_stats=session_stats(windowed),
        peak_hours=peak_hours(windowed, local_tz),
    )


def daily_focus(sessions: Iterable[FocusSession]) -> list[DailyFocus]:
    days: dict = {}
    for s in sessions:
        day = _aware(s.start_time).astimezone(timezone.utc).date()
        entry = days.setdefault(day, DailyFocus(date=day))
        entry.minutes += s.focus_minutes
        entry.sessions += 1
    return [days[d] for d in sorted(days)]


def task_stats(tasks: Iterable[Task]) -> TaskStats:
    stats = TaskStats()
    for t in tasks:
        stats.total += 1
        if t.status == TaskStatus.TODO:
            stats.todo += 1
        elif t.status == TaskStatus.IN_PROGRESS:
            stats.in_progress += 1
        elif t.status == TaskStatus.COMPLETED:
            stats.completed += 1

        if t.priority == TaskPriority.HIGH:
            stats.high_priority += 1
        elif t.priority == TaskPriority.MEDIUM:
            stats.medium_priority += 1
        elif t.priority == TaskPriority.LOW:
            stats.low_priority += 1
    return stats


def session_stats(sessions: Iterable[FocusSession]) -> SessionStats:
    stats = SessionStats()
    for s in sessions:
        stats.total += 1
        if s.status == SessionStatus.COMPLETED:
            stats.completed += 1
        elif s.status == SessionStatus.CANCELLED:
            stats.cancelled += 1
        stats.total_minutes += s.focus_minutes
    return stats


def peak_hours(sessions: Iterable[FocusSession], local_tz: Optional[tzinfo] = None) -> list[PeakHour]:
    """Top hours of day by completed sessions; ties keep first-seen order."""
    counts: Counter = Counter()
    for s in sessions:
        if s.status != SessionStatus.COMPLETED:
            continue
        counts[_aware(s.start_time).astimezone(local_tz).hour] += 1
    # Counter preserves insertion order and sorted() is stable
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [PeakHour(hour=h, count=c) for h, c in ranked[:PEAK_HOUR_COUNT]]
