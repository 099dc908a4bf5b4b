"""Tests for analytics aggregation."""

from datetime import date, datetime, timedelta, timezone

import pytest

from focusflow.core.models import FocusSession, SessionStatus, Task, TaskPriority, TaskStatus
from focusflow.reporting.analytics import aggregate, daily_focus, peak_hours, session_stats, task_stats

NOW = datetime(2025, 1, 15, 18, 0, tzinfo=timezone.utc)


def _session(start, minutes=None, status=SessionStatus.COMPLETED, session_type="pomodoro"):
    end = start + timedelta(minutes=minutes) if minutes is not None else None
    return FocusSession(
        id=f"s-{start.isoformat()}-{status.value}", type=session_type, duration=1500,
        status=status, start_time=start, user_id="u", end_time=end,
    )


def _task(status=TaskStatus.TODO, priority=TaskPriority.MEDIUM):
    return Task(id="t", title="t", user_id="u", created_at=NOW, status=status, priority=priority)


# ----------------------------------------------------------------------
# daily_focus / session_stats
# ----------------------------------------------------------------------

class TestDailyFocus:
    def test_groups_by_utc_date_ascending(self):
        sessions = [
            _session(datetime(2025, 1, 14, 23, 30, tzinfo=timezone.utc), 25),
            _session(datetime(2025, 1, 13, 9, 0, tzinfo=timezone.utc), 25),
            _session(datetime(2025, 1, 14, 8, 0, tzinfo=timezone.utc), 50),
        ]
        days = daily_focus(sessions)
        assert [d.date for d in days] == [date(2025, 1, 13), date(2025, 1, 14)]
        assert days[1].minutes == 75
        assert days[1].sessions == 2

    def test_non_utc_start_uses_utc_day(self):
        tz = timezone(timedelta(hours=5))
        start = datetime(2025, 1, 15, 2, 0, tzinfo=tz)  # 2025-01-14 21:00 UTC
        assert daily_focus([_session(start, 25)])[0].date == date(2025, 1, 14)

    def test_minutes_floor_and_open_sessions(self):
        start = datetime(2025, 1, 14, 9, 0, tzinfo=timezone.utc)
        partial = FocusSession(
            id="p", type="pomodoro", duration=1500, status=SessionStatus.CANCELLED,
            start_time=start, user_id="u", end_time=start + timedelta(minutes=12, seconds=59),
        )
        running = _session(start, None, SessionStatus.RUNNING)
        days = daily_focus([partial, running])
        assert days[0].minutes == 12
        assert days[0].sessions == 2

    def test_session_stats(self):
        start = datetime(2025, 1, 14, 9, 0, tzinfo=timezone.utc)
        stats = session_stats([
            _session(start, 25),
            _session(start, 10, SessionStatus.CANCELLED),
            _session(start, None, SessionStatus.RUNNING),
        ])
        assert stats.to_dict() == {"total": 3, "completed": 1, "cancelled": 1, "totalMinutes": 35}


# ----------------------------------------------------------------------
# task_stats
# ----------------------------------------------------------------------

def test_task_stats_counts_status_and_priority():
    stats = task_stats([
        _task(TaskStatus.TODO, TaskPriority.HIGH),
        _task(TaskStatus.IN_PROGRESS, TaskPriority.HIGH),
        _task(TaskStatus.COMPLETED, TaskPriority.LOW),
        _task(TaskStatus.TODO, TaskPriority.MEDIUM),
    ])
    assert stats.to_dict() == {
        "total": 4,
        "todo": 2,
        "inProgress": 1,
        "completed": 1,
        "highPriority": 2,
        "mediumPriority": 1,
        "lowPriority": 1,
    }


# ----------------------------------------------------------------------
# peak_hours
# ----------------------------------------------------------------------

class TestPeakHours:
    def test_only_completed_sessions_count(self):
        sessions = [
            _session(datetime(2025, 1, 14, 9, 0, tzinfo=timezone.utc), 25),
            _session(datetime(2025, 1, 14, 9, 30, tzinfo=timezone.utc), 5, SessionStatus.CANCELLED),
        ]
        peaks = peak_hours(sessions, timezone.utc)
        assert [(p.hour, p.count) for p in peaks] == [(9, 1)]

    def test_ranked_and_limited_to_five(self):
        sessions = []
        for hour, count in [(8, 1), (9, 3), (10, 2), (11, 1), (13, 1), (14, 1), (15, 4)]:
            for i in range(count):
                sessions.append(_session(datetime(2025, 1, 10 + i, hour, 0, tzinfo=timezone.utc), 25))
        peaks = peak_hours(sessions, timezone.utc)
        assert len(peaks) == 5
        assert [(p.hour, p.count) for p in peaks[:3]] == [(15, 4), (9, 3), (10, 2)]
        # ties keep first-seen order
        assert [p.hour for p in peaks[3:]] == [8, 11]

    def test_uses_given_zone(self):
        tz = timezone(timedelta(hours=-5))
        peaks = peak_hours([_session(datetime(2025, 1, 14, 14, 0, tzinfo=timezone.utc), 25)], tz)
        assert peaks[0].hour == 9


# ----------------------------------------------------------------------
# aggregate
# ----------------------------------------------------------------------

class TestAggregate:
    def test_window_excludes_old_sessions(self):
        sessions = [
            _session(NOW - timedelta(days=2), 25),
            _session(NOW - timedelta(days=40), 25),
        ]
        report = aggregate(sessions, [], 30, now=NOW, local_tz=timezone.utc)
        assert report.session_stats.total == 1
        assert report.window_days == 30

    def test_daily_minutes_sum_to_total(self):
        sessions = [
            _session(NOW - timedelta(days=d, hours=h), 10 + d + h, status)
            for d in range(5)
            for h, status in [(1, SessionStatus.COMPLETED), (3, SessionStatus.CANCELLED)]
        ]
        report = aggregate(sessions, [], 7, now=NOW, local_tz=timezone.utc)
        assert sum(d.minutes for d in report.daily) == report.session_stats.total_minutes
        assert sum(d.sessions for d in report.daily) == report.session_stats.total

    def test_tasks_are_not_windowed(self):
        report = aggregate([], [_task(), _task(TaskStatus.COMPLETED)], 1, now=NOW)
        assert report.task_stats.total == 2
        assert report.daily == []
        assert report.peak_hours == []

    def test_to_dict_shape(self):
        report = aggregate([_session(NOW - timedelta(hours=2), 25)], [], 7, now=NOW, local_tz=timezone.utc)
        data = report.to_dict()
        assert set(data) == {"dailyData", "taskStats", "sessionStats", "peakHours"}
        assert data["dailyData"] == [{"date": "2025-01-15", "minutes": 25, "sessions": 1}]
        assert data["peakHours"] == [{"hour": 16, "count": 1}]

    @pytest.mark.parametrize("days", [1, 7, 30])
    def test_empty(self, days):
        report = aggregate([], [], days, now=NOW)
        assert report.session_stats.total_minutes == 0
        assert report.to_dict()["dailyData"] == []
