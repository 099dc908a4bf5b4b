"""Text formatter for FocusFlow reports.

Renders an AnalyticsReport and coaching tips as aligned plain text for the
command line, and provides the minute formatting used by the stats cards.
"""

from focusflow.core.models import AnalyticsReport, InsightsResult


class TextFormatter:
    """Formats report data as human-readable plain text."""

    @staticmethod
    def format_minutes(minutes: int) -> str:
        """Format whole minutes as 'Xh Ym', or 'Ym' under an hour."""
        minutes = max(0, int(minutes))
        hours, mins = divmod(minutes, 60)
        if hours == 0:
            return f"{mins}m"
        return f"{hours}h {mins}m"

    @staticmethod
    def completion_rate(completed: int, total: int) -> str:
        if total <= 0:
            return "0%"
        return f"{round(completed / total * 100)}%"

    @staticmethod
    def _format_daily_table(report: AnalyticsReport) -> str:
        """Render one row per day with focus time and session count.

        Returns lines like:
          Date          Focus  Sessions
          ─────────────────────────────
          2025-01-14   1h 15m         3
          ─────────────────────────────
          Total        1h 15m         3
        """
        if not report.daily:
            return "  No focus sessions recorded.\n"

        rows = [
            (d.date.isoformat(), TextFormatter.format_minutes(d.minutes), str(d.sessions))
            for d in report.daily
        ]
        total = (
            "Total",
            TextFormatter.format_minutes(report.session_stats.total_minutes),
            str(report.session_stats.total),
        )

        date_width = max(len("Date"), *(len(r[0]) for r in rows + [total]))
        time_width = max(len("Focus"), *(len(r[1]) for r in rows + [total]))
        sess_width = max(len("Sessions"), *(len(r[2]) for r in rows + [total]))

        def line(cells: tuple[str, str, str]) -> str:
            return f"  {cells[0]:<{date_width}}  {cells[1]:>{time_width}}  {cells[2]:>{sess_width}}"

        header = line(("Date", "Focus", "Sessions"))
        separator = "  " + "─" * (len(header) - 2)
        lines = [header, separator]
        lines.extend(line(r) for r in rows)
        lines.append(separator)
        lines.append(line(total))
        return "\n".join(lines) + "\n"

    @staticmethod
    def format_analytics(report: AnalyticsReport) -> str:
        """Render an analytics report as aligned plain text."""
        tasks = report.task_stats
        sessions = report.session_stats
        parts: list[str] = [f"Focus Analytics: last {report.window_days} days\n"]

        parts.append("\nDaily Focus:\n")
        parts.append(TextFormatter._format_daily_table(report))

        parts.append("\nSessions:\n")
        parts.append(
            f"  Completed {sessions.completed} of {sessions.total}, "
            f"cancelled {sessions.cancelled}, "
            f"focus time {TextFormatter.format_minutes(sessions.total_minutes)}\n"
        )

        parts.append("\nTasks:\n")
        parts.append(
            f"  {tasks.total} total: {tasks.todo} to do, {tasks.in_progress} in progress, "
            f"{tasks.completed} completed "
            f"({TextFormatter.completion_rate(tasks.completed, tasks.total)})\n"
        )
        parts.append(
            f"  Priority: {tasks.high_priority} high, {tasks.medium_priority} medium, "
            f"{tasks.low_priority} low\n"
        )

        if report.peak_hours:
            parts.append("\nPeak Hours:\n")
            for peak in report.peak_hours:
                plural = "s" if peak.count != 1 else ""
                parts.append(f"  {peak.hour:02d}:00  {peak.count} session{plural}\n")

        return "".join(parts)

    @staticmethod
    def format_insights(result: InsightsResult) -> str:
        lines = ["Insights:"]
        lines.extend(f"  - {tip}" for tip in result.insights)
        if result.error:
            lines.append(f"  ({result.error})")
        return "\n".join(lines) + "\n"
