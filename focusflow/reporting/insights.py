"""Productivity coaching tips from recent sessions and tasks.

Uses the language model when a credential is configured and falls back to a
fixed set of rule-based tips otherwise, or whenever the model call fails.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

from focusflow.core.llm import LLMClient
from focusflow.core.models import FocusSession, InsightsResult, SessionStatus, Task, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)

MAX_INSIGHTS = 5

_LIST_MARKER = re.compile(r"\n\d+\.|\n-|\n\*")

SYSTEM_PROMPT = (
    "You are a productivity coach. Analyze the user's work patterns and provide 3-5 specific, "
    "actionable recommendations to improve productivity. Keep each recommendation concise "
    "(1-2 sentences) and practical."
)


@dataclass
class UsageSummary:
    total_sessions: int
    completed_sessions: int
    focus_minutes: int
    total_tasks: int
    completed_tasks: int
    in_progress_tasks: int
    pending_tasks: int


def summarize(sessions: list[FocusSession], tasks: list[Task]) -> UsageSummary:
    completed = [s for s in sessions if s.status == SessionStatus.COMPLETED]
    return UsageSummary(
        total_sessions=len(sessions),
        completed_sessions=len(completed),
        focus_minutes=sum(s.focus_minutes for s in completed),
        total_tasks=len(tasks),
        completed_tasks=sum(1 for t in tasks if t.status == TaskStatus.COMPLETED),
        in_progress_tasks=sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS),
        pending_tasks=sum(1 for t in tasks if t.status == TaskStatus.TODO),
    )


def build_prompt(sessions: list[FocusSession], tasks: list[Task]) -> str:
    stats = summarize(sessions, tasks)
    recent = [
        {"type": s.type, "duration": s.duration, "date": s.start_time.isoformat()}
        for s in sessions
        if s.status == SessionStatus.COMPLETED
    ][:5]
    pending = [
        {"title": t.title, "priority": t.priority.value, "status": t.status.value}
        for t in tasks
        if t.is_open
    ][:5]
    return (
        "Based on the following data:\n"
        f"- Total focus sessions: {stats.total_sessions}\n"
        f"- Completed sessions: {stats.completed_sessions}\n"
        f"- Total focus time: {stats.focus_minutes // 60} hours {stats.focus_minutes % 60} minutes\n"
        f"- Total tasks: {stats.total_tasks}\n"
        f"- Completed tasks: {stats.completed_tasks}\n"
        f"- Tasks in progress: {stats.in_progress_tasks}\n"
        f"- Tasks pending: {stats.pending_tasks}\n\n"
        f"Recent sessions: {json.dumps(recent)}\n\n"
        f"Pending tasks: {json.dumps(pending)}\n\n"
        "Provide 3-5 specific, actionable recommendations to improve productivity."
    )


def parse_insights(text: str) -> list[str]:
    """Split a reply on markdown list markers into at most five tips."""
    parts = (p.strip() for p in _LIST_MARKER.split(text or ""))
    return [p for p in parts if p][:MAX_INSIGHTS]


def default_insights(sessions: list[FocusSession], tasks: list[Task]) -> list[str]:
    insights: list[str] = []

    open_tasks = [t for t in tasks if t.is_open]
    if len(open_tasks) > 10:
        insights.append("💡 Consider breaking down large tasks into smaller, manageable chunks to reduce overwhelm.")

    high_priority = [t for t in open_tasks if t.priority == TaskPriority.HIGH]
    if len(high_priority) > 3:
        insights.append("🎯 Focus on completing high-priority tasks first. Consider using the Eisenhower Matrix.")

    if any(s.status == SessionStatus.COMPLETED for s in sessions):
        insights.append("✅ Great job staying consistent! Try to maintain your current work schedule.")
    else:
        insights.append("🚀 Start with short 25-minute Pomodoro sessions to build momentum.")

    if not tasks:
        insights.append("📝 Create your first task to get started with tracking your productivity!")

    return insights


class InsightGenerator:
    def __init__(self, llm: Optional[LLMClient]) -> None:
        self.llm = llm

    def generate(self, sessions: list[FocusSession], tasks: list[Task]) -> InsightsResult:
        if self.llm is None or not self.llm.configured:
            return InsightsResult(
                insights=default_insights(sessions, tasks), error="AI API key not configured"
            )

        try:
            completion = self.llm.complete(
                [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(sessions, tasks)},
                ]
            )
        except Exception:
            logger.exception("Insight generation failed; using rule-based tips")
            return InsightsResult(
                insights=default_insights(sessions, tasks), error="Failed to generate AI insights"
            )

        tips = parse_insights(completion.content)
        return InsightsResult(insights=tips or default_insights(sessions, tasks))
