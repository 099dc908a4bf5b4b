"""FocusFlow: tasks, focus timer, analytics and an AI task assistant."""

__version__ = "1.0.0"
