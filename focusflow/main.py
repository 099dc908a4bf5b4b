"""FocusFlow application entry point.

Supports two modes:
  - Server mode (default): serves the JSON API
  - CLI mode: prints analytics or coaching tips for one user to stdout

Usage:
    python -m focusflow.main                                   # serve the API
    python -m focusflow.main --init-db                         # create tables and exit
    python -m focusflow.main --analytics --user me@example.com --days 7
    python -m focusflow.main --insights --user me@example.com
"""

import argparse
import logging
import os
import sys
from datetime import datetime, timedelta, timezone

from focusflow.core.config import get_default_config_path, get_section, load_config
from focusflow.core.llm import LLMClient
from focusflow.persistence.store import FocusStore
from focusflow.reporting.analytics import aggregate
from focusflow.reporting.formatter import TextFormatter
from focusflow.reporting.insights import InsightGenerator


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="focusflow",
        description="FocusFlow: tasks, focus timer and productivity analytics",
    )
    parser.add_argument("--config", help="Path to config.json (default: data directory)")
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--init-db",
        action="store_true",
        help="Create the database tables and exit",
    )
    group.add_argument(
        "--analytics",
        action="store_true",
        help="Print the analytics report for --user and exit",
    )
    group.add_argument(
        "--insights",
        action="store_true",
        help="Print productivity insights for --user and exit",
    )
    parser.add_argument("--user", help="Email of the account to report on")
    parser.add_argument("--days", type=int, help="Analytics window in days")
    parser.add_argument("--host", help="Override the configured listen host")
    parser.add_argument("--port", type=int, help="Override the configured listen port")
    return parser


def _open_store(config: dict) -> FocusStore:
    db_path = config.get("database_path", "~/.focusflow/focusflow.db")
    if db_path != ":memory:":
        db_path = os.path.expanduser(db_path)
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    store = FocusStore(db_path)
    store.init_db()
    return store


def _print_analytics(config: dict, email: str, days: int | None) -> int:
    """Print the analytics report for one user; returns the exit code."""
    store = _open_store(config)
    try:
        user = store.get_user_by_email(email.strip().lower())
        if user is None:
            print(f"No account for {email}", file=sys.stderr)
            return 1
        if days is None or days <= 0:
            days = int(get_section(config, "analytics")["default_days"])
        now = datetime.now(timezone.utc)
        sessions = store.list_sessions(user.id, since=now - timedelta(days=days))
        report = aggregate(sessions, store.list_tasks(user.id), days, now=now)
        print(TextFormatter.format_analytics(report))
        return 0
    finally:
        store.close()


def _print_insights(config: dict, email: str) -> int:
    """Print coaching tips for one user; returns the exit code."""
    store = _open_store(config)
    try:
        user = store.get_user_by_email(email.strip().lower())
        if user is None:
            print(f"No account for {email}", file=sys.stderr)
            return 1
        insights_cfg = get_section(config, "insights")
        sessions = store.list_sessions(user.id, limit=int(insights_cfg["session_sample"]))
        generator = InsightGenerator(LLMClient.from_config(insights_cfg))
        result = generator.generate(sessions, store.list_tasks(user.id))
        print(TextFormatter.format_insights(result))
        return 0
    finally:
        store.close()


def main(args: list[str] | None = None) -> int:
    """Entry point for FocusFlow.

    When *args* is ``None`` the arguments are read from ``sys.argv``.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    parser = build_parser()
    parsed = parser.parse_args(args)

    config_path = parsed.config or str(get_default_config_path())
    config = load_config(config_path)

    if (parsed.analytics or parsed.insights) and not parsed.user:
        parser.error("--user is required with --analytics and --insights")

    if parsed.init_db:
        _open_store(config).close()
        logging.getLogger(__name__).info("Database ready at %s", config.get("database_path"))
        return 0
    if parsed.analytics:
        return _print_analytics(config, parsed.user, parsed.days)
    if parsed.insights:
        return _print_insights(config, parsed.user)

    if parsed.host:
        config["host"] = parsed.host
    if parsed.port:
        config["port"] = parsed.port

    from focusflow.ui.app import FocusFlowApp

    app = FocusFlowApp(config_path, config=config)
    app.start()
    return 0


if __name__ == "__main__":
    sys.exit(main())
