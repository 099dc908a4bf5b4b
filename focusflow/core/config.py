"""Configuration loader for FocusFlow.

Handles loading, saving, and default creation of config.json.
Resolves platform-appropriate data directories:
  - macOS:   ~/Library/Application Support/FocusFlow
  - Windows: %APPDATA%/FocusFlow
  - Other:   ~/.focusflow
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


def get_data_directory() -> Path:
    """Return the platform-appropriate data directory for FocusFlow."""
    if sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    elif sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    else:
        base = Path.home()
        return base / ".focusflow"
    return base / "FocusFlow"


def get_default_config() -> dict[str, Any]:
    """Return the default configuration dictionary."""
    data_dir = get_data_directory()
    return {
        "host": "127.0.0.1",
        "port": 5000,
        "secret_key": "",
        "database_path": str(data_dir / "focusflow.db"),
        "timer": {
            "pomodoro_seconds": 25 * 60,
            "short_break_seconds": 5 * 60,
            "long_break_seconds": 15 * 60,
        },
        "analytics": {
            "default_days": 30,
        },
        "chat": {
            "api_key": "",
            "api_key_env": "GROQ_API_KEY",
            "base_url": "https://api.groq.com/openai/v1",
            "model": "llama-3.3-70b-versatile",
            "temperature": 0.3,
            "max_tokens": 1024,
            "timeout_seconds": None,
            "context_task_limit": 10,
        },
        "insights": {
            "api_key": "",
            "api_key_env": "ZAI_API_KEY",
            "base_url": "https://open.bigmodel.cn/api/paas/v4/",
            "model": "glm-4-flash",
            "temperature": 0.7,
            "max_tokens": 500,
            "timeout_seconds": None,
            "session_sample": 50,
        },
    }


def get_default_config_path() -> Path:
    """Return the default path for config.json."""
    return get_data_directory() / "config.json"


def load_config(path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration from a JSON file.

    If *path* is ``None``, the platform default location is used.
    When the file does not exist, a default configuration is created,
    written to disk, and returned.  If the file exists but is invalid
    JSON, the error is logged and defaults are returned.
    """
    config_path = Path(path) if path is not None else get_default_config_path()

    if not config_path.exists():
        logger.info("Config file not found at %s, creating defaults.", config_path)
        defaults = get_default_config()
        save_config(defaults, config_path)
        return defaults

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError("Top-level JSON value must be an object")
        return data
    except (json.JSONDecodeError, ValueError, OSError) as exc:
        logger.error("Failed to load config from %s: %s, using defaults.", config_path, exc)
        return get_default_config()


def save_config(config: dict[str, Any], path: str | Path | None = None) -> None:
    """Write *config* to a JSON file.

    If *path* is ``None``, the platform default location is used.
    Parent directories are created automatically.
    """
    config_path = Path(path) if path is not None else get_default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)
        fh.write("\n")


def get_section(config: dict[str, Any], name: str) -> dict[str, Any]:
    """Return section *name* with defaults filled in for missing keys."""
    merged = dict(get_default_config().get(name, {}))
    merged.update(config.get(name) or {})
    return merged


def resolve_api_key(section: dict[str, Any]) -> Optional[str]:
    """Credential from the section itself, else from its named env variable."""
    key = section.get("api_key")
    if key:
        return key
    env_name = section.get("api_key_env")
    if env_name:
        return os.environ.get(env_name) or None
    return None
