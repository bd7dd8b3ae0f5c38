"""
Configuration for the Claude Monitor daemon.

Values come from built-in defaults, then ``~/.claude-monitor/config.json``,
then environment variables (a ``.env`` file is honoured). The core treats the
resulting ``MonitorConfig`` as read-only.
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from claude_monitor.logger import get_logger

logger = get_logger(__name__)

DATA_DIR = Path(os.getenv("CLAUDE_MONITOR_HOME", Path.home() / ".claude-monitor"))
CONFIG_FILE = DATA_DIR / "config.json"
PID_FILE = DATA_DIR / "daemon.pid"

DEFAULT_PORT = 17530
DEFAULT_CHECK_INTERVAL_MS = 5000


class NotificationFlags(BaseModel):
    """Per-scenario switches for user-visible alerts."""

    session_end: bool = True
    prompt_submit: bool = False
    waiting_input: bool = True


class NotificationSounds(BaseModel):
    session_end: str = "Glass"
    prompt_submit: str = "Submarine"
    waiting_input: str = "Hero"


class NotificationDurations(BaseModel):
    """Display duration per scenario in milliseconds (0 keeps the alert up)."""

    session_end: int = Field(default=5000, ge=0)
    prompt_submit: int = Field(default=3000, ge=0)
    waiting_input: int = Field(default=0, ge=0)


class MonitorConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)
    check_interval: int = Field(default=DEFAULT_CHECK_INTERVAL_MS, ge=100)
    sweeper_enabled: bool = True
    notify_timeout: float = Field(default=10.0, gt=0)
    notifications: NotificationFlags = Field(default_factory=NotificationFlags)
    sounds: NotificationSounds = Field(default_factory=NotificationSounds)
    durations: NotificationDurations = Field(default_factory=NotificationDurations)
    log_level: str = "INFO"
    log_file: Optional[str] = None


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to load config from {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.error(f"Ignoring config file {path}: top level must be an object")
        return {}
    return data


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}

    if host := os.getenv("CLAUDE_MONITOR_HOST"):
        overrides["host"] = host

    port = os.getenv("CLAUDE_MONITOR_PORT") or os.getenv("PORT")
    if port:
        overrides["port"] = port

    if interval := os.getenv("CLAUDE_MONITOR_CHECK_INTERVAL"):
        overrides["check_interval"] = interval

    sweeper = os.getenv("CLAUDE_MONITOR_SWEEPER")
    if sweeper is not None:
        overrides["sweeper_enabled"] = sweeper.strip().lower() not in (
            "0",
            "false",
            "no",
            "off",
        )

    if level := os.getenv("LOG_LEVEL"):
        overrides["log_level"] = level

    if log_file := os.getenv("LOG_FILE"):
        overrides["log_file"] = log_file

    return overrides


def load_config(
    config_file: Optional[Path] = None, use_env: bool = True
) -> MonitorConfig:
    """
    Build the effective configuration.

    Invalid file or environment values are logged and the layer carrying them
    is skipped, so the daemon always starts with a usable config.
    """
    if use_env:
        load_dotenv()

    data = MonitorConfig().model_dump()

    file_data = _read_config_file(config_file or CONFIG_FILE)
    if file_data:
        candidate = _deep_merge(data, file_data)
        try:
            MonitorConfig.model_validate(candidate)
            data = candidate
        except ValidationError as e:
            logger.error(f"Invalid config file values, using defaults: {e}")

    if use_env:
        env_data = _env_overrides()
        if env_data:
            candidate = _deep_merge(data, env_data)
            try:
                MonitorConfig.model_validate(candidate)
                data = candidate
            except ValidationError as e:
                logger.warning(f"Ignoring invalid environment overrides: {e}")

    return MonitorConfig.model_validate(data)
