"""
TamperWatch - Configuration loader.

Loads and validates config.yaml (JSON files work too); resolves paths relative
to the project root. SMTP credentials are loaded ONLY from environment
variables (never from YAML).
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

import yaml

from tamperwatch.core.errors import ConfigError
from tamperwatch.core.models import Severity

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 20 * 60
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
DEFAULT_STORE_FILE = "./data/hashdb.json"
DEFAULT_LOG_FILE = "./data/tamperwatch.log"
DEFAULT_ALERT_LOG_FILE = "./data/alerts.log"

_SMTP_ENV_VARS = {
    "TAMPERWATCH_SMTP_HOST": "SMTP server hostname (e.g. smtp.example.com)",
    "TAMPERWATCH_SMTP_PORT": "SMTP server port (e.g. 587)",
    "TAMPERWATCH_SMTP_USER": "SMTP login username / sender address",
    "TAMPERWATCH_SMTP_PASSWORD": "SMTP password or app-password",
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


@dataclass
class MonitorConfig:
    """Validated settings consumed by the monitor."""

    directories: list[Path]
    exclude: list[str] = field(default_factory=list)
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    interval: float = DEFAULT_INTERVAL_SECONDS
    store_path: Path = Path(DEFAULT_STORE_FILE)
    log_path: Optional[Path] = None
    alert_log_path: Optional[Path] = None
    console_alerts: bool = True
    min_severity: Severity = Severity.INFO
    alert_on_initial_scan: bool = False
    email_alerts_enabled: bool = False
    email_to: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = field(default=None, repr=False)
    project_root: Path = field(default_factory=Path.cwd)


def parse_interval(value: Any) -> float:
    """
    Parse a scan interval.

    Accepts plain seconds (int/float) or duration strings such as "90s",
    "5m", "1h30m", "500ms".

    Raises:
        ValueError: unparsable or non-positive value.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid interval: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip().lower()
        if re.fullmatch(r"\d+(?:\.\d+)?", text):
            seconds = float(text)
        else:
            parts = _DURATION_PART.findall(text)
            if not parts or "".join(n + u for n, u in parts) != text:
                raise ValueError(f"invalid interval: {value!r}")
            seconds = sum(float(n) * _DURATION_UNITS[u] for n, u in parts)
    if seconds <= 0:
        raise ValueError(f"interval must be positive: {value!r}")
    return seconds


def _validate_email_env(email_alerts_enabled: bool) -> dict[str, Any]:
    """
    When email_alerts_enabled is True, read and validate SMTP env vars.
    Raises ConfigError if any required variable is missing.
    """
    if not email_alerts_enabled:
        return {"smtp_host": None, "smtp_port": 587, "smtp_user": None, "smtp_password": None}
    missing = [name for name in _SMTP_ENV_VARS if not os.environ.get(name, "").strip()]
    if missing:
        lines = ["Email alerts are enabled but required environment variables are missing:"]
        for name in missing:
            lines.append(f"  {name}: {_SMTP_ENV_VARS[name]}")
        raise ConfigError("\n".join(lines))
    try:
        port = int(os.environ["TAMPERWATCH_SMTP_PORT"])
    except ValueError as e:
        raise ConfigError(f"TAMPERWATCH_SMTP_PORT is not a number: {e}") from e
    return {
        "smtp_host": os.environ["TAMPERWATCH_SMTP_HOST"].strip(),
        "smtp_port": max(1, min(65535, port)),
        "smtp_user": os.environ["TAMPERWATCH_SMTP_USER"].strip(),
        "smtp_password": os.environ["TAMPERWATCH_SMTP_PASSWORD"],
    }


def _absolute(path: Path) -> Path:
    """Absolute and lexically normalized without following symlinks, like scanner store keys."""
    return Path(os.path.abspath(path))


def _resolve_pattern(pattern: str, root: Path) -> str:
    """Anchor relative directory/exact patterns at root; wildcard patterns are basename-only."""
    if "*" in pattern or Path(pattern).is_absolute():
        return pattern
    resolved = _absolute(root / pattern).as_posix()
    return resolved + "/" if pattern.endswith(("/", "\\")) else resolved


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return value


def load_config(
    config_path: Path,
    project_root: Optional[Path] = None,
    extra_directories: Sequence[str] = (),
) -> MonitorConfig:
    """
    Load YAML config and resolve paths relative to project_root.

    Args:
        config_path: Path to config.yaml (or a JSON file).
        project_root: Base for relative paths; defaults to the config file's directory.
        extra_directories: Additional roots from the command line.

    Raises:
        FileNotFoundError: config file does not exist.
        ConfigError: malformed file, invalid values, or no directories to monitor.
    """
    path = _absolute(Path(config_path))
    if not path.is_file():
        raise FileNotFoundError(f"Config not found: {path}")

    root = _absolute(project_root or path.parent)
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    def resolve(p: str) -> Path:
        return _absolute(root / p)

    monitoring = _section(raw, "monitoring")
    directories = [resolve(str(d)) for d in monitoring.get("directories") or []]
    for d in extra_directories:
        resolved = _absolute(Path(d))
        if resolved not in directories:
            directories.append(resolved)
    if not directories:
        raise ConfigError("At least one directory to monitor must be configured")

    exclude = [_resolve_pattern(str(p), root) for p in monitoring.get("exclude") or [] if str(p).strip()]

    try:
        max_file_size = int(monitoring.get("max_file_size", DEFAULT_MAX_FILE_SIZE))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"max_file_size must be an integer: {e}") from e

    interval = DEFAULT_INTERVAL_SECONDS
    if monitoring.get("interval") is not None:
        try:
            interval = parse_interval(monitoring["interval"])
        except ValueError as e:
            logger.warning("Invalid interval %r, using default %ds: %s",
                           monitoring["interval"], DEFAULT_INTERVAL_SECONDS, e)
    alert_on_initial_scan = bool(monitoring.get("alert_on_initial_scan", False))

    paths_raw = _section(raw, "paths")
    store_file = paths_raw.get("store_file", DEFAULT_STORE_FILE)
    log_file = paths_raw.get("log_file", DEFAULT_LOG_FILE)

    alerts_raw = _section(raw, "alerts")
    alert_log = alerts_raw.get("log_path", DEFAULT_ALERT_LOG_FILE)
    console_alerts = bool(alerts_raw.get("console_alerts", True))
    try:
        min_severity = Severity(str(alerts_raw.get("min_severity", "INFO")).upper())
    except ValueError as e:
        raise ConfigError(f"Unknown min_severity: {e}") from e
    email_alerts_enabled = bool(alerts_raw.get("email_alerts_enabled", False))
    email_to = str(alerts_raw.get("email_to") or "").strip() or None
    if email_alerts_enabled and not email_to:
        raise ConfigError("email_alerts_enabled requires alerts.email_to")

    smtp = _validate_email_env(email_alerts_enabled)

    return MonitorConfig(
        directories=directories,
        exclude=exclude,
        max_file_size=max_file_size,
        interval=interval,
        store_path=resolve(store_file),
        log_path=resolve(log_file) if log_file else None,
        alert_log_path=resolve(alert_log) if alert_log else None,
        console_alerts=console_alerts,
        min_severity=min_severity,
        alert_on_initial_scan=alert_on_initial_scan,
        email_alerts_enabled=email_alerts_enabled,
        email_to=email_to,
        smtp_host=smtp["smtp_host"],
        smtp_port=smtp["smtp_port"],
        smtp_user=smtp["smtp_user"],
        smtp_password=smtp["smtp_password"],
        project_root=root,
    )
