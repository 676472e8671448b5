"""
TamperWatch - Alert sinks and structured alert logging.

Uses colorama for cross-platform (Linux/Windows) colored console alerts.
"""

import json
import logging
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional

import colorama
from colorama import Fore, Style

from tamperwatch.core.models import ChangeEvent, Severity

logger = logging.getLogger(__name__)

_colorama_init_done = False

_SEVERITY_ORDER = (Severity.INFO, Severity.WARNING, Severity.CRITICAL)

_SEVERITY_COLOR = {
    Severity.CRITICAL: Fore.RED,
    Severity.WARNING: Fore.YELLOW,
    Severity.INFO: Fore.GREEN,
}


def _ensure_colorama() -> None:
    global _colorama_init_done
    if not _colorama_init_done:
        colorama.just_fix_windows_console()
        _colorama_init_done = True


def colored_alert(message: str, severity: Severity) -> None:
    """Print an alert line to stderr in the severity's color."""
    _ensure_colorama()
    print(f"{_SEVERITY_COLOR.get(severity, Fore.GREEN)}{message}{Style.RESET_ALL}", file=sys.stderr)


class AlertSink(ABC):
    """Receives change events. Implementations should be quick and best-effort."""

    @abstractmethod
    def notify(self, event: ChangeEvent) -> None:
        ...

    def flush(self) -> None:
        """Called at the end of each scan cycle; sinks that batch send here."""

    def close(self) -> None:
        """Release any resources; called once at shutdown."""


class AlertManager(AlertSink):
    """
    Default sink: a timestamped log record per event, a JSON line in the
    alert log file, and optionally a colored console line.
    """

    def __init__(
        self,
        log_path: Optional[Path] = None,
        console_alerts: bool = True,
        min_severity: Severity = Severity.INFO,
    ) -> None:
        self.log_path = Path(log_path) if log_path else None
        self.console_alerts = console_alerts
        self._min_severity = min_severity
        if self.log_path is not None:
            try:
                self.log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(
                    "Cannot create alert log directory %s, alert log disabled: %s", self.log_path.parent, e
                )
                self.log_path = None

    def _should_log(self, severity: Severity) -> bool:
        return _SEVERITY_ORDER.index(severity) >= _SEVERITY_ORDER.index(self._min_severity)

    def notify(self, event: ChangeEvent) -> None:
        if not self._should_log(event.severity):
            return
        stamp = event.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        logger.warning("ALERT: %s %s", stamp, event.describe())
        if self.log_path is not None:
            line = json.dumps(event.to_dict()) + "\n"
            try:
                with open(self.log_path, "a", encoding="utf-8") as f:
                    f.write(line)
            except OSError as e:
                logger.exception("Failed to write alert to %s: %s", self.log_path, e)
        if self.console_alerts:
            colored_alert(f"[{event.severity.value}] {event.event_type.label}: {event.path}", event.severity)


class AlertDispatcher:
    """
    Fans events out to every configured sink.

    A failing sink is logged and skipped; nothing propagates back to the scan loop.
    """

    def __init__(self, sinks: Iterable[AlertSink]) -> None:
        self.sinks = list(sinks)
        self.failures = 0

    def dispatch(self, event: ChangeEvent) -> None:
        for sink in self.sinks:
            try:
                sink.notify(event)
            except Exception as e:
                self.failures += 1
                logger.error("Alert sink %s failed for %s: %s", type(sink).__name__, event.path, e)

    def dispatch_batch(self, events: Iterable[ChangeEvent]) -> None:
        for event in events:
            self.dispatch(event)

    def flush(self) -> None:
        for sink in self.sinks:
            try:
                sink.flush()
            except Exception as e:
                self.failures += 1
                logger.error("Alert sink %s failed to flush: %s", type(sink).__name__, e)

    def close(self) -> None:
        for sink in self.sinks:
            try:
                sink.close()
            except Exception as e:
                logger.error("Closing alert sink %s failed: %s", type(sink).__name__, e)
