"""Shared fixtures for the TamperWatch test suite."""

import hashlib
from pathlib import Path

import pytest

from tamperwatch.core.alerts import AlertSink
from tamperwatch.core.config_loader import MonitorConfig
from tamperwatch.core.models import ChangeEvent


def sha256(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def key(path: Path) -> str:
    """Store key for a test path."""
    return path.as_posix()


class RecordingSink(AlertSink):
    """Keeps every event it is handed."""

    def __init__(self) -> None:
        self.events: list[ChangeEvent] = []
        self.flushes = 0
        self.closed = False

    def notify(self, event: ChangeEvent) -> None:
        self.events.append(event)

    def flush(self) -> None:
        self.flushes += 1

    def close(self) -> None:
        self.closed = True


class FailingSink(AlertSink):
    def notify(self, event: ChangeEvent) -> None:
        raise RuntimeError("delivery failed")


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    root = tmp_path / "data"
    root.mkdir()
    return root


@pytest.fixture
def write_file():
    def _write(path: Path, content: str = "x") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def monitor_config(tmp_path: Path, data_dir: Path) -> MonitorConfig:
    return MonitorConfig(
        directories=[data_dir],
        exclude=["*.log"],
        max_file_size=1024,
        interval=60,
        store_path=tmp_path / "state" / "hashdb.json",
        alert_log_path=tmp_path / "state" / "alerts.log",
        console_alerts=False,
        project_root=tmp_path,
    )
