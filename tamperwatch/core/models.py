"""
TamperWatch - Shared data models (change events, severities).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class EventType(str, Enum):
    """Integrity change kinds."""

    NEW = "NEW"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    EventType.NEW: "new file",
    EventType.MODIFIED: "modified",
    EventType.DELETED: "deleted",
}


class Severity(str, Enum):
    """Alert severity levels."""

    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


_DEFAULT_SEVERITY = {
    EventType.NEW: Severity.INFO,
    EventType.MODIFIED: Severity.WARNING,
    EventType.DELETED: Severity.WARNING,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChangeEvent:
    """One detected difference between the baseline and the filesystem."""

    event_type: EventType
    path: str
    size: Optional[int] = None
    old_fingerprint: Optional[str] = None
    new_fingerprint: Optional[str] = None
    timestamp: datetime = field(default_factory=_utcnow)
    severity: Optional[Severity] = None

    def __post_init__(self) -> None:
        if self.severity is None:
            self.severity = _DEFAULT_SEVERITY[self.event_type]

    @classmethod
    def new_file(cls, path: str, size: int, fingerprint: str) -> "ChangeEvent":
        return cls(EventType.NEW, path, size=size, new_fingerprint=fingerprint)

    @classmethod
    def modified(cls, path: str, size: int, old: str, new: str) -> "ChangeEvent":
        return cls(EventType.MODIFIED, path, size=size, old_fingerprint=old, new_fingerprint=new)

    @classmethod
    def deleted(cls, path: str, old: Optional[str] = None) -> "ChangeEvent":
        return cls(EventType.DELETED, path, old_fingerprint=old)

    def to_dict(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "classification": self.event_type.label,
            "path": self.path,
            "severity": self.severity.value,
        }
        if self.size is not None:
            record["size"] = self.size
        if self.old_fingerprint is not None:
            record["old_fingerprint"] = self.old_fingerprint
        if self.new_fingerprint is not None:
            record["new_fingerprint"] = self.new_fingerprint
        return record

    def describe(self) -> str:
        """Human-readable multi-field summary used in log lines and emails."""
        parts = [f"{self.event_type.label}: {self.path}"]
        if self.size is not None:
            parts.append(f"size: {self.size} bytes")
        if self.event_type is EventType.MODIFIED:
            parts.append(f"old hash: {self.old_fingerprint}")
            parts.append(f"new hash: {self.new_fingerprint}")
        elif self.new_fingerprint is not None:
            parts.append(f"hash: {self.new_fingerprint}")
        return " | ".join(parts)
