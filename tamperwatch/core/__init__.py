"""
TamperWatch - File Integrity Monitoring Core Module.

Provides exclusion rules, hashing, the fingerprint store, scanning,
alerting and the periodic scheduler.
"""

from tamperwatch.core.alerts import AlertDispatcher, AlertManager, AlertSink
from tamperwatch.core.exclusion import ExclusionMatcher, ExclusionRule, is_excluded, parse_rules
from tamperwatch.core.hashing import HashEngine
from tamperwatch.core.models import ChangeEvent, EventType, Severity
from tamperwatch.core.monitor import IntegrityMonitor
from tamperwatch.core.scanner import DirectoryScanner
from tamperwatch.core.scheduler import Scheduler
from tamperwatch.core.store import FingerprintStore

__all__ = [
    "AlertDispatcher",
    "AlertManager",
    "AlertSink",
    "ChangeEvent",
    "DirectoryScanner",
    "EventType",
    "ExclusionMatcher",
    "ExclusionRule",
    "FingerprintStore",
    "HashEngine",
    "IntegrityMonitor",
    "Scheduler",
    "Severity",
    "is_excluded",
    "parse_rules",
]
