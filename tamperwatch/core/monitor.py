"""
TamperWatch - Monitoring engine.

Owns the configuration, the fingerprint store, the scanner and the alert
sinks. One cycle = scan all roots, dispatch alerts, persist the store if it
changed.
"""

import logging
import threading
from typing import Optional, Sequence

from tamperwatch.core.alerts import AlertDispatcher, AlertManager, AlertSink
from tamperwatch.core.config_loader import MonitorConfig
from tamperwatch.core.errors import CorruptStateError, PersistenceError
from tamperwatch.core.exclusion import parse_rules
from tamperwatch.core.models import ChangeEvent, EventType
from tamperwatch.core.scanner import DirectoryScanner
from tamperwatch.core.scheduler import Scheduler
from tamperwatch.core.store import FingerprintStore

logger = logging.getLogger(__name__)


def build_sinks(config: MonitorConfig) -> list[AlertSink]:
    """Default log sink plus email when enabled."""
    sinks: list[AlertSink] = [
        AlertManager(
            log_path=config.alert_log_path,
            console_alerts=config.console_alerts,
            min_severity=config.min_severity,
        )
    ]
    if config.email_alerts_enabled:
        from tamperwatch.core.email_sink import EmailAlertSink

        sinks.append(
            EmailAlertSink(
                host=config.smtp_host,
                port=config.smtp_port,
                to_addr=config.email_to,
                user=config.smtp_user,
                password=config.smtp_password,
            )
        )
    return sinks


class IntegrityMonitor:
    """
    Main integrity loop: load the baseline once, rescan at interval,
    alert on differences, persist the new baseline.
    """

    def __init__(
        self,
        config: MonitorConfig,
        dry_run: bool = False,
        sinks: Optional[Sequence[AlertSink]] = None,
        store: Optional[FingerprintStore] = None,
        scanner: Optional[DirectoryScanner] = None,
    ) -> None:
        self.config = config
        self.dry_run = dry_run
        self.roots = [str(d) for d in config.directories]
        self.scanner = scanner or DirectoryScanner(
            rules=parse_rules(config.exclude),
            max_file_size=config.max_file_size,
        )
        self.dispatcher = AlertDispatcher(sinks if sinks is not None else build_sinks(config))
        self._cycle_lock = threading.Lock()
        self.cycles = 0

        self._suppress_initial_alerts = False
        if store is not None:
            self.store = store
        else:
            self.store = self._load_store()

    def _load_store(self) -> FingerprintStore:
        path = self.config.store_path
        if not path.exists():
            # First run: the initial cycle only establishes the baseline.
            self._suppress_initial_alerts = not self.config.alert_on_initial_scan
            return FingerprintStore()
        try:
            return FingerprintStore.load(path)
        except CorruptStateError as e:
            logger.error("%s; rebuilding baseline from scratch (every file will be reported as new)", e)
            return FingerprintStore()

    def run_once(self) -> list[ChangeEvent]:
        """Perform one scan cycle; return the events detected."""
        with self._cycle_lock:
            logger.info("Scanning %d monitored directories", len(self.roots))
            events = self.scanner.scan(self.roots, self.store)
            self.cycles += 1
            stats = self.scanner.stats
            logger.info(
                "Scan finished: %d hashed, %d new, %d modified, %d deleted, %d errors",
                stats.files_hashed,
                _count(events, EventType.NEW),
                _count(events, EventType.MODIFIED),
                _count(events, EventType.DELETED),
                stats.hash_errors + stats.traversal_errors,
            )

            if self._suppress_initial_alerts:
                self._suppress_initial_alerts = False
                logger.info("Initial baseline established with %d files; no alerts raised", len(self.store))
            elif self.dry_run:
                for event in events:
                    logger.info("Dry run: would alert %s", event.describe())
            else:
                self.dispatcher.dispatch_batch(events)
                self.dispatcher.flush()

            if self.store.dirty:
                self.persist()
            return events

    def establish_baseline(self) -> int:
        """Scan without raising alerts and save the result as the new baseline."""
        self._suppress_initial_alerts = True
        self.run_once()
        return len(self.store)

    def persist(self) -> bool:
        """Save the store; failures are logged and the in-memory baseline is kept."""
        if self.dry_run:
            logger.debug("Dry run: not writing %s", self.config.store_path)
            return False
        try:
            self.store.save(self.config.store_path)
        except PersistenceError as e:
            logger.error("%s", e)
            return False
        return True

    def run(self, scheduler: Optional[Scheduler] = None) -> None:
        """Run the monitoring loop until the scheduler is stopped, then shut down."""
        scheduler = scheduler or Scheduler(self.config.interval)
        logger.info(
            "Starting TamperWatch monitor (interval=%.0fs, dry_run=%s)",
            scheduler.interval,
            self.dry_run,
        )
        try:
            scheduler.run(self.run_once)
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Persist any unsaved changes and close sinks."""
        with self._cycle_lock:
            if self.store.dirty:
                self.persist()
            self.dispatcher.close()
        logger.info("TamperWatch monitor stopped.")


def _count(events: list[ChangeEvent], event_type: EventType) -> int:
    return sum(1 for e in events if e.event_type is event_type)
