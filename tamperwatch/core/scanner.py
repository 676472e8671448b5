"""
TamperWatch - Directory scanner module.

Walks the monitored roots, fingerprints regular files and reconciles them
against the fingerprint store. Deletions are found afterwards by sweeping the
store's keys, since they are only known once every root has been walked.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional, Sequence

from tamperwatch.core.errors import HashError, TraversalError
from tamperwatch.core.exclusion import ExclusionMatcher, ExclusionRule, normalize_path
from tamperwatch.core.hashing import HashEngine
from tamperwatch.core.models import ChangeEvent
from tamperwatch.core.store import FingerprintStore

logger = logging.getLogger(__name__)


class WalkDecision(str, Enum):
    """What the traversal does with one directory entry."""

    VISIT = "VISIT"  # descend into a directory / fingerprint a file
    SKIP_ENTRY = "SKIP_ENTRY"
    SKIP_SUBTREE = "SKIP_SUBTREE"


@dataclass
class ScanStats:
    """Counters for one scan() call."""

    files_hashed: int = 0
    skipped_excluded: int = 0
    skipped_oversize: int = 0
    hash_errors: int = 0
    traversal_errors: int = 0


class DirectoryScanner:
    """
    Reconciles the filesystem state under a set of roots with a FingerprintStore.

    No I/O failure escapes scan(): unreadable directories and files are logged
    and left out of this cycle.
    """

    def __init__(
        self,
        hash_engine: Optional[HashEngine] = None,
        rules: Optional[Sequence[ExclusionRule]] = None,
        max_file_size: int = 0,
    ) -> None:
        self.hash_engine = hash_engine or HashEngine()
        self.excluded = ExclusionMatcher(rules or [])
        self.max_file_size = max_file_size
        self.stats = ScanStats()

    def scan(self, roots: Iterable[str], store: FingerprintStore) -> list[ChangeEvent]:
        """
        Run one scan cycle over roots and update store in place.

        Returns walk events per root in traversal order, followed by deletion
        events in sorted path order.
        """
        self.stats = ScanStats()
        events: list[ChangeEvent] = []
        for root in roots:
            events.extend(self._scan_root(canonical_path(root), store))
        events.extend(self._sweep_deleted(store))
        return events

    def _scan_root(self, root: str, store: FingerprintStore) -> list[ChangeEvent]:
        events: list[ChangeEvent] = []
        if not os.path.isdir(root):
            self._traversal_failed(TraversalError(f"Monitored directory missing or not a directory: {root}"))
            return events
        for path, size in self._walk(root):
            event = self._check_file(path, size, store)
            if event is not None:
                events.append(event)
        return events

    def _walk(self, root: str) -> Iterator[tuple[str, int]]:
        """Yield (path, size) for every in-scope regular file under root, sorted by name."""
        stack = [root]
        while stack:
            directory = stack.pop()
            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                self._traversal_failed(TraversalError(f"Cannot list {directory}: {e}"))
                continue

            subdirs: list[str] = []
            for entry in entries:
                path = normalize_path(entry.path)
                decision = self._decide(entry, path)
                if decision is WalkDecision.SKIP_SUBTREE:
                    logger.debug("Pruning excluded directory %s", path)
                    continue
                if decision is WalkDecision.SKIP_ENTRY:
                    continue
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(path)
                    continue
                try:
                    size = entry.stat(follow_symlinks=False).st_size
                except OSError as e:
                    logger.warning("Cannot stat %s: %s", path, e)
                    continue
                if self.max_file_size > 0 and size > self.max_file_size:
                    self.stats.skipped_oversize += 1
                    logger.debug("Skipping %s: %d bytes exceeds limit %d", path, size, self.max_file_size)
                    continue
                yield path, size
            stack.extend(reversed(subdirs))

    def _decide(self, entry: os.DirEntry, path: str) -> WalkDecision:
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = entry.is_file(follow_symlinks=False)
        except OSError as e:
            logger.warning("Cannot inspect %s: %s", path, e)
            return WalkDecision.SKIP_ENTRY

        if self.excluded(path):
            self.stats.skipped_excluded += 1
            return WalkDecision.SKIP_SUBTREE if is_dir else WalkDecision.SKIP_ENTRY
        if is_dir or is_file:
            return WalkDecision.VISIT
        # symlinks, sockets, fifos, devices
        return WalkDecision.SKIP_ENTRY

    def _check_file(self, path: str, size: int, store: FingerprintStore) -> Optional[ChangeEvent]:
        try:
            fingerprint = self.hash_engine.compute_file_hash(path)
        except HashError as e:
            self.stats.hash_errors += 1
            logger.warning("%s", e)
            return None
        self.stats.files_hashed += 1

        previous = store.get(path)
        if previous is None:
            store.set(path, fingerprint)
            return ChangeEvent.new_file(path, size, fingerprint)
        if previous != fingerprint:
            store.set(path, fingerprint)
            return ChangeEvent.modified(path, size, previous, fingerprint)
        return None

    def _sweep_deleted(self, store: FingerprintStore) -> list[ChangeEvent]:
        events: list[ChangeEvent] = []
        for path, fingerprint in list(store.items()):
            try:
                os.stat(path)
                continue
            except (FileNotFoundError, NotADirectoryError):
                pass
            except OSError as e:
                logger.warning("Cannot check %s for deletion: %s", path, e)
                continue

            store.delete(path)
            if self.excluded(path):
                logger.debug("Dropping excluded path from baseline: %s", path)
                continue
            events.append(ChangeEvent.deleted(path, fingerprint))
        return events

    def _traversal_failed(self, error: TraversalError) -> None:
        self.stats.traversal_errors += 1
        logger.warning("%s", error)


def canonical_path(path: str) -> str:
    """Absolute, slash-normalized form used as the store key."""
    return normalize_path(os.path.abspath(os.fspath(path)))
