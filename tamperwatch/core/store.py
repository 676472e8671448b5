"""
TamperWatch - Fingerprint store.

In-memory mapping of absolute path -> hex fingerprint, persisted as a single
JSON snapshot. Mutations never touch disk; call save() explicitly.
"""

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Iterator, Optional, Union

from tamperwatch.core.errors import CorruptStateError, PersistenceError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DEFAULT_FILE_MODE = 0o644


class FingerprintStore:
    """
    Baseline of known-good fingerprints.

    ``dirty`` is set by any mutation and cleared by a successful save, so the
    owner can decide whether a cycle needs persisting.
    """

    def __init__(self, entries: Optional[dict[str, str]] = None) -> None:
        self._entries: dict[str, str] = dict(entries or {})
        self.dirty = False

    @classmethod
    def load(cls, source: PathLike) -> "FingerprintStore":
        """
        Load a store snapshot.

        Returns an empty store when the file does not exist (first run).

        Raises:
            CorruptStateError: file exists but is unreadable or not a
                JSON object of string -> string.
        """
        path = Path(source)
        if not path.exists():
            logger.info("Fingerprint store not found, starting empty: %s", path)
            return cls()
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptStateError(f"Fingerprint store {path} is not valid JSON: {e}") from e
        except OSError as e:
            raise CorruptStateError(f"Cannot read fingerprint store {path}: {e}") from e

        if not isinstance(data, dict):
            raise CorruptStateError(f"Fingerprint store {path} must contain a JSON object")
        for key, value in data.items():
            if not isinstance(value, str):
                raise CorruptStateError(
                    f"Fingerprint store {path} has a non-string fingerprint for {key!r}"
                )
        logger.info("Loaded %d fingerprints from %s", len(data), path)
        return cls(data)

    def save(self, dest: PathLike) -> None:
        """
        Write the whole mapping atomically (temp file in the same directory, then rename).

        Raises:
            PersistenceError: directory could not be created or the write failed.
                The in-memory state is left untouched.
        """
        path = Path(dest)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create store directory {path.parent}: {e}") from e

        payload = json.dumps(self._entries, indent=2, sort_keys=True) + "\n"
        try:
            mode = stat.S_IMODE(os.stat(path).st_mode)
        except OSError:
            mode = DEFAULT_FILE_MODE
        tmp_name: Optional[str] = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            # mkstemp creates 0600; keep the previous snapshot's mode
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise PersistenceError(f"Failed to write fingerprint store {path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.debug("Could not remove temp file %s", tmp_name)
        self.dirty = False
        logger.debug("Saved %d fingerprints to %s", len(self._entries), path)

    def get(self, path: str) -> Optional[str]:
        return self._entries.get(path)

    def set(self, path: str, fingerprint: str) -> None:
        if self._entries.get(path) != fingerprint:
            self._entries[path] = fingerprint
            self.dirty = True

    def delete(self, path: str) -> None:
        if self._entries.pop(path, None) is not None:
            self.dirty = True

    def items(self) -> Iterator[tuple[str, str]]:
        """Iterate (path, fingerprint) pairs in sorted path order."""
        for path in sorted(self._entries):
            yield path, self._entries[path]

    def paths(self) -> list[str]:
        return sorted(self._entries)

    def as_dict(self) -> dict[str, str]:
        return dict(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FingerprintStore):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"FingerprintStore({len(self._entries)} entries)"
