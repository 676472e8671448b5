"""
TamperWatch - Hashing module.

Computes SHA256 content fingerprints with streaming reads.
"""

import hashlib
import logging
from pathlib import Path
from typing import Union

from tamperwatch.core.errors import HashError

logger = logging.getLogger(__name__)


class HashEngine:
    """Computes file fingerprints using SHA256."""

    ALGORITHM = "sha256"
    CHUNK_SIZE = 65536

    def __init__(self, chunk_size: int = CHUNK_SIZE) -> None:
        self.chunk_size = chunk_size

    def compute_file_hash(self, file_path: Union[str, Path]) -> str:
        """
        Compute the SHA256 fingerprint of a file, reading chunk_size bytes at a time.

        Args:
            file_path: Path to the file.

        Returns:
            Hex-encoded SHA256 digest.

        Raises:
            HashError: the file could not be opened or read.
        """
        hasher = hashlib.new(self.ALGORITHM)
        try:
            with open(file_path, "rb") as f:
                while chunk := f.read(self.chunk_size):
                    hasher.update(chunk)
        except OSError as e:
            raise HashError(f"Failed to hash {file_path}: {e}") from e
        return hasher.hexdigest()
