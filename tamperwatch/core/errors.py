"""
TamperWatch - Error taxonomy.

Only ConfigError is fatal; everything else is logged and the monitor keeps running.
"""


class TamperWatchError(Exception):
    """Base class for all TamperWatch errors."""


class ConfigError(TamperWatchError):
    """No monitored directories or malformed configuration."""


class CorruptStateError(TamperWatchError):
    """Fingerprint store file exists but cannot be parsed."""


class PersistenceError(TamperWatchError):
    """Fingerprint store could not be written."""


class TraversalError(TamperWatchError):
    """A monitored directory could not be walked."""


class HashError(TamperWatchError):
    """A file could not be read while computing its fingerprint."""
