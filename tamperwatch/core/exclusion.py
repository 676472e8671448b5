"""
TamperWatch - Exclusion rules.

Three rule forms, evaluated in declaration order (first match wins):

- ``/var/www/cache/``  directory rule: the directory and everything beneath it
- ``*.log``            wildcard rule: glob against the final path segment only
- ``/var/www/.env``    exact rule: literal full-path equality
"""

import fnmatch
import os
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence


class RuleKind(str, Enum):
    DIRECTORY = "DIRECTORY"
    WILDCARD = "WILDCARD"
    EXACT = "EXACT"


@dataclass(frozen=True)
class ExclusionRule:
    """A single parsed exclusion pattern."""

    kind: RuleKind
    pattern: str

    @classmethod
    def parse(cls, raw: str) -> "ExclusionRule":
        pattern = normalize_path(raw.strip())
        if pattern.endswith("/"):
            return cls(RuleKind.DIRECTORY, pattern.rstrip("/"))
        if "*" in pattern:
            return cls(RuleKind.WILDCARD, pattern)
        return cls(RuleKind.EXACT, pattern)

    def matches(self, path: str) -> bool:
        """Match an already-normalized path."""
        if self.kind is RuleKind.DIRECTORY:
            return path == self.pattern or path.startswith(self.pattern + "/")
        if self.kind is RuleKind.WILDCARD:
            return fnmatch.fnmatchcase(basename(path), self.pattern)
        return path == self.pattern


def normalize_path(path: str, sep: str = os.sep) -> str:
    """Replace the platform separator with '/'. A no-op on POSIX."""
    if sep == "/":
        return path
    return path.replace(sep, "/")


def basename(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]


def parse_rules(patterns: Iterable[str]) -> list[ExclusionRule]:
    """Classify raw patterns; blank entries are ignored."""
    return [ExclusionRule.parse(p) for p in patterns if p and p.strip()]


def is_excluded(path: str, rules: Sequence[ExclusionRule]) -> bool:
    """Return True if the first matching rule excludes path. Pure; no I/O."""
    normalized = normalize_path(path)
    return any(rule.matches(normalized) for rule in rules)


class ExclusionMatcher:
    """Callable rule list; the scanner consults it during the walk and the deletion sweep."""

    def __init__(self, rules: Iterable[ExclusionRule] = ()) -> None:
        self.rules = list(rules)

    @classmethod
    def from_patterns(cls, patterns: Iterable[str]) -> "ExclusionMatcher":
        return cls(parse_rules(patterns))

    def __call__(self, path: str) -> bool:
        return is_excluded(path, self.rules)

    def __len__(self) -> int:
        return len(self.rules)
