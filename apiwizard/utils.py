# File: apiwizard/utils.py
"""
NexaFlow APIWizard - Utility Functions & Helpers
=================================================
String transformation, hashing, merging and timing helpers shared by the
configuration engine and the coordinator.

- ``to_pascal_case`` is ``@lru_cache``-d; the same table names are converted
  again on every configuration rebuild.
- No external dependencies beyond the Python standard library.
"""

from __future__ import annotations

import functools
import hashlib
import json
import logging
import re
import time
from typing import Any, Dict, List, Mapping, Optional, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.utils")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns (compiled once at module load)
# ---------------------------------------------------------------------------

_NON_ALPHANUM_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9]")
_SPLIT_WORDS_RE: re.Pattern[str] = re.compile(
    r"[A-Z]?[a-z]+|[A-Z]+(?=[A-Z][a-z]|\d|\b)|[A-Z]|\d+"
)


# ---------------------------------------------------------------------------
# Cached string transformation
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """
    Convert any string to PascalCase (used for operation ids).

    Examples:
        >>> to_pascal_case("order_items")
        'OrderItems'
    """
    if not name:
        return ""
    return "".join(word.capitalize() for word in _extract_words(name))


@functools.lru_cache(maxsize=None)
def _extract_words(name: str) -> Tuple[str, ...]:
    cleaned: str = _NON_ALPHANUM_RE.sub(" ", name)
    words: List[str] = _SPLIT_WORDS_RE.findall(cleaned)
    return tuple(w.lower() for w in words if w)


# ---------------------------------------------------------------------------
# Merging & fingerprints
# ---------------------------------------------------------------------------


def deep_merge(base: Mapping[str, Any], partial: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Return a new dict with ``partial`` merged into ``base``.

    Nested mappings are merged recursively; every other value (lists
    included) in ``partial`` replaces the one in ``base``.  Neither input is
    modified.
    """
    merged: Dict[str, Any] = dict(base)
    for key, value in partial.items():
        current: Any = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def sha256_hex(content: str) -> str:
    """Return SHA-256 hex digest of a string. O(n)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def fingerprint(payload: Any) -> str:
    """Stable digest of a JSON-serialisable payload (key order ignored)."""
    return sha256_hex(json.dumps(payload, sort_keys=True, default=str))


# ---------------------------------------------------------------------------
# Retry backoff
# ---------------------------------------------------------------------------


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """
    Exponential backoff: ``base * 2 ** attempt`` capped at ``cap``.

    ``attempt`` is zero-based, so the first retry waits ``base`` seconds.
    """
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    return min(base * (2 ** attempt), cap)


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Simple context-manager timer.

    Usage:
        with Timer("generate endpoints") as t:
            ...
        print(t.elapsed_ms)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.debug("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed * 1000.0

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"
