"""
Metric name index.

Knows the metric names seen so far and counts how many of them a rule
pattern matches. Only used to annotate API responses with
`num_metrics`; nothing is ever persisted from here.

Matching: pattern and name are split on "."; they match when they have
the same number of segments and each name segment matches the pattern
segment, where "*" stands for any run of characters (possibly empty)
inside that one segment.

    "svc.*.latency"  matches "svc.api.latency", not "svc.api.db.latency"
    "svc.api_*"      matches "svc.api_get", "svc.api_"
"""

import re
import threading
from collections.abc import Iterable
from functools import lru_cache
from typing import Protocol

from vigil.rules.validation import PATTERN_SEPARATOR, PATTERN_WILDCARD


class MetricCounter(Protocol):
    """What the rule service needs from an index."""

    def count_matches(self, pattern: str) -> int: ...


@lru_cache(maxsize=1024)
def _segment_regex(segment: str) -> re.Pattern:
    parts = (re.escape(part) for part in segment.split(PATTERN_WILDCARD))
    return re.compile("^" + "[^.]*".join(parts) + "$")


def match(name: str, pattern: str) -> bool:
    """Test a single metric name against a rule pattern."""
    name_segments = name.split(PATTERN_SEPARATOR)
    pattern_segments = pattern.split(PATTERN_SEPARATOR)
    if len(name_segments) != len(pattern_segments):
        return False
    return all(
        _segment_regex(p).match(n) is not None
        for n, p in zip(name_segments, pattern_segments)
    )


class MetricIndex:
    """Thread-safe in-memory set of metric names."""

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._names: set[str] = set(names)
        self._lock = threading.Lock()

    def add(self, name: str) -> None:
        with self._lock:
            self._names.add(name)

    def discard(self, name: str) -> None:
        with self._lock:
            self._names.discard(name)

    def matches(self, pattern: str) -> list[str]:
        """Names matching `pattern`, sorted."""
        with self._lock:
            names = list(self._names)
        return sorted(name for name in names if match(name, pattern))

    def count_matches(self, pattern: str) -> int:
        return len(self.matches(pattern))

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)
