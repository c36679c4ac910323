"""
In-memory rule cache.

The evaluation path looks rules up here for every incoming metric, so
reads must be cheap and must never see a half-written rule. Entries are
frozen `RuleRead` snapshots and each write swaps a whole entry under a
lock; a reader either gets the old snapshot or the new one.

The cache does no validation of its own. Callers (the rule service)
only write to it after the matching store operation committed.
"""

import asyncio
import threading
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Optional

import structlog

from vigil.schemas.rule import RuleRead

log = structlog.get_logger()


class RuleCache:
    """Thread-safe mapping of rule id -> RuleRead."""

    def __init__(self) -> None:
        self._rules: dict[int, RuleRead] = {}
        self._lock = threading.Lock()

    def put(self, rule: RuleRead) -> None:
        """Insert or overwrite the entry for `rule.id`."""
        with self._lock:
            self._rules[rule.id] = rule

    def get(self, rule_id: int) -> Optional[RuleRead]:
        with self._lock:
            return self._rules.get(rule_id)

    def delete(self, rule_id: int) -> bool:
        """
        Evict a rule. Deleting an absent id is a no-op.

        Returns:
            True if an entry was removed
        """
        with self._lock:
            return self._rules.pop(rule_id, None) is not None

    def load(self, rules: Iterable[RuleRead]) -> int:
        """Replace the whole content (startup warm-up)."""
        fresh = {rule.id: rule for rule in rules}
        with self._lock:
            self._rules = fresh
        log.info("rule_cache.loaded", count=len(fresh))
        return len(fresh)

    def values(self, project_id: Optional[int] = None) -> list[RuleRead]:
        with self._lock:
            rules = list(self._rules.values())
        if project_id is None:
            return rules
        return [rule for rule in rules if rule.project_id == project_id]

    def clear(self) -> None:
        with self._lock:
            self._rules.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        with self._lock:
            return rule_id in self._rules


class RuleLocks:
    """
    One asyncio.Lock per rule id.

    Held by the rule service from locating a rule until its cache entry
    is written, so two writers of the same id hit the store and the
    cache in the same order. Unrelated ids never wait on each other.
    Locks are dropped once nobody holds or waits on them.
    """

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, rule_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(rule_id, asyncio.Lock())
        self._users[rule_id] = self._users.get(rule_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[rule_id] -= 1
            if self._users[rule_id] == 0:
                del self._users[rule_id]
                del self._locks[rule_id]

    def __len__(self) -> int:
        return len(self._locks)
