"""
Test doubles for the rule service collaborators.
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from vigil.models import Project, Rule
from vigil.rules import store as rule_store
from vigil.schemas.rule import RuleFields


def make_fields(**overrides) -> RuleFields:
    """A valid create/edit body; override what the test cares about."""
    values = {
        "pattern": "svc.*.latency",
        "trend_up": True,
        "comment": "latency trending up",
        "level": 0,
    }
    values.update(overrides)
    return RuleFields(**values)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def _row(rule: Rule) -> dict:
    return {column.key: getattr(rule, column.key) for column in Rule.__table__.columns}


class FakeRuleStore:
    """
    Dict-backed stand-in for RuleStore.

    Every call yields to the event loop, so concurrent tasks interleave
    the way real database round-trips do. `update_delays` holds seconds
    to sleep after each update has been written (popped in call order),
    to simulate a slow commit acknowledgement.
    """

    def __init__(self, project_ids=(1,)):
        self.projects = {pid: Project(id=pid, name=f"project-{pid}") for pid in project_ids}
        self.rows: dict[int, dict] = {}
        self.next_id = 1
        self.writes = 0
        self.update_delays: list[float] = []
        self.fail_with: Optional[Exception] = None

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def create(self, rule: Rule) -> Rule:
        await asyncio.sleep(0)
        self._maybe_fail()
        if any(row["pattern"] == rule.pattern for row in self.rows.values()):
            raise rule_store.ConstraintUnique("UNIQUE constraint failed: rules.pattern")
        rule.id = self.next_id
        self.next_id += 1
        rule.created_at = datetime.now(timezone.utc)
        rule.updated_at = rule.created_at
        self.rows[rule.id] = _row(rule)
        self.writes += 1
        return rule

    async def find_by_id(self, rule_id: int) -> Rule:
        await asyncio.sleep(0)
        row = self.rows.get(rule_id)
        if row is None:
            raise rule_store.NotFound(f"rule {rule_id}")
        return Rule(**row)

    async def update(self, rule: Rule) -> Rule:
        await asyncio.sleep(0)
        self._maybe_fail()
        if rule.id not in self.rows:
            raise rule_store.NotFound(f"rule {rule.id}")
        rule.updated_at = datetime.now(timezone.utc)
        self.rows[rule.id] = _row(rule)
        self.writes += 1
        if self.update_delays:
            await asyncio.sleep(self.update_delays.pop(0))
        return rule

    async def delete_by_id(self, rule_id: int) -> None:
        await asyncio.sleep(0)
        self._maybe_fail()
        if self.rows.pop(rule_id, None) is None:
            raise rule_store.NotFound(f"rule {rule_id}")
        self.writes += 1

    async def list_by_project(self, project_id: int) -> list[Rule]:
        return [Rule(**row) for row in self.rows.values() if row["project_id"] == project_id]

    async def list_all(self) -> list[Rule]:
        return [Rule(**row) for row in self.rows.values()]

    async def find_project_by_id(self, project_id: int) -> Project:
        await asyncio.sleep(0)
        project = self.projects.get(project_id)
        if project is None:
            raise rule_store.NotFound(f"project {project_id}")
        return project

    async def create_project(self, project: Project) -> Project:
        if any(p.name == project.name for p in self.projects.values()):
            raise rule_store.ConstraintUnique("UNIQUE constraint failed: projects.name")
        project.id = max(self.projects, default=0) + 1
        self.projects[project.id] = project
        return project


class BrokenIndex:
    """Metric index that always fails."""

    def count_matches(self, pattern: str) -> int:
        raise RuntimeError("index unavailable")


class SlowIndex:
    """Metric index that answers, eventually."""

    def __init__(self, seconds: float, answer: int = 7):
        self.seconds = seconds
        self.answer = answer

    def count_matches(self, pattern: str) -> int:
        time.sleep(self.seconds)
        return self.answer


class BrokenCache:
    """Rule cache whose writes always fail."""

    def put(self, rule) -> None:
        raise RuntimeError("cache write failed")

    def delete(self, rule_id: int) -> bool:
        raise RuntimeError("cache write failed")

    def get(self, rule_id: int):
        return None
