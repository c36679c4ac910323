"""
Tests for the rule store adapter.

These run against SQLite, which reports constraint violations by
message rather than SQLSTATE; the PostgreSQL branch of the classifier is
exercised with stand-in driver errors.
"""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import Text
from sqlalchemy.exc import IntegrityError

from vigil.models import Project, Rule
from vigil.rules.store import (
    ConstraintKind,
    ConstraintNotNull,
    ConstraintPrimaryKey,
    ConstraintUnique,
    NotFound,
    RuleStore,
    UpdateFailed,
    classify_integrity_error,
)


def new_rule(project_id: int, pattern: str = "svc.*.latency", **overrides) -> Rule:
    values = dict(
        project_id=project_id,
        pattern=pattern,
        trend_up=True,
        comment="latency trending up",
        level=0,
    )
    values.update(overrides)
    return Rule(**values)


# =============================================================================
# CONSTRAINT CLASSIFICATION
# =============================================================================


class PgError(Exception):
    """Looks enough like a psycopg error for the classifier."""

    def __init__(self, sqlstate: str, constraint_name: str = ""):
        super().__init__(f"pg error {sqlstate}")
        self.sqlstate = sqlstate
        self.diag = SimpleNamespace(constraint_name=constraint_name)


def integrity_error(orig: Exception) -> IntegrityError:
    return IntegrityError("INSERT INTO rules ...", {}, orig)


class TestClassifyIntegrityError:

    def test_postgres_not_null(self):
        exc = integrity_error(PgError("23502"))
        assert classify_integrity_error(exc) is ConstraintKind.NOT_NULL

    def test_postgres_unique(self):
        exc = integrity_error(PgError("23505", "rules_pattern_key"))
        assert classify_integrity_error(exc) is ConstraintKind.UNIQUE

    def test_postgres_primary_key(self):
        exc = integrity_error(PgError("23505", "rules_pkey"))
        assert classify_integrity_error(exc) is ConstraintKind.PRIMARY_KEY

    def test_postgres_foreign_key_is_unclassified(self):
        exc = integrity_error(PgError("23503", "rules_project_id_fkey"))
        assert classify_integrity_error(exc) is None

    def test_sqlite_messages(self):
        assert (
            classify_integrity_error(integrity_error(Exception("NOT NULL constraint failed: rules.comment")))
            is ConstraintKind.NOT_NULL
        )
        assert (
            classify_integrity_error(integrity_error(Exception("UNIQUE constraint failed: rules.pattern")))
            is ConstraintKind.UNIQUE
        )
        assert (
            classify_integrity_error(integrity_error(Exception("UNIQUE constraint failed: rules.id")))
            is ConstraintKind.PRIMARY_KEY
        )

    def test_unknown_message(self):
        exc = integrity_error(Exception("FOREIGN KEY constraint failed"))
        assert classify_integrity_error(exc) is None


# =============================================================================
# RULE CRUD
# =============================================================================


class TestRuleStore:

    @pytest.mark.asyncio
    async def test_create_assigns_id(self, db_session, project):
        store = RuleStore(db_session)

        rule = await store.create(new_rule(project.id))

        assert rule.id is not None
        assert rule.created_at is not None
        assert rule.trend_down is False  # python-side default

    @pytest.mark.asyncio
    async def test_create_returns_row_without_reload(self, db_session, project, monkeypatch):
        """
        The row could be gone by the time it's read back, so create
        never reads it back: the object holds what was written.
        """
        project_id = project.id

        async def refresh(*args, **kwargs):
            raise AssertionError("create must not reload the row")

        monkeypatch.setattr(db_session, "refresh", refresh)

        rule = await RuleStore(db_session).create(new_rule(project_id))
        other = await RuleStore(db_session).create_project(Project(name="search"))

        assert rule.id is not None
        assert rule.created_at.tzinfo is not None
        assert rule.updated_at.tzinfo is not None
        assert other.created_at is not None

    @pytest.mark.asyncio
    async def test_timestamps_read_back_as_written(self, session_factory, project):
        """SQLite drops the offset; values still come back as aware UTC."""
        async with session_factory() as session:
            created = await RuleStore(session).create(
                new_rule(project.id, disabled_at=datetime(2026, 3, 1, 9, 30, 15, 123456, tzinfo=timezone.utc))
            )

        async with session_factory() as session:
            reloaded = await RuleStore(session).find_by_id(created.id)

        assert reloaded.disabled_at == datetime(2026, 3, 1, 9, 30, 15, 123456, tzinfo=timezone.utc)
        assert reloaded.created_at == created.created_at
        assert reloaded.updated_at == created.updated_at

    def test_comment_column_is_unbounded(self):
        assert isinstance(Rule.__table__.c.comment.type, Text)

    @pytest.mark.asyncio
    async def test_create_duplicate_pattern(self, db_session, project):
        store = RuleStore(db_session)
        # The rollback expires every object in the session, project included
        project_id = project.id
        await store.create(new_rule(project_id))

        with pytest.raises(ConstraintUnique):
            await store.create(new_rule(project_id, comment="same pattern again"))

        # Session is usable again after the rollback
        assert len(await store.list_by_project(project_id)) == 1

    @pytest.mark.asyncio
    async def test_create_missing_required_field(self, db_session, project):
        store = RuleStore(db_session)

        with pytest.raises(ConstraintNotNull):
            await store.create(new_rule(project.id, comment=None))

    @pytest.mark.asyncio
    async def test_create_primary_key_collision(self, session_factory, project):
        async with session_factory() as session:
            existing = await RuleStore(session).create(new_rule(project.id))

        # A fresh session, so the identity map doesn't catch it first
        async with session_factory() as session:
            with pytest.raises(ConstraintPrimaryKey):
                await RuleStore(session).create(
                    new_rule(project.id, pattern="other.pattern", id=existing.id)
                )

    @pytest.mark.asyncio
    async def test_find_by_id(self, db_session, project):
        store = RuleStore(db_session)
        created = await store.create(new_rule(project.id))

        found = await store.find_by_id(created.id)

        assert found.pattern == "svc.*.latency"

    @pytest.mark.asyncio
    async def test_find_by_id_missing(self, db_session):
        with pytest.raises(NotFound):
            await RuleStore(db_session).find_by_id(12345)

    @pytest.mark.asyncio
    async def test_update(self, session_factory, project):
        async with session_factory() as session:
            store = RuleStore(session)
            rule = await store.create(new_rule(project.id))
            rule.comment = "edited"
            updated = await store.update(rule)
            assert updated.comment == "edited"

        async with session_factory() as session:
            reloaded = await RuleStore(session).find_by_id(rule.id)
            assert reloaded.comment == "edited"

    @pytest.mark.asyncio
    async def test_update_after_concurrent_delete(self, session_factory, project):
        """The row vanished between load and update."""
        async with session_factory() as session:
            rule_id = (await RuleStore(session).create(new_rule(project.id))).id

        async with session_factory() as editing, session_factory() as deleting:
            rule = await RuleStore(editing).find_by_id(rule_id)
            await RuleStore(deleting).delete_by_id(rule_id)

            rule.comment = "too late"
            with pytest.raises(NotFound):
                await RuleStore(editing).update(rule)

    @pytest.mark.asyncio
    async def test_update_duplicate_pattern_fails(self, db_session, project):
        store = RuleStore(db_session)
        project_id = project.id
        await store.create(new_rule(project_id, pattern="a.b"))
        second = await store.create(new_rule(project_id, pattern="a.c"))

        second.pattern = "a.b"
        with pytest.raises(UpdateFailed):
            await store.update(second)

    @pytest.mark.asyncio
    async def test_delete(self, db_session, project):
        store = RuleStore(db_session)
        rule = await store.create(new_rule(project.id))

        await store.delete_by_id(rule.id)

        with pytest.raises(NotFound):
            await store.find_by_id(rule.id)

    @pytest.mark.asyncio
    async def test_delete_missing(self, db_session):
        with pytest.raises(NotFound):
            await RuleStore(db_session).delete_by_id(999)

    @pytest.mark.asyncio
    async def test_list_by_project(self, db_session, project):
        store = RuleStore(db_session)
        other = await store.create_project(Project(name="search"))
        await store.create(new_rule(project.id, pattern="a.*"))
        await store.create(new_rule(project.id, pattern="b.*"))
        await store.create(new_rule(other.id, pattern="c.*"))

        rules = await store.list_by_project(project.id)

        assert [r.pattern for r in rules] == ["a.*", "b.*"]
        assert len(await store.list_all()) == 3


# =============================================================================
# PROJECTS
# =============================================================================


class TestProjectStore:

    @pytest.mark.asyncio
    async def test_find_project(self, db_session, project):
        found = await RuleStore(db_session).find_project_by_id(project.id)
        assert found.name == "payments"

    @pytest.mark.asyncio
    async def test_find_project_missing(self, db_session):
        with pytest.raises(NotFound):
            await RuleStore(db_session).find_project_by_id(404)

    @pytest.mark.asyncio
    async def test_duplicate_project_name(self, db_session, project):
        with pytest.raises(ConstraintUnique):
            await RuleStore(db_session).create_project(Project(name="payments"))
