"""
Rule store: transactional CRUD over the `rules` table.

Each operation commits (or rolls back) on its own; there are no
multi-row transactions at this layer. Driver errors never leave this
module raw: integrity errors are classified into a small closed set of
constraint kinds, everything else becomes a StoreError. The rule
service maps those onto domain errors.
"""

import enum
import re
from collections.abc import Sequence
from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from vigil.models import Project, Rule

log = structlog.get_logger()


# =============================================================================
# STORE ERRORS
# =============================================================================


class StoreError(Exception):
    """Any persistence failure without a more specific class."""


class NotFound(StoreError):
    pass


class UpdateFailed(StoreError):
    pass


class ConstraintKind(str, enum.Enum):
    NOT_NULL = "not_null"
    UNIQUE = "unique"
    PRIMARY_KEY = "primary_key"


class ConstraintViolation(StoreError):
    kind: ConstraintKind


class ConstraintNotNull(ConstraintViolation):
    kind = ConstraintKind.NOT_NULL


class ConstraintUnique(ConstraintViolation):
    kind = ConstraintKind.UNIQUE


class ConstraintPrimaryKey(ConstraintViolation):
    kind = ConstraintKind.PRIMARY_KEY


_VIOLATIONS = {
    ConstraintKind.NOT_NULL: ConstraintNotNull,
    ConstraintKind.UNIQUE: ConstraintUnique,
    ConstraintKind.PRIMARY_KEY: ConstraintPrimaryKey,
}


# =============================================================================
# CONSTRAINT CLASSIFICATION
# =============================================================================
# PostgreSQL reports SQLSTATE codes (psycopg 3: `sqlstate`, psycopg2:
# `pgcode`); a unique violation on the primary key is told apart by the
# "<table>_pkey" constraint name. SQLite only gives a message, e.g.
# "UNIQUE constraint failed: rules.pattern".

PG_NOT_NULL_VIOLATION = "23502"
PG_UNIQUE_VIOLATION = "23505"

_SQLITE_FAILED_RE = re.compile(r"(NOT NULL|UNIQUE|PRIMARY KEY) constraint failed: (.+)$")

PRIMARY_KEY_COLUMNS = frozenset({"rules.id", "projects.id"})


def classify_integrity_error(exc: IntegrityError) -> Optional[ConstraintKind]:
    """
    Map a driver integrity error to a ConstraintKind.

    Returns:
        The kind, or None when the violation is none of the three
        (e.g. a foreign key or check constraint).
    """
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)

    if sqlstate == PG_NOT_NULL_VIOLATION:
        return ConstraintKind.NOT_NULL
    if sqlstate == PG_UNIQUE_VIOLATION:
        diag = getattr(orig, "diag", None)
        constraint = getattr(diag, "constraint_name", None) or ""
        if constraint.endswith("_pkey"):
            return ConstraintKind.PRIMARY_KEY
        return ConstraintKind.UNIQUE
    if sqlstate is not None:
        return None

    if getattr(orig, "sqlite_errorname", None) == "SQLITE_CONSTRAINT_PRIMARYKEY":
        return ConstraintKind.PRIMARY_KEY

    matched = _SQLITE_FAILED_RE.search(str(orig))
    if matched is None:
        return None
    what, columns = matched.groups()
    if what == "NOT NULL":
        return ConstraintKind.NOT_NULL
    if what == "PRIMARY KEY":
        return ConstraintKind.PRIMARY_KEY
    if {c.strip() for c in columns.split(",")} <= PRIMARY_KEY_COLUMNS:
        return ConstraintKind.PRIMARY_KEY
    return ConstraintKind.UNIQUE


def constraint_error(exc: IntegrityError) -> StoreError:
    """Build the store error to raise for an integrity error."""
    kind = classify_integrity_error(exc)
    if kind is None:
        return StoreError(str(exc.orig))
    return _VIOLATIONS[kind](str(exc.orig))


# =============================================================================
# STORE
# =============================================================================


class RuleStore:
    """
    Rule and project persistence over one AsyncSession.

    Create one per request (per session); the session is owned by the
    caller.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # --- rules ---------------------------------------------------------------

    async def create(self, rule: Rule) -> Rule:
        """
        Insert a rule; the store assigns `rule.id`.

        Every other column is filled on the Python side, so the returned
        object already holds the written row.

        Raises:
            ConstraintNotNull, ConstraintUnique, ConstraintPrimaryKey,
            StoreError
        """
        self.session.add(rule)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise constraint_error(exc) from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(str(exc)) from exc
        return rule

    async def find_by_id(self, rule_id: int) -> Rule:
        """
        Raises:
            NotFound, StoreError
        """
        try:
            rule = await self.session.get(Rule, rule_id)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        if rule is None:
            raise NotFound(f"rule {rule_id}")
        return rule

    async def update(self, rule: Rule) -> Rule:
        """
        Persist the current field values of `rule`.

        The returned object holds exactly what was written.

        Raises:
            NotFound: the row was deleted since it was loaded
            UpdateFailed: any other persistence error
        """
        # The rollback below expires `rule`; its id must be read first
        rule_id = rule.id
        self.session.add(rule)
        try:
            await self.session.commit()
        except StaleDataError as exc:
            await self.session.rollback()
            raise NotFound(f"rule {rule_id}") from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise UpdateFailed(str(exc)) from exc
        return rule

    async def delete_by_id(self, rule_id: int) -> None:
        """
        Raises:
            NotFound, StoreError
        """
        try:
            result = await self.session.execute(delete(Rule).where(Rule.id == rule_id))
            if result.rowcount == 0:
                await self.session.rollback()
                raise NotFound(f"rule {rule_id}")
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(str(exc)) from exc

    async def list_by_project(self, project_id: int) -> Sequence[Rule]:
        query = select(Rule).where(Rule.project_id == project_id).order_by(Rule.id)
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return result.scalars().all()

    async def list_all(self) -> Sequence[Rule]:
        try:
            result = await self.session.execute(select(Rule).order_by(Rule.id))
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return result.scalars().all()

    # --- projects ------------------------------------------------------------

    async def find_project_by_id(self, project_id: int) -> Project:
        """
        Raises:
            NotFound, StoreError
        """
        try:
            project = await self.session.get(Project, project_id)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        if project is None:
            raise NotFound(f"project {project_id}")
        return project

    async def create_project(self, project: Project) -> Project:
        """
        Raises:
            ConstraintUnique (name taken), ConstraintNotNull, StoreError
        """
        self.session.add(project)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise constraint_error(exc) from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(str(exc)) from exc
        log.info("project.created", project_id=project.id, name=project.name)
        return project
