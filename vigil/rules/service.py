"""
Rule lifecycle coordinator.

Create, edit and delete keep three things consistent: the rule store
(source of truth), the rule cache (read by the evaluation path) and the
metric index (only used to enrich responses).

Ordering rules:
- validation and lookups fail before anything is written;
- the cache is written only after the store committed, and always with
  the value that was just persisted;
- an edit evicts the cached entry before putting the new one;
- index lookups are best effort: a failure yields num_metrics=0, never a
  failed operation.

Create:  validate -> verify project -> persist -> cache -> enrich
Edit:    validate -> locate -> persist -> evict -> cache -> enrich
Delete:  persist -> evict
"""

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Optional

import structlog

from vigil.core import errors
from vigil.core.config import settings
from vigil.core.db import as_utc, utcnow
from vigil.models import Project, Rule
from vigil.rules import store as rule_store
from vigil.rules.cache import RuleCache, RuleLocks
from vigil.rules.index import MetricCounter
from vigil.rules.validation import validate_project_id, validate_rule_fields
from vigil.schemas.rule import RuleFields, RuleRead, RuleResponse

log = structlog.get_logger()


# Store constraint kind -> domain error raised on create
_CONSTRAINT_ERRORS = {
    rule_store.ConstraintKind.NOT_NULL: errors.RequiredFieldMissing,
    rule_store.ConstraintKind.UNIQUE: errors.DuplicatePattern,
    rule_store.ConstraintKind.PRIMARY_KEY: errors.PrimaryKeyConflict,
}


class RuleService:
    """
    Coordinates rule writes across store, cache and metric index.

    All collaborators are injected so tests can swap in fakes:

        service = RuleService(RuleStore(session), cache, index)
        rule = await service.create(project_id, fields)

    Args:
        store: RuleStore (or anything with the same coroutines)
        cache: Shared RuleCache
        index: Anything with count_matches(pattern) -> int
        locks: Shared RuleLocks; edits and deletes of one rule id are
            serialised through it. Pass the same instance to every
            service that shares `cache`.
        clock: Returns "now" for disabled_at
        index_timeout: Seconds to wait for the index
    """

    def __init__(
        self,
        store: rule_store.RuleStore,
        cache: RuleCache,
        index: MetricCounter,
        locks: Optional[RuleLocks] = None,
        clock: Callable[[], datetime] = utcnow,
        index_timeout: Optional[float] = None,
    ):
        self.store = store
        self.cache = cache
        self.index = index
        self.locks = locks if locks is not None else RuleLocks()
        self.clock = clock
        self.index_timeout = (
            index_timeout if index_timeout is not None else settings.metric_index_timeout
        )

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create(self, project_id: int, fields: RuleFields) -> RuleResponse:
        """
        Create a rule in a project.

        Raises:
            InvalidPattern, MissingComment, InvalidProjectID, NoCondition,
            InvalidLevel, ProjectNotFound, DuplicatePattern,
            RequiredFieldMissing, PrimaryKeyConflict, Unexpected
        """
        validate_rule_fields(fields, project_id=project_id)

        try:
            await self.store.find_project_by_id(project_id)
        except rule_store.NotFound:
            raise errors.ProjectNotFound() from None
        except rule_store.StoreError as exc:
            raise self._unexpected("rule.create.project_lookup_failed", exc) from exc

        rule = Rule(project_id=project_id)
        self._apply_fields(rule, fields)

        try:
            rule = await self.store.create(rule)
        except rule_store.ConstraintViolation as exc:
            log.info(
                "rule.create.rejected",
                project_id=project_id,
                pattern=fields.pattern,
                constraint=exc.kind.value,
            )
            raise _CONSTRAINT_ERRORS[exc.kind]() from exc
        except rule_store.StoreError as exc:
            raise self._unexpected("rule.create.failed", exc) from exc

        snapshot = RuleRead.model_validate(rule)
        self._cache_put(snapshot)
        log.info("rule.created", rule_id=snapshot.id, project_id=project_id, pattern=snapshot.pattern)
        return await self._enrich(snapshot)

    # =========================================================================
    # EDIT
    # =========================================================================

    async def edit(self, rule_id: int, fields: RuleFields) -> RuleResponse:
        """
        Replace the editable fields of a rule. The project can't change.

        Raises:
            InvalidPattern, MissingComment, NoCondition, InvalidLevel,
            RuleNotFound, UpdateFailed, Unexpected
        """
        validate_rule_fields(fields)

        async with self.locks.hold(rule_id):
            try:
                rule = await self.store.find_by_id(rule_id)
            except rule_store.NotFound:
                raise errors.RuleNotFound() from None
            except rule_store.StoreError as exc:
                raise self._unexpected("rule.edit.lookup_failed", exc) from exc

            self._apply_fields(rule, fields)

            try:
                rule = await self.store.update(rule)
            except rule_store.NotFound:
                raise errors.RuleNotFound() from None
            except rule_store.StoreError as exc:
                log.warning("rule.edit.failed", rule_id=rule_id, error=str(exc))
                raise errors.UpdateFailed() from exc

            snapshot = RuleRead.model_validate(rule)
            self._cache_delete(rule_id)
            self._cache_put(snapshot)

        log.info("rule.updated", rule_id=rule_id, pattern=snapshot.pattern)
        return await self._enrich(snapshot)

    # =========================================================================
    # DELETE
    # =========================================================================

    async def delete(self, rule_id: int) -> None:
        """
        Delete a rule and evict it from the cache.

        The cache is evicted even when the store had no such row, so a
        stale entry can't outlive its rule.

        Raises:
            RuleNotFound, Unexpected
        """
        async with self.locks.hold(rule_id):
            try:
                await self.store.delete_by_id(rule_id)
            except rule_store.NotFound:
                self._cache_delete(rule_id)
                raise errors.RuleNotFound() from None
            except rule_store.StoreError as exc:
                raise self._unexpected("rule.delete.failed", exc) from exc

            self._cache_delete(rule_id)

        log.info("rule.deleted", rule_id=rule_id)

    # =========================================================================
    # READS
    # =========================================================================

    async def get(self, rule_id: int) -> RuleResponse:
        """
        Raises:
            RuleNotFound, Unexpected
        """
        try:
            rule = await self.store.find_by_id(rule_id)
        except rule_store.NotFound:
            raise errors.RuleNotFound() from None
        except rule_store.StoreError as exc:
            raise self._unexpected("rule.get.failed", exc) from exc
        return await self._enrich(RuleRead.model_validate(rule))

    async def list_for_project(self, project_id: int) -> list[RuleResponse]:
        """
        Raises:
            InvalidProjectID, ProjectNotFound, Unexpected
        """
        validate_project_id(project_id)
        try:
            await self.store.find_project_by_id(project_id)
            rules = await self.store.list_by_project(project_id)
        except rule_store.NotFound:
            raise errors.ProjectNotFound() from None
        except rule_store.StoreError as exc:
            raise self._unexpected("rule.list.failed", exc) from exc

        snapshots = [RuleRead.model_validate(rule) for rule in rules]
        return [await self._enrich(snapshot) for snapshot in snapshots]

    async def warm_cache(self) -> int:
        """Load every stored rule into the cache. Returns the count."""
        try:
            rules = await self.store.list_all()
        except rule_store.StoreError as exc:
            raise self._unexpected("rule_cache.warm_failed", exc) from exc
        return self.cache.load(RuleRead.model_validate(rule) for rule in rules)

    # =========================================================================
    # PROJECTS
    # =========================================================================

    async def create_project(self, name: str, description: Optional[str] = None) -> Project:
        """
        Raises:
            DuplicateProjectName, Unexpected
        """
        project = Project(name=name, description=description)
        try:
            return await self.store.create_project(project)
        except rule_store.ConstraintUnique:
            raise errors.DuplicateProjectName() from None
        except rule_store.StoreError as exc:
            raise self._unexpected("project.create.failed", exc) from exc

    async def get_project(self, project_id: int) -> Project:
        """
        Raises:
            InvalidProjectID, ProjectNotFound, Unexpected
        """
        validate_project_id(project_id)
        try:
            return await self.store.find_project_by_id(project_id)
        except rule_store.NotFound:
            raise errors.ProjectNotFound() from None
        except rule_store.StoreError as exc:
            raise self._unexpected("project.get.failed", exc) from exc

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _apply_fields(self, rule: Rule, fields: RuleFields) -> None:
        rule.pattern = fields.pattern
        rule.trend_up = fields.trend_up
        rule.trend_down = fields.trend_down
        rule.threshold_max = fields.threshold_max
        rule.threshold_min = fields.threshold_min
        rule.comment = fields.comment
        rule.level = fields.level
        rule.disabled = fields.disabled
        rule.disabled_for = fields.disabled_for
        rule.disabled_at = as_utc(self.clock())
        rule.track_idle = fields.track_idle
        rule.never_fill_zero = fields.never_fill_zero

    def _cache_put(self, snapshot: RuleRead) -> None:
        # The rule is committed already; a cache failure must not undo that.
        try:
            self.cache.put(snapshot)
        except Exception as exc:
            log.error("rule.cache.put_failed", rule_id=snapshot.id, error=str(exc), exc_info=True)

    def _cache_delete(self, rule_id: int) -> None:
        try:
            self.cache.delete(rule_id)
        except Exception as exc:
            log.error("rule.cache.delete_failed", rule_id=rule_id, error=str(exc), exc_info=True)

    async def _count_metrics(self, pattern: str) -> int:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.index.count_matches, pattern),
                timeout=self.index_timeout,
            )
        except Exception as exc:
            log.warning(
                "metric_index.count.failed",
                pattern=pattern,
                error=str(exc) or exc.__class__.__name__,
            )
            return 0

    async def _enrich(self, snapshot: RuleRead) -> RuleResponse:
        num_metrics = await self._count_metrics(snapshot.pattern)
        return RuleResponse.from_snapshot(snapshot, num_metrics)

    def _unexpected(self, event: str, exc: Exception) -> errors.Unexpected:
        log.error(event, error=str(exc), error_type=exc.__class__.__name__)
        return errors.Unexpected(exc)
