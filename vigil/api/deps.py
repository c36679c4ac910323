"""
FastAPI dependencies for route handlers.

The rule cache, metric index and per-rule locks are process-wide and
live on `app.state` (created in the lifespan). A RuleService is built
per request around the request's database session.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from vigil.core.db import get_db
from vigil.rules.cache import RuleCache, RuleLocks
from vigil.rules.index import MetricIndex
from vigil.rules.service import RuleService
from vigil.rules.store import RuleStore


def get_rule_cache(request: Request) -> RuleCache:
    return request.app.state.rule_cache


def get_metric_index(request: Request) -> MetricIndex:
    return request.app.state.metric_index


def get_rule_locks(request: Request) -> RuleLocks:
    return request.app.state.rule_locks


async def get_rule_service(
    db: AsyncSession = Depends(get_db),
    cache: RuleCache = Depends(get_rule_cache),
    index: MetricIndex = Depends(get_metric_index),
    locks: RuleLocks = Depends(get_rule_locks),
) -> RuleService:
    """
    Build the rule service for one request.

    Usage:
        @router.delete("/rules/{rule_id}")
        async def delete_rule(rule_id: int, service: RuleService = Depends(get_rule_service)):
            await service.delete(rule_id)
    """
    return RuleService(RuleStore(db), cache, index, locks=locks)
