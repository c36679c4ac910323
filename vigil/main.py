"""
FastAPI application entry point.

This is where:
- The FastAPI app is created
- Process-wide rule cache, metric index and rule locks are created
- Routes are registered
- Domain errors are mapped to HTTP responses
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from vigil.api.routes_projects import router as projects_router
from vigil.api.routes_rules import project_router as project_rules_router
from vigil.api.routes_rules import router as rules_router
from vigil.core.config import settings
from vigil.core.db import AsyncSessionLocal
from vigil.core.errors import BadRequest, InvalidProjectID, RuleError
from vigil.core.logging import setup_logging
from vigil.rules.cache import RuleCache, RuleLocks
from vigil.rules.index import MetricIndex
from vigil.rules.service import RuleService
from vigil.rules.store import RuleStore

log = structlog.get_logger()


# =============================================================================
# LIFESPAN MANAGEMENT
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: configure logging, create shared state, warm the rule cache.
    Shutdown: drop the cache.
    """
    setup_logging(json_output=settings.log_json, level=settings.log_level)
    log.info("vigil.starting")

    app.state.rule_cache = RuleCache()
    app.state.metric_index = MetricIndex()
    app.state.rule_locks = RuleLocks()

    if settings.warm_rule_cache:
        async with AsyncSessionLocal() as session:
            service = RuleService(
                RuleStore(session),
                app.state.rule_cache,
                app.state.metric_index,
                locks=app.state.rule_locks,
            )
            await service.warm_cache()

    yield

    app.state.rule_cache.clear()
    log.info("vigil.stopped")


# =============================================================================
# CREATE APPLICATION
# =============================================================================


app = FastAPI(
    title="Vigil API",
    description="Alert rule lifecycle: store, rule cache and metric index kept in sync",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# =============================================================================
# ERROR HANDLERS
# =============================================================================


def error_response(exc: RuleError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RuleError)
async def rule_error_handler(request: Request, exc: RuleError) -> JSONResponse:
    if exc.status_code >= 500:
        cause = getattr(exc, "cause", None) or exc.__cause__
        log.error(
            "request.failed",
            kind=exc.kind,
            path=request.url.path,
            cause=repr(cause) if cause is not None else None,
        )
    else:
        log.info("request.rejected", kind=exc.kind, path=request.url.path, message=exc.message)
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Input that couldn't be bound. An unparsable project id gets its own kind."""
    for error in exc.errors():
        if tuple(error.get("loc", ())) == ("path", "project_id"):
            return error_response(InvalidProjectID())
    log.info("request.bad", path=request.url.path, errors=len(exc.errors()))
    return error_response(BadRequest())


# =============================================================================
# REGISTER ROUTERS
# =============================================================================

app.include_router(projects_router, prefix="/api/v1")
app.include_router(project_rules_router, prefix="/api/v1")
app.include_router(rules_router, prefix="/api/v1")


# =============================================================================
# HEALTH CHECK
# =============================================================================


@app.get(
    "/api/v1/health",
    tags=["Health"],
    summary="Health check",
)
async def health_check(request: Request):
    """Check if the service is running and how many rules are cached."""
    cache = getattr(request.app.state, "rule_cache", None)
    return {
        "status": "healthy",
        "service": "vigil",
        "cached_rules": len(cache) if cache is not None else 0,
    }
