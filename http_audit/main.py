"""
HTTP Audit — example host application
Request/response capture · OpenAPI path parameters · Artemis audit topic
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from http_audit.core.assembly import install_audit
from http_audit.core.config import Settings, settings
from http_audit.core.logging import get_logger, setup_logging
from http_audit.routers import entities, health
from http_audit.services.publisher import BrokerConnection

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle management."""
    logger.info("api.startup", version=app.state.settings.API_VERSION, env=app.state.settings.ENVIRONMENT)
    pipeline = app.state.audit_pipeline
    if pipeline is not None:
        # Broker down is not fatal: events are dropped until it reconnects
        await run_in_threadpool(pipeline.start)
    yield
    if pipeline is not None:
        await run_in_threadpool(pipeline.stop)
    logger.info("api.shutdown")


def create_app(
    app_settings: Settings = settings,
    connection: BrokerConnection | None = None,
) -> FastAPI:
    app = FastAPI(
        title="HTTP Audit Example",
        description="""
## Audited sample API

Every request and non-empty response is published to the
`jms.topic.auditing.event` topic:

- **Request envelope** — path parameters, query parameters and body fields
- **Response envelope** — response body fields, or `_payload` for non-JSON bodies
- **Excluded** — anything under `/health` or `/actuator`
        """,
        version=app_settings.API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = app_settings

    # ── Global exception handler ───────────────────────────────────────────────
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "api.unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    # ── Routers ────────────────────────────────────────────────────────────────
    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(entities.router, tags=["Entities"])

    # ── Audit (after routers so the generated OpenAPI schema is complete) ──────
    contract = None if app_settings.AUDIT_HTTP_OPENAPI_REST_SPEC else app.openapi()
    app.state.audit_pipeline = install_audit(app, app_settings, contract, connection)
    return app


app = create_app()
