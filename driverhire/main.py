from contextlib import asynccontextmanager

import redis.asyncio as aioredis
import sentry_sdk
import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from driverhire.admin.routes import router as admin_router
from driverhire.bookings.routes import router as bookings_router
from driverhire.config import settings
from driverhire.database import async_session
from driverhire.drivers.routes import router as drivers_router
from driverhire.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from driverhire.notifications.routes import router as notifications_router
from driverhire.payments.routes import router as payments_router
from driverhire.services.notifications import get_notifier
from driverhire.utils.rate_limit import limiter

# Configure structlog: JSON in production, console in development
processors = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]
if settings.is_production:
    processors.append(structlog.processors.JSONRenderer())
else:
    processors.append(structlog.dev.ConsoleRenderer())

structlog.configure(
    processors=processors,
    wrapper_class=structlog.make_filtering_bound_logger(0),
)

logger = structlog.get_logger()

# Sentry error tracking
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=0.1,
        environment=settings.APP_ENV,
        send_default_pii=False,
    )

_ERROR_KINDS = {
    400: "bad_request",
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "validation_error",
}


async def _check_alembic_migration_version() -> None:
    """Log a warning if the database is not at the alembic head revision. Never raises."""
    try:
        from alembic.config import Config as AlembicConfig
        from alembic.script import ScriptDirectory

        alembic_cfg = AlembicConfig("alembic.ini")
        head_rev = ScriptDirectory.from_config(alembic_cfg).get_current_head()

        async with async_session() as session:
            conn = await session.connection()

            def _get_current_rev(connection):
                if not connection.dialect.has_table(connection, "alembic_version"):
                    return None
                row = connection.execute(text("SELECT version_num FROM alembic_version")).fetchone()
                return row[0] if row else None

            current_rev = await conn.run_sync(_get_current_rev)

        if current_rev is None:
            logger.warning("alembic_version_check", status="no_alembic_version_table")
        elif current_rev != head_rev:
            logger.warning(
                "alembic_version_mismatch",
                current=current_rev,
                head=head_rev,
                message="Run 'alembic upgrade head'.",
            )
        else:
            logger.info("alembic_version_ok", version=current_rev)
    except Exception as exc:
        logger.warning("alembic_version_check_failed", error=str(exc))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("driverhire_startup", env=settings.APP_ENV)
    await _check_alembic_migration_version()
    yield
    await get_notifier().channel.close()
    logger.info("driverhire_shutdown")


app = FastAPI(
    title="DriverHire API",
    description="Booking and payment lifecycle for hiring drivers by the day",
    version="0.1.0",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render every HTTP error as ``{"detail", "error"}``; domain errors carry their own kind."""
    kind = getattr(exc, "error", None) or _ERROR_KINDS.get(exc.status_code, "http_error")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": kind},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors()), "error": "validation_error"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions and return a safe 500 response outside development."""
    logger.exception("unhandled_exception", path=request.url.path)
    if settings.APP_ENV != "development":
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error": "server_error"},
        )
    # In development, re-raise so the default handler shows the traceback
    raise exc


# Middleware is LIFO: the last middleware added runs first.
if settings.is_production:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH"],
        allow_headers=["Authorization", "Content-Type"],
    )
    if not settings.cors_origins_list:
        logger.warning("cors_origins_empty_in_production", app_env=settings.APP_ENV)
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(SecurityHeadersMiddleware, is_production=settings.is_production)
app.add_middleware(RequestContextMiddleware)


# Custom instrumentation: the default metrics crash on non-numeric Content-Length headers.
def _safe_metrics(info) -> None:
    from prometheus_client import Counter, Histogram

    if not hasattr(_safe_metrics, "_total"):
        _safe_metrics._total = Counter(
            "driverhire_http_requests_total", "Total HTTP requests",
            ["method", "status", "handler"],
        )
        _safe_metrics._latency = Histogram(
            "driverhire_http_request_duration_seconds", "Request latency",
            ["method", "handler"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
        )
    _safe_metrics._total.labels(info.method, info.modified_status, info.modified_handler).inc()
    _safe_metrics._latency.labels(info.method, info.modified_handler).observe(info.modified_duration)


Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    excluded_handlers=["/health", "/metrics"],
).add(_safe_metrics).instrument(app)


@app.get("/metrics", include_in_schema=False)
async def metrics_endpoint(request: Request):
    """Prometheus metrics endpoint (protected by API key)."""
    from prometheus_client import generate_latest
    from starlette.responses import Response as StarletteResponse

    # In production/staging, METRICS_API_KEY is required
    if settings.is_production and not settings.METRICS_API_KEY:
        raise HTTPException(status_code=503, detail="Metrics not available")

    if settings.METRICS_API_KEY:
        if request.headers.get("x-metrics-key", "") != settings.METRICS_API_KEY:
            raise HTTPException(status_code=403, detail="Invalid metrics API key")

    return StarletteResponse(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


app.include_router(bookings_router, prefix="/bookings", tags=["bookings"])
app.include_router(payments_router, prefix="/payments", tags=["payments"])
app.include_router(drivers_router, prefix="/drivers", tags=["drivers"])
app.include_router(notifications_router, prefix="/notifications", tags=["notifications"])
app.include_router(admin_router)


@app.get("/health")
@limiter.limit("60/minute")
async def health_check(request: Request):
    """Health check with database and Redis connectivity verification."""
    result: dict = {"status": "ok", "database": "connected", "redis": "connected"}

    try:
        async with async_session() as db:
            await db.execute(text("SELECT 1"))
    except Exception:
        logger.warning("health_database_unreachable")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "disconnected", "redis": "unknown"},
        )

    # Redis only carries real-time pushes and shared rate limits; bookings work without it.
    try:
        r = aioredis.from_url(settings.REDIS_URL, socket_connect_timeout=2)
        await r.ping()
        await r.aclose()
    except Exception:
        result["redis"] = "unavailable"

    if settings.is_production and result["redis"] != "connected":
        result["status"] = "degraded"
    return result
