"""FastAPI application entrypoint — lifespan, routers, middleware."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text

from cropcal.config import get_settings
from cropcal.database import engine
from cropcal.middleware.logging import RequestLoggingMiddleware, configure_structured_logging
from cropcal.routes import calendars, crops, environment, jobs

logger = logging.getLogger("cropcal")


async def _run_readiness_checks(app: FastAPI) -> dict[str, dict[str, Any]]:
    """Probe the database and Redis; each check reports ``ok`` and a message."""
    checks: dict[str, dict[str, Any]] = {}

    try:
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1"))
        checks["database"] = {"ok": True, "message": "ok"}
    except Exception as exc:
        checks["database"] = {"ok": False, "message": str(exc)}

    redis: Redis | None = getattr(app.state, "redis", None)
    if redis is None:
        checks["redis"] = {"ok": False, "message": "not connected"}
    else:
        try:
            await redis.ping()
            checks["redis"] = {"ok": True, "message": "ok"}
        except Exception as exc:
            checks["redis"] = {"ok": False, "message": str(exc)}

    return checks


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup / shutdown lifecycle.

    Startup:
      1. Initialize structured logging
      2. Verify the database connection
      3. Connect to Redis (snapshot cache, job status, recalculation leases)

    Shutdown:
      1. Close Redis connection pool
      2. Dispose SQLAlchemy engine
    """
    configure_structured_logging()
    settings = get_settings()
    logger.info(
        "cropcal_starting",
        extra={
            "log_level": settings.log_level,
            "environment_provider": bool(settings.environment_provider_url),
        },
    )

    redis: Redis | None = None
    try:
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1"))

        redis = Redis.from_url(settings.redis_url, decode_responses=True)
        await redis.ping()
        app.state.redis = redis
    except Exception as exc:
        logger.exception("startup_failure", extra={"error": str(exc)})
        raise

    yield

    logger.info("cropcal_shutting_down")
    if redis is not None:
        await redis.aclose()
    await engine.dispose()


app = FastAPI(
    title="CropCal API",
    description=(
        "Crop activity scheduling engine — turns a planting decision into a dated "
        "calendar of growth stages, fertilization, irrigation and pest management "
        "events, and keeps it current as weather and satellite data arrive."
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── Middleware ──────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


# ── Health checks ───────────────────────────────────────────────────────────
@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Basic health check — verifies the API process is alive."""
    return {
        "status": "ok",
        "service": "cropcal",
        "version": "0.1.0",
    }


@app.get("/health/ready", tags=["system"])
async def readiness_check() -> JSONResponse:
    """Readiness — 503 while a dependency is unavailable."""
    checks = await _run_readiness_checks(app)
    ready = all(check["ok"] for check in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ok" if ready else "degraded", "checks": checks},
    )


# ── Router registration ────────────────────────────────────────────────────
app.include_router(calendars.router, prefix="/api/v1")
app.include_router(crops.router, prefix="/api/v1")
app.include_router(environment.router, prefix="/api/v1")
app.include_router(jobs.router, prefix="/api/v1")
