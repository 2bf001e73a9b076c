"""
LoveConnect — FastAPI + Socket.IO Application Entry Point

Production-ready application with:
- Async lifespan management (presence registry, DB pool, Redis backplane)
- CORS, timeout, and structured-logging middleware
- Domain-error → JSON mapping shared by every endpoint
- Health-check endpoints (liveness + deep readiness)
- Active-request tracking for graceful shutdown

Serve ``app.main:asgi_app`` to expose both the REST API and the ``/chat``
Socket.IO namespace on one port.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import socketio
import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.config import Settings, get_settings
from app.container import Container, build_container
from app.database import dispose_engine, get_engine, session_scope
from app.errors import DomainError

# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, get_settings().LOG_LEVEL.upper(), logging.INFO)
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger("loveconnect")

# ---------------------------------------------------------------------------
# Active request counter for graceful shutdown
# ---------------------------------------------------------------------------

_active_requests: int = 0
_active_requests_lock = asyncio.Lock()

DRAIN_TIMEOUT_SECONDS = 15


async def _increment_active() -> None:
    global _active_requests
    async with _active_requests_lock:
        _active_requests += 1


async def _decrement_active() -> None:
    global _active_requests
    async with _active_requests_lock:
        _active_requests -= 1


async def _drain_active_requests() -> None:
    """Wait until all in-flight requests complete or timeout expires."""
    deadline = time.monotonic() + DRAIN_TIMEOUT_SECONDS
    while True:
        async with _active_requests_lock:
            if _active_requests <= 0:
                break
        if time.monotonic() >= deadline:
            logger.warning(
                "drain_timeout_exceeded",
                remaining_requests=_active_requests,
            )
            break
        await asyncio.sleep(0.25)


# ---------------------------------------------------------------------------
# Redis helpers (health checks; fan-out goes through AsyncRedisManager)
# ---------------------------------------------------------------------------

_redis_client = None


async def _connect_redis(settings: Settings) -> None:
    global _redis_client
    import redis.asyncio as aioredis

    _redis_client = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=5,
    )
    await _redis_client.ping()
    logger.info("redis_connected", url=settings.REDIS_URL)


async def _close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("redis_closed")


def get_redis():
    """Return the shared Redis client, or None when no backplane is configured."""
    return _redis_client


# ---------------------------------------------------------------------------
# Middleware classes
# ---------------------------------------------------------------------------

class TimeoutMiddleware(BaseHTTPMiddleware):
    """Abort requests that exceed a configurable wall-clock timeout."""

    def __init__(self, app, timeout_seconds: float = 30.0) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await asyncio.wait_for(
                call_next(request),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "request_timeout",
                method=request.method,
                path=request.url.path,
                timeout=self.timeout_seconds,
            )
            return JSONResponse(
                status_code=504,
                content={"error": {"kind": "timeout", "message": "Request timed out"}},
            )


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()

        await _increment_active()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                "request_error",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
            )
            raise
        finally:
            await _decrement_active()

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

async def _domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("domain_error", path=request.url.path, kind=exc.kind, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = f"{location}: {first.get('msg', 'invalid input')}" if location else "Invalid input"
    return JSONResponse(
        status_code=422,
        content={"error": {"kind": "validation_error", "message": message}},
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(container: Container | None = None) -> FastAPI:
    """Build the FastAPI application around ``container``."""
    container = container or build_container()
    settings = container.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "startup_begin",
            environment=settings.ENVIRONMENT,
            store_backend=settings.STORE_BACKEND,
        )

        if settings.STORE_BACKEND == "sql":
            async with get_engine().begin() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("database_pool_initialised")

        if settings.REDIS_URL:
            await _connect_redis(settings)

        await container.presence.start(counter=get_redis())

        logger.info("startup_complete")

        yield

        logger.info("shutdown_begin")
        await _drain_active_requests()
        await container.presence.stop()
        await _close_redis()
        if settings.STORE_BACKEND == "sql":
            await dispose_engine()
            logger.info("database_pool_closed")
        logger.info("shutdown_complete")

    app = FastAPI(
        title="LoveConnect",
        description="Mutual-like matching, compatibility ranking and realtime chat",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )
    app.state.container = container

    # -- Middleware (applied in reverse order: last added runs first) ------ #

    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(TimeoutMiddleware, timeout_seconds=30.0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DomainError, _domain_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    # -- Health-check endpoints -------------------------------------------- #

    @app.get("/health", tags=["health"])
    async def health_liveness() -> dict:
        """Lightweight liveness probe."""
        return {"status": "healthy"}

    @app.get("/health/deep", tags=["health"])
    async def health_deep() -> dict:
        """Deep readiness probe: verifies database and Redis connectivity."""
        result: dict = {
            "status": "healthy",
            "database": "not_configured",
            "redis": "not_configured",
            "online_users": container.presence.online_count,
        }

        if settings.STORE_BACKEND == "sql":
            try:
                async with session_scope() as session:
                    await session.execute(text("SELECT 1"))
                result["database"] = "connected"
            except Exception as exc:
                logger.error("health_db_failure", error=str(exc))
                result["database"] = f"error: {exc}"
                result["status"] = "degraded"

        if settings.REDIS_URL:
            try:
                redis = get_redis()
                if redis is None:
                    raise RuntimeError("Redis client not initialised")
                await redis.ping()
                result["redis"] = "connected"
            except Exception as exc:
                logger.error("health_redis_failure", error=str(exc))
                result["redis"] = f"error: {exc}"
                result["status"] = "degraded"

        return result

    from app.api.router import router as api_router

    app.include_router(api_router, prefix="/api/v1")
    return app


def create_socket_server(container: Container) -> socketio.AsyncServer:
    settings = container.settings
    client_manager = None
    if settings.REDIS_URL:
        client_manager = socketio.AsyncRedisManager(settings.REDIS_URL)

    origins = settings.allowed_origins_list
    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins="*" if origins == ["*"] else origins,
        client_manager=client_manager,
    )
    sio.register_namespace(container.namespace)
    return sio


app = create_app()
sio = create_socket_server(app.state.container)
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)
