"""
Main application entry point for the Telecom Contracts API.

This module validates the configuration, sets up logging, initializes
the FastAPI application with CORS, the envelope-producing exception
handlers and a request logging middleware, initializes the rate limiter
with a Redis backend and includes the routers for authentication, users,
services and contracts.

Run with ``uvicorn main:app`` or ``python main.py``.
"""

import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from pydantic import ValidationError

from app.core import get_settings
from app.logging_config import setup_logging

logger = logging.getLogger("telecom")

try:
    settings = get_settings()
except ValidationError as exc:
    setup_logging()
    logger.critical("Invalid configuration, refusing to start:\n%s", exc)
    sys.exit(1)

setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)

import redis.asyncio as redis  # noqa: E402
from redis.exceptions import RedisError  # noqa: E402
from fakeredis.aioredis import FakeRedis  # noqa: E402
from fastapi import Depends, FastAPI, Request  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi_limiter import FastAPILimiter  # noqa: E402
from sqlalchemy.exc import SQLAlchemyError  # noqa: E402

from app import catalog, contracts, users  # noqa: E402
from app.auth import Identity, get_optional_user, router as auth_router  # noqa: E402
from app.database import init_db  # noqa: E402
from app.responses import api_response, register_exception_handlers  # noqa: E402

API_PREFIX = "/api"


async def init_rate_limiter() -> None:
    """
    Initialize the rate limiter with a Redis backend.

    Falls back to an in-process FakeRedis when ``REDIS_URL`` is empty or
    the server cannot be reached, so rate limiting keeps working on a
    single instance.
    """
    if settings.REDIS_URL:
        redis_client = redis.from_url(
            settings.REDIS_URL, encoding="utf-8", decode_responses=True
        )
        try:
            await FastAPILimiter.init(redis_client)
            logger.info("Rate limiter using Redis")
            return
        except (RedisError, OSError) as exc:
            logger.warning("Redis unavailable (%s), rate limiting in memory", exc)
            await redis_client.aclose()
    await FastAPILimiter.init(FakeRedis(decode_responses=True))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema and the rate limiter; close the limiter on exit."""
    try:
        init_db()
    except SQLAlchemyError:
        logger.critical("Database unreachable, refusing to start", exc_info=True)
        raise
    await init_rate_limiter()
    logger.info(
        "%s %s started (%s)", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT
    )
    yield
    await FastAPILimiter.close()
    logger.info("%s stopped", settings.APP_NAME)


# Initialize FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status and latency of every request."""
    start_time = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start_time) * 1000
    logger.info(
        "%s %s %s %.1fms",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


# Include routers for application areas
app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(users.router, prefix=API_PREFIX)
app.include_router(catalog.router, prefix=API_PREFIX)
app.include_router(contracts.router, prefix=API_PREFIX)


@app.get("/health", tags=["monitoring"])
def health(current_user: Identity | None = Depends(get_optional_user)):
    """
    Report that the server is up, with the non-secret configuration.

    Returns:
        JSONResponse: Envelope with timestamp, environment and settings.
    """
    return api_response(
        True,
        "Server is running",
        data={
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.ENVIRONMENT,
            "authenticated": current_user is not None,
            "config": settings.summary(),
        },
    )


@app.get("/")
def root():
    """
    Root endpoint for the API.

    Returns the application name, version and a map of endpoints.

    Returns:
        JSONResponse: Envelope with information about the API
    """
    return api_response(
        True,
        settings.APP_NAME,
        data={
            "version": settings.APP_VERSION,
            "description": settings.APP_DESCRIPTION,
            "endpoints": {
                "auth": f"{API_PREFIX}/auth",
                "users": f"{API_PREFIX}/users",
                "contracts": f"{API_PREFIX}/contracts",
                "services": f"{API_PREFIX}/services",
                "health": "/health",
                "docs": "/docs",
            },
        },
    )


if __name__ == "__main__":
    import asyncio

    from uvicorn import Config, Server

    config = Config(
        app=app, host=settings.HOST, port=settings.PORT, reload=False, log_config=None
    )
    try:
        asyncio.run(Server(config).serve())
    except KeyboardInterrupt:
        logger.info("Interrupted")
