from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy import text
import logging
import time

from swipematch.config import settings
from swipematch.api.v1.router import api_router
from swipematch.db.session import init_db, close_db, async_session_maker
from swipematch.db.redis import init_redis, close_redis, get_redis
from swipematch.core.exceptions import SwipeMatchError, NotFoundError
from swipematch.core.logging_config import setup_logging
from swipematch.core.middleware import (
    SecurityHeadersMiddleware,
    RequestLoggingMiddleware,
    RequestSizeLimitMiddleware,
)
from swipematch.schemas.match import ErrorResponse
import swipematch.models  # Register models for create_all


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    setup_logging()
    await init_db()
    await init_redis()
    logger.info("%s started in %s mode", settings.APP_NAME, settings.ENVIRONMENT)

    yield

    # Shutdown
    await close_db()
    await close_redis()
    logger.info("%s shutting down", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="Swipe-to-match engine with ranked candidate discovery and conversation tracking",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS middleware - Restricted to allowed origins only
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-User-Id", "X-Requested-With", "Accept", "Origin"],
    expose_headers=["X-Request-ID"],
    max_age=600,  # Cache preflight requests for 10 minutes
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)

# Include API routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


# Exception handlers
@app.exception_handler(SwipeMatchError)
async def swipematch_error_handler(request: Request, exc: SwipeMatchError):
    """Translate domain errors to JSON responses."""
    if isinstance(exc, NotFoundError):
        logger.info("%s %s: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.error_code, detail=exc.message).model_dump(),
    )


@app.get("/")
async def root():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
    }


@app.get("/health")
async def health_check():
    """
    Detailed health check that actually verifies connectivity.
    Returns status of all critical services.
    """
    health_status = {
        "status": "healthy",
        "services": {
            "database": {"status": "unknown", "latency_ms": None},
            "redis": {"status": "unknown", "latency_ms": None},
        },
    }

    # Check Database
    try:
        start = time.time()
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
        latency = round((time.time() - start) * 1000, 2)
        health_status["services"]["database"] = {
            "status": "healthy",
            "latency_ms": latency,
        }
    except Exception as e:
        logger.exception("Database health check failed")
        health_status["services"]["database"] = {
            "status": "unhealthy",
            "error": str(e)[:100],
        }
        health_status["status"] = "degraded"

    # Check Redis
    try:
        start = time.time()
        redis = get_redis()
        redis.ping()
        latency = round((time.time() - start) * 1000, 2)
        health_status["services"]["redis"] = {
            "status": "healthy",
            "latency_ms": latency,
        }
    except Exception as e:
        logger.exception("Redis health check failed")
        health_status["services"]["redis"] = {
            "status": "unhealthy",
            "error": str(e)[:100],
        }
        health_status["status"] = "degraded"

    return health_status
