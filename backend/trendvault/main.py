"""FastAPI application entry point"""
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from trendvault import __version__
from trendvault.api import trending, videos
from trendvault.core.config import settings
from trendvault.core.exceptions import TrendVaultError
from trendvault.core.logging import setup_logging
from trendvault.core.middleware import access_log_middleware, setup_cors_middleware
from trendvault.core.otel import initialize_otel, instrument_app
from trendvault.db.redis import create_async_redis_client
from trendvault.db.session import engine, init_db
from trendvault.services.storage.r2_service import create_r2_service

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    # Startup
    if initialize_otel():
        instrument_app(app, engine)
        logger.info(f"OpenTelemetry initialized, exporting to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    app.state.cache = create_async_redis_client()
    try:
        await app.state.cache.ping()
        logger.info("Redis connection successful")
    except Exception as e:
        # Trending falls back to uncached queries
        logger.warning(f"Redis connection failed, trending cache disabled until it recovers: {e}")

    app.state.blob_store = create_r2_service()
    app.state.http_client = httpx.AsyncClient(follow_redirects=True)

    yield

    # Shutdown
    logger.info("Shutting down...")
    await app.state.http_client.aclose()
    await app.state.cache.aclose()


app = FastAPI(
    title="TrendVault Backend",
    description="Video fetch, durable storage and trending for restricted content",
    version=__version__,
    lifespan=lifespan
)

setup_cors_middleware(app)
app.middleware("http")(access_log_middleware)

app.include_router(videos.router)
app.include_router(trending.router)


@app.exception_handler(TrendVaultError)
async def trendvault_exception_handler(request: Request, exc: TrendVaultError):
    """Known pipeline errors become user-facing messages"""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "retryable": exc.retryable}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query parameters get the same error shape as other rejections"""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query"))
    message = f"Invalid {field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": message, "retryable": False}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"}
    )


@app.get("/metrics")
def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
