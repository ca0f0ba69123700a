"""Middleware configuration for FastAPI application"""
import json
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware

from trendvault.core.config import settings
from trendvault.core.logging import api_access_logger


def get_client_ip(request: Request) -> Optional[str]:
    """Best-effort caller IP: Cloudflare header, then proxy chain, then socket peer"""
    client_ip = request.headers.get("CF-Connecting-IP", "").strip()
    if not client_ip:
        client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else None
    return client_ip or None


def setup_cors_middleware(app):
    """Setup CORS middleware for FastAPI app"""
    allow_all = "*" in settings.CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=not allow_all,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )


def log_api_access(request: Request, status_code: int, duration_ms: float, error: Optional[str] = None):
    """Log one line of API access information"""
    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "method": request.method,
        "path": request.url.path,
        "query": str(request.url.query) if request.url.query else None,
        "client_ip": get_client_ip(request),
        "user_agent": request.headers.get("User-Agent", "unknown"),
        "status_code": status_code,
        "duration_ms": round(duration_ms, 1),
        "error": error
    }

    if error or status_code >= 400:
        api_access_logger.warning(f"API Access: {json.dumps(log_data)}")
    else:
        api_access_logger.info(f"API Access: {json.dumps(log_data)}")


async def access_log_middleware(request: Request, call_next):
    """Middleware for API access logging"""
    start = time.perf_counter()
    status_code = 500
    error = None
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    except Exception as e:
        error = str(e)
        raise
    finally:
        log_api_access(request, status_code, (time.perf_counter() - start) * 1000, error)
