"""Per-request service context

Process-wide handles (cache client, blob store, HTTP client) are created once
in the app lifespan and stored on ``app.state``; each request gets a
``ServiceContext`` bundling them with its own database session. Services take
the context (or the pieces they need) explicitly.
"""
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from trendvault.core.config import Settings, settings as app_settings
from trendvault.db.session import get_db
from trendvault.services.storage.r2_service import R2Service


@dataclass
class ServiceContext:
    settings: Settings
    db: Session
    cache: Any  # redis.asyncio.Redis or a compatible client
    blob_store: Optional[R2Service]
    http_client: httpx.AsyncClient


def get_context(request: Request, db: Session = Depends(get_db)) -> ServiceContext:
    """Dependency for FastAPI endpoints"""
    state = request.app.state
    return ServiceContext(
        settings=app_settings,
        db=db,
        cache=state.cache,
        blob_store=state.blob_store,
        http_client=state.http_client,
    )
