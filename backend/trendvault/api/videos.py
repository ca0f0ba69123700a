"""Videos API routes"""
import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from trendvault.core.context import ServiceContext, get_context
from trendvault.core.middleware import get_client_ip
from trendvault.db.session import get_db
from trendvault.schemas.video import CallerInfo, FetchRequest
from trendvault.services.orchestrator import RequestOrchestrator
from trendvault.services.trending_service import list_stored_videos

logger = logging.getLogger(__name__)

router = APIRouter(tags=["videos"])


@router.post("/video/fetch")
async def fetch_video(
    body: FetchRequest,
    request: Request,
    context: ServiceContext = Depends(get_context)
):
    """Resolve a post URL to a download URL; restricted videos are served from durable storage"""
    caller = CallerInfo(
        ip=get_client_ip(request),
        user_agent=request.headers.get("User-Agent")
    )
    return await RequestOrchestrator(context).fetch(body, caller)


@router.get("/videos")
def list_videos(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    content_rating: str = Query("all"),
    db: Session = Depends(get_db)
):
    """List stored videos, newest first"""
    return {"success": True, **list_stored_videos(db, limit=limit, offset=offset, content_rating=content_rating)}
