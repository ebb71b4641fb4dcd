"""Creator dashboard: channel totals and the caller's own videos."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from viztube.api.dependencies import Pagination, pagination
from viztube.api.responses import api_response
from viztube.auth.guard import require_user
from viztube.db import views
from viztube.db.models import User
from viztube.db.session import get_session
from viztube.ratelimit import limiter

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


@router.get("/stats")
@limiter.limit("30/minute")
async def channel_stats(
    request: Request,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Total videos, views, subscribers and video likes of the caller's channel."""
    stats = await views.get_channel_stats(db, user.id)
    return api_response(stats, "Channel stats fetched successfully")


@router.get("/videos")
@limiter.limit("30/minute")
async def channel_videos(
    request: Request,
    paging: Pagination = Depends(pagination),
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """The caller's videos, published or not, newest first."""
    page = await views.list_videos(
        db,
        page=paging.page,
        limit=paging.limit,
        owner_id=user.id,
        published_only=False,
    )
    return api_response(page, "Channel videos fetched successfully")
