"""Like toggles for videos, comments and tweets."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from viztube.api.dependencies import parse_object_id
from viztube.api.responses import api_response
from viztube.auth.guard import require_user
from viztube.db import crud, views
from viztube.db.models import LikeTarget, User
from viztube.db.session import get_session
from viztube.ratelimit import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/likes", tags=["likes"])

_TARGET_LOOKUP = {
    LikeTarget.VIDEO: (crud.get_video_by_id, "Video"),
    LikeTarget.COMMENT: (crud.get_comment_by_id, "Comment"),
    LikeTarget.TWEET: (crud.get_tweet_by_id, "Tweet"),
}


async def _toggle(db: AsyncSession, user: User, kind: LikeTarget, raw_id: str):
    """Flip the caller's like on a target that must exist."""
    lookup, label = _TARGET_LOOKUP[kind]
    target_id = parse_object_id(raw_id, f"{label.lower()} ID")
    if not await lookup(db, target_id):
        raise HTTPException(status_code=404, detail=f"{label} not found")

    is_liked = await crud.toggle_like(db, user.id, kind, target_id)
    logger.debug(f"Like toggled: user_id={user.id}, {kind.value}={target_id}, liked={is_liked}")
    message = f"{label} liked successfully" if is_liked else f"{label} unliked successfully"
    return api_response({"isLiked": is_liked}, message)


@router.post("/toggle/v/{video_id}")
@limiter.limit("60/minute")
async def toggle_video_like(
    request: Request,
    video_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    return await _toggle(db, user, LikeTarget.VIDEO, video_id)


@router.post("/toggle/c/{comment_id}")
@limiter.limit("60/minute")
async def toggle_comment_like(
    request: Request,
    comment_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    return await _toggle(db, user, LikeTarget.COMMENT, comment_id)


@router.post("/toggle/t/{tweet_id}")
@limiter.limit("60/minute")
async def toggle_tweet_like(
    request: Request,
    tweet_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    return await _toggle(db, user, LikeTarget.TWEET, tweet_id)


@router.get("/videos")
@limiter.limit("60/minute")
async def liked_videos(
    request: Request,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Videos the caller liked, most recently liked first."""
    videos = await views.list_liked_videos(db, user.id)
    return api_response(videos, "Liked videos fetched successfully")
