"""Comment endpoints, scoped to a video."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from viztube.api.dependencies import Pagination, pagination, parse_object_id
from viztube.api.responses import api_response
from viztube.auth.guard import require_user
from viztube.db import crud, views
from viztube.db.models import Comment, User
from viztube.db.session import get_session
from viztube.ratelimit import limiter
from viztube.schemas import CommentOut, ContentRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/comments", tags=["comments"])


async def _owned_comment(db: AsyncSession, comment_id: str, user: User) -> Comment:
    comment = await crud.get_comment_by_id(db, parse_object_id(comment_id, "comment ID"))
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    if comment.owner_id != user.id:
        raise HTTPException(
            status_code=403, detail="You do not have permission to modify this comment"
        )
    return comment


@router.get("/{video_id}")
@limiter.limit("60/minute")
async def list_comments(
    request: Request,
    video_id: str,
    paging: Pagination = Depends(pagination),
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Comments on a video, newest first, paginated."""
    video = await crud.get_video_by_id(db, parse_object_id(video_id, "video ID"))
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")

    page = await views.list_video_comments(db, video.id, paging.page, paging.limit)
    return api_response(page, "Comments fetched successfully")


@router.post("/{video_id}")
@limiter.limit("30/minute")
async def add_comment(
    request: Request,
    video_id: str,
    body: ContentRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Comment on a video."""
    video = await crud.get_video_by_id(db, parse_object_id(video_id, "video ID"))
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")

    comment = await crud.create_comment(db, video.id, user.id, body.content)
    return api_response(
        CommentOut.from_comment(comment, user), "Comment added successfully", 201
    )


@router.patch("/c/{comment_id}")
@limiter.limit("30/minute")
async def update_comment(
    request: Request,
    comment_id: str,
    body: ContentRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Edit one of the caller's comments."""
    comment = await _owned_comment(db, comment_id, user)
    comment = await crud.update_comment(db, comment, body.content)
    return api_response(CommentOut.from_comment(comment, user), "Comment updated successfully")


@router.delete("/c/{comment_id}")
@limiter.limit("30/minute")
async def delete_comment(
    request: Request,
    comment_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Delete one of the caller's comments together with its likes."""
    comment = await _owned_comment(db, comment_id, user)
    comment_id = comment.id
    if not await crud.delete_comment(db, comment_id):
        raise HTTPException(status_code=404, detail="Comment not found")
    logger.info(f"Comment deleted: comment_id={comment_id}, owner_id={user.id}")
    return api_response({"commentId": comment_id}, "Comment deleted successfully")
