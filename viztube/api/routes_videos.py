"""Video endpoints: listing, publishing, viewing, editing and deletion."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from viztube.api.dependencies import Pagination, blob_store, pagination, parse_object_id
from viztube.api.responses import api_response
from viztube.api.uploads import has_file, upload_media
from viztube.auth.guard import require_user
from viztube.db import crud, views
from viztube.db.models import User, Video
from viztube.db.session import get_session
from viztube.ratelimit import limiter
from viztube.schemas import VideoOut
from viztube.storage import BlobStore, blob_kind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/videos", tags=["videos"])


async def get_owned_video(db: AsyncSession, video_id: str, user: User) -> Video:
    """Load a video the caller is allowed to modify.

    Raises:
        HTTPException: 400 for a malformed ID, 404 if missing, 403 if the
            caller does not own it
    """
    video = await crud.get_video_by_id(db, parse_object_id(video_id, "video ID"))
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")
    if video.owner_id != user.id:
        raise HTTPException(
            status_code=403, detail="You do not have permission to modify this video"
        )
    return video


@router.get("")
@limiter.limit("60/minute")
async def list_videos(
    request: Request,
    query: str | None = Query(default=None, description="Search title and description"),
    sort_by: str | None = Query(default=None, description="Field to sort by"),
    sort_type: str = Query(default="desc", description="asc or desc"),
    user_id: str | None = Query(default=None, description="Only this owner's videos"),
    paging: Pagination = Depends(pagination),
    db: AsyncSession = Depends(get_session),
):
    """
    List published videos.

    Supports free-text search, filtering by owner, sorting on a whitelisted
    field and pagination.
    """
    if sort_by is not None and sort_by not in views.VIDEO_SORT_FIELDS:
        allowed = ", ".join(sorted(views.VIDEO_SORT_FIELDS))
        raise HTTPException(status_code=400, detail=f"sort_by must be one of: {allowed}")
    if sort_type not in ("asc", "desc"):
        raise HTTPException(status_code=400, detail="sort_type must be 'asc' or 'desc'")
    owner_id = parse_object_id(user_id, "user ID") if user_id else None

    page = await views.list_videos(
        db,
        page=paging.page,
        limit=paging.limit,
        query=query,
        owner_id=owner_id,
        sort_by=sort_by,
        sort_type=sort_type,
    )
    return api_response(page, "Videos fetched successfully")


@router.post("")
@limiter.limit("10/minute")
async def publish_video(
    request: Request,
    title: Annotated[str, Form()] = "",
    description: Annotated[str, Form()] = "",
    duration: Annotated[float, Form(ge=0, allow_inf_nan=False)] = 0.0,
    video_file: Annotated[UploadFile | None, File(alias="videoFile")] = None,
    thumbnail: Annotated[UploadFile | None, File()] = None,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    store: BlobStore = Depends(blob_store),
):
    """
    Upload a new video with its thumbnail.

    Both files are required. If the thumbnail upload fails, the already
    stored video file is removed again.
    """
    if not title.strip() or not description.strip():
        raise HTTPException(status_code=400, detail="Title and description are required")
    if not has_file(video_file):
        raise HTTPException(status_code=400, detail="Video file is required")
    if not has_file(thumbnail):
        raise HTTPException(status_code=400, detail="Thumbnail is required")

    video_blob = await upload_media(store, video_file, "videoFile", "video file")
    try:
        thumbnail_blob = await upload_media(store, thumbnail, "thumbnail", "thumbnail")
    except HTTPException:
        await store.remove(video_blob.blob_id, video_blob.kind)
        raise

    video = await crud.create_video(
        db,
        owner_id=user.id,
        title=title.strip(),
        description=description.strip(),
        video_file_url=video_blob.url,
        video_file_blob_id=video_blob.blob_id,
        thumbnail_url=thumbnail_blob.url,
        thumbnail_blob_id=thumbnail_blob.blob_id,
        duration=duration,
    )
    logger.info(f"Video published: video_id={video.id}, owner_id={user.id}")
    return api_response(VideoOut.from_video(video, user), "Video published successfully", 201)


@router.get("/{video_id}")
@limiter.limit("120/minute")
async def get_video(
    request: Request,
    video_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Fetch one video with its owner.

    Counts a view and moves the video to the front of the caller's watch
    history. Unpublished videos are only visible to their owner.
    """
    video = await crud.get_video_by_id(db, parse_object_id(video_id, "video ID"))
    if not video or (not video.is_published and video.owner_id != user.id):
        raise HTTPException(status_code=404, detail="Video not found")

    await crud.increment_video_views(db, video)
    await crud.record_watch(db, user.id, video.id)

    view = await views.get_video_view(db, video.id)
    if view is None:
        # Owner account is gone
        raise HTTPException(status_code=404, detail="Video not found")
    return api_response(view, "Video fetched successfully")


@router.patch("/{video_id}")
@limiter.limit("20/minute")
async def update_video(
    request: Request,
    video_id: str,
    title: Annotated[str | None, Form()] = None,
    description: Annotated[str | None, Form()] = None,
    thumbnail: Annotated[UploadFile | None, File()] = None,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    store: BlobStore = Depends(blob_store),
):
    """Edit the title, description and/or thumbnail of one of the caller's videos."""
    video = await get_owned_video(db, video_id, user)

    new_thumbnail = has_file(thumbnail)
    if title is not None and not title.strip():
        raise HTTPException(status_code=400, detail="Title cannot be empty")
    if description is not None and not description.strip():
        raise HTTPException(status_code=400, detail="Description cannot be empty")
    if title is None and description is None and not new_thumbnail:
        raise HTTPException(
            status_code=400, detail="Provide a title, description or thumbnail to update"
        )

    fields = {
        "title": title.strip() if title else None,
        "description": description.strip() if description else None,
    }
    old_thumbnail_id = None
    if new_thumbnail:
        blob = await upload_media(store, thumbnail, "thumbnail", "thumbnail")
        old_thumbnail_id = video.thumbnail_blob_id
        fields.update(thumbnail_url=blob.url, thumbnail_blob_id=blob.blob_id)

    video = await crud.update_video(db, video, **fields)
    if old_thumbnail_id:
        await store.remove(old_thumbnail_id, blob_kind(old_thumbnail_id))

    return api_response(VideoOut.from_video(video, user), "Video updated successfully")


@router.delete("/{video_id}")
@limiter.limit("20/minute")
async def delete_video(
    request: Request,
    video_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    store: BlobStore = Depends(blob_store),
):
    """
    Delete one of the caller's videos.

    The database record (with its comments, likes, playlist entries and
    history entries) goes first; the media blobs are removed afterwards.
    Blobs that could not be removed are logged for later cleanup.
    """
    video = await get_owned_video(db, video_id, user)
    deleted_id = video.id
    blob_ids = [video.video_file_blob_id, video.thumbnail_blob_id]

    if not await crud.delete_video(db, deleted_id):
        raise HTTPException(status_code=404, detail="Video not found")

    orphans = [
        blob_id
        for blob_id in blob_ids
        if blob_id and not await store.remove(blob_id, blob_kind(blob_id))
    ]
    if orphans:
        logger.warning(f"Orphaned blobs after deleting video {deleted_id}: {orphans}")

    logger.info(f"Video deleted: video_id={deleted_id}, owner_id={user.id}")
    return api_response({}, "Video deleted successfully")


@router.patch("/{video_id}/toggle-publish")
@limiter.limit("20/minute")
async def toggle_publish_status(
    request: Request,
    video_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Flip the published flag of one of the caller's videos."""
    video = await get_owned_video(db, video_id, user)
    video = await crud.update_video(db, video, is_published=not video.is_published)
    state = "published" if video.is_published else "unpublished"
    return api_response(
        {"isPublished": video.is_published}, f"Video {state} successfully"
    )
