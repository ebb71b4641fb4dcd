"""Profile endpoints of the signed-in user and public channel pages."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from viztube.api.dependencies import blob_store
from viztube.api.responses import api_response
from viztube.api.uploads import has_file, upload_media
from viztube.auth.guard import require_user
from viztube.db import crud, views
from viztube.db.models import User
from viztube.db.session import get_session
from viztube.ratelimit import limiter
from viztube.schemas import UpdateAccountRequest, UserOut
from viztube.storage import BlobStore, blob_kind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("/current-user")
@limiter.limit("60/minute")
async def current_user(request: Request, user: User = Depends(require_user)):
    """Return the authenticated user's profile."""
    return api_response(UserOut.from_user(user), "Current user fetched successfully")


@router.patch("/update-account")
@limiter.limit("20/minute")
async def update_account(
    request: Request,
    body: UpdateAccountRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Update the full name and/or email of the current user.

    Raises:
        HTTPException: 409 if the new email belongs to another account
    """
    if body.email and body.email != user.email:
        existing = await crud.get_user_by_email(db, body.email)
        if existing and existing.id != user.id:
            raise HTTPException(status_code=409, detail="Email is already in use")

    user = await crud.update_user(db, user, full_name=body.full_name, email=body.email)
    return api_response(UserOut.from_user(user), "Account details updated successfully")


async def _replace_image(
    db: AsyncSession,
    store: BlobStore,
    user: User,
    upload: UploadFile | None,
    field: str,
    label: str,
    url_attr: str,
    blob_attr: str,
) -> User:
    """Upload a new profile image, point the user at it and drop the old blob."""
    if not has_file(upload):
        raise HTTPException(status_code=400, detail=f"{label.capitalize()} file is missing")

    old_blob_id = getattr(user, blob_attr)
    blob = await upload_media(store, upload, field, label)
    user = await crud.update_user(db, user, **{url_attr: blob.url, blob_attr: blob.blob_id})

    if old_blob_id:
        await store.remove(old_blob_id, blob_kind(old_blob_id))
    return user


@router.patch("/avatar")
@limiter.limit("10/minute")
async def update_avatar(
    request: Request,
    avatar: Annotated[UploadFile | None, File()] = None,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    store: BlobStore = Depends(blob_store),
):
    """Replace the current user's avatar image."""
    user = await _replace_image(
        db, store, user, avatar, "avatar", "avatar", "avatar_url", "avatar_blob_id"
    )
    logger.info(f"Avatar updated: user_id={user.id}")
    return api_response(UserOut.from_user(user), "Avatar image updated successfully")


@router.patch("/cover-image")
@limiter.limit("10/minute")
async def update_cover_image(
    request: Request,
    cover_image: Annotated[UploadFile | None, File(alias="coverImage")] = None,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    store: BlobStore = Depends(blob_store),
):
    """Replace (or set for the first time) the current user's cover image."""
    user = await _replace_image(
        db,
        store,
        user,
        cover_image,
        "coverImage",
        "cover image",
        "cover_image_url",
        "cover_image_blob_id",
    )
    logger.info(f"Cover image updated: user_id={user.id}")
    return api_response(UserOut.from_user(user), "Cover image updated successfully")


@router.get("/c/{username}")
@limiter.limit("60/minute")
async def channel_profile(
    request: Request,
    username: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Public channel page of ``username``.

    Includes subscriber counts and whether the caller is subscribed.
    """
    if not username.strip():
        raise HTTPException(status_code=400, detail="Username is missing")

    profile = await views.get_channel_profile(db, username.strip(), viewer_id=user.id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Channel does not exist")
    return api_response(profile, "User channel fetched successfully")


@router.get("/history")
@limiter.limit("60/minute")
async def watch_history(
    request: Request,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Videos the current user watched, most recent first."""
    history = await views.get_watch_history(db, user.id)
    return api_response(history, "Watch history fetched successfully")
