"""Playlist endpoints: ordered, owner-managed collections of videos."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from viztube.api.dependencies import parse_object_id
from viztube.api.responses import api_response
from viztube.auth.guard import require_user
from viztube.db import crud, views
from viztube.db.models import Playlist, User
from viztube.db.session import get_session
from viztube.ratelimit import limiter
from viztube.schemas import PlaylistOut, PlaylistRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/playlists", tags=["playlists"])


async def _owned_playlist(db: AsyncSession, playlist_id: str, user: User) -> Playlist:
    playlist = await crud.get_playlist_by_id(db, parse_object_id(playlist_id, "playlist ID"))
    if not playlist:
        raise HTTPException(status_code=404, detail="Playlist not found")
    if playlist.owner_id != user.id:
        raise HTTPException(
            status_code=403, detail="You do not have permission to modify this playlist"
        )
    return playlist


async def _playlist_out(db: AsyncSession, playlist: Playlist) -> PlaylistOut:
    video_ids = await crud.get_playlist_video_ids(db, playlist.id)
    return PlaylistOut.from_playlist(playlist, video_ids)


@router.post("")
@limiter.limit("20/minute")
async def create_playlist(
    request: Request,
    body: PlaylistRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    playlist = await crud.create_playlist(db, user.id, body.name, body.description)
    return api_response(
        PlaylistOut.from_playlist(playlist, []), "Playlist created successfully", 201
    )


@router.get("/user/{user_id}")
@limiter.limit("60/minute")
async def list_user_playlists(
    request: Request,
    user_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Playlists owned by a user, newest first."""
    owner = await crud.get_user_by_id(db, parse_object_id(user_id, "user ID"))
    if not owner:
        raise HTTPException(status_code=404, detail="User not found")

    playlists = await crud.list_user_playlists(db, owner.id)
    data = [await _playlist_out(db, playlist) for playlist in playlists]
    return api_response(data, "User playlists fetched successfully")


@router.get("/{playlist_id}")
@limiter.limit("60/minute")
async def get_playlist(
    request: Request,
    playlist_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """A playlist with its owner and its videos in playlist order."""
    detail = await views.get_playlist_view(db, parse_object_id(playlist_id, "playlist ID"))
    if detail is None:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return api_response(detail, "Playlist fetched successfully")


@router.patch("/{playlist_id}")
@limiter.limit("20/minute")
async def update_playlist(
    request: Request,
    playlist_id: str,
    body: PlaylistRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    playlist = await _owned_playlist(db, playlist_id, user)
    playlist = await crud.update_playlist(
        db, playlist, name=body.name, description=body.description
    )
    return api_response(await _playlist_out(db, playlist), "Playlist updated successfully")


@router.delete("/{playlist_id}")
@limiter.limit("20/minute")
async def delete_playlist(
    request: Request,
    playlist_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    playlist = await _owned_playlist(db, playlist_id, user)
    playlist_id = playlist.id
    if not await crud.delete_playlist(db, playlist_id):
        raise HTTPException(status_code=404, detail="Playlist not found")
    logger.info(f"Playlist deleted: playlist_id={playlist_id}, owner_id={user.id}")
    return api_response({"playlistId": playlist_id}, "Playlist deleted successfully")


@router.patch("/add/{video_id}/{playlist_id}")
@limiter.limit("30/minute")
async def add_video_to_playlist(
    request: Request,
    video_id: str,
    playlist_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Append a video to one of the caller's playlists.

    Adding a video that is already in the playlist changes nothing and still
    succeeds.
    """
    video_id = parse_object_id(video_id, "video ID")
    playlist = await _owned_playlist(db, playlist_id, user)
    if not await crud.get_video_by_id(db, video_id):
        raise HTTPException(status_code=404, detail="Video not found")

    added = await crud.add_video_to_playlist(db, playlist, video_id)
    message = "Video added to playlist successfully" if added else "Video already in playlist"
    return api_response(await _playlist_out(db, playlist), message)


@router.patch("/remove/{video_id}/{playlist_id}")
@limiter.limit("30/minute")
async def remove_video_from_playlist(
    request: Request,
    video_id: str,
    playlist_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    video_id = parse_object_id(video_id, "video ID")
    playlist = await _owned_playlist(db, playlist_id, user)

    if not await crud.remove_video_from_playlist(db, playlist, video_id):
        raise HTTPException(status_code=404, detail="Video is not in this playlist")
    return api_response(
        await _playlist_out(db, playlist), "Video removed from playlist successfully"
    )
