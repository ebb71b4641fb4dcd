"""CRUD utilities for database operations.

Read-shaped projections that join several tables live in ``viztube.db.views``;
this module only deals with one entity (or one relation) at a time.
"""

from typing import Any

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from viztube.db.models import (
    Base,
    Comment,
    Like,
    LikeTarget,
    Playlist,
    PlaylistVideo,
    Subscription,
    Tweet,
    User,
    Video,
    WatchHistory,
    utcnow,
)


async def _commit(db: AsyncSession) -> None:
    """Commit, rolling back first if a unique index rejects the write."""
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise


async def _apply_updates(db: AsyncSession, obj: Base, fields: dict[str, Any]) -> Any:
    """Set every non-None field on ``obj`` and persist it."""
    for name, value in fields.items():
        if value is not None:
            setattr(obj, name, value)
    await _commit(db)
    await db.refresh(obj)
    return obj


# Users


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Get a user by their ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username.lower()))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def find_user_by_username_or_email(
    db: AsyncSession, username: str, email: str
) -> User | None:
    """Return any user already holding ``username`` or ``email``."""
    result = await db.execute(
        select(User)
        .where(or_(User.username == username.lower(), User.email == email.lower()))
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    username: str,
    email: str,
    full_name: str,
    password_hash: str,
    avatar_url: str,
    avatar_blob_id: str,
    cover_image_url: str | None = None,
    cover_image_blob_id: str | None = None,
) -> User:
    """Create a new user.

    The password must already be hashed. Raises ``IntegrityError`` when the
    username or email is taken.
    """
    user = User(
        username=username.lower(),
        email=email.lower(),
        full_name=full_name,
        password_hash=password_hash,
        avatar_url=avatar_url,
        avatar_blob_id=avatar_blob_id,
        cover_image_url=cover_image_url,
        cover_image_blob_id=cover_image_blob_id,
    )
    db.add(user)
    await _commit(db)
    await db.refresh(user)
    return user


async def update_user(db: AsyncSession, user: User, **fields: Any) -> User:
    """Partially update a user; ``None`` values are left untouched."""
    if fields.get("email"):
        fields["email"] = fields["email"].lower()
    return await _apply_updates(db, user, fields)


async def set_user_refresh_token(
    db: AsyncSession, user: User, refresh_token_enc: bytes | None
) -> User:
    """Store (or clear, with ``None``) the user's encrypted refresh token."""
    user.refresh_token_enc = refresh_token_enc
    await db.commit()
    await db.refresh(user)
    return user


# Videos


async def create_video(
    db: AsyncSession,
    owner_id: str,
    title: str,
    description: str,
    video_file_url: str,
    video_file_blob_id: str,
    thumbnail_url: str,
    thumbnail_blob_id: str,
    duration: float = 0.0,
) -> Video:
    video = Video(
        owner_id=owner_id,
        title=title,
        description=description,
        video_file_url=video_file_url,
        video_file_blob_id=video_file_blob_id,
        thumbnail_url=thumbnail_url,
        thumbnail_blob_id=thumbnail_blob_id,
        duration=duration,
    )
    db.add(video)
    await db.commit()
    await db.refresh(video)
    return video


async def get_video_by_id(db: AsyncSession, video_id: str) -> Video | None:
    result = await db.execute(select(Video).where(Video.id == video_id))
    return result.scalar_one_or_none()


async def update_video(db: AsyncSession, video: Video, **fields: Any) -> Video:
    return await _apply_updates(db, video, fields)


async def increment_video_views(db: AsyncSession, video: Video) -> Video:
    """Atomically bump the view counter and reload the row."""
    await db.execute(
        update(Video).where(Video.id == video.id).values(views=Video.views + 1)
    )
    await db.commit()
    await db.refresh(video)
    return video


async def delete_video(db: AsyncSession, video_id: str) -> bool:
    """Delete a video together with its comments, likes, playlist and history rows.

    Media blobs are not touched here; the caller removes them from the
    blob store.

    Returns:
        True if the video was deleted, False if it wasn't found
    """
    comment_ids = select(Comment.id).where(Comment.video_id == video_id)
    await db.execute(
        delete(Like).where(
            or_(
                and_(Like.target_kind == LikeTarget.VIDEO, Like.target_id == video_id),
                and_(
                    Like.target_kind == LikeTarget.COMMENT,
                    Like.target_id.in_(comment_ids),
                ),
            )
        )
    )
    await db.execute(delete(Comment).where(Comment.video_id == video_id))
    await db.execute(delete(PlaylistVideo).where(PlaylistVideo.video_id == video_id))
    await db.execute(delete(WatchHistory).where(WatchHistory.video_id == video_id))
    result = await db.execute(delete(Video).where(Video.id == video_id))
    await db.commit()
    return result.rowcount > 0


# Comments


async def create_comment(
    db: AsyncSession, video_id: str, owner_id: str, content: str
) -> Comment:
    comment = Comment(video_id=video_id, owner_id=owner_id, content=content)
    db.add(comment)
    await db.commit()
    await db.refresh(comment)
    return comment


async def get_comment_by_id(db: AsyncSession, comment_id: str) -> Comment | None:
    result = await db.execute(select(Comment).where(Comment.id == comment_id))
    return result.scalar_one_or_none()


async def update_comment(db: AsyncSession, comment: Comment, content: str) -> Comment:
    return await _apply_updates(db, comment, {"content": content})


async def delete_comment(db: AsyncSession, comment_id: str) -> bool:
    """Delete a comment and the likes pointing at it."""
    await db.execute(
        delete(Like).where(
            Like.target_kind == LikeTarget.COMMENT, Like.target_id == comment_id
        )
    )
    result = await db.execute(delete(Comment).where(Comment.id == comment_id))
    await db.commit()
    return result.rowcount > 0


# Tweets


async def create_tweet(db: AsyncSession, owner_id: str, content: str) -> Tweet:
    tweet = Tweet(owner_id=owner_id, content=content)
    db.add(tweet)
    await db.commit()
    await db.refresh(tweet)
    return tweet


async def get_tweet_by_id(db: AsyncSession, tweet_id: str) -> Tweet | None:
    result = await db.execute(select(Tweet).where(Tweet.id == tweet_id))
    return result.scalar_one_or_none()


async def update_tweet(db: AsyncSession, tweet: Tweet, content: str) -> Tweet:
    return await _apply_updates(db, tweet, {"content": content})


async def delete_tweet(db: AsyncSession, tweet_id: str) -> bool:
    """Delete a tweet and the likes pointing at it."""
    await db.execute(
        delete(Like).where(Like.target_kind == LikeTarget.TWEET, Like.target_id == tweet_id)
    )
    result = await db.execute(delete(Tweet).where(Tweet.id == tweet_id))
    await db.commit()
    return result.rowcount > 0


# Likes


async def get_like(
    db: AsyncSession, user_id: str, target_kind: LikeTarget, target_id: str
) -> Like | None:
    result = await db.execute(
        select(Like).where(
            Like.liked_by_id == user_id,
            Like.target_kind == target_kind,
            Like.target_id == target_id,
        )
    )
    return result.scalar_one_or_none()


async def toggle_like(
    db: AsyncSession, user_id: str, target_kind: LikeTarget, target_id: str
) -> bool:
    """Flip the like of ``user_id`` on a target.

    Returns:
        True if the target is now liked, False if the like was removed

    Raises:
        IntegrityError: a concurrent toggle inserted the same like first
    """
    like = await get_like(db, user_id, target_kind, target_id)

    if like:
        await db.delete(like)
        await db.commit()
        return False

    db.add(Like(liked_by_id=user_id, target_kind=target_kind, target_id=target_id))
    await _commit(db)
    return True


# Subscriptions


async def get_subscription(
    db: AsyncSession, subscriber_id: str, channel_id: str
) -> Subscription | None:
    result = await db.execute(
        select(Subscription).where(
            Subscription.subscriber_id == subscriber_id,
            Subscription.channel_id == channel_id,
        )
    )
    return result.scalar_one_or_none()


async def toggle_subscription(db: AsyncSession, subscriber_id: str, channel_id: str) -> bool:
    """Subscribe or unsubscribe ``subscriber_id`` to/from ``channel_id``.

    Returns:
        True if now subscribed, False if the subscription was removed
    """
    subscription = await get_subscription(db, subscriber_id, channel_id)

    if subscription:
        await db.delete(subscription)
        await db.commit()
        return False

    db.add(Subscription(subscriber_id=subscriber_id, channel_id=channel_id))
    await _commit(db)
    return True


# Playlists


async def create_playlist(
    db: AsyncSession, owner_id: str, name: str, description: str
) -> Playlist:
    playlist = Playlist(owner_id=owner_id, name=name, description=description)
    db.add(playlist)
    await db.commit()
    await db.refresh(playlist)
    return playlist


async def get_playlist_by_id(db: AsyncSession, playlist_id: str) -> Playlist | None:
    result = await db.execute(select(Playlist).where(Playlist.id == playlist_id))
    return result.scalar_one_or_none()


async def list_user_playlists(db: AsyncSession, owner_id: str) -> list[Playlist]:
    """List a user's playlists, newest first."""
    result = await db.execute(
        select(Playlist)
        .where(Playlist.owner_id == owner_id)
        .order_by(Playlist.created_at.desc())
    )
    return list(result.scalars().all())


async def update_playlist(db: AsyncSession, playlist: Playlist, **fields: Any) -> Playlist:
    return await _apply_updates(db, playlist, fields)


async def delete_playlist(db: AsyncSession, playlist_id: str) -> bool:
    await db.execute(delete(PlaylistVideo).where(PlaylistVideo.playlist_id == playlist_id))
    result = await db.execute(delete(Playlist).where(Playlist.id == playlist_id))
    await db.commit()
    return result.rowcount > 0


async def get_playlist_video_ids(db: AsyncSession, playlist_id: str) -> list[str]:
    """Video IDs of a playlist in playlist order."""
    result = await db.execute(
        select(PlaylistVideo.video_id)
        .where(PlaylistVideo.playlist_id == playlist_id)
        .order_by(PlaylistVideo.position)
    )
    return list(result.scalars().all())


async def add_video_to_playlist(db: AsyncSession, playlist: Playlist, video_id: str) -> bool:
    """Append a video to the end of a playlist.

    Returns:
        True if the video was added, False if it was already in the playlist
    """
    result = await db.execute(
        select(PlaylistVideo.video_id, PlaylistVideo.position).where(
            PlaylistVideo.playlist_id == playlist.id
        )
    )
    rows = result.all()
    if any(row[0] == video_id for row in rows):
        return False

    next_position = max((row[1] for row in rows), default=-1) + 1
    db.add(PlaylistVideo(playlist_id=playlist.id, video_id=video_id, position=next_position))
    playlist.updated_at = utcnow()
    await _commit(db)
    await db.refresh(playlist)
    return True


async def remove_video_from_playlist(
    db: AsyncSession, playlist: Playlist, video_id: str
) -> bool:
    """Remove a video from a playlist.

    Returns:
        True if the video was removed, False if it wasn't in the playlist
    """
    result = await db.execute(
        delete(PlaylistVideo).where(
            PlaylistVideo.playlist_id == playlist.id,
            PlaylistVideo.video_id == video_id,
        )
    )
    if result.rowcount > 0:
        playlist.updated_at = utcnow()
    await db.commit()
    await db.refresh(playlist)
    return result.rowcount > 0


# Watch history


async def record_watch(db: AsyncSession, user_id: str, video_id: str) -> WatchHistory:
    """Put a video at the front of a user's watch history (upsert)."""
    result = await db.execute(
        select(WatchHistory).where(
            WatchHistory.user_id == user_id,
            WatchHistory.video_id == video_id,
        )
    )
    entry = result.scalar_one_or_none()

    if entry:
        entry.watched_at = utcnow()
    else:
        entry = WatchHistory(user_id=user_id, video_id=video_id)
        db.add(entry)

    await _commit(db)
    await db.refresh(entry)
    return entry
