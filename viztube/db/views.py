"""Read-shaped projections that join several tables.

Every listing of videos, comments, tweets and likes is enriched with a
reduced owner projection through an inner join on the owner reference, so
rows whose owner no longer exists are dropped. All functions here are plain
reads; none of them writes.
"""

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from viztube.db.models import (
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
)
from viztube.schemas import (
    ChannelProfile,
    ChannelStats,
    CommentOut,
    LikedVideo,
    Page,
    PlaylistDetail,
    TweetOut,
    UserSummary,
    VideoOut,
)

# Fields a video listing may be sorted by
VIDEO_SORT_FIELDS = {
    "created_at": Video.created_at,
    "updated_at": Video.updated_at,
    "views": Video.views,
    "duration": Video.duration,
    "title": Video.title,
}


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def video_search_clause(query: str):
    """Match videos whose title or description contains any query term."""
    clauses = []
    for term in query.split():
        pattern = f"%{_escape_like(term)}%"
        clauses.append(Video.title.ilike(pattern, escape="\\"))
        clauses.append(Video.description.ilike(pattern, escape="\\"))
    return or_(*clauses)


async def _paginate(
    db: AsyncSession, stmt: Select, count_stmt: Select, page: int, limit: int
) -> tuple[list, int]:
    """Run ``count_stmt`` for the total and ``stmt`` for one page of rows."""
    total = (await db.execute(count_stmt)).scalar_one()
    result = await db.execute(stmt.offset((page - 1) * limit).limit(limit))
    return list(result.all()), total


# Videos


async def list_videos(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    query: str | None = None,
    owner_id: str | None = None,
    sort_by: str | None = None,
    sort_type: str = "desc",
    published_only: bool = True,
) -> Page[VideoOut]:
    """List videos with optional text search, owner filter and sorting.

    Args:
        db: Database session
        page: 1-based page number
        limit: Page size
        query: Free-text search over title and description
        owner_id: Only videos owned by this user
        sort_by: One of ``VIDEO_SORT_FIELDS``; newest first when omitted
        sort_type: ``asc`` or ``desc``
        published_only: Hide unpublished videos

    Returns:
        A page of owner-enriched videos
    """
    filters = []
    if query and query.strip():
        filters.append(video_search_clause(query))
    if owner_id:
        filters.append(Video.owner_id == owner_id)
    if published_only:
        filters.append(Video.is_published.is_(True))

    column = VIDEO_SORT_FIELDS.get(sort_by or "created_at", Video.created_at)
    order = column.asc() if sort_type == "asc" else column.desc()

    stmt = (
        select(Video, User)
        .join(User, Video.owner_id == User.id)
        .where(*filters)
        .order_by(order, Video.id)
    )
    count_stmt = (
        select(func.count(Video.id))
        .select_from(Video)
        .join(User, Video.owner_id == User.id)
        .where(*filters)
    )
    rows, total = await _paginate(db, stmt, count_stmt, page, limit)
    items = [VideoOut.from_video(video, owner) for video, owner in rows]
    return Page[VideoOut].build(items, total, page, limit)


async def get_video_view(db: AsyncSession, video_id: str) -> VideoOut | None:
    """A single video with its owner."""
    result = await db.execute(
        select(Video, User)
        .join(User, Video.owner_id == User.id)
        .where(Video.id == video_id)
    )
    row = result.first()
    if row is None:
        return None
    return VideoOut.from_video(row[0], row[1])


# Comments and tweets


async def list_video_comments(
    db: AsyncSession, video_id: str, page: int = 1, limit: int = 10
) -> Page[CommentOut]:
    """Comments of a video, newest first, with their authors."""
    stmt = (
        select(Comment, User)
        .join(User, Comment.owner_id == User.id)
        .where(Comment.video_id == video_id)
        .order_by(Comment.created_at.desc(), Comment.id)
    )
    count_stmt = (
        select(func.count(Comment.id))
        .select_from(Comment)
        .join(User, Comment.owner_id == User.id)
        .where(Comment.video_id == video_id)
    )
    rows, total = await _paginate(db, stmt, count_stmt, page, limit)
    items = [CommentOut.from_comment(comment, owner) for comment, owner in rows]
    return Page[CommentOut].build(items, total, page, limit)


async def list_user_tweets(db: AsyncSession, user_id: str) -> list[TweetOut]:
    """All tweets of a user, newest first."""
    result = await db.execute(
        select(Tweet, User)
        .join(User, Tweet.owner_id == User.id)
        .where(Tweet.owner_id == user_id)
        .order_by(Tweet.created_at.desc(), Tweet.id)
    )
    return [TweetOut.from_tweet(tweet, owner) for tweet, owner in result.all()]


# Users and channels


async def get_channel_profile(
    db: AsyncSession, username: str, viewer_id: str | None = None
) -> ChannelProfile | None:
    """Public channel page: subscriber counts and whether the viewer subscribes.

    Args:
        db: Database session
        username: Channel owner's username (case-insensitive)
        viewer_id: The calling user, for the ``is_subscribed`` flag

    Returns:
        The channel profile, or None if no such user exists
    """
    result = await db.execute(select(User).where(User.username == username.lower()))
    channel = result.scalar_one_or_none()
    if channel is None:
        return None

    subscriber_count = (
        await db.execute(
            select(func.count(Subscription.id)).where(Subscription.channel_id == channel.id)
        )
    ).scalar_one()
    subscribed_to_count = (
        await db.execute(
            select(func.count(Subscription.id)).where(
                Subscription.subscriber_id == channel.id
            )
        )
    ).scalar_one()

    is_subscribed = False
    if viewer_id:
        is_subscribed = (
            await db.execute(
                select(Subscription.id).where(
                    Subscription.channel_id == channel.id,
                    Subscription.subscriber_id == viewer_id,
                )
            )
        ).first() is not None

    return ChannelProfile(
        id=channel.id,
        username=channel.username,
        full_name=channel.full_name,
        avatar=channel.avatar_url,
        cover_image=channel.cover_image_url,
        subscriber_count=subscriber_count,
        channels_subscribed_to_count=subscribed_to_count,
        is_subscribed=is_subscribed,
    )


async def get_watch_history(db: AsyncSession, user_id: str) -> list[VideoOut]:
    """Videos the user watched, most recent first, each with its owner."""
    result = await db.execute(
        select(Video, User)
        .join(WatchHistory, WatchHistory.video_id == Video.id)
        .join(User, Video.owner_id == User.id)
        .where(WatchHistory.user_id == user_id)
        .order_by(WatchHistory.watched_at.desc(), WatchHistory.id)
    )
    return [VideoOut.from_video(video, owner) for video, owner in result.all()]


async def list_liked_videos(db: AsyncSession, user_id: str) -> list[LikedVideo]:
    """Videos liked by the user, most recently liked first."""
    result = await db.execute(
        select(Like.created_at, Video, User)
        .select_from(Like)
        .join(
            Video,
            and_(Like.target_kind == LikeTarget.VIDEO, Like.target_id == Video.id),
        )
        .join(User, Video.owner_id == User.id)
        .where(Like.liked_by_id == user_id)
        .order_by(Like.created_at.desc(), Like.id)
    )
    return [
        LikedVideo(
            id=video.id,
            title=video.title,
            thumbnail=video.thumbnail_url,
            duration=video.duration,
            views=video.views,
            owner=UserSummary.from_user(owner),
            liked_at=liked_at,
        )
        for liked_at, video, owner in result.all()
    ]


async def list_channel_subscribers(db: AsyncSession, channel_id: str) -> list[UserSummary]:
    """Users subscribed to a channel."""
    result = await db.execute(
        select(User)
        .join(Subscription, Subscription.subscriber_id == User.id)
        .where(Subscription.channel_id == channel_id)
        .order_by(Subscription.created_at.desc())
    )
    return [UserSummary.from_user(user) for user in result.scalars().all()]


async def list_subscribed_channels(
    db: AsyncSession, subscriber_id: str
) -> list[UserSummary]:
    """Channels a user is subscribed to."""
    result = await db.execute(
        select(User)
        .join(Subscription, Subscription.channel_id == User.id)
        .where(Subscription.subscriber_id == subscriber_id)
        .order_by(Subscription.created_at.desc())
    )
    return [UserSummary.from_user(user) for user in result.scalars().all()]


# Playlists


async def get_playlist_view(db: AsyncSession, playlist_id: str) -> PlaylistDetail | None:
    """A playlist with its owner and its videos in playlist order."""
    result = await db.execute(
        select(Playlist, User)
        .join(User, Playlist.owner_id == User.id)
        .where(Playlist.id == playlist_id)
    )
    row = result.first()
    if row is None:
        return None
    playlist, owner = row

    videos_result = await db.execute(
        select(Video, User)
        .join(PlaylistVideo, PlaylistVideo.video_id == Video.id)
        .join(User, Video.owner_id == User.id)
        .where(PlaylistVideo.playlist_id == playlist_id)
        .order_by(PlaylistVideo.position)
    )
    videos = [
        VideoOut.from_video(video, video_owner)
        for video, video_owner in videos_result.all()
    ]

    return PlaylistDetail(
        id=playlist.id,
        name=playlist.name,
        description=playlist.description,
        owner=UserSummary.from_user(owner),
        videos=videos,
        total_videos=len(videos),
        total_views=sum(video.views for video in videos),
        created_at=playlist.created_at,
        updated_at=playlist.updated_at,
    )


# Dashboard


async def get_channel_stats(db: AsyncSession, owner_id: str) -> ChannelStats:
    """Totals for a creator's channel: videos, views, subscribers and video likes."""
    video_totals = (
        await db.execute(
            select(func.count(Video.id), func.coalesce(func.sum(Video.views), 0)).where(
                Video.owner_id == owner_id
            )
        )
    ).one()
    total_subscribers = (
        await db.execute(
            select(func.count(Subscription.id)).where(Subscription.channel_id == owner_id)
        )
    ).scalar_one()
    total_likes = (
        await db.execute(
            select(func.count(Like.id))
            .select_from(Like)
            .join(
                Video,
                and_(Like.target_kind == LikeTarget.VIDEO, Like.target_id == Video.id),
            )
            .where(Video.owner_id == owner_id)
        )
    ).scalar_one()

    return ChannelStats(
        total_videos=video_totals[0],
        total_views=video_totals[1],
        total_subscribers=total_subscribers,
        total_likes=total_likes,
    )
