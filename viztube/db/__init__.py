"""Database module for the VizTube API."""

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
)
from viztube.db.session import get_engine, get_session, get_sessionmaker

__all__ = [
    "Base",
    "Comment",
    "Like",
    "LikeTarget",
    "Playlist",
    "PlaylistVideo",
    "Subscription",
    "Tweet",
    "User",
    "Video",
    "WatchHistory",
    "get_session",
    "get_engine",
    "get_sessionmaker",
]
