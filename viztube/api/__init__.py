"""API routers for the VizTube API."""

from viztube.api.routes_auth import router as auth_router
from viztube.api.routes_comments import router as comments_router
from viztube.api.routes_dashboard import router as dashboard_router
from viztube.api.routes_health import router as health_router
from viztube.api.routes_likes import router as likes_router
from viztube.api.routes_playlists import router as playlists_router
from viztube.api.routes_subscriptions import router as subscriptions_router
from viztube.api.routes_tweets import router as tweets_router
from viztube.api.routes_users import router as users_router
from viztube.api.routes_videos import router as videos_router

__all__ = [
    "health_router",
    "auth_router",
    "users_router",
    "videos_router",
    "comments_router",
    "tweets_router",
    "likes_router",
    "playlists_router",
    "subscriptions_router",
    "dashboard_router",
]
