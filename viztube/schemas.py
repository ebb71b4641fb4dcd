"""Pydantic request and response models.

Everything is serialized with camelCase aliases (``fullName``, ``createdAt``)
while Python code uses snake_case attribute names.
"""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator, model_validator
from pydantic.alias_generators import to_camel

from viztube.db.models import Comment, Playlist, Tweet, User, Video
from viztube.validators import (
    normalize_email,
    validate_full_name,
    validate_not_blank,
    validate_password,
    validate_username,
)

T = TypeVar("T")


class Schema(BaseModel):
    """Base model with camelCase wire names."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


# Responses


class UserSummary(Schema):
    """Reduced owner projection attached to listed entities."""

    id: str
    username: str
    full_name: str
    avatar: str

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(
            id=user.id,
            username=user.username,
            full_name=user.full_name,
            avatar=user.avatar_url,
        )


class UserOut(Schema):
    """Public view of a user; never includes the password hash or tokens."""

    id: str
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            avatar=user.avatar_url,
            cover_image=user.cover_image_url,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class ChannelProfile(UserSummary):
    cover_image: str | None = None
    subscriber_count: int
    channels_subscribed_to_count: int
    is_subscribed: bool


class VideoOut(Schema):
    id: str
    video_file: str
    thumbnail: str
    title: str
    description: str
    views: int
    duration: float
    is_published: bool
    owner_id: str
    owner: UserSummary | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_video(cls, video: Video, owner: User | None = None) -> "VideoOut":
        return cls(
            id=video.id,
            video_file=video.video_file_url,
            thumbnail=video.thumbnail_url,
            title=video.title,
            description=video.description,
            views=video.views,
            duration=video.duration,
            is_published=video.is_published,
            owner_id=video.owner_id,
            owner=UserSummary.from_user(owner) if owner else None,
            created_at=video.created_at,
            updated_at=video.updated_at,
        )


class CommentOut(Schema):
    id: str
    content: str
    video_id: str
    owner_id: str
    owner: UserSummary | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_comment(cls, comment: Comment, owner: User | None = None) -> "CommentOut":
        return cls(
            id=comment.id,
            content=comment.content,
            video_id=comment.video_id,
            owner_id=comment.owner_id,
            owner=UserSummary.from_user(owner) if owner else None,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        )


class TweetOut(Schema):
    id: str
    content: str
    owner_id: str
    owner: UserSummary | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_tweet(cls, tweet: Tweet, owner: User | None = None) -> "TweetOut":
        return cls(
            id=tweet.id,
            content=tweet.content,
            owner_id=tweet.owner_id,
            owner=UserSummary.from_user(owner) if owner else None,
            created_at=tweet.created_at,
            updated_at=tweet.updated_at,
        )


class LikedVideo(Schema):
    id: str
    title: str
    thumbnail: str
    duration: float
    views: int
    owner: UserSummary
    liked_at: datetime


class PlaylistOut(Schema):
    id: str
    name: str
    description: str
    owner_id: str
    videos: list[str]
    total_videos: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_playlist(cls, playlist: Playlist, video_ids: list[str]) -> "PlaylistOut":
        return cls(
            id=playlist.id,
            name=playlist.name,
            description=playlist.description,
            owner_id=playlist.owner_id,
            videos=video_ids,
            total_videos=len(video_ids),
            created_at=playlist.created_at,
            updated_at=playlist.updated_at,
        )


class PlaylistDetail(Schema):
    id: str
    name: str
    description: str
    owner: UserSummary
    videos: list[VideoOut]
    total_videos: int
    total_views: int
    created_at: datetime
    updated_at: datetime


class ChannelStats(Schema):
    total_videos: int
    total_views: int
    total_subscribers: int
    total_likes: int


class Page(Schema, Generic[T]):
    """One page of a listing plus the metadata needed to walk the rest."""

    items: list[T]
    total: int
    page: int
    limit: int
    total_pages: int
    has_prev_page: bool
    has_next_page: bool
    prev_page: int | None
    next_page: int | None

    @classmethod
    def build(cls, items: list[T], total: int, page: int, limit: int) -> "Page[T]":
        total_pages = (total + limit - 1) // limit if total else 0
        has_prev = page > 1
        has_next = page < total_pages
        return cls(
            items=items,
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_prev_page=has_prev,
            has_next_page=has_next,
            prev_page=page - 1 if has_prev else None,
            next_page=page + 1 if has_next else None,
        )


# Requests


class RegisterForm(Schema):
    username: str
    email: EmailStr
    full_name: str
    password: str

    check_username = field_validator("username")(validate_username)
    check_email = field_validator("email")(normalize_email)
    check_full_name = field_validator("full_name")(validate_full_name)
    check_password = field_validator("password")(validate_password)


class LoginRequest(Schema):
    """Login with either a username or an email, plus the password."""

    username: str | None = None
    email: str | None = None
    password: str

    @model_validator(mode="after")
    def require_identity(self) -> "LoginRequest":
        if not (self.username or self.email):
            raise ValueError("Username or email is required")
        if not self.password:
            raise ValueError("Password is required")
        return self


class ChangePasswordRequest(Schema):
    old_password: str
    new_password: str

    check_new_password = field_validator("new_password")(validate_password)


class UpdateAccountRequest(Schema):
    full_name: str | None = None
    email: EmailStr | None = None

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, value: str | None) -> str | None:
        return validate_full_name(value) if value is not None else None

    check_email = field_validator("email")(normalize_email)

    @model_validator(mode="after")
    def require_one_field(self) -> "UpdateAccountRequest":
        if self.full_name is None and self.email is None:
            raise ValueError("At least one field (fullName, email) is required to update")
        return self


class ContentRequest(Schema):
    """Body of comment and tweet create/update requests."""

    content: str

    check_content = field_validator("content")(validate_not_blank)


class PlaylistRequest(Schema):
    name: str
    description: str

    check_name = field_validator("name")(validate_not_blank)
    check_description = field_validator("description")(validate_not_blank)
