"""Channel subscription endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from viztube.api.dependencies import parse_object_id
from viztube.api.responses import api_response
from viztube.auth.guard import require_user
from viztube.db import crud, views
from viztube.db.models import User
from viztube.db.session import get_session
from viztube.ratelimit import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/subscriptions", tags=["subscriptions"])


@router.post("/c/{channel_id}")
@limiter.limit("30/minute")
async def toggle_subscription(
    request: Request,
    channel_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Subscribe to a channel, or unsubscribe if already subscribed.

    Returns 201 when a subscription was created and 200 when one was removed.
    """
    channel_id = parse_object_id(channel_id, "channel ID")
    if channel_id == user.id:
        raise HTTPException(status_code=400, detail="You cannot subscribe to yourself")
    if not await crud.get_user_by_id(db, channel_id):
        raise HTTPException(status_code=404, detail="Channel not found")

    subscribed = await crud.toggle_subscription(db, user.id, channel_id)
    logger.info(
        f"Subscription toggled: subscriber_id={user.id}, channel_id={channel_id}, "
        f"subscribed={subscribed}"
    )
    if subscribed:
        return api_response({"subscribed": True}, "Subscribed successfully", 201)
    return api_response({"subscribed": False}, "Unsubscribed successfully")


@router.get("/c/{channel_id}")
@limiter.limit("60/minute")
async def channel_subscribers(
    request: Request,
    channel_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Users subscribed to a channel."""
    channel = await crud.get_user_by_id(db, parse_object_id(channel_id, "channel ID"))
    if not channel:
        raise HTTPException(status_code=404, detail="Channel not found")

    subscribers = await views.list_channel_subscribers(db, channel.id)
    return api_response(subscribers, "Subscribers fetched successfully")


@router.get("/u/{subscriber_id}")
@limiter.limit("60/minute")
async def subscribed_channels(
    request: Request,
    subscriber_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Channels a user is subscribed to."""
    subscriber = await crud.get_user_by_id(
        db, parse_object_id(subscriber_id, "subscriber ID")
    )
    if not subscriber:
        raise HTTPException(status_code=404, detail="User not found")

    channels = await views.list_subscribed_channels(db, subscriber.id)
    return api_response(channels, "Subscribed channels fetched successfully")
