"""Tweet endpoints: short text posts on a user's channel."""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from viztube.api.dependencies import parse_object_id
from viztube.api.responses import api_response
from viztube.auth.guard import require_user
from viztube.db import crud, views
from viztube.db.models import Tweet, User
from viztube.db.session import get_session
from viztube.ratelimit import limiter
from viztube.schemas import ContentRequest, TweetOut

router = APIRouter(prefix="/api/v1/tweets", tags=["tweets"])


async def _owned_tweet(db: AsyncSession, tweet_id: str, user: User) -> Tweet:
    tweet = await crud.get_tweet_by_id(db, parse_object_id(tweet_id, "tweet ID"))
    if not tweet:
        raise HTTPException(status_code=404, detail="Tweet not found")
    if tweet.owner_id != user.id:
        raise HTTPException(
            status_code=403, detail="You do not have permission to modify this tweet"
        )
    return tweet


@router.post("")
@limiter.limit("30/minute")
async def create_tweet(
    request: Request,
    body: ContentRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    tweet = await crud.create_tweet(db, user.id, body.content)
    return api_response(TweetOut.from_tweet(tweet, user), "Tweet created successfully", 201)


@router.get("/user/{user_id}")
@limiter.limit("60/minute")
async def list_user_tweets(
    request: Request,
    user_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """All tweets of a user, newest first."""
    owner = await crud.get_user_by_id(db, parse_object_id(user_id, "user ID"))
    if not owner:
        raise HTTPException(status_code=404, detail="User not found")

    tweets = await views.list_user_tweets(db, owner.id)
    return api_response(tweets, "Tweets fetched successfully")


@router.patch("/{tweet_id}")
@limiter.limit("30/minute")
async def update_tweet(
    request: Request,
    tweet_id: str,
    body: ContentRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    tweet = await _owned_tweet(db, tweet_id, user)
    tweet = await crud.update_tweet(db, tweet, body.content)
    return api_response(TweetOut.from_tweet(tweet, user), "Tweet updated successfully")


@router.delete("/{tweet_id}")
@limiter.limit("30/minute")
async def delete_tweet(
    request: Request,
    tweet_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    tweet = await _owned_tweet(db, tweet_id, user)
    tweet_id = tweet.id
    if not await crud.delete_tweet(db, tweet_id):
        raise HTTPException(status_code=404, detail="Tweet not found")
    return api_response({"tweetId": tweet_id}, "Tweet deleted successfully")
