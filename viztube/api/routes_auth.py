"""Account authentication: registration, login, token refresh and logout."""

import logging
from typing import Annotated

from fastapi import APIRouter, Cookie, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from viztube.api.dependencies import blob_store
from viztube.api.responses import api_response
from viztube.api.uploads import has_file, upload_media
from viztube.auth.crypto import (
    refresh_token_matches,
    seal_refresh_token,
    validate_encryption_key,
)
from viztube.auth.guard import ACCESS_COOKIE, REFRESH_COOKIE, require_user
from viztube.auth.passwords import hash_password, verify_password
from viztube.auth.tokens import (
    create_access_token,
    create_refresh_token,
    verify_refresh_token,
)
from viztube.config import get_settings
from viztube.db import crud
from viztube.db.models import User
from viztube.db.session import get_session
from viztube.ratelimit import limiter
from viztube.schemas import ChangePasswordRequest, LoginRequest, RegisterForm, UserOut
from viztube.storage import BlobStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["auth"])


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _enc_key() -> bytes:
    try:
        return validate_encryption_key(get_settings().token_enc_key)
    except ValueError:
        logger.error("Invalid encryption key configuration", exc_info=True)
        raise HTTPException(status_code=500, detail="Service configuration error")


async def _issue_tokens(db: AsyncSession, user: User) -> tuple[str, str]:
    """Create a new token pair and remember the refresh token (encrypted)."""
    enc_key = _enc_key()
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user.id)
    await crud.set_user_refresh_token(db, user, seal_refresh_token(enc_key, refresh_token))
    return access_token, refresh_token


def _set_auth_cookies(response: JSONResponse, access_token: str, refresh_token: str) -> None:
    settings = get_settings()
    is_prod = settings.env == "prod"
    response.set_cookie(
        key=ACCESS_COOKIE,
        value=access_token,
        httponly=True,
        samesite="lax",
        secure=is_prod,
        max_age=settings.access_token_expire_minutes * 60,
    )
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=refresh_token,
        httponly=True,
        samesite="lax",
        secure=is_prod,
        max_age=settings.refresh_token_expire_days * 86400,
    )


@router.post("/register")
@limiter.limit("10/minute")
async def register(
    request: Request,
    username: Annotated[str, Form()] = "",
    email: Annotated[str, Form()] = "",
    full_name: Annotated[str, Form(alias="fullName")] = "",
    password: Annotated[str, Form()] = "",
    avatar: Annotated[UploadFile | None, File()] = None,
    cover_image: Annotated[UploadFile | None, File(alias="coverImage")] = None,
    db: AsyncSession = Depends(get_session),
    store: BlobStore = Depends(blob_store),
):
    """
    Register a new account.

    Form fields are validated before anything is uploaded, so a rejected
    registration never touches the blob store.

    Rate limit: 10 requests per minute per IP.
    """
    try:
        form = RegisterForm(
            username=username, email=email, full_name=full_name, password=password
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    if await crud.find_user_by_username_or_email(db, form.username, form.email):
        raise HTTPException(
            status_code=409, detail="User with this email or username already exists"
        )

    if not has_file(avatar):
        raise HTTPException(status_code=400, detail="Avatar file is required")

    avatar_blob = await upload_media(store, avatar, "avatar", "avatar")
    cover_blob = None
    if has_file(cover_image):
        try:
            cover_blob = await upload_media(store, cover_image, "coverImage", "cover image")
        except HTTPException:
            await store.remove(avatar_blob.blob_id, avatar_blob.kind)
            raise

    try:
        user = await crud.create_user(
            db,
            username=form.username,
            email=form.email,
            full_name=form.full_name,
            password_hash=hash_password(form.password),
            avatar_url=avatar_blob.url,
            avatar_blob_id=avatar_blob.blob_id,
            cover_image_url=cover_blob.url if cover_blob else None,
            cover_image_blob_id=cover_blob.blob_id if cover_blob else None,
        )
    except IntegrityError:
        # Lost a race against another registration with the same username/email
        await store.remove(avatar_blob.blob_id, avatar_blob.kind)
        if cover_blob:
            await store.remove(cover_blob.blob_id, cover_blob.kind)
        raise

    logger.info(f"User registered: user_id={user.id}, ip={_client_ip(request)}")
    return api_response(UserOut.from_user(user), "User registered successfully", 201)


@router.post("/login")
@limiter.limit("10/minute")
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
):
    """
    Log in with username or email and password.

    Issues an access/refresh token pair as HTTP-only cookies and echoes both
    in the response body.

    Rate limit: 10 requests per minute per IP.
    """
    ip_address = _client_ip(request)

    if body.username:
        user = await crud.get_user_by_username(db, body.username)
    else:
        user = await crud.get_user_by_email(db, body.email or "")
    if not user:
        raise HTTPException(status_code=404, detail="User does not exist")

    if not verify_password(body.password, user.password_hash):
        logger.info(f"Failed login for user_id={user.id}, ip={ip_address}")
        raise HTTPException(status_code=401, detail="Invalid user credentials")

    access_token, refresh_token = await _issue_tokens(db, user)
    logger.info(f"User logged in: user_id={user.id}, ip={ip_address}")

    response = api_response(
        {
            "user": UserOut.from_user(user),
            "accessToken": access_token,
            "refreshToken": refresh_token,
        },
        "User logged in successfully",
    )
    _set_auth_cookies(response, access_token, refresh_token)
    return response


@router.get("/refresh-token")
@limiter.limit("30/minute")
async def refresh_access_token(
    request: Request,
    refresh_cookie: Annotated[str | None, Cookie(alias=REFRESH_COOKIE)] = None,
    db: AsyncSession = Depends(get_session),
):
    """
    Exchange the refresh token cookie for a new token pair.

    The presented token must be the one stored for the user; it is rotated
    on every successful refresh.
    """
    if not refresh_cookie:
        raise HTTPException(
            status_code=401, detail="Unauthorized request: Refresh token is missing"
        )

    user_id = verify_refresh_token(refresh_cookie)
    user = await crud.get_user_by_id(db, user_id) if user_id else None

    if not user or not refresh_token_matches(
        _enc_key(), user.refresh_token_enc, refresh_cookie
    ):
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")

    access_token, refresh_token = await _issue_tokens(db, user)

    response = api_response(
        {"accessToken": access_token, "refreshToken": refresh_token},
        "Access token refreshed successfully",
    )
    _set_auth_cookies(response, access_token, refresh_token)
    return response


@router.patch("/logout")
@limiter.limit("20/minute")
async def logout(
    request: Request,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Forget the stored refresh token and clear both auth cookies."""
    await crud.set_user_refresh_token(db, user, None)
    logger.info(f"User logged out: user_id={user.id}, ip={_client_ip(request)}")

    response = api_response({}, "User logged out successfully")
    response.delete_cookie(key=ACCESS_COOKIE, httponly=True, samesite="lax")
    response.delete_cookie(key=REFRESH_COOKIE, httponly=True, samesite="lax")
    return response


@router.patch("/change-password")
@limiter.limit("10/minute")
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Change the current user's password after checking the old one."""
    if not verify_password(body.old_password, user.password_hash):
        raise HTTPException(status_code=401, detail="Incorrect old password")

    await crud.update_user(db, user, password_hash=hash_password(body.new_password))
    logger.info(f"Password changed: user_id={user.id}")
    return api_response({}, "Password changed successfully")
