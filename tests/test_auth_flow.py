"""Tests for authentication: token crypto, JWTs, registration, login and refresh."""

import time
from unittest.mock import MagicMock, patch

import pytest
from jose import jwt

from viztube.auth.crypto import (
    open_refresh_token,
    refresh_token_matches,
    seal_refresh_token,
    validate_encryption_key,
)
from viztube.auth.guard import bearer_token
from viztube.auth.passwords import hash_password, verify_password
from viztube.auth.tokens import (
    ALGORITHM,
    create_access_token,
    create_refresh_token,
    verify_access_token,
    verify_refresh_token,
)
from viztube.config import get_settings
from viztube.db import crud

from conftest import DEFAULT_PASSWORD

# Refresh token encryption


def test_seal_open_refresh_token():
    """Test AES-GCM encryption and decryption of refresh tokens."""
    key = b"0" * 32
    sealed = seal_refresh_token(key, "refresh-token-abc123")

    assert sealed != b"refresh-token-abc123"
    # Nonce is prepended (12 bytes + ciphertext)
    assert len(sealed) > 12
    assert open_refresh_token(key, sealed) == "refresh-token-abc123"


def test_seal_with_invalid_key_length():
    with pytest.raises(ValueError, match="must be exactly 32 bytes"):
        seal_refresh_token(b"short_key", "token")


def test_open_with_short_blob():
    with pytest.raises(ValueError, match="too short"):
        open_refresh_token(b"0" * 32, b"short")


def test_validate_encryption_key_requires_base64():
    with pytest.raises(ValueError, match="base64"):
        validate_encryption_key("not base64!!")


def test_refresh_token_matches():
    key = b"0" * 32
    sealed = seal_refresh_token(key, "token-1")

    assert refresh_token_matches(key, sealed, "token-1")
    assert not refresh_token_matches(key, sealed, "token-2")
    assert not refresh_token_matches(key, None, "token-1")
    # Wrong key cannot decrypt; treated as a mismatch
    assert not refresh_token_matches(b"1" * 32, sealed, "token-1")


# Passwords


def test_password_hash_roundtrip():
    hashed = hash_password("S3cret!x")
    assert hashed != "S3cret!x"
    assert verify_password("S3cret!x", hashed)
    assert not verify_password("wrong", hashed)


# JWTs


def test_access_token_carries_identity():
    user = MagicMock(id="user-1", email="a@example.com", username="alice", full_name="Alice")
    token = create_access_token(user)

    claims = jwt.decode(token, get_settings().access_token_secret, algorithms=[ALGORITHM])
    assert claims["sub"] == "user-1"
    assert claims["username"] == "alice"
    assert claims["type"] == "access"
    assert verify_access_token(token) == "user-1"


def test_refresh_token_is_not_an_access_token():
    token = create_refresh_token("user-1")

    assert verify_refresh_token(token) == "user-1"
    assert verify_access_token(token) is None


def test_verify_invalid_token():
    assert verify_access_token("invalid.token.here") is None
    assert verify_refresh_token("") is None


def test_verify_expired_token():
    """Tokens past their expiry are rejected."""
    settings = MagicMock()
    settings.access_token_secret = "test-access-secret"
    settings.access_token_expire_minutes = -1

    user = MagicMock(id="user-1", email="a@example.com", username="alice", full_name="Alice")
    with patch("viztube.auth.tokens.get_settings", return_value=settings):
        token = create_access_token(user)
        assert verify_access_token(token) is None


def test_refresh_tokens_are_unique():
    assert create_refresh_token("user-1") != create_refresh_token("user-1")


def test_bearer_token_parsing():
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("bearer abc") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token(None) is None


# Registration


def _register_form(**overrides):
    data = {
        "username": "NewUser",
        "email": "NewUser@Example.com",
        "fullName": "New User",
        "password": DEFAULT_PASSWORD,
    }
    data.update(overrides)
    return data


AVATAR = {"avatar": ("me.png", b"\x89PNG avatar", "image/png")}


@pytest.mark.asyncio
async def test_register_creates_user(client, fake_store, test_db):
    response = await client.post(
        "/api/v1/users/register",
        data=_register_form(),
        files={**AVATAR, "coverImage": ("cover.jpg", b"cover", "image/jpeg")},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["statusCode"] == 201
    user = body["data"]
    assert user["username"] == "newuser"
    assert user["email"] == "newuser@example.com"
    assert user["fullName"] == "New User"
    assert user["avatar"].startswith("https://blobs.test/image/")
    assert user["coverImage"].startswith("https://blobs.test/image/")
    assert "passwordHash" not in user
    assert "refreshTokenEnc" not in user
    assert len(fake_store.blobs) == 2

    async with test_db() as db:
        stored = await crud.get_user_by_username(db, "newuser")
        assert stored is not None
        assert verify_password(DEFAULT_PASSWORD, stored.password_hash)


@pytest.mark.asyncio
async def test_register_short_username_creates_nothing(client, fake_store, test_db):
    response = await client.post(
        "/api/v1/users/register", data=_register_form(username="ab"), files=AVATAR
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    assert body["errors"][0]["field"] == "username"
    assert fake_store.blobs == {}

    async with test_db() as db:
        assert await crud.get_user_by_username(db, "ab") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("email", ["not-an-email", "x@-bad-.com", "alice@", ""])
async def test_register_invalid_email(client, fake_store, email):
    response = await client.post(
        "/api/v1/users/register", data=_register_form(email=email), files=AVATAR
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "email"
    assert fake_store.blobs == {}


@pytest.mark.asyncio
async def test_register_weak_password(client):
    response = await client.post(
        "/api/v1/users/register", data=_register_form(password="password"), files=AVATAR
    )

    assert response.status_code == 400
    assert "uppercase" in response.json()["message"]


@pytest.mark.asyncio
async def test_register_reserved_username(client):
    response = await client.post(
        "/api/v1/users/register", data=_register_form(username="Admin"), files=AVATAR
    )

    assert response.status_code == 400
    assert response.json()["message"] == "This username is reserved"


@pytest.mark.asyncio
async def test_register_requires_avatar(client, fake_store):
    response = await client.post("/api/v1/users/register", data=_register_form())

    assert response.status_code == 400
    assert response.json()["message"] == "Avatar file is required"
    assert fake_store.blobs == {}


@pytest.mark.asyncio
async def test_register_conflict(client, make_user, fake_store):
    await make_user("newuser")

    response = await client.post(
        "/api/v1/users/register", data=_register_form(email="other@example.com"), files=AVATAR
    )

    assert response.status_code == 409
    assert fake_store.blobs == {}


@pytest.mark.asyncio
async def test_register_cover_failure_removes_avatar(client, fake_store):
    """If the cover image cannot be stored, the avatar upload is undone."""
    original_upload = fake_store._upload
    calls = {"n": 0}

    async def flaky_upload(local_path, blob_id):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("host unavailable")
        return await original_upload(local_path, blob_id)

    fake_store._upload = flaky_upload

    response = await client.post(
        "/api/v1/users/register",
        data=_register_form(),
        files={**AVATAR, "coverImage": ("cover.jpg", b"cover", "image/jpeg")},
    )

    assert response.status_code == 500
    assert response.json()["message"] == "Failed to upload cover image"
    assert fake_store.blobs == {}


# Login


@pytest.mark.asyncio
async def test_login_with_username(client, make_user):
    await make_user("alice")

    response = await client.post(
        "/api/v1/users/login", json={"username": "alice", "password": DEFAULT_PASSWORD}
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["username"] == "alice"
    assert verify_access_token(data["accessToken"]) == data["user"]["id"]
    assert verify_refresh_token(data["refreshToken"]) == data["user"]["id"]
    assert "accessToken" in response.cookies
    assert "refreshToken" in response.cookies


@pytest.mark.asyncio
async def test_login_with_email(client, make_user):
    await make_user("alice")

    response = await client.post(
        "/api/v1/users/login",
        json={"email": "ALICE@example.com", "password": DEFAULT_PASSWORD},
    )

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_login_wrong_password(client, make_user, test_db):
    user = await make_user("alice")

    response = await client.post(
        "/api/v1/users/login", json={"username": "alice", "password": "Wr0ng!pass"}
    )

    assert response.status_code == 401
    assert response.json()["data"] is None
    assert "accessToken" not in response.cookies

    async with test_db() as db:
        stored = await crud.get_user_by_id(db, user.id)
        assert stored.refresh_token_enc is None


@pytest.mark.asyncio
async def test_login_unknown_user(client):
    response = await client.post(
        "/api/v1/users/login", json={"username": "ghost", "password": DEFAULT_PASSWORD}
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_login_requires_identity(client):
    response = await client.post("/api/v1/users/login", json={"password": DEFAULT_PASSWORD})

    assert response.status_code == 400
    assert response.json()["message"] == "Username or email is required"


# Refresh, logout, guard


async def _login(client, username="alice"):
    response = await client.post(
        "/api/v1/users/login", json={"username": username, "password": DEFAULT_PASSWORD}
    )
    client.cookies.clear()
    return response.json()["data"]


@pytest.mark.asyncio
async def test_refresh_rotates_tokens(client, make_user):
    await make_user("alice")
    tokens = await _login(client)

    response = await client.get(
        "/api/v1/users/refresh-token",
        headers={"Cookie": f"refreshToken={tokens['refreshToken']}"},
    )
    client.cookies.clear()

    assert response.status_code == 200
    rotated = response.json()["data"]
    assert rotated["refreshToken"] != tokens["refreshToken"]

    # The previous refresh token is no longer accepted
    replay = await client.get(
        "/api/v1/users/refresh-token",
        headers={"Cookie": f"refreshToken={tokens['refreshToken']}"},
    )
    assert replay.status_code == 401


@pytest.mark.asyncio
async def test_refresh_without_cookie(client):
    response = await client.get("/api/v1/users/refresh-token")

    assert response.status_code == 401
    assert "missing" in response.json()["message"]


@pytest.mark.asyncio
async def test_logout_forgets_refresh_token(client, make_user, test_db):
    user = await make_user("alice")
    tokens = await _login(client)

    response = await client.patch(
        "/api/v1/users/logout",
        headers={"Authorization": f"Bearer {tokens['accessToken']}"},
    )
    client.cookies.clear()

    assert response.status_code == 200
    async with test_db() as db:
        stored = await crud.get_user_by_id(db, user.id)
        assert stored.refresh_token_enc is None

    refresh = await client.get(
        "/api/v1/users/refresh-token",
        headers={"Cookie": f"refreshToken={tokens['refreshToken']}"},
    )
    assert refresh.status_code == 401


@pytest.mark.asyncio
async def test_access_cookie_authenticates(client, make_user):
    user = await make_user("alice")

    response = await client.get(
        "/api/v1/users/current-user",
        headers={"Cookie": f"accessToken={create_access_token(user)}"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["id"] == user.id


@pytest.mark.asyncio
async def test_guard_rejects_missing_and_invalid_tokens(client):
    missing = await client.get("/api/v1/users/current-user")
    invalid = await client.get(
        "/api/v1/users/current-user", headers={"Authorization": "Bearer not-a-jwt"}
    )

    assert missing.status_code == 401
    assert invalid.status_code == 401
    assert invalid.json()["success"] is False


@pytest.mark.asyncio
async def test_guard_rejects_deleted_user(client, auth_headers):
    ghost = MagicMock(
        id="00000000-0000-4000-8000-000000000000",
        email="ghost@example.com",
        username="ghost",
        full_name="Ghost",
    )

    response = await client.get("/api/v1/users/current-user", headers=auth_headers(ghost))

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_change_password(client, make_user, auth_headers):
    user = await make_user("alice")

    wrong = await client.patch(
        "/api/v1/users/change-password",
        json={"oldPassword": "Nope!123a", "newPassword": "N3w!pass"},
        headers=auth_headers(user),
    )
    assert wrong.status_code == 401

    response = await client.patch(
        "/api/v1/users/change-password",
        json={"oldPassword": DEFAULT_PASSWORD, "newPassword": "N3w!pass"},
        headers=auth_headers(user),
    )
    assert response.status_code == 200

    old_login = await client.post(
        "/api/v1/users/login", json={"username": "alice", "password": DEFAULT_PASSWORD}
    )
    new_login = await client.post(
        "/api/v1/users/login", json={"username": "alice", "password": "N3w!pass"}
    )
    assert old_login.status_code == 401
    assert new_login.status_code == 200


def test_token_expiry_uses_settings():
    token = create_refresh_token("user-1")
    claims = jwt.decode(token, get_settings().refresh_token_secret, algorithms=[ALGORITHM])

    assert claims["exp"] - claims["iat"] == get_settings().refresh_token_expire_days * 86400
    assert claims["iat"] <= int(time.time())
