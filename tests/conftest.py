"""Shared fixtures: environment, in-memory database, fake blob store, test app."""

import base64
import os
import tempfile
from pathlib import Path

_TMP = Path(tempfile.mkdtemp(prefix="viztube-tests-"))
os.environ.setdefault("VT_ACCESS_TOKEN_SECRET", "test-access-secret")
os.environ.setdefault("VT_REFRESH_TOKEN_SECRET", "test-refresh-secret")
os.environ.setdefault("VT_TOKEN_ENC_KEY", base64.b64encode(b"0" * 32).decode())
os.environ.setdefault("VT_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("VT_UPLOAD_TEMP_DIR", str(_TMP / "temp"))
os.environ.setdefault("VT_MEDIA_LOCAL_PATH", str(_TMP / "media"))

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from viztube.api import (  # noqa: E402
    auth_router,
    comments_router,
    dashboard_router,
    health_router,
    likes_router,
    playlists_router,
    subscriptions_router,
    tweets_router,
    users_router,
    videos_router,
)
from viztube.api.dependencies import blob_store  # noqa: E402
from viztube.auth.passwords import hash_password  # noqa: E402
from viztube.auth.tokens import create_access_token  # noqa: E402
from viztube.db import crud  # noqa: E402
from viztube.db.models import Base  # noqa: E402
from viztube.db.session import get_session  # noqa: E402
from viztube.errors import register_exception_handlers  # noqa: E402
from viztube.ratelimit import limiter  # noqa: E402
from viztube.storage import BlobStore  # noqa: E402

DEFAULT_PASSWORD = "Passw0rd!"

# One bcrypt hash shared by every fixture user keeps the suite fast
_PASSWORD_HASH = hash_password(DEFAULT_PASSWORD)


class FakeBlobStore(BlobStore):
    """In-memory blob store; uploads can be made to fail on demand."""

    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.fail_uploads = False

    async def _upload(self, local_path: Path, blob_id: str) -> str:
        if self.fail_uploads:
            raise RuntimeError("upload rejected")
        self.blobs[blob_id] = local_path.read_bytes()
        return f"https://blobs.test/{blob_id}"

    async def _delete(self, blob_id: str) -> bool:
        return self.blobs.pop(blob_id, None) is not None


@pytest.fixture(autouse=True)
def disable_rate_limits():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest_asyncio.fixture
async def test_db():
    """Create an in-memory test database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", future=True, poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    yield sessionmaker

    await engine.dispose()


@pytest.fixture
def fake_store():
    return FakeBlobStore()


def override_get_session(sessionmaker):
    """Create a dependency override for get_session."""

    async def _override():
        async with sessionmaker() as session:
            yield session

    return _override


@pytest_asyncio.fixture
async def test_app(test_db, fake_store):
    """A FastAPI app with every router, bound to the test database and blob store."""
    app = FastAPI()
    app.state.limiter = limiter
    register_exception_handlers(app)
    for router in (
        health_router,
        auth_router,
        users_router,
        videos_router,
        comments_router,
        tweets_router,
        likes_router,
        playlists_router,
        subscriptions_router,
        dashboard_router,
    ):
        app.include_router(router)

    app.dependency_overrides[get_session] = override_get_session(test_db)
    app.dependency_overrides[blob_store] = lambda: fake_store
    return app


@pytest_asyncio.fixture
async def client(test_app):
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(test_db):
    """Factory creating a user directly in the database."""

    async def _make(username: str = "alice", **overrides):
        fields = {
            "username": username,
            "email": f"{username}@example.com",
            "full_name": f"{username.capitalize()} Tester",
            "password_hash": _PASSWORD_HASH,
            "avatar_url": f"https://blobs.test/image/{username}.png",
            "avatar_blob_id": f"image/{username}.png",
        }
        fields.update(overrides)
        async with test_db() as db:
            return await crud.create_user(db, **fields)

    return _make


@pytest.fixture
def make_video(test_db, fake_store):
    """Factory creating a video whose blobs exist in the fake store."""
    counter = {"n": 0}

    async def _make(owner, title: str | None = None, **overrides):
        counter["n"] += 1
        n = counter["n"]
        video_blob = f"video/clip{n}.mp4"
        thumb_blob = f"image/thumb{n}.png"
        fake_store.blobs[video_blob] = b"video-bytes"
        fake_store.blobs[thumb_blob] = b"image-bytes"
        fields = {
            "owner_id": owner.id,
            "title": title or f"Video {n}",
            "description": f"Description of video {n}",
            "video_file_url": f"https://blobs.test/{video_blob}",
            "video_file_blob_id": video_blob,
            "thumbnail_url": f"https://blobs.test/{thumb_blob}",
            "thumbnail_blob_id": thumb_blob,
            "duration": 10.0 * n,
        }
        fields.update(overrides)
        async with test_db() as db:
            return await crud.create_video(db, **fields)

    return _make


@pytest.fixture
def auth_headers():
    """Bearer header for a user."""

    def _headers(user) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _headers
