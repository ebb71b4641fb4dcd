"""Tests for the blob store adapters and upload staging."""

from io import BytesIO
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException, UploadFile

import viztube.storage as storage
from viztube.api.uploads import has_file, stage_upload, upload_media
from viztube.storage import (
    BlobStoreError,
    GCSBlobStore,
    LocalBlobStore,
    blob_kind,
    detect_kind,
    get_blob_store,
)


@pytest.fixture
def local_settings(tmp_path):
    settings = MagicMock()
    settings.media_local_path = str(tmp_path / "media")
    settings.media_url_base = "http://localhost:8000/"
    settings.blob_store_backend = "local"
    return settings


def _staged(tmp_path, name: str, content: bytes = b"data"):
    path = tmp_path / name
    path.write_bytes(content)
    return path


def test_detect_kind():
    assert detect_kind(storage.Path("clip.mp4")) == "video"
    assert detect_kind(storage.Path("photo.JPG")) == "image"
    assert detect_kind(storage.Path("notes.bin")) == "raw"
    assert blob_kind("image/abc.png") == "image"


@pytest.mark.asyncio
async def test_local_store_and_remove(tmp_path, local_settings):
    store = LocalBlobStore(local_settings)
    staged = _staged(tmp_path, "photo.png", b"png-bytes")

    blob = await store.store(staged)

    assert blob.kind == "image"
    assert blob.blob_id.startswith("image/") and blob.blob_id.endswith(".png")
    assert blob.url == f"http://localhost:8000/media/{blob.blob_id}"
    assert not staged.exists()
    stored = tmp_path / "media" / blob.blob_id
    assert stored.read_bytes() == b"png-bytes"

    assert await store.remove(blob.blob_id, "image") is True
    assert not stored.exists()
    assert await store.remove(blob.blob_id, "image") is False


@pytest.mark.asyncio
async def test_store_missing_file(tmp_path, local_settings):
    store = LocalBlobStore(local_settings)

    with pytest.raises(BlobStoreError):
        await store.store(tmp_path / "missing.png")


@pytest.mark.asyncio
async def test_failed_upload_still_removes_temp_file(tmp_path, local_settings):
    store = LocalBlobStore(local_settings)
    staged = _staged(tmp_path, "clip.mp4")

    async def broken_upload(local_path, blob_id):
        raise OSError("disk full")

    store._upload = broken_upload

    with pytest.raises(BlobStoreError):
        await store.store(staged)
    assert not staged.exists()


@pytest.mark.asyncio
async def test_remove_refuses_kind_mismatch(tmp_path, local_settings):
    store = LocalBlobStore(local_settings)
    blob = await store.store(_staged(tmp_path, "clip.mp4"))

    assert await store.remove(blob.blob_id, "image") is False
    assert await store.remove(None) is False
    assert (tmp_path / "media" / blob.blob_id).exists()


@pytest.mark.asyncio
async def test_remove_never_raises(tmp_path, local_settings):
    store = LocalBlobStore(local_settings)

    # Path traversal is rejected inside the backend and reported as a failure
    assert await store.remove("image/../../etc/passwd", "image") is False


def test_get_blob_store_singleton(monkeypatch, local_settings):
    monkeypatch.setattr(storage, "_blob_store", None)

    first = get_blob_store(local_settings)

    assert isinstance(first, LocalBlobStore)
    assert get_blob_store(local_settings) is first


def test_get_blob_store_unknown_backend(monkeypatch, local_settings):
    monkeypatch.setattr(storage, "_blob_store", None)
    local_settings.blob_store_backend = "ftp"

    with pytest.raises(ValueError, match="Unknown blob store backend"):
        get_blob_store(local_settings)


def test_gcs_store_requires_bucket():
    settings = MagicMock()
    settings.gcs_bucket_name = ""

    with pytest.raises(ValueError, match="bucket name is required"):
        GCSBlobStore(settings)


# Upload staging


def _upload(name: str | None, content: bytes = b"payload") -> UploadFile:
    return UploadFile(file=BytesIO(content), filename=name)


def test_has_file():
    assert has_file(_upload("a.png"))
    assert not has_file(_upload(""))
    assert not has_file(None)


@pytest.mark.asyncio
async def test_stage_upload_writes_temp_file():
    path = await stage_upload(_upload("Photo.PNG", b"abc"), "avatar")

    assert path.name.startswith("avatar-")
    assert path.suffix == ".png"
    assert path.read_bytes() == b"abc"
    path.unlink()


class _DroppedConnection(BytesIO):
    """File object that fails after handing out the first chunk."""

    def read(self, size=-1):
        if self.tell():
            raise OSError("connection reset")
        return super().read(3)


@pytest.mark.asyncio
async def test_stage_upload_removes_partial_file(tmp_path, monkeypatch):
    monkeypatch.setattr(
        "viztube.api.uploads.get_settings",
        lambda: MagicMock(upload_temp_dir=str(tmp_path)),
    )
    upload = UploadFile(file=_DroppedConnection(b"abcdef"), filename="clip.mp4")

    with pytest.raises(OSError):
        await stage_upload(upload, "videoFile")

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_upload_media_maps_store_errors(tmp_path, local_settings):
    store = LocalBlobStore(local_settings)

    async def broken_upload(local_path, blob_id):
        raise OSError("disk full")

    store._upload = broken_upload

    with pytest.raises(HTTPException) as exc_info:
        await upload_media(store, _upload("clip.mp4"), "videoFile", "video file")

    assert exc_info.value.status_code == 500
    assert exc_info.value.detail == "Failed to upload video file"
