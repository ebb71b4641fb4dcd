"""Staging of multipart uploads on local disk before they reach the blob store."""

import logging
import uuid
from pathlib import Path

from fastapi import HTTPException, UploadFile

from viztube.config import get_settings
from viztube.storage import BlobStore, BlobStoreError, StoredBlob

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def has_file(upload: UploadFile | None) -> bool:
    """True if the multipart field actually carried a file."""
    return upload is not None and bool(upload.filename)


async def stage_upload(upload: UploadFile, field: str) -> Path:
    """Write an uploaded file into the temp directory under a unique name."""
    temp_dir = Path(get_settings().upload_temp_dir)
    temp_dir.mkdir(parents=True, exist_ok=True)

    suffix = Path(upload.filename or "").suffix.lower()
    path = temp_dir / f"{field}-{uuid.uuid4().hex}{suffix}"

    try:
        with path.open("wb") as fh:
            while chunk := await upload.read(CHUNK_SIZE):
                fh.write(chunk)
    except Exception:
        path.unlink(missing_ok=True)
        raise
    finally:
        await upload.close()
    return path


async def upload_media(
    store: BlobStore, upload: UploadFile, field: str, label: str
) -> StoredBlob:
    """Stage ``upload`` and push it to the blob store.

    Raises:
        HTTPException: 500 if the blob store rejected the file
    """
    path = await stage_upload(upload, field)
    try:
        return await store.store(path)
    except BlobStoreError:
        logger.error(f"Failed to upload {label}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to upload {label}")
