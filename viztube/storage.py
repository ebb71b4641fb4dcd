"""Blob store adapter for uploaded media (local disk or Google Cloud Storage).

Uploads arrive as temporary files staged on local disk. ``store`` hands one to
the backend and always removes the temporary file, whether the upload worked
or not. ``remove`` is best-effort: failures are logged and reported as
``False``, never raised.
"""

import asyncio
import logging
import mimetypes
import shutil
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from viztube.config import Settings

logger = logging.getLogger(__name__)

BLOB_KINDS = ("image", "video", "raw")


class BlobStoreError(Exception):
    """Raised when a file could not be uploaded to the blob store."""


@dataclass(frozen=True)
class StoredBlob:
    """Result of a successful upload."""

    url: str
    blob_id: str
    kind: str


def detect_kind(path: Path) -> str:
    """Resource kind of a file, derived from its extension."""
    content_type, _ = mimetypes.guess_type(path.name)
    if content_type and content_type.startswith("video/"):
        return "video"
    if content_type and content_type.startswith("image/"):
        return "image"
    return "raw"


def blob_kind(blob_id: str) -> str:
    """Resource kind encoded in the prefix of a blob handle."""
    return blob_id.split("/", 1)[0]


def _discard(local_path: Path) -> None:
    try:
        local_path.unlink(missing_ok=True)
    except OSError:
        logger.warning(f"Could not remove staged upload: {local_path}", exc_info=True)


class BlobStore(ABC):
    """Abstract blob store for uploaded media."""

    async def store(self, local_path: str | Path) -> StoredBlob:
        """
        Upload a staged file and delete the local copy.

        Args:
            local_path: Path of the temporary file

        Returns:
            URL and deletion handle of the stored blob

        Raises:
            BlobStoreError: If the file is missing or the upload failed
        """
        path = Path(local_path)
        try:
            if not path.is_file():
                raise BlobStoreError(f"Staged upload not found: {path}")
            kind = detect_kind(path)
            blob_id = f"{kind}/{uuid.uuid4().hex}{path.suffix.lower()}"
            try:
                url = await self._upload(path, blob_id)
            except BlobStoreError:
                raise
            except Exception as e:
                logger.error(f"Blob upload failed for {path.name}", exc_info=True)
                raise BlobStoreError(f"Upload failed: {path.name}") from e
            logger.info(f"Stored blob {blob_id}")
            return StoredBlob(url=url, blob_id=blob_id, kind=kind)
        finally:
            _discard(path)

    async def remove(self, blob_id: str | None, kind: str = "image") -> bool:
        """
        Delete a blob by its handle.

        Args:
            blob_id: Handle returned by ``store``
            kind: Expected resource kind (image, video, raw)

        Returns:
            True if deleted, False if missing, mismatched or the delete failed
        """
        if not blob_id:
            return False
        if kind not in BLOB_KINDS or not blob_id.startswith(f"{kind}/"):
            logger.warning(f"Refusing to delete blob {blob_id} as kind {kind!r}")
            return False
        try:
            deleted = await self._delete(blob_id)
        except Exception:
            logger.error(f"Blob delete failed: {blob_id}", exc_info=True)
            return False
        if deleted:
            logger.info(f"Deleted blob {blob_id}")
        else:
            logger.warning(f"Blob to delete was not found: {blob_id}")
        return deleted

    @abstractmethod
    async def _upload(self, local_path: Path, blob_id: str) -> str:
        """Upload ``local_path`` under ``blob_id`` and return its public URL."""

    @abstractmethod
    async def _delete(self, blob_id: str) -> bool:
        """Delete a blob; True if deleted, False if not found."""


class LocalBlobStore(BlobStore):
    """Filesystem blob store; files are served under ``/media``."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.base_path = Path(settings.media_local_path)
        self.url_base = settings.media_url_base.rstrip("/")

        for kind in BLOB_KINDS:
            (self.base_path / kind).mkdir(parents=True, exist_ok=True)

    def _resolve(self, blob_id: str) -> Path:
        file_path = self.base_path / blob_id

        # Ensure we're not reaching outside the media directory
        if not file_path.resolve().is_relative_to(self.base_path.resolve()):
            raise BlobStoreError(f"Invalid blob id: {blob_id}")
        return file_path

    async def _upload(self, local_path: Path, blob_id: str) -> str:
        target = self._resolve(blob_id)
        await asyncio.to_thread(shutil.copyfile, local_path, target)
        return f"{self.url_base}/media/{blob_id}"

    async def _delete(self, blob_id: str) -> bool:
        file_path = self._resolve(blob_id)
        if file_path.exists():
            file_path.unlink()
            return True
        return False


class GCSBlobStore(BlobStore):
    """Google Cloud Storage blob store with public object URLs."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.bucket_name = settings.gcs_bucket_name
        self.credentials_file = settings.gcs_credentials_file

        if not self.bucket_name:
            raise ValueError("GCS bucket name is required when using GCS blob store")

        # Lazy import to avoid requiring google-cloud-storage for local-only deployments
        try:
            from google.cloud import storage
        except ImportError:
            raise ImportError(
                "google-cloud-storage is required for the GCS blob store. "
                "Install with: pip install 'viztube[gcs]'"
            )

        if self.credentials_file:
            self.client = storage.Client.from_service_account_json(self.credentials_file)
        else:
            # Default credentials (GOOGLE_APPLICATION_CREDENTIALS or metadata server)
            self.client = storage.Client()

        self.bucket = self.client.bucket(self.bucket_name)

    async def _upload(self, local_path: Path, blob_id: str) -> str:
        blob = self.bucket.blob(f"media/{blob_id}")
        content_type, _ = mimetypes.guess_type(local_path.name)
        # The SDK is blocking; keep the event loop free
        await asyncio.to_thread(
            blob.upload_from_filename, str(local_path), content_type=content_type
        )
        return blob.public_url

    async def _delete(self, blob_id: str) -> bool:
        blob = self.bucket.blob(f"media/{blob_id}")
        if not await asyncio.to_thread(blob.exists):
            return False
        await asyncio.to_thread(blob.delete)
        return True


_blob_store: BlobStore | None = None


def get_blob_store(settings: Settings) -> BlobStore:
    """
    Return the process-wide blob store for the configured backend.

    Args:
        settings: Application settings

    Returns:
        Configured blob store instance
    """
    global _blob_store
    if _blob_store is not None:
        return _blob_store

    if settings.blob_store_backend == "local":
        _blob_store = LocalBlobStore(settings)
    elif settings.blob_store_backend == "gcs":
        _blob_store = GCSBlobStore(settings)
    else:
        raise ValueError(f"Unknown blob store backend: {settings.blob_store_backend}")
    return _blob_store
