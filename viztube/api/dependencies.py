"""FastAPI dependencies and helpers shared by the API routers."""

import uuid
from dataclasses import dataclass

from fastapi import HTTPException, Query

from viztube.config import get_settings
from viztube.storage import BlobStore, get_blob_store

# Largest row offset a 64-bit SQL integer can hold
MAX_OFFSET = 2**63 - 1


def blob_store() -> BlobStore:
    """Dependency returning the configured blob store."""
    return get_blob_store(get_settings())


def parse_object_id(value: str, label: str = "ID") -> str:
    """Validate an entity identifier taken from the path or query.

    Raises:
        HTTPException: 400 if ``value`` is not a UUID
    """
    try:
        return str(uuid.UUID(value))
    except (ValueError, AttributeError, TypeError):
        raise HTTPException(status_code=400, detail=f"Invalid {label}")


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int


def pagination(
    page: str = Query(default="1", description="Page number, starting at 1"),
    limit: str | None = Query(default=None, description="Items per page"),
) -> Pagination:
    """Coerce ``page``/``limit`` query strings to positive integers.

    Raises:
        HTTPException: 400 if either is not a positive integer, the limit
            exceeds the configured maximum or the page lies past any
            addressable row
    """
    settings = get_settings()
    try:
        page_number = int(page)
        page_size = int(limit) if limit is not None else settings.page_size_default
    except ValueError:
        raise HTTPException(status_code=400, detail="page and limit must be integers")

    if page_number < 1 or page_size < 1:
        raise HTTPException(status_code=400, detail="page and limit must be positive")
    if page_size > settings.page_size_max:
        raise HTTPException(
            status_code=400,
            detail=f"limit cannot exceed {settings.page_size_max}",
        )
    if (page_number - 1) * page_size > MAX_OFFSET:
        raise HTTPException(status_code=400, detail="page is out of range")
    return Pagination(page=page_number, limit=page_size)
