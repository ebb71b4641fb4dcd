"""The response envelope shared by every endpoint.

Successful responses look like ``{statusCode, message, data, success}`` and
error responses add ``errors`` with ``data`` set to null.
"""

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(
    data: Any = None, message: str = "Success", status_code: int = 200
) -> JSONResponse:
    """Wrap ``data`` (models are serialized with their camelCase aliases)."""
    return JSONResponse(
        status_code=status_code,
        content={
            "statusCode": status_code,
            "message": message,
            "data": jsonable_encoder(data, by_alias=True),
            "success": status_code < 400,
        },
    )


def error_response(
    status_code: int,
    message: str,
    errors: list[Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "statusCode": status_code,
            "message": message,
            "data": None,
            "success": False,
            "errors": jsonable_encoder(errors or []),
        },
        headers=headers,
    )
