"""Exception handlers rendering JSON error bodies."""

import logging

from litestar import Request, Response
from litestar.exceptions import HTTPException
from litestar.status_codes import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from packhub.lib import observability
from packhub.lib.storage.base import (
    AssetNotFound,
    InvalidChunkRange,
    InvalidFilename,
    MissingChunk,
    StorageError,
    StorageWriteFailure,
)

logger = logging.getLogger(__name__)

STORAGE_ERROR_STATUS: dict[type[StorageError], int] = {
    InvalidFilename: HTTP_400_BAD_REQUEST,
    InvalidChunkRange: HTTP_400_BAD_REQUEST,
    MissingChunk: HTTP_409_CONFLICT,
    AssetNotFound: HTTP_404_NOT_FOUND,
    StorageWriteFailure: HTTP_500_INTERNAL_SERVER_ERROR,
}


def _json_error(status_code: int, detail: str) -> Response:
    return Response(
        content={"status_code": status_code, "detail": detail},
        status_code=status_code,
        media_type="application/json",
    )


def http_exception_handler(request: Request, exc: HTTPException) -> Response:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _json_error(exc.status_code, detail)


def storage_error_handler(request: Request, exc: StorageError) -> Response:
    """Map storage failures to client or server errors."""
    status_code = HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in STORAGE_ERROR_STATUS.items():
        if isinstance(exc, error_type):
            status_code = code
            break

    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    else:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return _json_error(status_code, str(exc))


def internal_server_error_handler(request: Request, exc: Exception) -> Response:
    """Log unexpected exceptions and hide their details from the client."""
    if not observability.exception(
        "Unhandled exception on {method} {path}",
        method=request.method,
        path=request.url.path,
    ):
        logger.error(
            "Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc
        )
    return _json_error(HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")


EXCEPTION_HANDLERS = {
    HTTPException: http_exception_handler,
    StorageError: storage_error_handler,
    Exception: internal_server_error_handler,
}
