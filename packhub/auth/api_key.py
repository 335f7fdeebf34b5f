"""Static API key stored in a JSON token file."""

from __future__ import annotations

import hmac
import json
import logging
import secrets
from pathlib import Path
from typing import TYPE_CHECKING

from litestar.exceptions import NotAuthorizedException

if TYPE_CHECKING:
    from litestar.connection import ASGIConnection
    from litestar.handlers.base import BaseRouteHandler

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"


def generate_token() -> str:
    return secrets.token_hex(64)


def read_api_token(path: Path) -> str | None:
    """Return the token stored at *path*, or None if missing, unreadable or empty."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    token = data.get("token") if isinstance(data, dict) else None
    return token or None


def write_api_token(path: Path, token: str) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"token": token}, indent=4), encoding="utf-8")


def ensure_api_token(path: Path, rotate: bool = False) -> str:
    """Load the API token, generating and persisting a new one when absent."""
    token = None if rotate else read_api_token(path)
    if token:
        logger.info("Using existing API key from %s", path)
        return token

    token = generate_token()
    write_api_token(path, token)
    logger.info("Generated API key at %s", path)
    return token


def api_key_guard(connection: ASGIConnection, _: BaseRouteHandler) -> None:
    """Reject requests whose API key header does not match the configured token."""
    expected = getattr(connection.app.state, "api_token", None)
    header = getattr(connection.app.state, "api_key_header", API_KEY_HEADER)
    values = connection.headers.getall(header, [])

    if not values:
        raise NotAuthorizedException(detail="API key is required")
    if len(values) > 1:
        raise NotAuthorizedException(detail="Invalid API key format")
    if not expected or not hmac.compare_digest(values[0], expected):
        raise NotAuthorizedException(detail="Invalid API key")
