"""Access log middleware writing one line per HTTP request."""

import logging
import time
from datetime import datetime

from litestar.types import ASGIApp, Message, Receive, Scope, Send

from packhub.lib.client_ip import get_client_ip
from packhub.lib.logging_cfg import REQUEST_LOGGER

logger = logging.getLogger(REQUEST_LOGGER)


def format_request_line(
    method: str,
    path: str,
    ip: str,
    status: int,
    duration_ms: int,
    when: datetime | None = None,
) -> str:
    when = when or datetime.now()
    outcome = "SUCCESS" if 200 <= status < 400 else "FAILURE"
    return (
        f"{when:%Y-%m-%d %H:%M:%S} - {method} {path} - IP: {ip} - "
        f"Status: {status} - {outcome} - Duration: {duration_ms}ms"
    )


class RequestLogMiddleware:
    """Log method, path, client IP, status and duration after each response starts."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.monotonic()
        status = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            path = scope.get("path", "/")
            query = scope.get("query_string", b"")
            if query:
                path = f"{path}?{query.decode('latin-1')}"
            duration_ms = int((time.monotonic() - start) * 1000)
            logger.info(
                format_request_line(
                    scope.get("method", "GET"), path, get_client_ip(scope), status, duration_ms
                )
            )
