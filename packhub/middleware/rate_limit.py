"""Rate limiting middleware.

Per-client-IP sliding window limit for a set of path prefixes; other paths
pass through untouched.
"""

from litestar.types import ASGIApp, Receive, Scope, Send

from packhub.lib.client_ip import get_client_ip
from packhub.lib.sliding_window import SlidingWindowCounter


class RateLimitMiddleware:
    """ASGI middleware that enforces per-IP request limits on selected paths.

    Args:
        app: The ASGI application to wrap.
        paths: Path prefixes the limit applies to.
        requests: Requests allowed per window and IP.
        window: Window length in seconds.
    """

    def __init__(
        self,
        app: ASGIApp,
        paths: list[str],
        requests: int = 15,
        window: float = 900.0,
    ) -> None:
        self.app = app
        self.paths = list(paths)
        self.requests = requests
        self._counter = SlidingWindowCounter(window=window, cleanup_interval=window)

    def _match(self, path: str) -> str | None:
        best_match = None
        for prefix in self.paths:
            if path.startswith(prefix) and len(prefix) > len(best_match or ""):
                best_match = prefix
        return best_match

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        prefix = self._match(scope.get("path", "/"))
        if prefix is None:
            await self.app(scope, receive, send)
            return

        ip = get_client_ip(scope)
        allowed, retry_after = self._counter.check_and_record(f"{ip}:{prefix}", self.requests)

        if not allowed:
            await send({
                "type": "http.response.start",
                "status": 429,
                "headers": [
                    (b"content-type", b"text/plain; charset=utf-8"),
                    (b"retry-after", str(retry_after).encode()),
                ],
            })
            await send({
                "type": "http.response.body",
                "body": b"Too many requests from this IP, please try again later",
            })
            return

        await self.app(scope, receive, send)
