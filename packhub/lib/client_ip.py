"""Client IP extraction from ASGI scope."""

from litestar.types import Scope


def get_client_ip(scope: Scope) -> str:
    """Extract client IP, checking x-forwarded-for first.

    IPv4-mapped IPv6 addresses (``::ffff:1.2.3.4``) are reported as plain IPv4.
    """
    headers = dict(scope.get("headers", []))
    forwarded = headers.get(b"x-forwarded-for")
    if forwarded:
        ip = forwarded.decode().split(",")[0].strip()
    else:
        client = scope.get("client")
        ip = client[0] if client else "unknown"
    if ip.startswith("::ffff:"):
        return ip[len("::ffff:"):]
    return ip
