"""Rate limiting for the anonymous portal and the draft assistant (slowapi).

Limits are read from settings on every request, so they can be changed
without re-decorating the routes.
"""

from fastapi import Request
from slowapi import Limiter

from .config import settings


def client_ip(request: Request) -> str:
    """Client IP, honouring X-Forwarded-For behind a reverse proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def portal_view_limit() -> str:
    return settings.rate_limit_portal_view


def portal_submit_limit() -> str:
    return settings.rate_limit_portal_submit


def drafts_limit() -> str:
    return settings.rate_limit_drafts


limiter = Limiter(key_func=client_ip)
