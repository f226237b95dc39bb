"""
Per-IP request limiter (slowapi) for the unauthenticated API-key endpoints.

create_app() builds one Limiter per application from its AppSettings,
attaches it to app.state and hands it to the routes it protects.
errors.register_error_handlers() renders its RateLimitExceeded as a 429.

Counters are kept in Redis when REDIS_URI is configured and in process memory
otherwise (and whenever Redis is unreachable).
"""

from __future__ import annotations

from slowapi import Limiter
from starlette.requests import Request

from config import AppSettings, RedisSettings

# Proxy headers checked in priority order before the socket address
_CLIENT_IP_HEADERS = (
    "CF-Connecting-IP",
    "True-Client-IP",
    "X-Forwarded-For",
    "X-Real-IP",
)


def client_ip_key(request: Request) -> str:
    """Rate-limit key: the originating client IP behind any reverse proxy."""
    for header in _CLIENT_IP_HEADERS:
        value = request.headers.get(header)
        if value:
            first = value.split(",")[0].strip()
            if first:
                return first
    return request.client.host if request.client else "unknown"


def limiter_storage_uri(settings: RedisSettings) -> str:
    return settings.redis_uri or "memory://"


def build_limiter(settings: AppSettings) -> Limiter:
    return Limiter(
        key_func=client_ip_key,
        storage_uri=limiter_storage_uri(settings.redis),
        in_memory_fallback_enabled=True,
    )
