"""Per-client request rate limiting backed by the Flask cache.

Counters live in the configured flask-caching backend (``CACHE_TYPE``), not
in module-level dictionaries, so a shared backend such as Redis enforces one
limit across all workers. Each counter key carries its window number and
expires with the window.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from flask import Flask, current_app, jsonify, request

from core import get_logger
from web.config_middleware import cache

logger = get_logger(__name__)

EXEMPT_PATHS = ("/health", "/metrics")


@dataclass(frozen=True)
class RateLimiter:
    """Fixed-window counter: at most ``max_requests`` per ``window_seconds``."""

    scope: str
    max_requests: int
    window_seconds: int

    def _key(self, client: str, now: float) -> str:
        window = int(now // self.window_seconds)
        return f"ratelimit:{self.scope}:{client}:{window}"

    def check(self, client: str, now: Optional[float] = None) -> bool:
        """Count one request for ``client``; False once the limit is reached."""
        key = self._key(client, time.time() if now is None else now)
        # add is a no-op once the window exists; inc is atomic on shared backends
        cache.add(key, 0, timeout=self.window_seconds)
        count = cache.inc(key) or 0
        return count <= self.max_requests


def client_address() -> str:
    """Peer address of the request.

    Forwarding headers are only honoured through ``ProxyFix``, which
    rewrites ``remote_addr`` when ``TRUSTED_PROXIES`` is set.
    """
    return request.remote_addr or "unknown"


def limiter_for_path(path: str) -> Optional[RateLimiter]:
    config = current_app.config
    window = config["RATE_LIMIT_WINDOW"]
    if path.startswith("/admin/login"):
        return RateLimiter("auth", config["AUTH_RATE_LIMIT"], window)
    if path.startswith("/admin"):
        return RateLimiter("api", config["API_RATE_LIMIT"], window)
    return None


def init_rate_limiting(app: Flask) -> None:
    """Reject requests over the limit with HTTP 429."""

    @app.before_request
    def enforce_rate_limit():
        if not current_app.config.get("RATE_LIMIT_ENABLED", True):
            return None
        if request.path.startswith(EXEMPT_PATHS):
            return None
        limiter = limiter_for_path(request.path)
        if limiter is None:
            return None

        client = client_address()
        if limiter.check(client):
            return None
        logger.warning(f"Rate limit exceeded for {client} on {request.path}")
        return jsonify(error="Too many requests, please try again later"), 429
