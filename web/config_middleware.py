"""Flask application configuration and middleware setup."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from flask import Flask, g, request
from flask_caching import Cache
from flask_wtf.csrf import CSRFProtect
from prometheus_client import Counter, Histogram
from werkzeug.middleware.proxy_fix import ProxyFix

if TYPE_CHECKING:
    from config import Config

# Global instances
cache = Cache()
csrf = CSRFProtect()

# Prometheus metrics
REQUEST_LATENCY = Histogram(
    "http_request_latency_seconds",
    "HTTP request latency",
    ["method", "path"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total number of 5xx responses",
    ["method", "path"],
)
PAYOUT_DRAWS = Counter(
    "payout_draws_total",
    "Tenure payout draws run from the admin panel",
)
PAYOUTS_CONFIRMED = Counter(
    "payouts_confirmed_total",
    "Payout rows written by confirmed draws",
)


def configure_app(app: Flask, config: Config, testing: bool = False) -> None:
    """Configure Flask application settings.

    Args:
        app: Flask application instance
        config: Application configuration
        testing: Whether running in testing mode
    """
    app.config.update(
        SECRET_KEY=config.secret_key,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SECURE=(config.environment != 'development'),
        SESSION_COOKIE_SAMESITE='Lax',
        DATABASE_PATH=config.database_path,
        TESTING=testing,
        WTF_CSRF_ENABLED=not testing,
        WTF_CSRF_TIME_LIMIT=None,
        RATE_LIMIT_ENABLED=config.rate_limit_enabled,
        AUTH_RATE_LIMIT=config.auth_rate_limit,
        API_RATE_LIMIT=config.api_rate_limit,
        RATE_LIMIT_WINDOW=config.rate_limit_window,
    )

    if config.environment == 'production' and config.cache_type == "SimpleCache":
        app.logger.warning("Rate limit counters use the in-process SimpleCache; set CACHE_TYPE for multi-worker deployments")


def setup_extensions(app: Flask, config: Config, testing: bool = False) -> None:
    """Setup Flask extensions.

    Args:
        app: Flask application instance
        config: Application configuration
        testing: Whether running in testing mode
    """
    cache_config = {"CACHE_TYPE": config.cache_type}
    if config.cache_redis_url:
        cache_config["CACHE_REDIS_URL"] = config.cache_redis_url
    cache.init_app(app, config=cache_config)

    # Initialize CSRF protection (disabled in testing)
    if not testing:
        csrf.init_app(app)


def setup_security_headers(app: Flask) -> None:
    """Setup security headers middleware.

    Args:
        app: Flask application instance
    """
    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses."""
        response.headers.setdefault('Content-Security-Policy', "default-src 'none'; frame-ancestors 'none'")
        response.headers.setdefault('X-Content-Type-Options', 'nosniff')
        response.headers.setdefault('X-Frame-Options', 'DENY')
        response.headers.setdefault('Referrer-Policy', 'same-origin')
        response.headers.setdefault('Permissions-Policy', "camera=(), microphone=(), geolocation=()")
        return response


def setup_metrics(app: Flask) -> None:
    """Setup Prometheus metrics middleware.

    Args:
        app: Flask application instance
    """
    @app.before_request
    def before_metrics():
        """Store request start time."""
        g._metrics_start = time.time()

    @app.after_request
    def after_metrics(response):
        """Record request metrics."""
        start = getattr(g, '_metrics_start', None)
        path = getattr(request.url_rule, 'rule', request.path)
        if start is not None:
            duration = time.time() - start
            REQUEST_LATENCY.labels(method=request.method, path=path).observe(duration)
            if duration > 1.0:
                app.logger.warning(f"Slow request: {request.method} {request.path} took {duration:.2f}s")
            response.headers['X-Response-Time'] = f"{duration:.3f}s"

        # Record 5xx errors
        if response.status_code >= 500:
            REQUEST_ERRORS.labels(method=request.method, path=path).inc()
        return response


def setup_proxy_fix(app: Flask, trusted_proxies: int) -> None:
    """Trust ``X-Forwarded-*`` headers from ``trusted_proxies`` reverse proxies.

    With no trusted proxies the headers are ignored and clients are keyed by
    the socket peer address.
    """
    if trusted_proxies < 1:
        return
    app.wsgi_app = ProxyFix(
        app.wsgi_app,
        x_for=trusted_proxies,
        x_proto=trusted_proxies,
        x_host=trusted_proxies,
    )
