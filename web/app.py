"""Flask application factory with security and metrics defaults."""

from __future__ import annotations

from typing import Optional

from flask import Flask, jsonify, redirect, url_for
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from config import Config, load_config
from services.audit_service import AuditService
from services.payout_service import PayoutManager, PayoutRules
from services.reports import ReportService
from services.user_service import UserService
from web.auth import AdminCredentials, init_login_manager
from web.config_middleware import (
    configure_app,
    setup_extensions,
    setup_security_headers,
    setup_metrics,
    setup_proxy_fix,
)
from web.rate_limit import init_rate_limiting
from web.routes import register_routes


def create_app(config: Optional[Config] = None, testing: bool = False) -> Flask:
    """Create and configure Flask application.

    The database pool and the background asyncio loop are started by the
    caller (see ``main.py``); the app only wires services and routes.

    Args:
        config: Application configuration, loaded from the environment if omitted
        testing: Whether running in testing mode

    Returns:
        Configured Flask application
    """
    config = config or load_config()
    app = Flask(__name__)

    configure_app(app, config, testing)
    setup_proxy_fix(app, config.trusted_proxies)
    setup_extensions(app, config, testing)

    # Middleware
    setup_security_headers(app)
    setup_metrics(app)
    init_rate_limiting(app)

    credentials = AdminCredentials(
        username=config.admin_username,
        password_hash=config.admin_password
    )
    init_login_manager(app, credentials)

    audit_service = AuditService()
    app.config.update(
        PAYOUT_MANAGER=PayoutManager(rules=PayoutRules.from_config(config)),
        REPORT_SERVICE=ReportService(
            payment_limit=config.report_payment_limit,
            member_limit=config.report_member_limit,
        ),
        AUDIT_SERVICE=audit_service,
        USER_SERVICE=UserService(audit=audit_service),
    )

    register_routes(app)
    _setup_routes(app)
    _setup_error_handlers(app)

    return app


def _setup_routes(app: Flask) -> None:
    @app.route('/')
    def root():
        return redirect(url_for('admin.dashboard'))

    @app.route('/metrics')
    def metrics():
        """Expose Prometheus metrics."""
        return generate_latest(), 200, {'Content-Type': CONTENT_TYPE_LATEST}


def _setup_error_handlers(app: Flask) -> None:
    @app.errorhandler(404)
    def not_found(error):
        return jsonify(error="Not found"), 404

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Internal server error: {error}")
        return jsonify(error="Internal server error"), 500
