"""Authentication utilities for the admin API.

A single configured admin account guards every ``/admin`` endpoint. Member
accounts are managed by the external auth provider and never log in here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from flask import jsonify
from flask_login import LoginManager, UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

logger = logging.getLogger(__name__)


@dataclass
class AdminCredentials:
    """Admin credentials for accessing the admin API."""
    username: str
    password_hash: str


login_manager = LoginManager()


class AdminUser(UserMixin):
    """Represents an authenticated admin user."""
    def __init__(self, username: str) -> None:
        self.id = username
        self.username = username


def init_login_manager(app, credentials: AdminCredentials) -> AdminCredentials:
    """Initialize the Flask-Login manager with admin credentials.

    Args:
        app: Flask application instance
        credentials: Admin credentials containing username and password or hash

    Returns:
        Updated credentials with properly hashed password
    """
    logger.info(
        "Initializing login manager with credentials: username='%s', password_hash='<hidden>'",
        credentials.username,
    )

    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> Optional[AdminUser]:
        if user_id == credentials.username:
            return AdminUser(username=user_id)
        return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify(error="Authentication required"), 401

    # Plain passwords from the environment are hashed once at startup
    if not credentials.password_hash.startswith(("pbkdf2:", "scrypt:")):
        credentials.password_hash = generate_password_hash(credentials.password_hash)
        logger.info("Password hashed for admin user '%s'", credentials.username)

    app.config["ADMIN_CREDENTIALS"] = credentials
    return credentials


def validate_credentials(credentials: AdminCredentials, username: str, password: str) -> bool:
    """Validate admin credentials.

    Args:
        credentials: Admin credentials to validate against
        username: Username provided by user
        password: Password provided by user

    Returns:
        True if credentials are valid, False otherwise
    """
    if username.lower() != credentials.username.lower():
        logger.info("Rejected admin login for unknown username '%s'", username)
        return False

    result = check_password_hash(credentials.password_hash, password)
    if not result:
        logger.info("Rejected admin login for '%s': wrong password", username)
    return result
