"""Application-wide constants and configuration values."""

from __future__ import annotations

from datetime import timedelta
from enum import Enum


# Database constants
class DatabaseDefaults:
    """Default database configuration."""
    POOL_SIZE = 5
    BUSY_TIMEOUT = 5000  # milliseconds


# Status enums
class PaymentStatus(str, Enum):
    """Payment row status."""
    PAID = "paid"
    DEFAULTED = "defaulted"
    PAYOUT = "payout"


class DrawStatus(str, Enum):
    """Payout draw lifecycle."""
    PENDING = "pending"
    CONFIRMED = "confirmed"


class AuditAction(str, Enum):
    """Actions written to the auth audit log."""
    LOGIN = "login"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    SIGNUP = "signup"
    USER_DELETED = "user_deleted"
    ROLE_UPDATED = "role_updated"
    PAYOUT = "payout"


class UserRole(str, Enum):
    """Role stored in ``user_roles``; members without a row are plain users."""
    USER = "user"
    ADMIN = "admin"


# Tenure payout rules
class PayoutDefaults:
    """Tenure payout configuration."""
    MONTH = timedelta(days=30)  # fixed-length month, not calendar
    MIN_TENURE_MONTHS = 12
    PREPAY_THRESHOLD = 300
    PAYOUT_AMOUNT = 300
    MAX_WINNERS = 3
    SEED_RANDOM_BYTES = 32
    UNKNOWN_EMAIL = "unknown"


# Reporting
class ReportDefaults:
    """Financial report configuration."""
    HISTOGRAM_BUCKETS = 12
    PAYMENT_LIMIT = 1000
    MEMBER_LIMIT = 2000
    AUDIT_LOG_LIMIT = 100
    UNKNOWN_EMAIL = "Unknown"


# Rate limiting
class RateLimitDefaults:
    """Rate limiting configuration."""
    AUTH_MAX_REQUESTS = 5  # per window
    API_MAX_REQUESTS = 20  # per window
    WINDOW_SECONDS = 60
