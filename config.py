"""Application configuration module.

Reads settings from environment variables (optionally from a ``.env`` file)
with defaults that match the tenure payout rules of the membership program.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from core.constants import DatabaseDefaults, PayoutDefaults, RateLimitDefaults, ReportDefaults
from core.exceptions import ConfigurationError

load_dotenv()

DEFAULT_ADMIN_PASSWORD = "123456"
DEFAULT_SECRET_KEY = "production_secret_key_must_be_changed_in_production_environment"
INSECURE_ADMIN_PASSWORDS = frozenset({DEFAULT_ADMIN_PASSWORD, "secure_password_change_me"})


def _get_bool(name: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _get_int(name: str, default: int) -> int:
    """Get integer from environment variable with fallback."""
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_str(name: str, default: str = "") -> str:
    """Get string from environment variable."""
    return os.getenv(name, default)


@dataclass(frozen=True)
class Config:
    admin_username: str
    admin_password: str
    environment: str
    debug: bool
    web_host: str
    web_port: int
    secret_key: str
    trusted_proxies: int
    database_path: str
    log_folder: str
    db_pool_size: int
    db_busy_timeout: int

    # Tenure payout rules
    min_tenure_months: int
    prepay_threshold: int
    payout_amount: int
    max_winners: int

    # Reports
    report_payment_limit: int
    report_member_limit: int

    # Rate limiting
    rate_limit_enabled: bool
    auth_rate_limit: int
    api_rate_limit: int
    rate_limit_window: int
    cache_type: str
    cache_redis_url: Optional[str]


def load_config() -> Config:
    """Load application configuration from environment variables.

    Returns:
        Config: Application configuration with validated values

    Raises:
        ConfigurationError: A setting is out of range, or production runs
            with the default admin password or secret key
    """
    config = Config(
        admin_username=_get_str("ADMIN_USERNAME", "admin"),
        admin_password=_get_str("ADMIN_PASSWORD", DEFAULT_ADMIN_PASSWORD),
        environment=_get_str("ENVIRONMENT", "development"),
        debug=_get_bool("DEBUG", False),
        web_host=_get_str("WEB_HOST", "0.0.0.0"),
        web_port=_get_int("WEB_PORT", 5000),
        secret_key=_get_str("SECRET_KEY", DEFAULT_SECRET_KEY),
        trusted_proxies=_get_int("TRUSTED_PROXIES", 0),
        database_path=_get_str("DATABASE_PATH", "data/tenure_rewards.sqlite"),
        log_folder=_get_str("LOG_FOLDER", "logs"),
        db_pool_size=_get_int("DB_POOL_SIZE", DatabaseDefaults.POOL_SIZE),
        db_busy_timeout=_get_int("DB_BUSY_TIMEOUT", DatabaseDefaults.BUSY_TIMEOUT),
        min_tenure_months=_get_int("MIN_TENURE_MONTHS", PayoutDefaults.MIN_TENURE_MONTHS),
        prepay_threshold=_get_int("PREPAY_THRESHOLD", PayoutDefaults.PREPAY_THRESHOLD),
        payout_amount=_get_int("PAYOUT_AMOUNT", PayoutDefaults.PAYOUT_AMOUNT),
        max_winners=_get_int("MAX_WINNERS", PayoutDefaults.MAX_WINNERS),
        report_payment_limit=_get_int("REPORT_PAYMENT_LIMIT", ReportDefaults.PAYMENT_LIMIT),
        report_member_limit=_get_int("REPORT_MEMBER_LIMIT", ReportDefaults.MEMBER_LIMIT),
        rate_limit_enabled=_get_bool("RATE_LIMIT_ENABLED", True),
        auth_rate_limit=_get_int("AUTH_RATE_LIMIT", RateLimitDefaults.AUTH_MAX_REQUESTS),
        api_rate_limit=_get_int("API_RATE_LIMIT", RateLimitDefaults.API_MAX_REQUESTS),
        rate_limit_window=_get_int("RATE_LIMIT_WINDOW", RateLimitDefaults.WINDOW_SECONDS),
        cache_type=_get_str("CACHE_TYPE", "SimpleCache"),
        cache_redis_url=os.getenv("CACHE_REDIS_URL"),
    )
    _validate(config)
    return config


def _validate(config: Config) -> None:
    if config.max_winners < 1:
        raise ConfigurationError("MAX_WINNERS must be at least 1")
    if config.db_pool_size < 1:
        raise ConfigurationError("DB_POOL_SIZE must be at least 1")
    if config.rate_limit_window < 1:
        raise ConfigurationError("RATE_LIMIT_WINDOW must be a positive number of seconds")
    if config.min_tenure_months < 0 or config.prepay_threshold < 0 or config.payout_amount < 0:
        raise ConfigurationError("Payout rules must not be negative")
    if config.trusted_proxies < 0:
        raise ConfigurationError("TRUSTED_PROXIES must not be negative")
    if config.environment == "production":
        if config.admin_password in INSECURE_ADMIN_PASSWORDS:
            raise ConfigurationError("Set ADMIN_PASSWORD before running in production")
        if config.secret_key == DEFAULT_SECRET_KEY:
            raise ConfigurationError("Set SECRET_KEY before running in production")
