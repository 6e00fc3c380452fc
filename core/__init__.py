"""Core application components."""

# Import in correct order to avoid circular dependencies
from core.logger import setup_logger, get_logger
from core.constants import (
    DatabaseDefaults,
    PaymentStatus,
    DrawStatus,
    AuditAction,
    UserRole,
    PayoutDefaults,
    ReportDefaults,
    RateLimitDefaults,
)
from core.exceptions import (
    ApplicationError,
    ConfigurationError,
    DatabaseError,
    DataFetchError,
    WriteError,
    ServiceError,
    PayoutError,
    UserError,
)

__all__ = [
    # Logging
    'setup_logger',
    'get_logger',
    # Constants
    'DatabaseDefaults',
    'PaymentStatus',
    'DrawStatus',
    'AuditAction',
    'UserRole',
    'PayoutDefaults',
    'ReportDefaults',
    'RateLimitDefaults',
    # Exceptions
    'ApplicationError',
    'ConfigurationError',
    'DatabaseError',
    'DataFetchError',
    'WriteError',
    'ServiceError',
    'PayoutError',
    'UserError',
]
