"""Application-wide exception classes."""

from __future__ import annotations


class ApplicationError(Exception):
    """Base exception for all application errors."""
    pass


class ConfigurationError(ApplicationError):
    """Raised when configuration is invalid."""
    pass


class DatabaseError(ApplicationError):
    """Base exception for database-related errors."""
    pass


class ConnectionPoolError(DatabaseError):
    """Raised when database connection pool has issues."""
    pass


class DataFetchError(DatabaseError):
    """Raised when a read query against the row store fails."""
    pass


class WriteError(DatabaseError):
    """Raised when payout or audit rows could not be written."""
    pass


class ServiceError(ApplicationError):
    """Base exception for service-level errors."""
    pass


class PayoutError(ServiceError):
    """Base exception for tenure payout operations."""
    pass


class DrawNotFoundError(PayoutError):
    """Raised when a payout draw does not exist."""
    pass


class DrawAlreadyConfirmedError(PayoutError):
    """Raised when a payout draw has already been paid out."""
    pass


class StaleDrawError(PayoutError):
    """Raised when confirming a draw that is not the session's latest one."""
    pass



class UserError(ServiceError):
    """Base exception for member account management."""
    pass


class UserNotFoundError(UserError):
    """Raised when a member does not exist."""
    pass


class InvalidRoleError(UserError):
    """Raised when a role outside UserRole is requested."""
    pass
