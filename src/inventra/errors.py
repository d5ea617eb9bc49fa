"""
Error taxonomy for the data-access layer.

Every error raised deliberately by inventra is an AppError subclass. The
HTTP status and code are informational for an upstream translator; this
package never builds responses itself.
"""

from typing import Any


class AppError(Exception):
    """Base class for tagged application errors."""

    status = 500
    code = "GENERAL_ERROR"
    type = "GeneralError"
    is_expected = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "status": self.status,
            "type": self.type,
            "code": self.code,
            "isExpected": self.is_expected,
            "details": self.details or None,
        }


class ValidationError(AppError):
    """Unsafe identifier, disallowed table, or malformed input value."""

    status = 400
    code = "VALIDATION_ERROR"
    type = "ValidationError"
    is_expected = True


class NotFoundError(AppError):
    """Zero rows where exactly one was expected."""

    status = 404
    code = "RESOURCE_NOT_FOUND"
    type = "NotFoundError"
    is_expected = True


class ConflictError(AppError):
    """A conditional mutation matched zero rows because it lost a race."""

    status = 409
    code = "CONFLICT_ERROR"
    type = "ConflictError"
    is_expected = True


class DataIntegrityError(AppError):
    """More than one row where the schema guarantees uniqueness."""

    status = 500
    code = "DATA_INTEGRITY_ERROR"
    type = "DataIntegrityError"


class DatabaseError(AppError):
    """Any other failure of the underlying database."""

    status = 500
    code = "DATABASE_ERROR"
    type = "DatabaseError"
