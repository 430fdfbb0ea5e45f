# core/errors.py
"""
Error taxonomy shared by stores, the workflow engine and the HTTP views.

Every service error carries an ErrorKind so callers can branch on the kind
instead of on a specific class.
"""
from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    TRANSIENT_IO = "TRANSIENT_IO"
    UNRECOGNIZED = "UNRECOGNIZED"


class ServiceError(Exception):
    """Base class for all errors raised by the notification service."""
    kind: ErrorKind


class NotFoundError(ServiceError):
    """A cycle, report status or teacher row is absent."""
    kind = ErrorKind.NOT_FOUND


class ConflictError(ServiceError):
    """A unique constraint or a guarded status transition was violated."""
    kind = ErrorKind.CONFLICT


class TransientIOError(ServiceError):
    """The database or the chat transport call failed."""
    kind = ErrorKind.TRANSIENT_IO


class UnrecognizedError(ServiceError):
    """A value outside a fixed enumeration reached code that must handle it."""
    kind = ErrorKind.UNRECOGNIZED
