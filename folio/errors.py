"""
Error Handling Module
=====================
Custom exceptions and error helpers for the Folio editor and publisher.
Provides consistent error codes, kinds and user-facing remedies.
"""

from enum import Enum
from dataclasses import dataclass
from typing import Optional


class ErrorCode(Enum):
    """Error codes for Folio."""
    # Local draft store errors (F001-F099)
    F001 = "Entity not found"
    F002 = "Validation failed"
    F003 = "Local persistence failed"

    # Remote content store errors (F100-F199)
    F100 = "Remote version conflict"
    F101 = "Remote transport failed"
    F102 = "Remote store rejected the request"
    F103 = "Publish timed out"


# Kind names used when reporting failures across the CLI and events
ERROR_KINDS = {
    ErrorCode.F001: "NotFound",
    ErrorCode.F002: "ValidationError",
    ErrorCode.F003: "SerializationError",
    ErrorCode.F100: "Conflict",
    ErrorCode.F101: "TransportError",
    ErrorCode.F102: "RemoteRejected",
    ErrorCode.F103: "Timeout",
}

REMEDIES = {
    ErrorCode.F001: "not found — check the id and retry",
    ErrorCode.F002: "invalid input — fix the highlighted field",
    ErrorCode.F003: "could not save locally — check disk space and permissions",
    ErrorCode.F100: "conflict — reload and retry",
    ErrorCode.F101: "network error — check your connection and retry",
    ErrorCode.F102: "rejected by the remote store — check your access token and permissions",
    ErrorCode.F103: "timed out — the write may still land, reload before retrying",
}


@dataclass
class FolioError(Exception):
    """Base exception for Folio with error codes."""
    code: ErrorCode
    message: str
    details: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        base = f"[{self.code.name}] {self.code.value}: {self.message}"
        if self.details:
            base += f" ({self.details})"
        if self.path:
            base += f" - Path: {self.path}"
        return base

    @property
    def kind(self) -> str:
        """Short kind name (NotFound, Conflict, ...)."""
        return ERROR_KINDS[self.code]

    @property
    def remedy(self) -> str:
        """What the author should do about this failure."""
        return REMEDIES[self.code]


class NotFoundError(FolioError):
    """A book or chapter id is unknown."""
    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            code=ErrorCode.F001,
            message=f"{entity} {entity_id!r} does not exist",
        )


class ValidationError(FolioError):
    """Empty required field, unknown field or malformed stored data."""
    def __init__(self, message: str, details: str = None, path: str = None):
        super().__init__(
            code=ErrorCode.F002,
            message=message,
            details=details,
            path=path
        )


class SerializationError(FolioError):
    """Writing the draft collection failed; the previous file is intact."""
    def __init__(self, message: str, details: str = None, path: str = None):
        super().__init__(
            code=ErrorCode.F003,
            message=message,
            details=details,
            path=path
        )


class ConflictError(FolioError):
    """The version token sent with a write is stale."""
    def __init__(self, path: str, details: str = None):
        super().__init__(
            code=ErrorCode.F100,
            message="file was modified since it was read",
            details=details,
            path=path
        )


class TransportError(FolioError):
    """Network failure or a response that could not be parsed."""
    def __init__(self, message: str, details: str = None, path: str = None):
        super().__init__(
            code=ErrorCode.F101,
            message=message,
            details=details,
            path=path
        )


class RemoteRejectedError(FolioError):
    """The remote store refused the request."""
    def __init__(self, status_code: int, details: str = None, path: str = None):
        super().__init__(
            code=ErrorCode.F102,
            message=f"HTTP {status_code}",
            details=details,
            path=path
        )
        self.status_code = status_code


class PublishTimeoutError(FolioError):
    """A wrapping timeout expired before the step finished."""
    def __init__(self, timeout: float, path: str = None):
        super().__init__(
            code=ErrorCode.F103,
            message=f"no result after {timeout:g}s",
            path=path
        )


# ===========================================
# Utility Functions
# ===========================================

def describe_failure(error: BaseException) -> str:
    """
    Describe a failure for the author, naming its distinguishing cause.

    Args:
        error: The exception carried by a failed operation

    Returns:
        Remedy text followed by the error detail
    """
    if isinstance(error, FolioError):
        return f"{error.remedy} ({error})"
    return f"unexpected error — {error}"
