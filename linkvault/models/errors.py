"""Error taxonomy shared by the archival services."""

from __future__ import annotations

import errno
from enum import StrEnum


class ErrorKind(StrEnum):
    """Coarse failure category surfaced to callers instead of exceptions."""

    NOT_FOUND = "not_found"
    CORRUPT = "corrupt"
    NEEDS_PASSWORD = "needs_password"
    ACCESS_DENIED = "access_denied"
    PATH_TOO_LONG = "path_too_long"
    IO_ERROR = "io_error"
    VALIDATION_MISMATCH = "validation_mismatch"
    CANCELLED = "cancelled"
    OTHER = "other"


def classify_os_error(exc: BaseException) -> ErrorKind:
    """Map an exception raised by a filesystem call to an ErrorKind."""
    if isinstance(exc, PermissionError):
        return ErrorKind.ACCESS_DENIED
    if isinstance(exc, (FileNotFoundError, NotADirectoryError)):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, OSError):
        if exc.errno == errno.ENAMETOOLONG:
            return ErrorKind.PATH_TOO_LONG
        return ErrorKind.IO_ERROR
    return ErrorKind.OTHER


def describe_os_error(exc: BaseException) -> str:
    """Short human-readable message for an exception (no traceback)."""
    kind = classify_os_error(exc)
    detail = exc.strerror if isinstance(exc, OSError) and exc.strerror else str(exc)
    if kind is ErrorKind.ACCESS_DENIED:
        return f"Access denied: {detail}"
    if kind is ErrorKind.NOT_FOUND:
        return f"Not found: {detail}"
    if kind is ErrorKind.PATH_TOO_LONG:
        return "Path is too long"
    if kind is ErrorKind.IO_ERROR:
        return f"IO error: {detail}"
    return detail
