"""Error taxonomy for the filegate filesystem layer.

Every error carries an explicit ``kind`` tag.  Callers dispatch on the tag
(``match err.kind: ...``) rather than on the concrete exception class or on
the underlying ``OSError`` subtype.
"""

from __future__ import annotations

import errno
from enum import Enum


class ErrorKind(str, Enum):
    """Discriminant carried by every :class:`FileGateError`."""

    PATH_INVALID = "path_invalid"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    INTERNAL = "internal"
    TOO_LARGE = "too_large"

    @property
    def http_status(self) -> int:
        """Status code a transport layer should answer with."""
        match self:
            case ErrorKind.PATH_INVALID:
                return 400
            case ErrorKind.NOT_FOUND:
                return 404
            case ErrorKind.FORBIDDEN:
                return 403
            case ErrorKind.CONFLICT:
                return 409
            case ErrorKind.TOO_LARGE:
                return 413
            case _:
                return 500


class ConflictKind(str, Enum):
    """What kind of existing entry caused a conflict."""

    FILE = "file"
    DIRECTORY = "directory"
    SHARE = "share"


class FileGateError(Exception):
    """Base exception for all filegate errors."""

    kind: ErrorKind = ErrorKind.INTERNAL
    conflict: ConflictKind | None = None

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PathInvalidError(FileGateError):
    """Raised for escape attempts, absolute paths, null bytes and malformed names."""

    kind = ErrorKind.PATH_INVALID


class PathNotFoundError(FileGateError):
    """Raised when a source path or a required parent does not exist."""

    kind = ErrorKind.NOT_FOUND


class ForbiddenError(FileGateError):
    """Raised when the root is targeted or a symlinked ancestor is traversed."""

    kind = ErrorKind.FORBIDDEN


class ConflictError(FileGateError):
    """Raised when a destination exists, a directory is not empty, or a share mismatches."""

    kind = ErrorKind.CONFLICT

    def __init__(self, message: str, conflict: ConflictKind = ConflictKind.FILE) -> None:
        super().__init__(message)
        self.conflict = conflict


class InternalError(FileGateError):
    """Raised on unexpected I/O failures (disk full, unreadable metadata, etc.)."""

    kind = ErrorKind.INTERNAL


class UploadTooLargeError(FileGateError):
    """Raised when an upload request exceeds the configured size ceiling."""

    kind = ErrorKind.TOO_LARGE


def map_os_error(
    exc: OSError,
    action: str,
    conflict: ConflictKind = ConflictKind.FILE,
) -> FileGateError:
    """Remap an ``OSError`` raised at the point of action into the taxonomy.

    An "already exists" from an atomic call is authoritative and becomes a
    Conflict even when an earlier check reported the path as absent.
    """
    if isinstance(exc, FileExistsError):
        return ConflictError(f"{conflict.value} already exists", conflict)
    if isinstance(exc, FileNotFoundError):
        return PathNotFoundError("path does not exist")
    if isinstance(exc, PermissionError):
        return ForbiddenError("permission denied")
    if exc.errno == errno.ENOTEMPTY:
        return ConflictError("directory is not empty", ConflictKind.DIRECTORY)
    return InternalError(f"{action} failed: {exc.strerror or exc}")
