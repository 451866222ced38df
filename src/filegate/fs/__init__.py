"""Filesystem layer: path resolution, storage mutations and their error and result types."""

from filegate.fs.exceptions import (
    ConflictError,
    ConflictKind,
    ErrorKind,
    FileGateError,
    ForbiddenError,
    InternalError,
    PathInvalidError,
    PathNotFoundError,
    UploadTooLargeError,
    map_os_error,
)
from filegate.fs.resolver import MovePaths, PathResolver, SharePaths, resolve_contained
from filegate.fs.service import FilesystemService
from filegate.fs.types import (
    DeleteResult,
    ListSharesResult,
    MkdirResult,
    MoveResult,
    ShareResult,
    UploadResult,
)
from filegate.fs.utils import clean_path, validate_filename, validate_name

__all__ = [
    "ConflictError",
    "ConflictKind",
    "DeleteResult",
    "ErrorKind",
    "FileGateError",
    "FilesystemService",
    "ForbiddenError",
    "InternalError",
    "ListSharesResult",
    "MkdirResult",
    "MovePaths",
    "MoveResult",
    "PathInvalidError",
    "PathNotFoundError",
    "PathResolver",
    "ShareResult",
    "SharePaths",
    "UploadResult",
    "UploadTooLargeError",
    "clean_path",
    "map_os_error",
    "resolve_contained",
    "validate_filename",
    "validate_name",
]
