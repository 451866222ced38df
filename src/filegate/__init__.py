"""filegate: safe filesystem mutation on behalf of untrusted callers.

Path resolution with lexical and symlink-aware containment, plus upload,
delete, mkdir, rename/move and public-share operations built on it.
"""

__version__ = "0.1.0"

from filegate._filegate import FileGate
from filegate._filegate_async import FileGateAsync
from filegate.config import ServiceConfig
from filegate.fs.exceptions import ConflictKind, ErrorKind, FileGateError
from filegate.fs.resolver import PathResolver
from filegate.fs.service import FilesystemService
from filegate.fs.types import (
    DeleteResult,
    ListSharesResult,
    MkdirResult,
    MoveResult,
    ShareResult,
    UploadResult,
)

__all__ = [
    "ConflictKind",
    "DeleteResult",
    "ErrorKind",
    "FileGate",
    "FileGateAsync",
    "FileGateError",
    "FilesystemService",
    "ListSharesResult",
    "MkdirResult",
    "MoveResult",
    "PathResolver",
    "ServiceConfig",
    "ShareResult",
    "UploadResult",
    "__version__",
]
