"""Result types: UploadResult, DeleteResult, MkdirResult, etc.

Failed operations carry the error ``kind`` so callers can dispatch on it
with ``match result.kind: ...``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .exceptions import ConflictKind, ErrorKind


@dataclass
class UploadResult:
    """Result of an upload request.  Each file's outcome is independent."""

    success: bool
    message: str
    kind: ErrorKind | None = None
    path: str | None = None
    uploaded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def http_status(self) -> int:
        """Aggregate status: created if anything landed, then conflict, then bad request."""
        if self.kind is not None:
            return self.kind.http_status
        if self.uploaded:
            return 201
        if self.skipped:
            return 409
        if self.errors:
            return 400
        return 201


@dataclass
class DeleteResult:
    """Result of a delete or public-share removal."""

    success: bool
    message: str
    kind: ErrorKind | None = None
    conflict: ConflictKind | None = None
    path: str | None = None
    pruned_dirs: list[str] = field(default_factory=list)


@dataclass
class MkdirResult:
    """Result of a mkdir operation."""

    success: bool
    message: str
    kind: ErrorKind | None = None
    conflict: ConflictKind | None = None
    path: str | None = None


@dataclass
class MoveResult:
    """Result of a rename or move operation."""

    success: bool
    message: str
    kind: ErrorKind | None = None
    conflict: ConflictKind | None = None
    old_path: str | None = None
    new_path: str | None = None


@dataclass
class ShareResult:
    """Result of a public share creation."""

    success: bool
    message: str
    kind: ErrorKind | None = None
    conflict: ConflictKind | None = None
    path: str | None = None
    created: bool = False


@dataclass
class ListSharesResult:
    """Result of listing public shares."""

    success: bool
    message: str
    kind: ErrorKind | None = None
    paths: list[str] = field(default_factory=list)
