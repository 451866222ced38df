"""PathResolver — decides whether a caller-supplied path is safe to touch.

Pure decision logic over strings and filesystem metadata; nothing here
mutates storage.  Every resolver runs the same two-stage containment check:

1. Lexical: clean the virtual path, join it to the root and verify the
   result stays inside the root (before any filesystem access).
2. Symlink-aware: resolve the existing portion of the chain to its real
   path and verify it stays inside the real root.  This catches escapes
   through a symlinked *ancestor*, not only through the leaf.

Both stages live in :func:`resolve_contained`; resolvers never reimplement
them.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from pathlib import Path

from .exceptions import (
    ConflictError,
    ConflictKind,
    ForbiddenError,
    PathInvalidError,
    PathNotFoundError,
)
from .utils import (
    ROOT_SENTINEL,
    clean_path,
    ensure_within,
    is_dir,
    is_regular,
    is_symlink,
    lstat_or_none,
    read_link_or_none,
    relative_to_root,
    validate_name,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MovePaths:
    """Resolved and virtual paths for a rename or move."""

    resolved_old: Path
    resolved_new: Path
    virtual_old: str
    virtual_new: str


@dataclass(frozen=True)
class SharePaths:
    """Resolved source file and mirrored link location for a public share."""

    source: Path
    link: Path
    virtual_path: str


def resolve_contained(
    root: str | Path,
    target: str | Path,
    *,
    allow_root: bool,
    follow_leaf: bool = True,
) -> Path:
    """Run the full containment check and return the real path of *target*.

    The lexical check runs first.  Then every existing component is resolved
    through symlinks (the leaf only when *follow_leaf* is true) and the result
    is checked against the real root.  Non-existent trailing components are
    carried over unchanged since nothing can be followed there.
    """
    ensure_within(root, target, allow_root=allow_root)

    real_root = Path(root).resolve()
    target = Path(target)
    if follow_leaf:
        real = target.resolve()
    else:
        real = target.parent.resolve() / target.name

    rel = relative_to_root(real_root, real)
    if rel is None:
        raise ForbiddenError("invalid path: symlink resolves outside base directory")
    if rel == ROOT_SENTINEL and not allow_root:
        raise ForbiddenError("invalid path: refers to base directory")
    return real


class PathResolver:
    """Resolve virtual paths against a storage root and an optional public root.

    Holds no mutable state; the roots are fixed at construction and are
    expected to be absolute, existing directories (see ``ServiceConfig.validate``).
    """

    def __init__(
        self,
        root: str | Path,
        public_root: str | Path | None = None,
    ) -> None:
        self.root = Path(root).resolve()
        self.public_root = Path(public_root).resolve() if public_root else None

    # =========================================================================
    # Upload
    # =========================================================================

    def resolve_target_dir(self, path: str) -> Path:
        """Resolve the destination directory for an upload.

        The directory may not exist yet; it is created by the upload itself,
        so its nearest existing ancestor must be a directory.  The empty path
        denotes the root, which is a valid upload target.
        """
        cleaned = clean_path(path)
        resolved = resolve_contained(self.root, self.root / cleaned, allow_root=True)

        st = lstat_or_none(resolved)
        if st is not None:
            if not is_dir(st):
                raise PathInvalidError("invalid path: upload target is not a directory")
        else:
            ancestors = iter(resolved.parents)
            while st is None:
                st = lstat_or_none(next(ancestors))
            if not is_dir(st):
                raise PathInvalidError("invalid path: parent path is not a directory")

        logger.debug("Resolved upload target %r -> %s", path, resolved)
        return resolved

    # =========================================================================
    # Delete
    # =========================================================================

    def resolve_delete_path(self, path: str) -> Path:
        """Resolve an existing, non-symlink entry for deletion."""
        cleaned = clean_path(path)
        if cleaned == ROOT_SENTINEL:
            raise ForbiddenError("cannot delete base directory")

        target = self.root / cleaned
        ensure_within(self.root, target, allow_root=False)

        st = lstat_or_none(target)
        if st is None:
            raise PathNotFoundError("path does not exist")
        if is_symlink(st):
            raise PathInvalidError("cannot delete symlinks")

        return resolve_contained(self.root, target, allow_root=False, follow_leaf=False)

    # =========================================================================
    # Mkdir
    # =========================================================================

    def resolve_mkdir_path(self, path: str) -> tuple[Path, str]:
        """Resolve a new directory location.

        Returns ``(resolved_path, virtual_path)``.  The parent must already
        exist as a real directory inside the root; nothing is created
        recursively.
        """
        cleaned = clean_path(path)
        if cleaned == ROOT_SENTINEL:
            raise ForbiddenError("cannot create base directory")

        parent, leaf = posixpath.split(cleaned)
        leaf = validate_name(leaf, "directory name")

        target = self.root / cleaned
        ensure_within(self.root, target, allow_root=False)

        parent_full = self.root / (parent or ROOT_SENTINEL)
        st = lstat_or_none(parent_full)
        if st is None:
            raise PathNotFoundError("parent directory does not exist")
        if is_symlink(st):
            raise ForbiddenError("cannot create directory under symlink")
        if not is_dir(st):
            raise PathInvalidError("parent path is not a directory")

        real_parent = resolve_contained(self.root, parent_full, allow_root=True)
        resolved = real_parent / leaf
        logger.debug("Resolved mkdir target %r -> %s", path, resolved)
        return resolved, cleaned

    # =========================================================================
    # Rename / Move
    # =========================================================================

    def _resolve_source(self, cleaned: str, action: str) -> Path:
        if cleaned == ROOT_SENTINEL:
            raise ForbiddenError(f"cannot {action} base directory")

        source = self.root / cleaned
        ensure_within(
            self.root,
            source,
            allow_root=False,
            message="invalid source path: escapes base directory",
        )

        st = lstat_or_none(source)
        if st is None:
            raise PathNotFoundError("source path does not exist")
        if is_symlink(st):
            raise PathInvalidError(f"cannot {action} symlinks")

        return resolve_contained(self.root, source, allow_root=False, follow_leaf=False)

    def resolve_rename_paths(self, old_path: str, new_name: str) -> MovePaths:
        """Resolve a rename within the same parent directory."""
        if not old_path:
            raise PathInvalidError("source path is required")
        if not new_name:
            raise PathInvalidError("new name is required")

        cleaned_old = clean_path(old_path, "source path")
        name = validate_name(new_name, "new name")
        resolved_old = self._resolve_source(cleaned_old, "rename")

        resolved_new = resolved_old.parent / name
        if lstat_or_none(resolved_new) is not None:
            raise ConflictError("destination already exists", ConflictKind.FILE)

        virtual_new = posixpath.join(posixpath.dirname(cleaned_old), name)
        return MovePaths(resolved_old, resolved_new, cleaned_old, virtual_new)

    def resolve_move_paths(self, source_path: str, dest_path: str) -> MovePaths:
        """Resolve a move to any safe destination inside the root."""
        if not source_path:
            raise PathInvalidError("source path is required")
        if not dest_path:
            raise PathInvalidError("destination path is required")

        cleaned_source = clean_path(source_path, "source path")
        cleaned_dest = clean_path(dest_path, "destination path")
        if cleaned_dest == ROOT_SENTINEL:
            raise ForbiddenError("cannot move onto base directory")

        resolved_source = self._resolve_source(cleaned_source, "move")

        dest = self.root / cleaned_dest
        ensure_within(
            self.root,
            dest,
            allow_root=False,
            message="invalid destination path: escapes base directory",
        )

        st = lstat_or_none(dest.parent)
        if st is None:
            raise PathNotFoundError("destination parent directory does not exist")
        if is_symlink(st):
            raise ForbiddenError("cannot move to directory under symlink")
        if not is_dir(st):
            raise PathInvalidError("destination parent is not a directory")

        resolved_dest = resolve_contained(
            self.root, dest, allow_root=False, follow_leaf=False
        )
        if resolved_source in resolved_dest.parents:
            raise PathInvalidError("cannot move a directory into itself")
        if lstat_or_none(resolved_dest) is not None:
            raise ConflictError("destination already exists", ConflictKind.FILE)

        return MovePaths(resolved_source, resolved_dest, cleaned_source, cleaned_dest)

    # =========================================================================
    # Public share
    # =========================================================================

    def require_public_root(self) -> Path:
        """Return the public root, or fail if public sharing is disabled."""
        if not self.public_root:
            raise ForbiddenError("public sharing is not enabled")
        return self.public_root

    def resolve_share_public_path(self, path: str) -> SharePaths:
        """Resolve a regular file to share and its mirrored location under the public root."""
        public_root = self.require_public_root()
        if not path:
            raise PathInvalidError("file path is required")

        cleaned = clean_path(path)
        if cleaned == ROOT_SENTINEL:
            raise ForbiddenError("cannot share base directory")

        source = self.root / cleaned
        ensure_within(self.root, source, allow_root=False)

        st = lstat_or_none(source)
        if st is None:
            raise PathNotFoundError("path does not exist")
        if is_symlink(st):
            raise PathInvalidError("cannot share symlinks")
        if not is_regular(st):
            raise PathInvalidError("only regular files can be shared publicly")

        resolved_source = resolve_contained(
            self.root, source, allow_root=False, follow_leaf=False
        )

        link = resolve_contained(
            public_root, public_root / cleaned, allow_root=False, follow_leaf=False
        )
        existing = lstat_or_none(link)
        if existing is not None:
            if not is_symlink(existing):
                raise ConflictError(
                    "path already exists in public directory", ConflictKind.SHARE
                )
            # A link removed since the lstat counts as absent.
            target = read_link_or_none(link)
            if target is not None and target != resolved_source:
                raise ConflictError(
                    "public share already exists with different target",
                    ConflictKind.SHARE,
                )

        return SharePaths(resolved_source, link, cleaned)
