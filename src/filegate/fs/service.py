"""FilesystemService — mutates storage at already-resolved paths.

Every operation re-inspects its target at the point of action (without
following the final symlink) and relies only on filesystem-level atomic
primitives: exclusive create for uploads, a single ``rename`` for
rename/move, and an emptiness check right before removal.  No in-process
locks are used, so the guarantees hold across processes sharing storage.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from .exceptions import (
    ConflictError,
    ConflictKind,
    ForbiddenError,
    InternalError,
    PathInvalidError,
    PathNotFoundError,
    map_os_error,
)
from .resolver import resolve_contained
from .utils import (
    DIR_MODE,
    FILE_MODE,
    ROOT_SENTINEL,
    clean_path,
    ensure_within,
    is_dir,
    is_dir_empty,
    is_symlink,
    lstat_or_none,
    read_link_or_none,
    relative_to_root,
    to_virtual_path,
    validate_filename,
)

if TYPE_CHECKING:
    from typing import BinaryIO

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1MB


class FilesystemService:
    """Filesystem mutations behind the resolver.

    Stateless apart from tuning knobs fixed at construction; safe to share
    between concurrent workers.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        dir_mode: int = DIR_MODE,
        file_mode: int = FILE_MODE,
    ) -> None:
        self.chunk_size = chunk_size
        self.dir_mode = dir_mode
        self.file_mode = file_mode

    # =========================================================================
    # Upload
    # =========================================================================

    def ensure_dir(self, path: str | Path) -> None:
        """Create *path* and any missing parents.  Uploads are the only caller."""
        try:
            Path(path).mkdir(mode=self.dir_mode, parents=True, exist_ok=True)
        except NotADirectoryError as e:
            raise PathInvalidError("invalid path: parent path is not a directory") from e
        except OSError as e:
            raise map_os_error(e, "create target directory", ConflictKind.DIRECTORY) from e

    def save_file(
        self,
        resolved_dir: str | Path,
        raw_filename: str,
        stream: BinaryIO,
        root: str | Path | None = None,
    ) -> str:
        """Stream *stream* into a new file named after *raw_filename*.

        Returns the sanitized file name.  The destination is opened with
        ``O_CREAT | O_EXCL`` so a concurrent writer of the same name fails
        with Conflict instead of interleaving bytes.  The file is fsynced
        before success is reported, and removed if anything fails after it
        was created.
        """
        filename = validate_filename(raw_filename)
        dest = Path(resolved_dir) / filename

        if root is not None:
            ensure_within(
                Path(root).resolve(),
                dest,
                allow_root=False,
                message="invalid destination path",
            )

        self.ensure_dir(resolved_dir)

        if lstat_or_none(dest) is not None:
            raise ConflictError("file already exists", ConflictKind.FILE)

        flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_NOFOLLOW", 0)
        try:
            fd = os.open(dest, flags, self.file_mode)
        except OSError as e:
            # The exclusive create is authoritative over the pre-check above.
            raise map_os_error(e, "create destination file") from e

        try:
            with os.fdopen(fd, "wb") as f:
                shutil.copyfileobj(stream, f, self.chunk_size)
                f.flush()
                os.fsync(f.fileno())
        except Exception as e:
            try:
                dest.unlink()
            except OSError as cleanup_err:
                logger.warning("Failed to remove partial upload %s: %s", dest, cleanup_err)
            if isinstance(e, OSError):
                raise InternalError(f"write file failed: {e.strerror or e}") from e
            raise

        logger.info("Saved upload %s", dest)
        return filename

    # =========================================================================
    # Delete / Mkdir
    # =========================================================================

    def delete(self, resolved_path: str | Path) -> None:
        """Remove a file or an empty directory.  Symlinks are never removed here."""
        path = Path(resolved_path)
        st = lstat_or_none(path)
        if st is None:
            raise PathNotFoundError("path does not exist")
        if is_symlink(st):
            raise PathInvalidError("cannot delete symlinks")

        try:
            if is_dir(st):
                if not is_dir_empty(path):
                    raise ConflictError("directory is not empty", ConflictKind.DIRECTORY)
                path.rmdir()
            else:
                path.unlink()
        except OSError as e:
            raise map_os_error(e, "delete", ConflictKind.DIRECTORY) from e

        logger.info("Deleted %s", path)

    def mkdir(self, resolved_path: str | Path) -> None:
        """Create a single directory.  Parents are never created."""
        path = Path(resolved_path)
        st = lstat_or_none(path)
        if st is not None:
            if is_dir(st):
                raise ConflictError("directory already exists", ConflictKind.DIRECTORY)
            if is_symlink(st):
                raise ConflictError("path exists as symlink", ConflictKind.FILE)
            raise ConflictError("path already exists as file", ConflictKind.FILE)

        try:
            path.mkdir(mode=self.dir_mode)
        except FileNotFoundError as e:
            raise PathNotFoundError("parent directory does not exist") from e
        except OSError as e:
            raise map_os_error(e, "create directory", ConflictKind.DIRECTORY) from e

        logger.info("Created directory %s", path)

    # =========================================================================
    # Rename / Move
    # =========================================================================

    def rename(self, old_resolved: str | Path, new_resolved: str | Path) -> None:
        """Rename an entry with a single atomic ``rename`` call."""
        self._rename(Path(old_resolved), Path(new_resolved), "rename")

    def move(self, old_resolved: str | Path, new_resolved: str | Path) -> None:
        """Move an entry anywhere inside the root with a single atomic ``rename`` call."""
        self._rename(Path(old_resolved), Path(new_resolved), "move")

    def _rename(self, old: Path, new: Path, action: str) -> None:
        st = lstat_or_none(old)
        if st is None:
            raise PathNotFoundError("source path does not exist")
        if is_symlink(st):
            raise PathInvalidError(f"cannot {action} symlinks")
        if lstat_or_none(new) is not None:
            raise ConflictError("destination already exists", ConflictKind.FILE)

        try:
            old.rename(new)
        except FileNotFoundError as e:
            raise PathNotFoundError("source path does not exist") from e
        except IsADirectoryError as e:
            raise ConflictError("destination already exists", ConflictKind.DIRECTORY) from e
        except OSError as e:
            raise map_os_error(e, action) from e

        logger.info("%s %s -> %s", action.capitalize(), old, new)

    # =========================================================================
    # Public shares
    # =========================================================================

    def share_public(self, source_resolved: str | Path, public_resolved: str | Path) -> bool:
        """Create a symlink at *public_resolved* pointing at *source_resolved*.

        Returns ``True`` if a link was created, ``False`` if an identical link
        was already in place.
        """
        source = Path(source_resolved)
        link = Path(public_resolved)
        try:
            link.parent.mkdir(mode=self.dir_mode, parents=True, exist_ok=True)
        except PermissionError as e:
            raise ForbiddenError("permission denied creating public directory") from e
        except OSError as e:
            raise map_os_error(e, "create public directory", ConflictKind.SHARE) from e

        if self._existing_share_matches(link, source):
            return False

        try:
            link.symlink_to(source)
        except FileExistsError as e:
            # Lost a race; converge if the winner created the same link.
            if self._existing_share_matches(link, source):
                return False
            raise ConflictError("public share already exists", ConflictKind.SHARE) from e
        except PermissionError as e:
            raise ForbiddenError("permission denied creating symlink") from e
        except OSError as e:
            raise map_os_error(e, "create symlink", ConflictKind.SHARE) from e

        logger.info("Shared %s at %s", source, link)
        return True

    def _existing_share_matches(self, link: Path, source: Path) -> bool:
        """``True`` for an identical link, ``False`` for nothing, Conflict otherwise."""
        st = lstat_or_none(link)
        if st is None:
            return False
        if not is_symlink(st):
            raise ConflictError("path already exists in public directory", ConflictKind.SHARE)
        target = read_link_or_none(link)
        if target is None:
            return False
        if target != Path(source):
            raise ConflictError(
                "public share already exists with different target", ConflictKind.SHARE
            )
        return True

    def delete_public_share(self, public_root: str | Path | None, rel_path: str) -> list[str]:
        """Remove a public share symlink, then prune empty parent directories.

        Returns the directories removed by the pruning walk.  The walk is
        best-effort: once the symlink is gone the operation has succeeded.
        """
        if not public_root:
            raise ForbiddenError("public sharing is not enabled")
        if not rel_path:
            raise PathInvalidError("path is required")

        cleaned = clean_path(rel_path)
        if cleaned == ROOT_SENTINEL:
            raise ForbiddenError("cannot delete base directory")

        real_root = Path(public_root).resolve()
        link = resolve_contained(
            real_root, real_root / cleaned, allow_root=False, follow_leaf=False
        )

        st = lstat_or_none(link)
        if st is None:
            raise PathNotFoundError("path does not exist")
        if not is_symlink(st):
            if is_dir(st):
                raise PathInvalidError("path is a directory, not a symlink")
            raise PathInvalidError("path is not a symlink")

        try:
            link.unlink()
        except OSError as e:
            raise map_os_error(e, "delete symlink", ConflictKind.SHARE) from e

        logger.info("Removed public share %s", link)
        return self._prune_empty_parents(link, real_root)

    def _prune_empty_parents(self, deleted: Path, stop_at: Path) -> list[str]:
        removed: list[str] = []
        current = deleted.parent
        while True:
            rel = relative_to_root(stop_at, current)
            if rel is None or rel == ROOT_SENTINEL:
                break
            try:
                if not is_dir_empty(current):
                    break
                current.rmdir()
            except OSError as e:
                logger.warning("Stopped pruning public share parents at %s: %s", current, e)
                break
            logger.debug("Pruned empty public directory %s", current)
            removed.append(str(current))
            current = current.parent
        return removed

    def list_public_shares(self, public_root: str | Path | None) -> list[str]:
        """List every shared file under *public_root* as sorted relative paths.

        Includes symlinks that resolve to regular files and regular files
        present directly.  Directory symlinks are never descended into.
        """
        if not public_root:
            raise ForbiddenError("public sharing is not enabled")

        root = Path(public_root)
        files: list[str] = []

        def _scan(directory: Path) -> None:
            try:
                it = os.scandir(directory)
            except OSError as e:
                logger.debug("Skipping unreadable public directory %s: %s", directory, e)
                return
            with it:
                for entry in it:
                    try:
                        if entry.is_dir(follow_symlinks=False):
                            _scan(Path(entry.path))
                            continue
                        if entry.is_symlink():
                            if not entry.is_file(follow_symlinks=True):
                                continue
                        elif not entry.is_file(follow_symlinks=False):
                            continue
                    except OSError:
                        continue
                    files.append(to_virtual_path(root, entry.path))

        if lstat_or_none(root) is None:
            return []
        if not root.is_dir():
            raise InternalError("public base directory is not a directory")
        _scan(root)
        files.sort()
        return files
