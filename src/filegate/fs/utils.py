"""Path utilities shared by the resolver and the filesystem service."""

from __future__ import annotations

import os
import posixpath
import stat
from pathlib import Path

from .exceptions import ForbiddenError, InternalError, PathInvalidError

# Sentinel produced by clean_path() for "the root itself".
ROOT_SENTINEL = "."

DIR_MODE = 0o755
FILE_MODE = 0o644


# =============================================================================
# Lexical checks (no filesystem access)
# =============================================================================


def clean_path(path: str, context: str = "path") -> str:
    """Normalize a caller-supplied relative path.

    - Resolves ``.`` and ``..`` references
    - Collapses repeated separators
    - Removes trailing separators

    Rejects absolute paths, any ``..`` segment left after cleaning, and null
    bytes.  The empty string cleans to ``"."`` (the root).

    Examples:
        clean_path("a//b/") -> "a/b"
        clean_path("a/./b") -> "a/b"
        clean_path("a/../b") -> "b"
        clean_path("") -> "."
    """
    if "\x00" in path:
        raise PathInvalidError(f"invalid {context}: contains null byte")

    cleaned = posixpath.normpath(path) if path else ROOT_SENTINEL

    if posixpath.isabs(cleaned):
        raise PathInvalidError(f"invalid {context}: absolute paths not allowed")
    if ".." in cleaned.split("/"):
        raise PathInvalidError(
            f"invalid {context}: contains parent directory reference"
        )
    return cleaned


def relative_to_root(root: str | Path, target: str | Path) -> str | None:
    """Return *target* relative to *root*, or ``None`` if it escapes.

    Both sides are normalized first so ``..`` components cannot slip past
    the component-wise comparison.
    """
    try:
        rel = Path(os.path.normpath(target)).relative_to(os.path.normpath(root))
    except ValueError:
        return None
    return rel.as_posix()


def ensure_within(
    root: str | Path,
    target: str | Path,
    *,
    allow_root: bool,
    message: str = "invalid path: escapes base directory",
) -> str:
    """Lexically verify that *target* lies inside *root*.

    Returns the relative path.  An escape is PathInvalid; targeting the root
    itself when *allow_root* is false is Forbidden.
    """
    rel = relative_to_root(root, target)
    if rel is None:
        raise PathInvalidError(message)
    if rel == ROOT_SENTINEL and not allow_root:
        raise ForbiddenError("invalid path: refers to base directory")
    return rel


def validate_name(name: str, context: str) -> str:
    """Validate a simple file or directory name (no separators, not . or ..)."""
    if "\x00" in name:
        raise PathInvalidError(f"invalid {context}: contains null byte")
    cleaned = posixpath.normpath(name) if name else ""
    if "/" in cleaned or "\\" in cleaned:
        raise PathInvalidError(
            f"invalid {context}: must be a simple name without path separators"
        )
    if cleaned in ("", ".", ".."):
        raise PathInvalidError(f"invalid {context}")
    return cleaned


def validate_filename(filename: str) -> str:
    """Reduce an uploaded filename to its base name and apply the upload policy.

    Embedded directory components (``/`` or ``\\``) are dropped silently.
    Empty names, ``.``, ``..`` and hidden files are rejected.
    """
    if "\x00" in filename:
        raise PathInvalidError("invalid filename: contains null byte")
    base = posixpath.basename(filename.replace("\\", "/").rstrip("/"))
    if base in ("", ".", ".."):
        raise PathInvalidError("invalid filename")
    if base.startswith("."):
        raise PathInvalidError("hidden files not allowed")
    return base


# =============================================================================
# Metadata helpers (never follow the final symlink)
# =============================================================================


def lstat_or_none(path: str | Path) -> os.stat_result | None:
    """``os.lstat`` that returns ``None`` for a missing path.

    Any other failure is an Internal error.
    """
    try:
        return os.lstat(path)
    except (FileNotFoundError, NotADirectoryError):
        return None
    except OSError as e:
        raise InternalError(f"failed to stat path: {e.strerror or e}") from e


def is_symlink(st: os.stat_result) -> bool:
    return stat.S_ISLNK(st.st_mode)


def is_dir(st: os.stat_result) -> bool:
    return stat.S_ISDIR(st.st_mode)


def is_regular(st: os.stat_result) -> bool:
    return stat.S_ISREG(st.st_mode)


def is_dir_empty(path: str | Path) -> bool:
    """Check whether a directory has no entries, reading at most one."""
    with os.scandir(path) as it:
        return next(it, None) is None


def read_link_or_none(path: str | Path) -> Path | None:
    """Read a symlink target, or ``None`` if the link vanished meanwhile.

    Any other failure is an Internal error.
    """
    try:
        return Path(path).readlink()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise InternalError(f"read link failed: {e.strerror or e}") from e


def to_virtual_path(root: str | Path, physical: str | Path) -> str:
    """Convert a physical path under *root* to a ``/``-separated relative path."""
    return Path(physical).relative_to(root).as_posix()
