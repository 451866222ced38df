"""ServiceConfig — roots and limits for a filegate instance."""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from filegate.fs.service import DEFAULT_CHUNK_SIZE

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

ENV_BASE_DIR = "FILEGATE_UPLOAD_BASE_DIR"
ENV_PUBLIC_BASE_DIR = "FILEGATE_PUBLIC_BASE_DIR"
ENV_MAX_UPLOAD_SIZE = "FILEGATE_MAX_UPLOAD_SIZE"

DEFAULT_BASE_DIR = "/srv/files"
DEFAULT_MAX_UPLOAD_SIZE = 2 * 1024 * 1024 * 1024  # 2GB


@dataclass(frozen=True)
class ServiceConfig:
    """Configuration for one storage namespace and its optional public mirror."""

    base_dir: str = DEFAULT_BASE_DIR
    """Storage root every virtual path is confined to."""

    public_base_dir: str | None = None
    """Root for public share symlinks.  ``None`` disables public sharing."""

    max_upload_size: int = DEFAULT_MAX_UPLOAD_SIZE
    """Ceiling on the total bytes accepted by one upload request."""

    listen_addr: str = ":8080"
    """Address the HTTP transport binds to.  Read only by the transport; the core ignores it."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    """Buffer size used when streaming uploads to disk."""

    def __post_init__(self) -> None:
        if not self.public_base_dir:
            object.__setattr__(self, "public_base_dir", None)

    @property
    def public_sharing_enabled(self) -> bool:
        return self.public_base_dir is not None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServiceConfig:
        """Build a config from ``FILEGATE_*`` environment variables."""
        env = os.environ if environ is None else environ

        max_upload_size = DEFAULT_MAX_UPLOAD_SIZE
        raw_size = env.get(ENV_MAX_UPLOAD_SIZE, "")
        if raw_size:
            try:
                parsed = int(raw_size)
            except ValueError:
                parsed = 0
            if parsed > 0:
                max_upload_size = parsed
            else:
                logger.warning(
                    "Ignoring invalid %s=%r; using %d",
                    ENV_MAX_UPLOAD_SIZE,
                    raw_size,
                    DEFAULT_MAX_UPLOAD_SIZE,
                )

        return cls(
            base_dir=env.get(ENV_BASE_DIR) or DEFAULT_BASE_DIR,
            public_base_dir=env.get(ENV_PUBLIC_BASE_DIR) or None,
            max_upload_size=max_upload_size,
        )

    def validate(self) -> ServiceConfig:
        """Return a copy with absolute, symlink-resolved roots.

        Raises ``FileNotFoundError`` or ``NotADirectoryError`` if a root is
        missing or is not a directory.
        """
        base_dir = _validate_root(self.base_dir, "Base directory")
        public_base_dir = None
        if self.public_base_dir is not None:
            public_base_dir = _validate_root(self.public_base_dir, "Public base directory")
        return dataclasses.replace(
            self, base_dir=base_dir, public_base_dir=public_base_dir
        )


def _validate_root(path: str, label: str) -> str:
    resolved = Path(path).resolve()
    if not resolved.exists():
        raise FileNotFoundError(f"{label} does not exist: {resolved}")
    if not resolved.is_dir():
        raise NotADirectoryError(f"{label} is not a directory: {resolved}")
    return str(resolved)
