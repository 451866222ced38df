"""FileGateAsync — resolve, then mutate, then report a structured result."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from filegate.fs.exceptions import (
    ErrorKind,
    FileGateError,
    PathInvalidError,
    UploadTooLargeError,
)
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
from filegate.fs.utils import clean_path, lstat_or_none, validate_filename

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from pathlib import Path
    from typing import BinaryIO

    from filegate.config import ServiceConfig

logger = logging.getLogger(__name__)


class _UploadBudget:
    """Byte ceiling shared by every file of one upload request."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.used = 0


class _CappedReader:
    """Stream wrapper that fails once the request budget is exhausted."""

    def __init__(self, stream: BinaryIO, budget: _UploadBudget) -> None:
        self._stream = stream
        self._budget = budget

    def read(self, size: int = -1) -> bytes:
        chunk = self._stream.read(size)
        self._budget.used += len(chunk)
        if self._budget.used > self._budget.limit:
            raise UploadTooLargeError("upload size exceeds limit")
        return chunk


def _sanitized(filename: str) -> str | None:
    try:
        return validate_filename(filename)
    except PathInvalidError:
        return None


class FileGateAsync:
    """Async entry point wiring a :class:`PathResolver` to a :class:`FilesystemService`.

    Every operation resolves the caller's virtual path first and only then
    touches storage.  Errors never escape as exceptions: they come back as
    ``*Result(success=False, kind=..., message=...)``.  Blocking filesystem
    work runs in worker threads.

    Usage::

        gate = FileGateAsync(ServiceConfig.from_env().validate())
        result = await gate.mkdir("photos/2026/vacation")
        if not result.success:
            match result.kind:
                case ErrorKind.CONFLICT: ...
    """

    def __init__(self, config: ServiceConfig) -> None:
        self._config = config
        self._resolver = PathResolver(config.base_dir, config.public_base_dir)
        self._service = FilesystemService(chunk_size=config.chunk_size)

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def resolver(self) -> PathResolver:
        return self._resolver

    @property
    def service(self) -> FilesystemService:
        return self._service

    def _log_failure(self, operation: str, path: str, err: FileGateError) -> None:
        if err.kind is ErrorKind.INTERNAL:
            logger.error("%s failed for %r: %s", operation, path, err.message, exc_info=err)
        else:
            logger.debug("%s rejected for %r: %s (%s)", operation, path, err.message, err.kind.value)

    # =========================================================================
    # Upload
    # =========================================================================

    async def upload(
        self,
        path: str,
        files: Iterable[tuple[str, BinaryIO]],
    ) -> UploadResult:
        """Upload *files* (``(filename, stream)`` pairs) into directory *path*.

        Not transactional: each file is independently uploaded, skipped
        (name already taken) or errored.  Empty filenames are ignored.
        """
        try:
            target_dir = await asyncio.to_thread(self._resolver.resolve_target_dir, path)
        except FileGateError as e:
            self._log_failure("upload", path, e)
            return UploadResult(success=False, message=e.message, kind=e.kind, path=path)

        try:
            await asyncio.to_thread(self._service.ensure_dir, target_dir)
        except FileGateError as e:
            self._log_failure("upload", path, e)
            return UploadResult(
                success=False,
                message="failed to create target directory",
                kind=e.kind,
                path=path,
                errors=["failed to create target directory"],
            )

        result = UploadResult(success=True, message="", path=path)
        budget = _UploadBudget(self._config.max_upload_size)

        for filename, stream in files:
            if not filename:
                continue

            name = _sanitized(filename)
            if name is not None and await asyncio.to_thread(
                self._destination_taken, target_dir, name
            ):
                result.skipped.append(name)
                continue

            try:
                saved = await asyncio.to_thread(
                    self._service.save_file,
                    target_dir,
                    filename,
                    _CappedReader(stream, budget),
                    self._config.base_dir,
                )
            except UploadTooLargeError as e:
                self._log_failure("upload", filename, e)
                result.success = False
                result.kind = e.kind
                result.message = e.message
                result.errors.append(f"{filename}: {e.message}")
                return result
            except FileGateError as e:
                self._log_failure("upload", filename, e)
                match e.kind:
                    case ErrorKind.CONFLICT:
                        result.skipped.append(name or filename)
                    case _:
                        result.errors.append(f"{filename}: {e.message}")
                continue

            result.uploaded.append(saved)

        result.message = (
            f"Uploaded {len(result.uploaded)}, skipped {len(result.skipped)}, "
            f"failed {len(result.errors)}"
        )
        return result

    def _destination_taken(self, target_dir: Path, name: str) -> bool:
        try:
            return lstat_or_none(target_dir / name) is not None
        except FileGateError:
            # save_file reports it
            return False

    # =========================================================================
    # Delete / Mkdir
    # =========================================================================

    async def delete(self, path: str) -> DeleteResult:
        """Delete a file or an empty directory."""

        def _delete() -> str:
            resolved = self._resolver.resolve_delete_path(path)
            self._service.delete(resolved)
            return clean_path(path)

        try:
            virtual = await asyncio.to_thread(_delete)
        except FileGateError as e:
            self._log_failure("delete", path, e)
            return DeleteResult(
                success=False, message=e.message, kind=e.kind, conflict=e.conflict, path=path
            )

        return DeleteResult(success=True, message=f"Deleted: {virtual}", path=virtual)

    async def mkdir(self, path: str) -> MkdirResult:
        """Create one directory under an existing parent."""

        def _mkdir() -> str:
            resolved, virtual = self._resolver.resolve_mkdir_path(path)
            self._service.mkdir(resolved)
            return virtual

        try:
            virtual = await asyncio.to_thread(_mkdir)
        except FileGateError as e:
            self._log_failure("mkdir", path, e)
            return MkdirResult(
                success=False, message=e.message, kind=e.kind, conflict=e.conflict, path=path
            )

        return MkdirResult(
            success=True, message=f"Created directory: {virtual}", path=virtual + "/"
        )

    # =========================================================================
    # Rename / Move
    # =========================================================================

    async def rename(self, path: str, new_name: str) -> MoveResult:
        """Rename an entry in place (same parent directory)."""

        def _rename() -> tuple[str, str]:
            paths = self._resolver.resolve_rename_paths(path, new_name)
            self._service.rename(paths.resolved_old, paths.resolved_new)
            return paths.virtual_old, paths.virtual_new

        return await self._move_like("rename", path, _rename)

    async def move(self, source: str, dest: str) -> MoveResult:
        """Move an entry to any destination inside the storage root."""

        def _move() -> tuple[str, str]:
            paths = self._resolver.resolve_move_paths(source, dest)
            self._service.move(paths.resolved_old, paths.resolved_new)
            return paths.virtual_old, paths.virtual_new

        return await self._move_like("move", source, _move)

    async def _move_like(
        self,
        operation: str,
        path: str,
        func: Callable[[], tuple[str, str]],
    ) -> MoveResult:
        try:
            old_path, new_path = await asyncio.to_thread(func)
        except FileGateError as e:
            self._log_failure(operation, path, e)
            return MoveResult(
                success=False,
                message=e.message,
                kind=e.kind,
                conflict=e.conflict,
                old_path=path,
            )

        verb = "Renamed" if operation == "rename" else "Moved"
        return MoveResult(
            success=True,
            message=f"{verb} {old_path} to {new_path}",
            old_path=old_path,
            new_path=new_path,
        )

    # =========================================================================
    # Public shares
    # =========================================================================

    async def share_public(self, path: str) -> ShareResult:
        """Publish a regular file as a symlink under the public root.  Idempotent."""

        def _share() -> tuple[str, bool]:
            paths = self._resolver.resolve_share_public_path(path)
            created = self._service.share_public(paths.source, paths.link)
            return paths.virtual_path, created

        try:
            virtual, created = await asyncio.to_thread(_share)
        except FileGateError as e:
            self._log_failure("share", path, e)
            return ShareResult(
                success=False, message=e.message, kind=e.kind, conflict=e.conflict, path=path
            )

        message = f"Shared: {virtual}" if created else f"Already shared: {virtual}"
        return ShareResult(success=True, message=message, path=virtual, created=created)

    async def delete_public_share(self, path: str) -> DeleteResult:
        """Remove a public share symlink and prune emptied parent directories."""

        def _unshare() -> tuple[str, list[str]]:
            pruned = self._service.delete_public_share(self._resolver.public_root, path)
            return clean_path(path), pruned

        try:
            virtual, pruned = await asyncio.to_thread(_unshare)
        except FileGateError as e:
            self._log_failure("unshare", path, e)
            return DeleteResult(
                success=False, message=e.message, kind=e.kind, conflict=e.conflict, path=path
            )

        return DeleteResult(
            success=True,
            message=f"Removed public share: {virtual}",
            path=virtual,
            pruned_dirs=pruned,
        )

    async def list_public_shares(self) -> ListSharesResult:
        """List every publicly shared file as relative paths."""
        try:
            paths = await asyncio.to_thread(
                self._service.list_public_shares, self._resolver.public_root
            )
        except FileGateError as e:
            self._log_failure("list shares", "", e)
            return ListSharesResult(success=False, message=e.message, kind=e.kind)

        return ListSharesResult(
            success=True, message=f"Listed {len(paths)} public shares", paths=paths
        )
