"""FileGate — synchronous facade over FileGateAsync."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any

from filegate._filegate_async import FileGateAsync

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import BinaryIO

    from filegate.config import ServiceConfig
    from filegate.fs.types import (
        DeleteResult,
        ListSharesResult,
        MkdirResult,
        MoveResult,
        ShareResult,
        UploadResult,
    )

logger = logging.getLogger(__name__)


class FileGate:
    """Blocking API backed by a private event loop in a background thread.

    Lets plain sync callers (WSGI handlers, scripts, tests) use the same
    async core without managing a loop.

    Usage::

        with FileGate(ServiceConfig(base_dir="/srv/files").validate()) as gate:
            gate.mkdir("photos/2026")
            gate.upload("photos/2026", [("beach.jpg", open("beach.jpg", "rb"))])
    """

    def __init__(self, config: ServiceConfig) -> None:
        self._closed = False
        self._async = FileGateAsync(config)

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

    def _run(self, coro: Any) -> Any:
        if self._closed:
            coro.close()
            raise RuntimeError("FileGate is closed")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop the background loop.  Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        self._loop.close()
        logger.debug("FileGate loop stopped")

    def __enter__(self) -> FileGate:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def upload(self, path: str, files: Iterable[tuple[str, BinaryIO]]) -> UploadResult:
        """Upload ``(filename, stream)`` pairs into directory *path*."""
        return self._run(self._async.upload(path, files))

    def delete(self, path: str) -> DeleteResult:
        return self._run(self._async.delete(path))

    def mkdir(self, path: str) -> MkdirResult:
        return self._run(self._async.mkdir(path))

    def rename(self, path: str, new_name: str) -> MoveResult:
        return self._run(self._async.rename(path, new_name))

    def move(self, source: str, dest: str) -> MoveResult:
        return self._run(self._async.move(source, dest))

    def share_public(self, path: str) -> ShareResult:
        return self._run(self._async.share_public(path))

    def delete_public_share(self, path: str) -> DeleteResult:
        return self._run(self._async.delete_public_share(path))

    def list_public_shares(self) -> ListSharesResult:
        return self._run(self._async.list_public_shares())

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def aio(self) -> FileGateAsync:
        """The underlying ``FileGateAsync`` (for use inside an event loop)."""
        return self._async
