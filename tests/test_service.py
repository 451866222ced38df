"""Tests for fs/service.py — uploads, delete, mkdir, rename and move."""

from __future__ import annotations

import io
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

import pytest

import filegate.fs.service as service_module
from filegate.fs.exceptions import (
    ConflictError,
    ConflictKind,
    InternalError,
    PathInvalidError,
    PathNotFoundError,
)

if TYPE_CHECKING:
    from pathlib import Path


class _FailingStream:
    """Yields some bytes, then raises."""

    def __init__(self, exc: Exception) -> None:
        self._exc = exc
        self._sent = False

    def read(self, size: int = -1) -> bytes:
        if not self._sent:
            self._sent = True
            return b"partial"
        raise self._exc


class _GatedStream:
    """Blocks the first read until released, so a writer can be held mid-upload."""

    def __init__(self, data: bytes) -> None:
        self._data = io.BytesIO(data)
        self.started = threading.Event()
        self.release = threading.Event()

    def read(self, size: int = -1) -> bytes:
        self.started.set()
        self.release.wait(timeout=5)
        return self._data.read(size)


# ---------------------------------------------------------------------------
# save_file
# ---------------------------------------------------------------------------


class TestSaveFile:
    def test_writes_content(self, service, storage_root: Path):
        name = service.save_file(str(storage_root), "a.txt", io.BytesIO(b"hello world"))
        assert name == "a.txt"
        assert (storage_root / "a.txt").read_bytes() == b"hello world"

    def test_creates_missing_directories(self, service, storage_root: Path):
        target = storage_root / "x" / "y"
        service.save_file(str(target), "a.txt", io.BytesIO(b"data"))
        assert (target / "a.txt").read_bytes() == b"data"

    def test_strips_directory_components(self, service, storage_root: Path):
        name = service.save_file(str(storage_root), "../../etc/passwd", io.BytesIO(b"x"))
        assert name == "passwd"
        assert (storage_root / "passwd").exists()

    def test_hidden_rejected_before_touching_disk(self, service, storage_root: Path):
        target = storage_root / "new"
        with pytest.raises(PathInvalidError, match="hidden"):
            service.save_file(str(target), ".env", io.BytesIO(b"x"))
        assert not target.exists()

    def test_existing_file_conflict(self, service, storage_root: Path):
        (storage_root / "a.txt").write_bytes(b"original")
        with pytest.raises(ConflictError) as exc_info:
            service.save_file(str(storage_root), "a.txt", io.BytesIO(b"new"))
        assert exc_info.value.conflict is ConflictKind.FILE
        assert (storage_root / "a.txt").read_bytes() == b"original"

    def test_exclusive_create_is_authoritative(self, service, storage_root: Path, monkeypatch):
        (storage_root / "a.txt").write_bytes(b"original")
        monkeypatch.setattr(service_module, "lstat_or_none", lambda path: None)
        with pytest.raises(ConflictError):
            service.save_file(str(storage_root), "a.txt", io.BytesIO(b"new"))
        assert (storage_root / "a.txt").read_bytes() == b"original"

    def test_symlink_destination_not_followed(self, service, storage_root: Path, outside: Path):
        os.symlink(outside / "secret.txt", storage_root / "a.txt")
        with pytest.raises(ConflictError):
            service.save_file(str(storage_root), "a.txt", io.BytesIO(b"pwned"))
        assert (outside / "secret.txt").read_text() == "top secret"

    def test_outside_root_rejected(self, service, storage_root: Path, outside: Path):
        with pytest.raises(PathInvalidError):
            service.save_file(str(outside), "a.txt", io.BytesIO(b"x"), root=str(storage_root))
        assert not (outside / "a.txt").exists()

    def test_io_failure_removes_partial_file(self, service, storage_root: Path):
        with pytest.raises(InternalError, match="write file failed"):
            service.save_file(
                str(storage_root), "a.txt", _FailingStream(OSError(5, "Input/output error"))
            )
        assert not (storage_root / "a.txt").exists()

    def test_other_failure_propagates_and_cleans_up(self, service, storage_root: Path):
        with pytest.raises(ValueError, match="client went away"):
            service.save_file(
                str(storage_root), "a.txt", _FailingStream(ValueError("client went away"))
            )
        assert not (storage_root / "a.txt").exists()

    def test_second_writer_conflicts_while_first_in_flight(self, service, storage_root: Path):
        gated = _GatedStream(b"first writer")
        errors: list[Exception] = []

        def first() -> None:
            try:
                service.save_file(str(storage_root), "a.txt", gated)
            except Exception as e:
                errors.append(e)

        thread = threading.Thread(target=first)
        thread.start()
        assert gated.started.wait(timeout=5)

        with pytest.raises(ConflictError):
            service.save_file(str(storage_root), "a.txt", io.BytesIO(b"second writer"))

        gated.release.set()
        thread.join(timeout=5)
        assert errors == []
        assert (storage_root / "a.txt").read_bytes() == b"first writer"

    def test_concurrent_writers_exactly_one_wins(self, service, storage_root: Path):
        payloads = [bytes([65 + i]) * 4096 for i in range(8)]
        barrier = threading.Barrier(len(payloads))

        def attempt(data: bytes) -> bool:
            barrier.wait(timeout=5)
            try:
                service.save_file(str(storage_root), "race.bin", io.BytesIO(data))
            except ConflictError:
                return False
            return True

        with ThreadPoolExecutor(max_workers=len(payloads)) as pool:
            outcomes = list(pool.map(attempt, payloads))

        assert outcomes.count(True) == 1
        winner = payloads[outcomes.index(True)]
        assert (storage_root / "race.bin").read_bytes() == winner
        assert [p.name for p in storage_root.iterdir()] == ["race.bin"]


class TestEnsureDir:
    def test_creates_parents(self, service, storage_root: Path):
        service.ensure_dir(storage_root / "x" / "y")
        assert (storage_root / "x" / "y").is_dir()

    def test_existing_is_fine(self, service, storage_root: Path):
        service.ensure_dir(storage_root)
        assert storage_root.is_dir()

    def test_file_ancestor_is_path_invalid(self, service, storage_root: Path):
        (storage_root / "f.txt").write_text("x")
        with pytest.raises(PathInvalidError, match="parent path is not a directory"):
            service.ensure_dir(storage_root / "f.txt" / "sub")
        assert (storage_root / "f.txt").read_text() == "x"


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDelete:
    def test_file(self, service, storage_root: Path):
        (storage_root / "a.txt").write_text("x")
        service.delete(str(storage_root / "a.txt"))
        assert not (storage_root / "a.txt").exists()

    def test_empty_directory(self, service, storage_root: Path):
        (storage_root / "d").mkdir()
        service.delete(str(storage_root / "d"))
        assert not (storage_root / "d").exists()

    def test_non_empty_directory(self, service, storage_root: Path):
        (storage_root / "d").mkdir()
        (storage_root / "d" / "keep.txt").write_text("x")
        with pytest.raises(ConflictError) as exc_info:
            service.delete(str(storage_root / "d"))
        assert exc_info.value.conflict is ConflictKind.DIRECTORY
        assert (storage_root / "d" / "keep.txt").exists()

    def test_missing(self, service, storage_root: Path):
        with pytest.raises(PathNotFoundError):
            service.delete(str(storage_root / "nope"))

    def test_symlink_refused(self, service, storage_root: Path, outside: Path):
        os.symlink(outside / "secret.txt", storage_root / "link")
        with pytest.raises(PathInvalidError):
            service.delete(str(storage_root / "link"))
        assert (storage_root / "link").is_symlink()
        assert (outside / "secret.txt").exists()


# ---------------------------------------------------------------------------
# mkdir
# ---------------------------------------------------------------------------


class TestMkdir:
    def test_creates(self, service, storage_root: Path):
        service.mkdir(str(storage_root / "new"))
        assert (storage_root / "new").is_dir()

    def test_existing_directory(self, service, storage_root: Path):
        (storage_root / "d").mkdir()
        with pytest.raises(ConflictError, match="directory already exists") as exc_info:
            service.mkdir(str(storage_root / "d"))
        assert exc_info.value.conflict is ConflictKind.DIRECTORY

    def test_existing_file(self, service, storage_root: Path):
        (storage_root / "f").write_text("x")
        with pytest.raises(ConflictError, match="as file") as exc_info:
            service.mkdir(str(storage_root / "f"))
        assert exc_info.value.conflict is ConflictKind.FILE

    def test_existing_symlink(self, service, storage_root: Path, outside: Path):
        os.symlink(outside, storage_root / "link")
        with pytest.raises(ConflictError, match="symlink"):
            service.mkdir(str(storage_root / "link"))

    def test_parent_missing(self, service, storage_root: Path):
        with pytest.raises(PathNotFoundError):
            service.mkdir(str(storage_root / "missing" / "child"))
        assert not (storage_root / "missing").exists()

    def test_lost_race_is_conflict(self, service, storage_root: Path, monkeypatch):
        (storage_root / "d").mkdir()
        monkeypatch.setattr(service_module, "lstat_or_none", lambda path: None)
        with pytest.raises(ConflictError, match="directory already exists"):
            service.mkdir(str(storage_root / "d"))


# ---------------------------------------------------------------------------
# rename / move
# ---------------------------------------------------------------------------


class TestRenameMove:
    def test_rename_file(self, service, storage_root: Path):
        (storage_root / "a.txt").write_text("x")
        service.rename(str(storage_root / "a.txt"), str(storage_root / "b.txt"))
        assert not (storage_root / "a.txt").exists()
        assert (storage_root / "b.txt").read_text() == "x"

    def test_rename_directory_keeps_contents(self, service, storage_root: Path):
        (storage_root / "d").mkdir()
        (storage_root / "d" / "inner.txt").write_text("x")
        service.rename(str(storage_root / "d"), str(storage_root / "e"))
        assert (storage_root / "e" / "inner.txt").read_text() == "x"

    def test_move_across_directories(self, service, storage_root: Path):
        (storage_root / "a").mkdir()
        (storage_root / "b").mkdir()
        (storage_root / "a" / "x.txt").write_text("x")
        service.move(str(storage_root / "a" / "x.txt"), str(storage_root / "b" / "x.txt"))
        assert (storage_root / "b" / "x.txt").read_text() == "x"
        assert list((storage_root / "a").iterdir()) == []

    def test_destination_exists_untouched(self, service, storage_root: Path):
        (storage_root / "a.txt").write_text("a")
        (storage_root / "b.txt").write_text("b")
        with pytest.raises(ConflictError):
            service.rename(str(storage_root / "a.txt"), str(storage_root / "b.txt"))
        assert (storage_root / "a.txt").read_text() == "a"
        assert (storage_root / "b.txt").read_text() == "b"

    def test_source_missing(self, service, storage_root: Path):
        with pytest.raises(PathNotFoundError):
            service.move(str(storage_root / "nope"), str(storage_root / "x"))

    def test_source_symlink_untouched(self, service, storage_root: Path, outside: Path):
        os.symlink(outside, storage_root / "link")
        with pytest.raises(PathInvalidError, match="cannot move symlinks"):
            service.move(str(storage_root / "link"), str(storage_root / "other"))
        assert (storage_root / "link").is_symlink()
        assert not (storage_root / "other").exists()
