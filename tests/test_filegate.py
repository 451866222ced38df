"""Tests for the synchronous FileGate facade."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import pytest

from filegate import FileGate
from filegate.fs.exceptions import ErrorKind

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def sync_gate(config):
    gate = FileGate(config)
    yield gate
    gate.close()


class TestFileGate:
    def test_round_trip_of_operations(self, sync_gate: FileGate, storage_root: Path):
        assert sync_gate.mkdir("docs").success
        upload = sync_gate.upload("docs", [("a.txt", io.BytesIO(b"hello"))])
        assert upload.uploaded == ["a.txt"]

        assert sync_gate.rename("docs/a.txt", "b.txt").success
        assert sync_gate.share_public("docs/b.txt").created
        assert sync_gate.list_public_shares().paths == ["docs/b.txt"]
        assert sync_gate.delete_public_share("docs/b.txt").success

        assert sync_gate.mkdir("archive").success
        assert sync_gate.move("docs/b.txt", "archive/b.txt").success
        assert sync_gate.delete("archive/b.txt").success
        assert sorted(p.name for p in storage_root.iterdir()) == ["archive", "docs"]

    def test_failure_is_a_result(self, sync_gate: FileGate):
        result = sync_gate.delete("")
        assert not result.success
        assert result.kind is ErrorKind.FORBIDDEN

    def test_aio_shares_configuration(self, sync_gate: FileGate, config):
        assert sync_gate.aio.config is config

    def test_closed(self, config):
        with FileGate(config) as gate:
            assert gate.mkdir("x").success
        gate.close()
        with pytest.raises(RuntimeError, match="closed"):
            gate.mkdir("y")
