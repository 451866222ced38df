"""Shared fixtures for filegate tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from filegate._filegate_async import FileGateAsync
from filegate.config import ServiceConfig
from filegate.fs.resolver import PathResolver
from filegate.fs.service import FilesystemService

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    """Storage root containing nothing."""
    root = tmp_path / "files"
    root.mkdir()
    return root


@pytest.fixture
def public_root(tmp_path: Path) -> Path:
    """Public share root containing nothing."""
    root = tmp_path / "public"
    root.mkdir()
    return root


@pytest.fixture
def outside(tmp_path: Path) -> Path:
    """Directory next to the roots that nothing may reach."""
    out = tmp_path / "outside"
    out.mkdir()
    (out / "secret.txt").write_text("top secret")
    (out / "sub").mkdir()
    return out


@pytest.fixture
def resolver(storage_root: Path, public_root: Path) -> PathResolver:
    return PathResolver(storage_root, public_root)


@pytest.fixture
def service() -> FilesystemService:
    return FilesystemService(chunk_size=4)


@pytest.fixture
def config(storage_root: Path, public_root: Path) -> ServiceConfig:
    return ServiceConfig(
        base_dir=str(storage_root), public_base_dir=str(public_root)
    ).validate()


@pytest.fixture
def gate(config: ServiceConfig) -> FileGateAsync:
    return FileGateAsync(config)
