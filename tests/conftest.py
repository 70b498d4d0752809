"""Shared fixtures for unifs tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from unifs.fs.handle_fs import HandleAdapter
from unifs.fs.handles import MemoryDirectoryHandle
from unifs.fs.local_disk import LocalDiskAdapter
from unifs.fs.permissions import PermissionState
from unifs.fs.sandbox_bridge import LocalSandboxBridge
from unifs.fs.sandbox_fs import SandboxAdapter
from unifs.fs.types import Entry, SandboxScope
from unifs.fs.unified import reset_filesystem

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _fresh_filesystem(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Every test starts with no shared facade and no environment overrides."""
    monkeypatch.delenv("UNIFS_SANDBOX_ROOT", raising=False)
    monkeypatch.delenv("UNIFS_USER_AGENT", raising=False)
    reset_filesystem()
    yield
    reset_filesystem()


# ---------------------------------------------------------------------------
# Host backend
# ---------------------------------------------------------------------------


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def disk(workspace: Path) -> LocalDiskAdapter:
    """LocalDiskAdapter confined to the temporary workspace."""
    return LocalDiskAdapter(host_dir=workspace)


@pytest.fixture
async def disk_root(disk: LocalDiskAdapter, workspace: Path) -> Entry:
    return await disk.entry_for_path(str(workspace))


# ---------------------------------------------------------------------------
# Handle backend
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_root() -> MemoryDirectoryHandle:
    """In-memory handle tree; readwrite starts at "prompt" and is granted on request."""
    return MemoryDirectoryHandle.create_root("project")


@pytest.fixture
def handles(memory_root: MemoryDirectoryHandle) -> HandleAdapter:
    async def picker() -> MemoryDirectoryHandle:
        return memory_root

    return HandleAdapter(picker)


@pytest.fixture
def handle_root(handles: HandleAdapter, memory_root: MemoryDirectoryHandle) -> Entry:
    return handles.entry_for_handle(memory_root)


# ---------------------------------------------------------------------------
# Sandbox backend
# ---------------------------------------------------------------------------


@pytest.fixture
def bridge(tmp_path: Path) -> LocalSandboxBridge:
    return LocalSandboxBridge(tmp_path / "device", storage_permission=PermissionState.GRANTED)


@pytest.fixture
def sandbox(bridge: LocalSandboxBridge) -> SandboxAdapter:
    return SandboxAdapter(bridge)


@pytest.fixture
async def documents(sandbox: SandboxAdapter) -> Entry:
    return await sandbox.pick_directory(SandboxScope.DOCUMENTS)
