"""Tests for UnifiedFileSystem — backend detection, routing and gating."""

from __future__ import annotations

import pytest

from unifs import get_filesystem, reset_filesystem
from unifs.fs.exceptions import NotFoundError, UnsupportedOperationError
from unifs.fs.handle_fs import HandleAdapter
from unifs.fs.handles import MemoryDirectoryHandle
from unifs.fs.local_disk import LocalDiskAdapter
from unifs.fs.platform import PlatformProbe
from unifs.fs.sandbox_bridge import LocalSandboxBridge
from unifs.fs.sandbox_fs import SandboxAdapter
from unifs.fs.types import BackendKind, SandboxScope
from unifs.fs.unified import UnifiedFileSystem

CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _picker(root: MemoryDirectoryHandle):
    async def picker() -> MemoryDirectoryHandle:
        return root

    return picker


@pytest.fixture
def handle_fs() -> UnifiedFileSystem:
    root = MemoryDirectoryHandle.create_root("project")
    return UnifiedFileSystem(PlatformProbe(directory_picker=_picker(root)))


@pytest.fixture
def host_fs(workspace) -> UnifiedFileSystem:
    return UnifiedFileSystem(PlatformProbe(), host_dir=workspace)


@pytest.fixture
def sandbox_fs(bridge) -> UnifiedFileSystem:
    return UnifiedFileSystem(PlatformProbe(native_bridge=bridge))


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


class TestDetection:
    def test_picker_selects_handle_backend(self, handle_fs):
        assert handle_fs.backend is BackendKind.HANDLE
        assert isinstance(handle_fs.adapter, HandleAdapter)

    def test_bridge_selects_sandbox_backend(self, sandbox_fs):
        assert sandbox_fs.backend is BackendKind.SANDBOX
        assert isinstance(sandbox_fs.adapter, SandboxAdapter)

    def test_picker_wins_over_bridge(self, bridge):
        root = MemoryDirectoryHandle.create_root()
        fs = UnifiedFileSystem(PlatformProbe(directory_picker=_picker(root), native_bridge=bridge))
        assert fs.backend is BackendKind.HANDLE

    def test_no_markers_selects_host(self, host_fs):
        assert host_fs.backend is BackendKind.HOST
        assert isinstance(host_fs.adapter, LocalDiskAdapter)

    def test_adapter_created_once(self, host_fs):
        assert host_fs.adapter is host_fs.adapter

    def test_environment_selects_sandbox(self, tmp_path, monkeypatch):
        monkeypatch.setenv("UNIFS_SANDBOX_ROOT", str(tmp_path / "device"))
        fs = UnifiedFileSystem()
        assert fs.backend is BackendKind.SANDBOX
        assert fs.adapter.bridge.base_dir == (tmp_path / "device").resolve()

    def test_probe_from_mapping(self, tmp_path):
        probe = PlatformProbe.from_environ(
            {"UNIFS_SANDBOX_ROOT": str(tmp_path), "UNIFS_USER_AGENT": "ua"}
        )
        assert isinstance(probe.native_bridge, LocalSandboxBridge)
        assert probe.user_agent == "ua"
        assert PlatformProbe.from_environ({}).native_bridge is None


# ---------------------------------------------------------------------------
# Backend-specific operations
# ---------------------------------------------------------------------------


class TestGating:
    async def test_pick_directory_unsupported_on_host(self, host_fs):
        with pytest.raises(UnsupportedOperationError, match="pick_directory"):
            await host_fs.pick_directory()

    @pytest.mark.parametrize(
        ("operation", "args"),
        [
            ("entry_for_path", ("/notes",)),
            ("get_private_workspace_root", ()),
            ("open_external", ("file:///sdcard/Notes",)),
        ],
    )
    async def test_path_operations_unsupported_on_handle(self, handle_fs, operation, args):
        with pytest.raises(UnsupportedOperationError, match=operation):
            await getattr(handle_fs, operation)(*args)

    async def test_workspace_root_unsupported_on_host(self, host_fs):
        with pytest.raises(UnsupportedOperationError):
            await host_fs.get_private_workspace_root()

    async def test_ensure_mobile_permissions_noop_elsewhere(self, host_fs, handle_fs):
        await host_fs.ensure_mobile_permissions()
        await handle_fs.ensure_mobile_permissions()

    async def test_ensure_mobile_permissions_on_sandbox(self, tmp_path):
        bridge = LocalSandboxBridge(tmp_path, all_files_access=False)
        fs = UnifiedFileSystem(PlatformProbe(native_bridge=bridge))
        await fs.ensure_mobile_permissions()
        assert bridge.settings_requests == 1

    async def test_pick_directory_on_handle(self, handle_fs):
        root = await handle_fs.pick_directory()
        assert root.name == "project"

    async def test_errors_propagate_unchanged(self, host_fs, workspace):
        with pytest.raises(NotFoundError):
            await host_fs.entry_for_path(str(workspace / "missing"))

    def test_support_report_uses_probe(self):
        report = UnifiedFileSystem(PlatformProbe(user_agent=CHROME_UA)).check_file_system_support()
        assert not report.supported
        assert report.debug["user_agent"] == CHROME_UA

        root = MemoryDirectoryHandle.create_root()
        probe = PlatformProbe(directory_picker=_picker(root), user_agent=CHROME_UA)
        assert UnifiedFileSystem(probe).check_file_system_support().supported


# ---------------------------------------------------------------------------
# Cross-backend behaviour
# ---------------------------------------------------------------------------


class TestRouting:
    async def test_host_round_trip(self, host_fs, workspace):
        root = await host_fs.entry_for_path(str(workspace))
        entry = await host_fs.write_text(root, "a.md", "alpha")
        assert await host_fs.read_text(entry) == "alpha"
        assert (await host_fs.stat(entry)).size == 5

    async def test_build_tree_children_match_list(self, handle_fs):
        root = await handle_fs.pick_directory()
        docs = await handle_fs.mkdir(root, "docs")
        await handle_fs.write_text(docs, "b.md", "b")
        await handle_fs.write_text(docs, "a.md", "a")

        tree = await handle_fs.build_tree(root)

        assert [e.name for e in tree] == [e.name for e in await handle_fs.list(root)]
        assert [c.name for c in tree[0].children] == [
            e.name for e in await handle_fs.list(docs)
        ]

    async def test_cross_scope_copy_preserves_content(self, sandbox_fs):
        data = await sandbox_fs.pick_directory(SandboxScope.DATA)
        src = await sandbox_fs.write_text(data, "note.md", "# note\n")
        cache = await sandbox_fs.pick_directory(SandboxScope.CACHE)

        copied = await sandbox_fs.copy(src, cache)

        assert await sandbox_fs.read_text(copied) == await sandbox_fs.read_text(src)

    async def test_move_leaves_single_copy(self, host_fs, workspace):
        root = await host_fs.entry_for_path(str(workspace))
        src = await host_fs.write_text(root, "a.md", "alpha")
        out = await host_fs.mkdir(root, "out")

        moved = await host_fs.move(src, out, source_parent=root)

        assert [e.name for e in await host_fs.list(root)] == ["out"]
        assert await host_fs.read_text(moved) == "alpha"
        with pytest.raises(NotFoundError):
            await host_fs.read_text(src)


# ---------------------------------------------------------------------------
# Shared instance
# ---------------------------------------------------------------------------


class TestSharedInstance:
    def test_get_filesystem_is_cached(self):
        assert get_filesystem() is get_filesystem()

    def test_reset_redetects(self, tmp_path, monkeypatch):
        first = get_filesystem()
        assert first.backend is BackendKind.HOST

        monkeypatch.setenv("UNIFS_SANDBOX_ROOT", str(tmp_path))
        reset_filesystem()

        second = get_filesystem()
        assert second is not first
        assert second.backend is BackendKind.SANDBOX
