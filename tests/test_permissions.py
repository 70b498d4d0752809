"""Tests for the handle and sandbox permission negotiators."""

from __future__ import annotations

import logging

import pytest

from unifs.fs.exceptions import PermissionDeniedError
from unifs.fs.handles import MemoryDirectoryHandle
from unifs.fs.permissions import (
    SETTINGS_REMEDY,
    AccessMode,
    HandlePermissionNegotiator,
    PermissionState,
    PermissionStatus,
    SandboxPermissionNegotiator,
)
from unifs.fs.sandbox_bridge import LocalSandboxBridge


class FlakyBridge(LocalSandboxBridge):
    """A bridge whose permission plugin is missing."""

    async def check_permissions(self) -> PermissionState:
        raise RuntimeError("storage plugin not installed")

    async def check_all_files_access(self) -> bool:
        raise RuntimeError("all-files plugin not installed")


# ---------------------------------------------------------------------------
# Handle grants
# ---------------------------------------------------------------------------


class TestHandleNegotiator:
    async def test_already_granted_does_not_prompt(self):
        root = MemoryDirectoryHandle.create_root(read_write=PermissionState.GRANTED)
        assert await HandlePermissionNegotiator().ensure(root, AccessMode.READ_WRITE)
        assert root.prompt_count == 0

    async def test_prompt_then_recheck(self):
        root = MemoryDirectoryHandle.create_root(prompt=lambda mode: True)
        assert await HandlePermissionNegotiator().ensure(root, AccessMode.READ_WRITE)
        assert root.prompt_count == 1

    async def test_read_and_readwrite_tracked_separately(self):
        root = MemoryDirectoryHandle.create_root(
            read=PermissionState.GRANTED, read_write=PermissionState.DENIED
        )
        negotiator = HandlePermissionNegotiator()
        assert await negotiator.ensure(root, AccessMode.READ)
        assert not await negotiator.ensure(root, AccessMode.READ_WRITE)

    async def test_readwrite_grant_implies_read(self):
        root = MemoryDirectoryHandle.create_root(
            read=PermissionState.PROMPT, read_write=PermissionState.GRANTED
        )
        assert await root.query_permission(AccessMode.READ) is PermissionState.GRANTED

    async def test_require_raises_on_refusal(self):
        root = MemoryDirectoryHandle.create_root(prompt=lambda mode: False)
        with pytest.raises(PermissionDeniedError, match="handle.write_text"):
            await HandlePermissionNegotiator().require(
                root, AccessMode.READ_WRITE, operation="handle.write_text"
            )


# ---------------------------------------------------------------------------
# Sandbox grants
# ---------------------------------------------------------------------------


class TestSandboxNegotiator:
    async def test_public_storage_requested_when_prompt(self, tmp_path):
        bridge = LocalSandboxBridge(tmp_path, storage_permission=PermissionState.PROMPT)
        await SandboxPermissionNegotiator(bridge).require_public_storage(operation="op")
        assert bridge.storage_permission is PermissionState.GRANTED

    async def test_public_storage_refused(self, tmp_path):
        bridge = LocalSandboxBridge(
            tmp_path, storage_permission=PermissionState.PROMPT, grant_on_request=False
        )
        with pytest.raises(PermissionDeniedError) as exc_info:
            await SandboxPermissionNegotiator(bridge).require_public_storage(operation="op")
        assert exc_info.value.remedy

    async def test_all_files_status_typed_result(self, tmp_path):
        bridge = LocalSandboxBridge(tmp_path, all_files_access=False)
        negotiator = SandboxPermissionNegotiator(bridge)
        assert await negotiator.all_files_status() is PermissionStatus.NEEDS_SETTINGS
        assert bridge.settings_requests == 0

    async def test_all_files_grant_cached_for_session(self, tmp_path):
        bridge = LocalSandboxBridge(tmp_path, all_files_access=True)
        negotiator = SandboxPermissionNegotiator(bridge)
        assert await negotiator.all_files_status() is PermissionStatus.GRANTED

        bridge.all_files_access = False
        assert await negotiator.all_files_status() is PermissionStatus.GRANTED

    async def test_require_all_files_remedy(self, tmp_path):
        bridge = LocalSandboxBridge(tmp_path, all_files_access=False)
        with pytest.raises(PermissionDeniedError) as exc_info:
            await SandboxPermissionNegotiator(bridge).require_all_files_access(operation="op")
        assert exc_info.value.remedy == SETTINGS_REMEDY
        assert SETTINGS_REMEDY in str(exc_info.value)

    async def test_ensure_mobile_permissions(self, tmp_path):
        bridge = LocalSandboxBridge(
            tmp_path, storage_permission=PermissionState.PROMPT, all_files_access=False
        )
        negotiator = SandboxPermissionNegotiator(bridge)

        await negotiator.ensure_mobile_permissions()
        await negotiator.ensure_mobile_permissions()

        assert bridge.storage_permission is PermissionState.GRANTED
        assert bridge.settings_requests == 1

    async def test_ensure_mobile_permissions_is_advisory(self, tmp_path, caplog):
        negotiator = SandboxPermissionNegotiator(FlakyBridge(tmp_path))
        with caplog.at_level(logging.WARNING, logger="unifs.fs.permissions"):
            await negotiator.ensure_mobile_permissions()
        messages = [r.getMessage() for r in caplog.records]
        assert "Storage permission check failed" in messages
        assert "All-files permission request failed" in messages
