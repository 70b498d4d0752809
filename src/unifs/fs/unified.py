"""UnifiedFileSystem — one facade over the handle, host and sandbox backends."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import UnsupportedOperationError
from .handle_fs import HandleAdapter
from .local_disk import LocalDiskAdapter
from .platform import PlatformProbe, check_file_system_support, detect_backend
from .protocol import (
    SupportsDirectoryPicker,
    SupportsMobilePermissions,
    SupportsPathLookup,
    SupportsPrivateWorkspace,
)
from .sandbox_fs import SandboxAdapter
from .types import BackendKind

if TYPE_CHECKING:
    from pathlib import Path

    from .protocol import FilesystemAdapter
    from .types import Entry, SandboxScope, Stat, SupportReport

logger = logging.getLogger(__name__)


class UnifiedFileSystem:
    """Routes every operation to the adapter for the detected backend.

    Detection runs once, on first use, from the capability markers of the
    probe (``PlatformProbe.from_environ()`` when none is given).  Errors
    from the adapter propagate unchanged.  Operations only some backends
    offer raise :class:`UnsupportedOperationError` elsewhere.
    """

    def __init__(
        self,
        probe: PlatformProbe | None = None,
        *,
        host_dir: Path | str | None = None,
    ) -> None:
        self._probe = probe
        self._host_dir = host_dir
        self._adapter: FilesystemAdapter | None = None

    @property
    def probe(self) -> PlatformProbe:
        if self._probe is None:
            self._probe = PlatformProbe.from_environ()
        return self._probe

    @property
    def adapter(self) -> FilesystemAdapter:
        if self._adapter is None:
            self._adapter = self._create_adapter()
        return self._adapter

    @property
    def backend(self) -> BackendKind:
        return self.adapter.backend

    def _create_adapter(self) -> FilesystemAdapter:
        probe = self.probe
        backend = detect_backend(probe)
        logger.info("Filesystem backend: %s", backend.value)
        if backend is BackendKind.HANDLE:
            return HandleAdapter(probe.directory_picker)
        bridge = probe.native_bridge
        if backend is BackendKind.SANDBOX and bridge is not None:
            return SandboxAdapter(bridge)
        return LocalDiskAdapter(self._host_dir)

    def _unsupported(self, operation: str) -> UnsupportedOperationError:
        return UnsupportedOperationError(
            f"{operation} is not available on the {self.backend.value} backend"
        )

    # =========================================================================
    # Core operations
    # =========================================================================

    async def list(self, directory: Entry) -> list[Entry]:
        return await self.adapter.list(directory)

    async def stat(self, entry: Entry) -> Stat:
        return await self.adapter.stat(entry)

    async def read_text(self, entry: Entry) -> str:
        return await self.adapter.read_text(entry)

    async def get_blob(self, entry: Entry) -> bytes:
        return await self.adapter.get_blob(entry)

    async def write_text(self, target_dir: Entry, name: str, content: str) -> Entry:
        return await self.adapter.write_text(target_dir, name, content)

    async def mkdir(self, target_dir: Entry, name: str) -> Entry:
        return await self.adapter.mkdir(target_dir, name)

    async def remove(self, entry: Entry, parent: Entry | None = None) -> None:
        await self.adapter.remove(entry, parent)

    async def copy(
        self,
        entry: Entry,
        target_dir: Entry,
        *,
        new_name: str | None = None,
    ) -> Entry:
        return await self.adapter.copy(entry, target_dir, new_name=new_name)

    async def move(
        self,
        entry: Entry,
        target_dir: Entry,
        *,
        new_name: str | None = None,
        source_parent: Entry | None = None,
    ) -> Entry:
        return await self.adapter.move(
            entry, target_dir, new_name=new_name, source_parent=source_parent
        )

    async def build_tree(self, directory: Entry) -> list[Entry]:
        return await self.adapter.build_tree(directory)

    # =========================================================================
    # Backend-specific operations
    # =========================================================================

    async def pick_directory(self, scope: SandboxScope | None = None) -> Entry:
        adapter = self.adapter
        if not isinstance(adapter, SupportsDirectoryPicker):
            raise self._unsupported("pick_directory")
        return await adapter.pick_directory(scope)

    async def entry_for_path(self, path: str) -> Entry:
        adapter = self.adapter
        if not isinstance(adapter, SupportsPathLookup):
            raise self._unsupported("entry_for_path")
        return await adapter.entry_for_path(path)

    async def get_private_workspace_root(self) -> Entry:
        adapter = self.adapter
        if not isinstance(adapter, SupportsPrivateWorkspace):
            raise self._unsupported("get_private_workspace_root")
        return await adapter.get_private_workspace_root()

    async def open_external(self, uri: str) -> Entry:
        adapter = self.adapter
        if not isinstance(adapter, SupportsPrivateWorkspace):
            raise self._unsupported("open_external")
        return await adapter.open_external(uri)

    async def ensure_mobile_permissions(self) -> None:
        """Permission pre-flight; a no-op outside the sandbox backend."""
        adapter = self.adapter
        if isinstance(adapter, SupportsMobilePermissions):
            await adapter.ensure_mobile_permissions()

    def check_file_system_support(self) -> SupportReport:
        probe = self.probe
        return check_file_system_support(probe.user_agent, probe.directory_picker is not None)


# =============================================================================
# Process-wide instance
# =============================================================================

_filesystem: UnifiedFileSystem | None = None


def get_filesystem() -> UnifiedFileSystem:
    """Return the shared facade, creating it on first call."""
    global _filesystem
    if _filesystem is None:
        _filesystem = UnifiedFileSystem()
    return _filesystem


def reset_filesystem() -> None:
    """Drop the shared facade so the next call re-detects the backend."""
    global _filesystem
    _filesystem = None
