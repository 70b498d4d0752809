"""SandboxAdapter — scoped mobile storage reached through a native bridge."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING

from .base import BaseAdapter
from .exceptions import StorageError, wrap_os_error
from .permissions import SandboxPermissionNegotiator
from .sandbox_bridge import UTF8
from .types import (
    PUBLIC_SCOPES,
    BackendKind,
    Entry,
    EntryKind,
    SandboxScope,
    ScopedCapability,
    Stat,
)
from .utils import (
    basename,
    guess_mime_type,
    is_full_device_path,
    is_within,
    join_path,
    normalize_path,
    sort_entries,
    to_relative_external_path,
)

if TYPE_CHECKING:
    from .sandbox_bridge import SandboxBridge

logger = logging.getLogger(__name__)

PRIVATE_WORKSPACE_DIR = "workspace"


class SandboxAdapter(BaseAdapter):
    """Storage addressed by ``(scope, relative path)`` pairs.

    Scope roots are capability-only entries with an empty name and path.
    Binary content crosses the bridge base64-encoded; text crosses as UTF-8.
    Writes into public scopes require the storage permission and the
    OS-level all-files grant.
    """

    backend = BackendKind.SANDBOX
    capability_type = ScopedCapability

    def __init__(
        self,
        bridge: SandboxBridge,
        *,
        negotiator: SandboxPermissionNegotiator | None = None,
    ) -> None:
        self.bridge = bridge
        self.negotiator = negotiator or SandboxPermissionNegotiator(bridge)

    # =========================================================================
    # Entries
    # =========================================================================

    @staticmethod
    def _entry(kind: EntryKind, scope: SandboxScope, relative_path: str) -> Entry:
        return Entry(
            kind=kind,
            name=basename(relative_path),
            path=relative_path,
            capability=ScopedCapability(scope, relative_path),
        )

    @staticmethod
    def _relative(relative_path: str) -> str:
        return normalize_path(relative_path).strip("/")

    def _locate(self, entry: Entry, operation: str) -> tuple[SandboxScope, str]:
        capability = self._check_capability(entry, operation)
        return capability.scope, capability.relative_path

    async def _require_writable(self, scope: SandboxScope, operation: str) -> None:
        if scope in PUBLIC_SCOPES:
            await self.negotiator.require_public_storage(operation=operation)
            await self.negotiator.require_all_files_access(operation=operation)

    async def pick_directory(self, scope: SandboxScope | None = None) -> Entry:
        """Return the root of ``scope`` (``DOCUMENTS`` by default)."""
        return self._entry(EntryKind.DIRECTORY, scope or SandboxScope.DOCUMENTS, "")

    async def entry_for_path(
        self, path: str, scope: SandboxScope = SandboxScope.DOCUMENTS
    ) -> Entry:
        """Build an Entry for an existing path inside ``scope``.

        ``content://`` and ``file://`` URIs are routed through :meth:`open_external`.
        """
        if is_full_device_path(path):
            return await self.open_external(path)
        rel = self._relative(path)
        if not rel:
            return self._entry(EntryKind.DIRECTORY, scope, "")
        with wrap_os_error("sandbox.entry_for_path", rel):
            info = await self.bridge.stat(rel, scope)
        return self._entry(info.type, scope, rel)

    async def get_private_workspace_root(self) -> Entry:
        """The app-private ``DATA/workspace`` directory, created on demand."""
        root = self._entry(EntryKind.DIRECTORY, SandboxScope.DATA, "")
        return await self.mkdir(root, PRIVATE_WORKSPACE_DIR)

    async def open_external(self, uri: str) -> Entry:
        """Map a SAF ``content://`` or ``file://`` URI to an external-storage entry."""
        info = to_relative_external_path(uri)
        logger.debug("Opening external %s as %s:%s", uri, info.volume, info.relative_path)
        return await self.entry_for_path(info.relative_path, SandboxScope.EXTERNAL_STORAGE)

    async def ensure_mobile_permissions(self) -> None:
        await self.negotiator.ensure_mobile_permissions()

    # =========================================================================
    # Read Operations
    # =========================================================================

    async def list(self, directory: Entry) -> list[Entry]:
        self._require_directory(directory, "sandbox.list")
        scope, rel = self._locate(directory, "sandbox.list")
        with wrap_os_error("sandbox.list", directory.path):
            rows = await self.bridge.readdir(rel, scope)
        return sort_entries(
            self._entry(row.type, scope, join_path(rel, row.name)) for row in rows
        )

    async def stat(self, entry: Entry) -> Stat:
        scope, rel = self._locate(entry, "sandbox.stat")
        with wrap_os_error("sandbox.stat", entry.path):
            info = await self.bridge.stat(rel, scope)
        is_dir = info.type is EntryKind.DIRECTORY
        return Stat(
            kind=info.type,
            size=None if is_dir else info.size,
            modified=info.mtime,
            mime_type=None if is_dir else guess_mime_type(basename(rel)),
        )

    async def read_text(self, entry: Entry) -> str:
        self._require_file(entry, "sandbox.read_text")
        scope, rel = self._locate(entry, "sandbox.read_text")
        with wrap_os_error("sandbox.read_text", entry.path):
            return await self.bridge.read_file(rel, scope, encoding=UTF8)

    async def get_blob(self, entry: Entry) -> bytes:
        self._require_file(entry, "sandbox.get_blob")
        scope, rel = self._locate(entry, "sandbox.get_blob")
        with wrap_os_error("sandbox.get_blob", entry.path):
            encoded = await self.bridge.read_file(rel, scope)
        try:
            return base64.b64decode(encoded, validate=True)
        except binascii.Error as e:
            raise StorageError(f"sandbox.get_blob: bad base64 payload for {entry.path}") from e

    # =========================================================================
    # Write Operations
    # =========================================================================

    async def write_text(self, target_dir: Entry, name: str, content: str) -> Entry:
        self._require_directory(target_dir, "sandbox.write_text")
        scope, base = self._locate(target_dir, "sandbox.write_text")
        await self._require_writable(scope, "sandbox.write_text")
        rel = join_path(base, name)
        with wrap_os_error("sandbox.write_text", rel):
            await self.bridge.write_file(rel, content, scope, encoding=UTF8, recursive=True)
        return self._entry(EntryKind.FILE, scope, rel)

    async def _write_bytes(self, target_dir: Entry, name: str, data: bytes) -> Entry:
        self._require_directory(target_dir, "sandbox.write")
        scope, base = self._locate(target_dir, "sandbox.write")
        await self._require_writable(scope, "sandbox.write")
        rel = join_path(base, name)
        payload = base64.b64encode(data).decode("ascii")
        with wrap_os_error("sandbox.write", rel):
            await self.bridge.write_file(rel, payload, scope, recursive=True)
        return self._entry(EntryKind.FILE, scope, rel)

    async def mkdir(self, target_dir: Entry, name: str) -> Entry:
        self._require_directory(target_dir, "sandbox.mkdir")
        scope, base = self._locate(target_dir, "sandbox.mkdir")
        await self._require_writable(scope, "sandbox.mkdir")
        rel = join_path(base, name)
        with wrap_os_error("sandbox.mkdir", rel):
            try:
                await self.bridge.mkdir(rel, scope, recursive=True)
            except FileExistsError:
                info = await self.bridge.stat(rel, scope)
                if info.type is not EntryKind.DIRECTORY:
                    raise
        return self._entry(EntryKind.DIRECTORY, scope, rel)

    async def remove(self, entry: Entry, parent: Entry | None = None) -> None:
        scope, rel = self._locate(entry, "sandbox.remove")
        await self._require_writable(scope, "sandbox.remove")
        with wrap_os_error("sandbox.remove", entry.path):
            if entry.is_directory:
                await self.bridge.rmdir(rel, scope, recursive=True)
            else:
                await self.bridge.delete_file(rel, scope)

    async def copy(
        self,
        entry: Entry,
        target_dir: Entry,
        *,
        new_name: str | None = None,
    ) -> Entry:
        """Native copy for a file within one scope, portable copy otherwise."""
        scope, rel = self._locate(entry, "sandbox.copy")
        self._require_directory(target_dir, "sandbox.copy")
        to_scope, base = self._locate(target_dir, "sandbox.copy")
        name = new_name or entry.name
        dest = join_path(base, name)

        if entry.is_directory and scope is to_scope and is_within(dest, rel):
            raise StorageError(f"sandbox.copy: cannot copy {entry.path} into itself")

        if entry.is_file and scope is to_scope:
            await self._require_writable(to_scope, "sandbox.copy")
            with wrap_os_error("sandbox.copy", entry.path):
                await self.bridge.copy(rel, dest, scope, to_scope)
            return self._entry(EntryKind.FILE, to_scope, dest)

        logger.debug("Portable copy of %s:%s to %s:%s", scope.value, rel, to_scope.value, dest)
        return await self._copy_portable(entry, target_dir, name)

    async def move(
        self,
        entry: Entry,
        target_dir: Entry,
        *,
        new_name: str | None = None,
        source_parent: Entry | None = None,
    ) -> Entry:
        """Bridge rename within one scope; copy + remove across scopes."""
        scope, rel = self._locate(entry, "sandbox.move")
        self._require_directory(target_dir, "sandbox.move")
        to_scope, base = self._locate(target_dir, "sandbox.move")
        name = new_name or entry.name
        dest = join_path(base, name)

        if scope is to_scope:
            if dest == rel:
                return entry
            if entry.is_directory and is_within(dest, rel):
                raise StorageError(f"sandbox.move: cannot move {entry.path} into itself")
            await self._require_writable(scope, "sandbox.move")
            with wrap_os_error("sandbox.move", entry.path):
                await self.bridge.rename(rel, dest, scope, to_scope)
            return self._entry(entry.kind, to_scope, dest)

        return await self._move_portable(entry, target_dir, name, source_parent)
