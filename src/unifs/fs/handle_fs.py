"""HandleAdapter — capability-handle storage (File System Access API style)."""

from __future__ import annotations

import errno
import logging
from typing import TYPE_CHECKING

from .base import BaseAdapter
from .exceptions import (
    InvalidHandleError,
    StorageError,
    UnsupportedOperationError,
    wrap_os_error,
)
from .handles import DirectoryHandle, FileHandle, SupportsHandleMove
from .permissions import AccessMode, HandlePermissionNegotiator
from .types import BackendKind, Entry, EntryKind, HandleCapability, SandboxScope, Stat
from .utils import guess_mime_type, join_path, sort_entries

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    DirectoryPicker = Callable[[], Awaitable[DirectoryHandle]]

logger = logging.getLogger(__name__)


class HandleAdapter(BaseAdapter):
    """Storage reached only through directory/file handle objects.

    Entry paths are display paths rooted at the picked directory's name;
    the handle in the capability is what identifies the entry.  Every
    write-class call re-negotiates a readwrite grant on the directory
    handle it acts on, immediately before the native call.
    """

    backend = BackendKind.HANDLE
    capability_type = HandleCapability

    def __init__(
        self,
        directory_picker: DirectoryPicker | None = None,
        *,
        negotiator: HandlePermissionNegotiator | None = None,
    ) -> None:
        self._picker = directory_picker
        self._negotiator = negotiator or HandlePermissionNegotiator()

    # =========================================================================
    # Handle access
    # =========================================================================

    def _directory_handle(self, entry: Entry, operation: str) -> DirectoryHandle:
        capability = self._require_directory(entry, operation)
        handle = capability.ref
        if not isinstance(handle, DirectoryHandle) or handle.kind is not EntryKind.DIRECTORY:
            raise InvalidHandleError(f"{operation}: invalid directory handle for {entry.path}")
        return handle

    def _file_handle(self, entry: Entry, operation: str) -> FileHandle:
        capability = self._require_file(entry, operation)
        handle = capability.ref
        if not isinstance(handle, FileHandle) or handle.kind is not EntryKind.FILE:
            raise InvalidHandleError(f"{operation}: invalid file handle for {entry.path}")
        return handle

    @staticmethod
    def _child_entry(directory: Entry, name: str, handle: DirectoryHandle | FileHandle) -> Entry:
        return Entry(
            kind=handle.kind,
            name=name,
            path=join_path(directory.path, name),
            capability=HandleCapability(handle),
        )

    def entry_for_handle(self, handle: DirectoryHandle | FileHandle) -> Entry:
        """Wrap a top-level handle (e.g. a picker result) in an Entry."""
        return Entry(
            kind=handle.kind,
            name=handle.name,
            path=handle.name,
            capability=HandleCapability(handle),
        )

    async def pick_directory(self, scope: SandboxScope | None = None) -> Entry:
        """Ask the user for a directory through the injected picker."""
        if self._picker is None:
            raise UnsupportedOperationError("No directory picker is available")
        handle = await self._picker()
        return self.entry_for_handle(handle)

    # =========================================================================
    # Read Operations
    # =========================================================================

    async def list(self, directory: Entry) -> list[Entry]:
        handle = self._directory_handle(directory, "handle.list")
        entries: list[Entry] = []
        with wrap_os_error("handle.list", directory.path):
            async for name, child in handle.entries():
                entries.append(self._child_entry(directory, name, child))
        return sort_entries(entries)

    async def stat(self, entry: Entry) -> Stat:
        if entry.is_directory:
            directory = self._directory_handle(entry, "handle.stat")
            # Opening the listing fails on a removed directory
            with wrap_os_error("handle.stat", entry.path):
                async for _ in directory.entries():
                    break
            return Stat(kind=EntryKind.DIRECTORY)
        handle = self._file_handle(entry, "handle.stat")
        with wrap_os_error("handle.stat", entry.path):
            snapshot = await handle.get_file()
        return Stat(
            kind=EntryKind.FILE,
            size=snapshot.size,
            modified=snapshot.last_modified,
            mime_type=guess_mime_type(entry.name),
        )

    async def read_text(self, entry: Entry) -> str:
        data = await self.get_blob(entry)
        with wrap_os_error("handle.read_text", entry.path):
            return data.decode("utf-8")

    async def get_blob(self, entry: Entry) -> bytes:
        handle = self._file_handle(entry, "handle.get_blob")
        with wrap_os_error("handle.get_blob", entry.path):
            snapshot = await handle.get_file()
            return await snapshot.read_bytes()

    # =========================================================================
    # Write Operations
    # =========================================================================

    async def write_text(self, target_dir: Entry, name: str, content: str) -> Entry:
        return await self._write(target_dir, name, content, "handle.write_text")

    async def _write_bytes(self, target_dir: Entry, name: str, data: bytes) -> Entry:
        return await self._write(target_dir, name, data, "handle.write")

    async def _write(
        self, target_dir: Entry, name: str, data: str | bytes, operation: str
    ) -> Entry:
        handle = self._directory_handle(target_dir, operation)
        await self._negotiator.require(handle, AccessMode.READ_WRITE, operation=operation)
        with wrap_os_error(operation, join_path(target_dir.path, name)):
            file_handle = await handle.get_file_handle(name, create=True)
            writable = await file_handle.create_writable()
            await writable.write(data)
            await writable.close()
        return self._child_entry(target_dir, name, file_handle)

    async def mkdir(self, target_dir: Entry, name: str) -> Entry:
        handle = self._directory_handle(target_dir, "handle.mkdir")
        await self._negotiator.require(handle, AccessMode.READ_WRITE, operation="handle.mkdir")
        with wrap_os_error("handle.mkdir", join_path(target_dir.path, name)):
            sub = await handle.get_directory_handle(name, create=True)
        return self._child_entry(target_dir, name, sub)

    async def remove(self, entry: Entry, parent: Entry | None = None) -> None:
        """Remove through the parent handle; directories recursively."""
        self._check_capability(entry, "handle.remove")
        if parent is None:
            raise InvalidHandleError(
                f"handle.remove: removing {entry.path} needs its parent directory"
            )
        handle = self._directory_handle(parent, "handle.remove")
        await self._negotiator.require(handle, AccessMode.READ_WRITE, operation="handle.remove")
        with wrap_os_error("handle.remove", entry.path):
            await handle.remove_entry(entry.name, recursive=entry.is_directory)

    async def copy(
        self,
        entry: Entry,
        target_dir: Entry,
        *,
        new_name: str | None = None,
    ) -> Entry:
        """Read-then-write copy; the handle API has no native copy."""
        self._check_capability(entry, "handle.copy")
        self._directory_handle(target_dir, "handle.copy")
        if entry.is_directory and await self._contains(entry, target_dir):
            raise StorageError(f"handle.copy: cannot copy {entry.path} into itself")
        return await self._copy_portable(entry, target_dir, new_name or entry.name)

    async def move(
        self,
        entry: Entry,
        target_dir: Entry,
        *,
        new_name: str | None = None,
        source_parent: Entry | None = None,
    ) -> Entry:
        """Native handle move when offered, else copy + remove via ``source_parent``."""
        self._check_capability(entry, "handle.move")
        destination = self._directory_handle(target_dir, "handle.move")
        name = new_name or entry.name
        handle = entry.capability.ref

        if isinstance(handle, SupportsHandleMove):
            await self._negotiator.require(
                destination, AccessMode.READ_WRITE, operation="handle.move"
            )
            with wrap_os_error("handle.move", entry.path):
                try:
                    await handle.move(destination, name)
                    return self._child_entry(target_dir, name, handle)
                except OSError as e:
                    if e.errno != errno.EXDEV:
                        raise
            logger.debug("Handle move of %s crosses roots, copying instead", entry.path)

        if source_parent is None:
            raise InvalidHandleError(
                f"handle.move: moving {entry.path} across roots needs its parent directory"
            )
        return await self._move_portable(entry, target_dir, name, source_parent)

    async def _contains(self, directory: Entry, candidate: Entry) -> bool:
        """True if ``candidate`` is ``directory`` or one of its descendants."""
        target = candidate.capability.ref
        stack = [directory]
        while stack:
            current = stack.pop()
            if current.capability.ref == target:
                return True
            stack.extend(child for child in await self.list(current) if child.is_directory)
        return False
