"""LocalDiskAdapter — host-native, path-based access to the local disk."""

from __future__ import annotations

import asyncio
import contextlib
import errno
import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path

from .base import BaseAdapter
from .exceptions import (
    InvalidHandleError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    wrap_os_error,
)
from .types import BackendKind, Entry, EntryKind, PathCapability, Stat
from .utils import guess_mime_type, is_within, join_path, normalize_path, sort_entries

logger = logging.getLogger(__name__)

_PATH = PathCapability()


class LocalDiskAdapter(BaseAdapter):
    """Direct host filesystem access. The entry path is the capability.

    Entry paths are the OS paths in forward-slash form.  When ``host_dir``
    is given, every path must resolve inside it; anything escaping raises
    :class:`PermissionDeniedError`.
    """

    backend = BackendKind.HOST
    capability_type = PathCapability

    def __init__(self, host_dir: Path | str | None = None) -> None:
        self.host_dir = Path(host_dir).resolve() if host_dir is not None else None

        if self.host_dir is not None:
            if not self.host_dir.exists():
                raise NotFoundError(f"Host directory does not exist: {self.host_dir}")
            if not self.host_dir.is_dir():
                raise InvalidHandleError(f"Host path is not a directory: {self.host_dir}")

    # =========================================================================
    # Path Resolution & Security
    # =========================================================================

    def _resolve(self, entry_path: str) -> Path:
        """Map an entry path to a physical path, enforcing ``host_dir``."""
        if not entry_path:
            raise InvalidHandleError("Entry has no host path")
        physical = Path(entry_path)
        if self.host_dir is None:
            return physical

        # Containment uses the resolved path; callers get the lexical one,
        # so a symlink entry stays the link itself.
        try:
            physical.resolve().relative_to(self.host_dir)
        except ValueError:
            raise PermissionDeniedError(
                f"Path traversal detected: {entry_path} resolves outside {self.host_dir}"
            ) from None
        return Path(os.path.abspath(physical))

    @staticmethod
    def _to_entry_path(physical: Path | str) -> str:
        return normalize_path(os.fspath(physical))

    def _entry(self, kind: EntryKind, physical: Path) -> Entry:
        path = self._to_entry_path(physical)
        return Entry(kind=kind, name=physical.name, path=path, capability=_PATH)

    async def entry_for_path(self, path: str) -> Entry:
        """Build an Entry for an existing OS path."""
        physical = self._resolve(normalize_path(path))
        with wrap_os_error("local.entry_for_path", path):
            st = await asyncio.to_thread(physical.stat)
        is_dir = stat.S_ISDIR(st.st_mode)
        return self._entry(EntryKind.DIRECTORY if is_dir else EntryKind.FILE, physical)

    # =========================================================================
    # Read Operations
    # =========================================================================

    async def list(self, directory: Entry) -> list[Entry]:
        """List directory contents from disk."""
        self._require_directory(directory, "local.list")
        resolved = self._resolve(directory.path)

        def _scan() -> list[Entry]:
            entries: list[Entry] = []
            with os.scandir(resolved) as it:
                for item in it:
                    try:
                        is_dir = item.is_dir()
                    except OSError:
                        continue
                    entries.append(
                        Entry(
                            kind=EntryKind.DIRECTORY if is_dir else EntryKind.FILE,
                            name=item.name,
                            path=join_path(directory.path, item.name),
                            capability=_PATH,
                        )
                    )
            return sort_entries(entries)

        with wrap_os_error("local.list", directory.path):
            return await asyncio.to_thread(_scan)

    async def stat(self, entry: Entry) -> Stat:
        self._check_capability(entry, "local.stat")
        resolved = self._resolve(entry.path)
        with wrap_os_error("local.stat", entry.path):
            st = await asyncio.to_thread(resolved.stat)
        is_dir = stat.S_ISDIR(st.st_mode)
        return Stat(
            kind=EntryKind.DIRECTORY if is_dir else EntryKind.FILE,
            size=None if is_dir else st.st_size,
            modified=int(st.st_mtime * 1000),
            mime_type=None if is_dir else guess_mime_type(resolved.name),
        )

    async def read_text(self, entry: Entry) -> str:
        self._require_file(entry, "local.read_text")
        resolved = self._resolve(entry.path)
        with wrap_os_error("local.read_text", entry.path):
            return await asyncio.to_thread(resolved.read_text, "utf-8")

    async def get_blob(self, entry: Entry) -> bytes:
        self._require_file(entry, "local.get_blob")
        resolved = self._resolve(entry.path)
        with wrap_os_error("local.get_blob", entry.path):
            return await asyncio.to_thread(resolved.read_bytes)

    # =========================================================================
    # Write Operations
    # =========================================================================

    async def write_text(self, target_dir: Entry, name: str, content: str) -> Entry:
        """Write content to a file on disk. Atomic via tempfile + replace."""
        return await self._write_bytes(target_dir, name, content.encode("utf-8"))

    async def _write_bytes(self, target_dir: Entry, name: str, data: bytes) -> Entry:
        self._require_directory(target_dir, "local.write")
        resolved = self._resolve(join_path(target_dir.path, name))

        def _write() -> None:
            fd, tmp_path = tempfile.mkstemp(dir=str(resolved.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                Path(tmp_path).replace(resolved)
            except Exception:
                with contextlib.suppress(OSError):
                    Path(tmp_path).unlink()
                raise

        with wrap_os_error("local.write", join_path(target_dir.path, name)):
            await asyncio.to_thread(_write)
        return Entry(
            kind=EntryKind.FILE,
            name=name,
            path=join_path(target_dir.path, name),
            capability=_PATH,
        )

    async def mkdir(self, target_dir: Entry, name: str) -> Entry:
        """Create a directory on disk. Existing directories are fine."""
        self._require_directory(target_dir, "local.mkdir")
        path = join_path(target_dir.path, name)
        resolved = self._resolve(path)

        def _mkdir() -> None:
            try:
                resolved.mkdir(parents=True)
            except FileExistsError:
                if not resolved.is_dir():
                    raise

        with wrap_os_error("local.mkdir", path):
            await asyncio.to_thread(_mkdir)
        return Entry(kind=EntryKind.DIRECTORY, name=name, path=path, capability=_PATH)

    async def remove(self, entry: Entry, parent: Entry | None = None) -> None:
        """Delete a file or directory from disk (directories recursively)."""
        self._check_capability(entry, "local.remove")
        resolved = self._resolve(entry.path)
        is_root = not resolved.is_symlink() and resolved.resolve() == self.host_dir
        if self.host_dir is not None and is_root:
            raise PermissionDeniedError(f"Refusing to remove the host root: {entry.path}")

        def _delete() -> None:
            if resolved.is_dir() and not resolved.is_symlink():
                shutil.rmtree(resolved)
            else:
                resolved.unlink()

        with wrap_os_error("local.remove", entry.path):
            await asyncio.to_thread(_delete)

    async def copy(
        self,
        entry: Entry,
        target_dir: Entry,
        *,
        new_name: str | None = None,
    ) -> Entry:
        """Copy a file or directory tree with the OS copy routines."""
        self._check_capability(entry, "local.copy")
        self._require_directory(target_dir, "local.copy")
        name = new_name or entry.name
        dest_path = join_path(target_dir.path, name)
        if entry.is_directory and is_within(dest_path, entry.path):
            raise StorageError(f"local.copy: cannot copy {entry.path} into itself")

        src = self._resolve(entry.path)
        dest = self._resolve(dest_path)

        def _copy() -> None:
            if dest.exists() and dest.is_dir() != src.is_dir():
                raise FileExistsError(errno.EEXIST, "Destination exists with another kind", name)
            if src.is_dir():
                shutil.copytree(src, dest, dirs_exist_ok=True)
            else:
                shutil.copy2(src, dest)

        with wrap_os_error("local.copy", entry.path):
            await asyncio.to_thread(_copy)
        return Entry(kind=entry.kind, name=name, path=dest_path, capability=_PATH)

    async def move(
        self,
        entry: Entry,
        target_dir: Entry,
        *,
        new_name: str | None = None,
        source_parent: Entry | None = None,
    ) -> Entry:
        """Rename on disk; across devices fall back to copy + remove."""
        self._check_capability(entry, "local.move")
        self._require_directory(target_dir, "local.move")
        name = new_name or entry.name
        dest_path = join_path(target_dir.path, name)
        if dest_path == entry.path:
            return entry
        if entry.is_directory and is_within(dest_path, entry.path):
            raise StorageError(f"local.move: cannot move {entry.path} into itself")

        src = self._resolve(entry.path)
        dest = self._resolve(dest_path)
        moved = Entry(kind=entry.kind, name=name, path=dest_path, capability=_PATH)

        with wrap_os_error("local.move", entry.path):
            try:
                await asyncio.to_thread(os.rename, src, dest)
                return moved
            except OSError as e:
                if e.errno != errno.EXDEV:
                    raise

        logger.debug("Cross-device move of %s, copying instead", entry.path)
        await self.copy(entry, target_dir, new_name=name)
        await self.remove(entry, source_parent)
        return moved
