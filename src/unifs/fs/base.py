"""BaseAdapter — shared tree building and copy/move fallbacks."""

from __future__ import annotations

import dataclasses
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

from .exceptions import FsError, InvalidHandleError
from .types import EntryKind

if TYPE_CHECKING:
    from .types import BackendKind, Capability, Entry, Stat

logger = logging.getLogger(__name__)


class BaseAdapter(ABC):
    """Base adapter with logic shared by every backend.

    Subclasses set ``backend`` and ``capability_type`` and implement the
    core protocol operations plus:
    - _write_bytes(target_dir, name, data): create-or-overwrite raw content

    The base class provides ``build_tree`` and the portable fallbacks used
    when no native copy or rename applies: depth-first read-then-write copy
    and copy-then-remove move.
    """

    backend: ClassVar[BackendKind]
    capability_type: ClassVar[type[Capability]]

    # =========================================================================
    # Abstract Methods - Subclasses must implement
    # =========================================================================

    @abstractmethod
    async def list(self, directory: Entry) -> list[Entry]: ...

    @abstractmethod
    async def stat(self, entry: Entry) -> Stat: ...

    @abstractmethod
    async def get_blob(self, entry: Entry) -> bytes: ...

    @abstractmethod
    async def mkdir(self, target_dir: Entry, name: str) -> Entry: ...

    @abstractmethod
    async def remove(self, entry: Entry, parent: Entry | None = None) -> None: ...

    @abstractmethod
    async def _write_bytes(self, target_dir: Entry, name: str, data: bytes) -> Entry:
        """Create or overwrite ``name`` in ``target_dir`` with raw bytes.

        Used by the portable copy so binary files survive byte-identical.
        """
        ...

    # =========================================================================
    # Capability checks
    # =========================================================================

    def _check_capability(self, entry: Entry, operation: str) -> Capability:
        capability = entry.capability
        if not isinstance(capability, self.capability_type):
            raise InvalidHandleError(
                f"{operation}: {entry.path or entry.name!r} carries a "
                f"{capability.kind.value} capability, expected {self.backend.value}"
            )
        return capability

    def _require_directory(self, entry: Entry, operation: str) -> Capability:
        capability = self._check_capability(entry, operation)
        if entry.kind is not EntryKind.DIRECTORY:
            raise InvalidHandleError(f"{operation}: not a directory: {entry.path}")
        return capability

    def _require_file(self, entry: Entry, operation: str) -> Capability:
        capability = self._check_capability(entry, operation)
        if entry.kind is not EntryKind.FILE:
            raise InvalidHandleError(f"{operation}: not a file: {entry.path}")
        return capability

    # =========================================================================
    # Shared operations
    # =========================================================================

    async def build_tree(self, directory: Entry) -> list[Entry]:
        """Recursive ``list`` with ``children`` populated at every level."""
        result: list[Entry] = []
        for child in await self.list(directory):
            if child.is_directory:
                subtree = await self.build_tree(child)
                child = dataclasses.replace(child, children=tuple(subtree))
            result.append(child)
        return result

    async def _copy_portable(self, entry: Entry, target_dir: Entry, name: str) -> Entry:
        """Depth-first read-then-write copy.

        Directories are recreated and every descendant copied one by one;
        files are read fully into memory and rewritten.
        """
        if entry.is_file:
            data = await self.get_blob(entry)
            return await self._write_bytes(target_dir, name, data)

        created = await self.mkdir(target_dir, name)
        for child in await self.list(entry):
            await self._copy_portable(child, created, child.name)
        return created

    async def _move_portable(
        self,
        entry: Entry,
        target_dir: Entry,
        name: str,
        source_parent: Entry | None,
    ) -> Entry:
        """Copy then remove the original. Not atomic.

        A failure between the two steps leaves both copies in place.
        """
        copied = await self._copy_portable(entry, target_dir, name)
        try:
            await self.remove(entry, source_parent)
        except FsError:
            logger.warning(
                "Copied %s to %s but could not remove the source",
                entry.path,
                copied.path,
                exc_info=True,
            )
            raise
        return copied
