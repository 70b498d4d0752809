"""Capability-handle API and an in-memory implementation.

The handle backend talks to storage exclusively through directory and file
handle objects shaped after the File System Access API: handles are
obtained from a parent handle by name, carry their own read/readwrite
grants, and removal goes through the parent.  ``MemoryDirectoryHandle``
implements the protocol over an in-process tree for ephemeral workspaces
and tests.
"""

from __future__ import annotations

import errno
import inspect
import time
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .permissions import AccessMode, PermissionState
from .types import EntryKind

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    PromptCallback = Callable[[AccessMode], bool | Awaitable[bool]]


# =============================================================================
# Protocol
# =============================================================================


@runtime_checkable
class FileSystemHandle(Protocol):
    """Common surface of directory and file handles."""

    @property
    def kind(self) -> EntryKind: ...

    @property
    def name(self) -> str: ...

    async def query_permission(self, mode: AccessMode) -> PermissionState: ...

    async def request_permission(self, mode: AccessMode) -> PermissionState: ...


@runtime_checkable
class FileSnapshot(Protocol):
    """Point-in-time view of a file's content and metadata."""

    @property
    def size(self) -> int: ...

    @property
    def last_modified(self) -> int: ...

    async def read_bytes(self) -> bytes: ...


@runtime_checkable
class WritableFileStream(Protocol):
    """Buffered writer; content becomes visible on ``close``."""

    async def write(self, data: str | bytes) -> None: ...

    async def close(self) -> None: ...


@runtime_checkable
class FileHandle(FileSystemHandle, Protocol):
    async def get_file(self) -> FileSnapshot: ...

    async def create_writable(self) -> WritableFileStream: ...


@runtime_checkable
class DirectoryHandle(FileSystemHandle, Protocol):
    def entries(self) -> AsyncIterator[tuple[str, FileSystemHandle]]: ...

    async def get_file_handle(self, name: str, *, create: bool = False) -> FileHandle: ...

    async def get_directory_handle(
        self, name: str, *, create: bool = False
    ) -> DirectoryHandle: ...

    async def remove_entry(self, name: str, *, recursive: bool = False) -> None: ...


@runtime_checkable
class SupportsHandleMove(Protocol):
    """Opt-in: native move/rename of a handle into another directory.

    Implementations raise ``OSError(EXDEV)`` when the destination lives in
    a different storage root.
    """

    async def move(self, destination: DirectoryHandle, name: str) -> None: ...


# =============================================================================
# In-memory implementation
# =============================================================================


def _now_ms() -> int:
    return int(time.time() * 1000)


class _Grants:
    """Permission state shared by every handle under one root."""

    def __init__(
        self,
        *,
        read: PermissionState,
        read_write: PermissionState,
        prompt: PromptCallback | None,
    ) -> None:
        self.states = {AccessMode.READ: read, AccessMode.READ_WRITE: read_write}
        self.prompt = prompt
        self.prompt_count = 0

    def query(self, mode: AccessMode) -> PermissionState:
        state = self.states[mode]
        # A readwrite grant implies read
        if mode is AccessMode.READ and self.states[AccessMode.READ_WRITE] is PermissionState.GRANTED:
            return PermissionState.GRANTED
        return state

    async def request(self, mode: AccessMode) -> PermissionState:
        if self.query(mode) is not PermissionState.PROMPT:
            return self.query(mode)
        self.prompt_count += 1
        if self.prompt is None:
            granted = True
        else:
            answer = self.prompt(mode)
            granted = await answer if inspect.isawaitable(answer) else answer
        self.states[mode] = PermissionState.GRANTED if granted else PermissionState.DENIED
        return self.states[mode]

    def check(self, mode: AccessMode, name: str) -> None:
        if self.query(mode) is not PermissionState.GRANTED:
            raise PermissionError(errno.EACCES, f"{mode.value} access not granted", name)


class _Node:
    def __init__(self, name: str, kind: EntryKind, parent: _Node | None = None) -> None:
        self.name = name
        self.kind = kind
        self.parent = parent
        self.children: dict[str, _Node] = {}
        self.data = b""
        self.modified = _now_ms()
        self.detached = False

    def root(self) -> _Node:
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def detach(self) -> None:
        self.detached = True
        self.parent = None
        for child in self.children.values():
            child.detach()


class MemoryHandle:
    """Shared behaviour of in-memory handles."""

    def __init__(self, node: _Node, grants: _Grants) -> None:
        self._node = node
        self._grants = grants

    @property
    def kind(self) -> EntryKind:
        return self._node.kind

    @property
    def name(self) -> str:
        return self._node.name

    def __eq__(self, other: object) -> bool:
        return isinstance(other, MemoryHandle) and other._node is self._node

    def __hash__(self) -> int:
        return id(self._node)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._node.name!r})"

    async def query_permission(self, mode: AccessMode) -> PermissionState:
        return self._grants.query(mode)

    async def request_permission(self, mode: AccessMode) -> PermissionState:
        return await self._grants.request(mode)

    async def is_same_entry(self, other: FileSystemHandle) -> bool:
        return self == other

    def _live(self) -> _Node:
        if self._node.detached:
            raise FileNotFoundError(errno.ENOENT, "Entry no longer exists", self._node.name)
        return self._node

    def _wrap(self, node: _Node) -> MemoryHandle:
        if node.kind is EntryKind.DIRECTORY:
            return MemoryDirectoryHandle(node, self._grants)
        return MemoryFileHandle(node, self._grants)

    async def move(self, destination: DirectoryHandle, name: str) -> None:
        node = self._live()
        if not isinstance(destination, MemoryDirectoryHandle) or destination._grants is not self._grants:
            raise OSError(errno.EXDEV, "Cannot move across storage roots", node.name)
        self._grants.check(AccessMode.READ_WRITE, node.name)
        target = destination._live()
        probe: _Node | None = target
        while probe is not None:
            if probe is node:
                raise OSError(errno.EINVAL, "Cannot move a directory into itself", node.name)
            probe = probe.parent
        existing = target.children.get(name)
        if existing is not None and existing is not node:
            if existing.kind is not node.kind:
                raise FileExistsError(errno.EEXIST, "Entry exists with another kind", name)
            existing.detach()
        if node.parent is not None:
            node.parent.children.pop(node.name, None)
        node.name = name
        node.parent = target
        target.children[name] = node


class MemoryFile:
    """Snapshot returned by :meth:`MemoryFileHandle.get_file`."""

    def __init__(self, name: str, data: bytes, last_modified: int) -> None:
        self.name = name
        self._data = data
        self.last_modified = last_modified

    @property
    def size(self) -> int:
        return len(self._data)

    async def read_bytes(self) -> bytes:
        return self._data

    async def text(self) -> str:
        return self._data.decode("utf-8")


class MemoryWritable:
    """Buffers writes and swaps them in on close."""

    def __init__(self, node: _Node) -> None:
        self._node = node
        self._buffer = bytearray()
        self._closed = False

    async def write(self, data: str | bytes) -> None:
        if self._closed:
            raise ValueError("Stream is closed")
        self._buffer += data.encode("utf-8") if isinstance(data, str) else data

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._node.detached:
            raise FileNotFoundError(errno.ENOENT, "Entry no longer exists", self._node.name)
        self._node.data = bytes(self._buffer)
        self._node.modified = _now_ms()


class MemoryFileHandle(MemoryHandle):
    async def get_file(self) -> MemoryFile:
        node = self._live()
        self._grants.check(AccessMode.READ, node.name)
        return MemoryFile(node.name, node.data, node.modified)

    async def create_writable(self) -> MemoryWritable:
        node = self._live()
        self._grants.check(AccessMode.READ_WRITE, node.name)
        return MemoryWritable(node)


class MemoryDirectoryHandle(MemoryHandle):
    """In-memory directory handle.

    Use :meth:`create_root` to start a new tree.  Every handle derived from
    a root shares its grants; with no ``prompt`` callback, requests are
    granted.
    """

    @classmethod
    def create_root(
        cls,
        name: str = "workspace",
        *,
        read: PermissionState = PermissionState.GRANTED,
        read_write: PermissionState = PermissionState.PROMPT,
        prompt: PromptCallback | None = None,
    ) -> MemoryDirectoryHandle:
        grants = _Grants(read=read, read_write=read_write, prompt=prompt)
        return cls(_Node(name, EntryKind.DIRECTORY), grants)

    @property
    def prompt_count(self) -> int:
        """How many times a permission prompt was shown for this tree."""
        return self._grants.prompt_count

    async def entries(self) -> AsyncIterator[tuple[str, MemoryHandle]]:
        node = self._live()
        self._grants.check(AccessMode.READ, node.name)
        for name, child in list(node.children.items()):
            yield name, self._wrap(child)

    def _child(self, name: str, kind: EntryKind, *, create: bool) -> _Node:
        node = self._live()
        if not name or "/" in name or name in (".", ".."):
            raise OSError(errno.EINVAL, "Invalid entry name", name)
        child = node.children.get(name)
        if child is not None:
            if child.kind is kind:
                return child
            if kind is EntryKind.DIRECTORY:
                raise NotADirectoryError(errno.ENOTDIR, "Entry is a file", name)
            raise IsADirectoryError(errno.EISDIR, "Entry is a directory", name)
        if not create:
            raise FileNotFoundError(errno.ENOENT, "No such entry", name)
        self._grants.check(AccessMode.READ_WRITE, name)
        child = _Node(name, kind, parent=node)
        node.children[name] = child
        return child

    async def get_file_handle(self, name: str, *, create: bool = False) -> MemoryFileHandle:
        return MemoryFileHandle(self._child(name, EntryKind.FILE, create=create), self._grants)

    async def get_directory_handle(
        self, name: str, *, create: bool = False
    ) -> MemoryDirectoryHandle:
        return MemoryDirectoryHandle(
            self._child(name, EntryKind.DIRECTORY, create=create), self._grants
        )

    async def remove_entry(self, name: str, *, recursive: bool = False) -> None:
        node = self._live()
        self._grants.check(AccessMode.READ_WRITE, name)
        child = node.children.get(name)
        if child is None:
            raise FileNotFoundError(errno.ENOENT, "No such entry", name)
        if child.kind is EntryKind.DIRECTORY and child.children and not recursive:
            raise OSError(errno.ENOTEMPTY, "Directory not empty", name)
        del node.children[name]
        child.detach()
