"""FilesystemAdapter protocol — runtime-checkable interfaces.

Split into a core protocol every backend adapter implements and opt-in
capability protocols for operations only some backends can offer
(interactive picking, private workspace, OS permission pre-flight).
The facade gates on the opt-in protocols and raises
``UnsupportedOperationError`` when the active adapter lacks one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .types import BackendKind, Entry, SandboxScope, Stat


@runtime_checkable
class FilesystemAdapter(Protocol):
    """Core interface every backend adapter must implement."""

    backend: BackendKind

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list(self, directory: Entry) -> list[Entry]: ...

    async def stat(self, entry: Entry) -> Stat: ...

    async def read_text(self, entry: Entry) -> str: ...

    async def get_blob(self, entry: Entry) -> bytes: ...

    async def build_tree(self, directory: Entry) -> list[Entry]: ...

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def write_text(self, target_dir: Entry, name: str, content: str) -> Entry: ...

    async def mkdir(self, target_dir: Entry, name: str) -> Entry: ...

    async def remove(self, entry: Entry, parent: Entry | None = None) -> None: ...

    async def copy(
        self,
        entry: Entry,
        target_dir: Entry,
        *,
        new_name: str | None = None,
    ) -> Entry: ...

    async def move(
        self,
        entry: Entry,
        target_dir: Entry,
        *,
        new_name: str | None = None,
        source_parent: Entry | None = None,
    ) -> Entry: ...


@runtime_checkable
class SupportsDirectoryPicker(Protocol):
    """Opt-in: interactive directory selection."""

    async def pick_directory(self, scope: SandboxScope | None = None) -> Entry: ...


@runtime_checkable
class SupportsPathLookup(Protocol):
    """Opt-in: build an Entry from a path string."""

    async def entry_for_path(self, path: str) -> Entry: ...


@runtime_checkable
class SupportsPrivateWorkspace(Protocol):
    """Opt-in: app-private workspace root and external folder access."""

    async def get_private_workspace_root(self) -> Entry: ...

    async def open_external(self, uri: str) -> Entry: ...


@runtime_checkable
class SupportsMobilePermissions(Protocol):
    """Opt-in: OS permission pre-flight before write-heavy workflows."""

    async def ensure_mobile_permissions(self) -> None: ...
