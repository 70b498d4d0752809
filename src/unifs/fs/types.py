"""Value types: Entry, Stat, capability references, support report."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


class EntryKind(str, Enum):
    """Kind of a filesystem entry."""

    FILE = "file"
    DIRECTORY = "directory"


class BackendKind(str, Enum):
    """Storage backend families the facade can dispatch to."""

    HANDLE = "handle"
    HOST = "host"
    SANDBOX = "sandbox"


class SandboxScope(str, Enum):
    """Root directories a sandbox bridge exposes."""

    DOCUMENTS = "DOCUMENTS"
    DATA = "DATA"
    LIBRARY = "LIBRARY"
    CACHE = "CACHE"
    EXTERNAL = "EXTERNAL"
    EXTERNAL_STORAGE = "EXTERNAL_STORAGE"


# Scopes backed by shared device storage; writes need the OS-level grant.
PUBLIC_SCOPES = frozenset({SandboxScope.DOCUMENTS, SandboxScope.EXTERNAL_STORAGE})


# =============================================================================
# Capability references
# =============================================================================


@dataclass(frozen=True)
class HandleCapability:
    """Handle backend: an opaque directory or file handle."""

    kind: ClassVar[BackendKind] = BackendKind.HANDLE

    ref: Any


@dataclass(frozen=True)
class PathCapability:
    """Host backend: the entry path is all that is needed."""

    kind: ClassVar[BackendKind] = BackendKind.HOST


@dataclass(frozen=True)
class ScopedCapability:
    """Sandbox backend: a scope plus a path relative to it."""

    kind: ClassVar[BackendKind] = BackendKind.SANDBOX

    scope: SandboxScope
    relative_path: str = ""


Capability = HandleCapability | PathCapability | ScopedCapability


# =============================================================================
# Entries
# =============================================================================


@dataclass(frozen=True)
class Entry:
    """A file or directory on one backend.

    ``path`` is forward-slash normalized without a trailing slash.  ``name``
    is the last path segment, or empty for capability-only roots.
    ``children`` is only filled in by ``build_tree``.
    """

    kind: EntryKind
    name: str
    path: str
    capability: Capability
    children: tuple[Entry, ...] | None = None

    @property
    def is_directory(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE


@dataclass(frozen=True)
class Stat:
    """Entry metadata. ``modified`` is epoch milliseconds."""

    kind: EntryKind
    size: int | None = None
    modified: int | None = None
    mime_type: str | None = None


@dataclass(frozen=True)
class ExternalPathInfo:
    """A device path or SAF URI reduced to a volume-relative path."""

    volume: str
    relative_path: str
    display_name: str


@dataclass
class SupportReport:
    """Whether interactive directory picking is available, and why not."""

    supported: bool
    browser: str | None = None
    reason: str | None = None
    suggestion: str | None = None
    debug: dict[str, Any] = field(default_factory=dict)
