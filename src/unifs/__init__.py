"""unifs: one filesystem over browser handles, host disk, and mobile sandboxes.

Unified file operations and a streaming, cancellable full-text search.
"""

__version__ = "0.1.0"

from unifs.fs.exceptions import (
    FsError,
    InvalidHandleError,
    NotFoundError,
    PatternError,
    PermissionDeniedError,
    StorageError,
    UnsupportedOperationError,
)
from unifs.fs.platform import PlatformProbe
from unifs.fs.types import (
    BackendKind,
    Entry,
    EntryKind,
    SandboxScope,
    Stat,
    SupportReport,
)
from unifs.fs.unified import UnifiedFileSystem, get_filesystem, reset_filesystem
from unifs.search.worker import SearchWorker

__all__ = [
    "BackendKind",
    "Entry",
    "EntryKind",
    "FsError",
    "InvalidHandleError",
    "NotFoundError",
    "PatternError",
    "PermissionDeniedError",
    "PlatformProbe",
    "SandboxScope",
    "SearchWorker",
    "Stat",
    "StorageError",
    "SupportReport",
    "UnifiedFileSystem",
    "UnsupportedOperationError",
    "__version__",
    "get_filesystem",
    "reset_filesystem",
]
