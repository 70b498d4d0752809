"""Filesystem layer — backend adapters, permissions, the unified facade."""

from unifs.fs.base import BaseAdapter
from unifs.fs.exceptions import (
    FsError,
    InvalidHandleError,
    NotFoundError,
    PatternError,
    PermissionDeniedError,
    StorageError,
    UnsupportedOperationError,
)
from unifs.fs.handle_fs import HandleAdapter
from unifs.fs.handles import MemoryDirectoryHandle
from unifs.fs.local_disk import LocalDiskAdapter
from unifs.fs.permissions import (
    AccessMode,
    HandlePermissionNegotiator,
    PermissionState,
    PermissionStatus,
    SandboxPermissionNegotiator,
)
from unifs.fs.platform import PlatformProbe, check_file_system_support, detect_backend
from unifs.fs.protocol import (
    FilesystemAdapter,
    SupportsDirectoryPicker,
    SupportsMobilePermissions,
    SupportsPathLookup,
    SupportsPrivateWorkspace,
)
from unifs.fs.sandbox_bridge import BridgeFileInfo, LocalSandboxBridge, SandboxBridge
from unifs.fs.sandbox_fs import SandboxAdapter
from unifs.fs.types import (
    BackendKind,
    Entry,
    EntryKind,
    ExternalPathInfo,
    HandleCapability,
    PathCapability,
    SandboxScope,
    ScopedCapability,
    Stat,
    SupportReport,
)
from unifs.fs.unified import UnifiedFileSystem, get_filesystem, reset_filesystem
from unifs.fs.utils import normalize_path, to_relative_external_path

__all__ = [
    "AccessMode",
    "BackendKind",
    "BaseAdapter",
    "BridgeFileInfo",
    "Entry",
    "EntryKind",
    "ExternalPathInfo",
    "FilesystemAdapter",
    "FsError",
    "HandleAdapter",
    "HandleCapability",
    "HandlePermissionNegotiator",
    "InvalidHandleError",
    "LocalDiskAdapter",
    "LocalSandboxBridge",
    "MemoryDirectoryHandle",
    "NotFoundError",
    "PathCapability",
    "PatternError",
    "PermissionDeniedError",
    "PermissionState",
    "PermissionStatus",
    "PlatformProbe",
    "SandboxAdapter",
    "SandboxBridge",
    "SandboxPermissionNegotiator",
    "SandboxScope",
    "ScopedCapability",
    "Stat",
    "StorageError",
    "SupportReport",
    "SupportsDirectoryPicker",
    "SupportsMobilePermissions",
    "SupportsPathLookup",
    "SupportsPrivateWorkspace",
    "UnifiedFileSystem",
    "UnsupportedOperationError",
    "check_file_system_support",
    "detect_backend",
    "get_filesystem",
    "normalize_path",
    "reset_filesystem",
    "to_relative_external_path",
]
