"""Native runtime bridge for the sandbox backend.

The sandbox backend never touches storage itself; every call crosses a
bridge that speaks in (scope, relative path) pairs, transports binary data
as base64 strings, and owns the OS permission dialogs.
``LocalSandboxBridge`` serves each scope from a directory on the local disk.
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
import errno
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from .permissions import PermissionState
from .types import EntryKind, SandboxScope
from .utils import normalize_path

logger = logging.getLogger(__name__)

UTF8 = "utf8"


@dataclass(frozen=True)
class BridgeFileInfo:
    """A directory listing row or stat result from the bridge."""

    name: str
    type: EntryKind
    size: int
    mtime: int
    uri: str


@runtime_checkable
class SandboxBridge(Protocol):
    """Calls the sandbox backend makes into the native runtime.

    ``encoding=None`` means base64 transport for binary content.
    Failures surface as ``OSError`` subclasses.
    """

    async def readdir(self, path: str, scope: SandboxScope) -> list[BridgeFileInfo]: ...

    async def stat(self, path: str, scope: SandboxScope) -> BridgeFileInfo: ...

    async def read_file(
        self, path: str, scope: SandboxScope, *, encoding: str | None = None
    ) -> str: ...

    async def write_file(
        self,
        path: str,
        data: str,
        scope: SandboxScope,
        *,
        encoding: str | None = None,
        recursive: bool = True,
    ) -> str: ...

    async def mkdir(self, path: str, scope: SandboxScope, *, recursive: bool = True) -> None: ...

    async def rmdir(self, path: str, scope: SandboxScope, *, recursive: bool = True) -> None: ...

    async def delete_file(self, path: str, scope: SandboxScope) -> None: ...

    async def copy(
        self, source: str, destination: str, scope: SandboxScope, to_scope: SandboxScope
    ) -> None: ...

    async def rename(
        self, source: str, destination: str, scope: SandboxScope, to_scope: SandboxScope
    ) -> None: ...

    async def check_permissions(self) -> PermissionState: ...

    async def request_permissions(self) -> PermissionState: ...

    async def check_all_files_access(self) -> bool: ...

    async def request_all_files_access(self) -> None: ...


class LocalSandboxBridge:
    """Bridge serving every scope from ``base_dir/<SCOPE>`` on disk.

    Permission answers are configurable so permission flows can be
    exercised off-device: ``grant_on_request`` decides what a storage
    prompt returns, ``all_files_access`` is what the settings page
    currently says.

    Security: paths are resolved inside their scope directory; anything
    escaping it raises ``PermissionError``.
    """

    def __init__(
        self,
        base_dir: Path | str,
        *,
        storage_permission: PermissionState = PermissionState.GRANTED,
        grant_on_request: bool = True,
        all_files_access: bool = True,
    ) -> None:
        self.base_dir = Path(base_dir).resolve()
        self.storage_permission = storage_permission
        self.grant_on_request = grant_on_request
        self.all_files_access = all_files_access
        self.settings_requests = 0
        self.base_dir.mkdir(parents=True, exist_ok=True)

    # =========================================================================
    # Path Resolution & Security
    # =========================================================================

    def scope_dir(self, scope: SandboxScope) -> Path:
        path = self.base_dir / scope.value
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _resolve(self, path: str, scope: SandboxScope) -> Path:
        root = self.scope_dir(scope)
        rel = normalize_path(path).lstrip("/")
        if not rel:
            return root
        resolved = (root / rel).resolve()
        try:
            resolved.relative_to(root)
        except ValueError:
            raise PermissionError(f"Path escapes {scope.value}: {path}") from None
        return root / rel

    def _info(self, path: Path) -> BridgeFileInfo:
        st = path.stat()
        is_dir = path.is_dir()
        return BridgeFileInfo(
            name=path.name,
            type=EntryKind.DIRECTORY if is_dir else EntryKind.FILE,
            size=0 if is_dir else st.st_size,
            mtime=int(st.st_mtime * 1000),
            uri=path.as_uri(),
        )

    # =========================================================================
    # Filesystem calls
    # =========================================================================

    async def readdir(self, path: str, scope: SandboxScope) -> list[BridgeFileInfo]:
        target = self._resolve(path, scope)

        def _scan() -> list[BridgeFileInfo]:
            if not target.is_dir():
                if target.exists():
                    raise NotADirectoryError(f"Not a directory: {path}")
                raise FileNotFoundError(f"Directory does not exist: {path}")
            return [self._info(child) for child in target.iterdir()]

        return await asyncio.to_thread(_scan)

    async def stat(self, path: str, scope: SandboxScope) -> BridgeFileInfo:
        target = self._resolve(path, scope)
        return await asyncio.to_thread(self._info, target)

    async def read_file(
        self, path: str, scope: SandboxScope, *, encoding: str | None = None
    ) -> str:
        target = self._resolve(path, scope)
        data = await asyncio.to_thread(target.read_bytes)
        if encoding == UTF8:
            return data.decode("utf-8")
        return base64.b64encode(data).decode("ascii")

    async def write_file(
        self,
        path: str,
        data: str,
        scope: SandboxScope,
        *,
        encoding: str | None = None,
        recursive: bool = True,
    ) -> str:
        target = self._resolve(path, scope)
        payload = data.encode("utf-8") if encoding == UTF8 else base64.b64decode(data)

        def _write() -> None:
            if recursive:
                target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(payload)
                Path(tmp_path).replace(target)
            except Exception:
                with contextlib.suppress(OSError):
                    Path(tmp_path).unlink()
                raise

        await asyncio.to_thread(_write)
        return target.as_uri()

    async def mkdir(self, path: str, scope: SandboxScope, *, recursive: bool = True) -> None:
        target = self._resolve(path, scope)
        await asyncio.to_thread(target.mkdir, parents=recursive, exist_ok=False)

    async def rmdir(self, path: str, scope: SandboxScope, *, recursive: bool = True) -> None:
        target = self._resolve(path, scope)
        if target == self.scope_dir(scope):
            raise PermissionError(f"Refusing to remove the {scope.value} root")
        if recursive:
            await asyncio.to_thread(shutil.rmtree, target)
        else:
            await asyncio.to_thread(target.rmdir)

    async def delete_file(self, path: str, scope: SandboxScope) -> None:
        target = self._resolve(path, scope)
        await asyncio.to_thread(target.unlink)

    async def copy(
        self, source: str, destination: str, scope: SandboxScope, to_scope: SandboxScope
    ) -> None:
        src = self._resolve(source, scope)
        dest = self._resolve(destination, to_scope)

        def _copy() -> None:
            if dest.is_dir():
                raise FileExistsError(errno.EEXIST, "Destination is a directory", destination)
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src, dest)

        await asyncio.to_thread(_copy)

    async def rename(
        self, source: str, destination: str, scope: SandboxScope, to_scope: SandboxScope
    ) -> None:
        src = self._resolve(source, scope)
        dest = self._resolve(destination, to_scope)

        def _rename() -> None:
            dest.parent.mkdir(parents=True, exist_ok=True)
            src.rename(dest)

        await asyncio.to_thread(_rename)

    # =========================================================================
    # Permissions
    # =========================================================================

    async def check_permissions(self) -> PermissionState:
        return self.storage_permission

    async def request_permissions(self) -> PermissionState:
        if self.storage_permission is PermissionState.PROMPT:
            self.storage_permission = (
                PermissionState.GRANTED if self.grant_on_request else PermissionState.DENIED
            )
        return self.storage_permission

    async def check_all_files_access(self) -> bool:
        return self.all_files_access

    async def request_all_files_access(self) -> None:
        # On device this launches the "all files access" settings page
        self.settings_requests += 1
        logger.info("All-files access settings requested (%d)", self.settings_requests)
