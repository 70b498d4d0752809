"""Permission states and the per-backend check-then-request negotiators."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import PermissionDeniedError

if TYPE_CHECKING:
    from .handles import FileSystemHandle
    from .sandbox_bridge import SandboxBridge

logger = logging.getLogger(__name__)

SETTINGS_REMEDY = "open system settings and allow access to all files for this app"


class AccessMode(str, Enum):
    """Capability a grant covers. Read and readwrite are tracked separately."""

    READ = "read"
    READ_WRITE = "readwrite"


class PermissionState(str, Enum):
    """State reported by a grant query."""

    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


class PermissionStatus(str, Enum):
    """Outcome of an OS-level check, returned to the caller instead of prompting."""

    GRANTED = "granted"
    NEEDS_SETTINGS = "needs_settings"


class HandlePermissionNegotiator:
    """Query, request if needed, then re-check a handle's grant."""

    async def ensure(self, handle: FileSystemHandle, mode: AccessMode) -> bool:
        state = await handle.query_permission(mode)
        if state is PermissionState.GRANTED:
            return True
        logger.debug("Requesting %s access to %r (state: %s)", mode.value, handle.name, state.value)
        await handle.request_permission(mode)
        return await handle.query_permission(mode) is PermissionState.GRANTED

    async def require(
        self,
        handle: FileSystemHandle,
        mode: AccessMode,
        *,
        operation: str,
    ) -> None:
        """Like :meth:`ensure` but raise :class:`PermissionDeniedError` on refusal."""
        if not await self.ensure(handle, mode):
            raise PermissionDeniedError(
                f"{operation}: {mode.value} access to {handle.name!r} was not granted",
                remedy="allow the browser to edit files in this folder",
            )


class SandboxPermissionNegotiator:
    """Storage grants for the sandbox backend.

    Public-storage access follows check, request, re-check.  The OS-level
    "all files" grant cannot be requested in-app: the bridge can only open
    the settings page, so denial is reported with a remedy.  A granted
    all-files check is remembered for the rest of the session.
    """

    def __init__(self, bridge: SandboxBridge) -> None:
        self._bridge = bridge
        self._all_files_granted = False
        self._settings_opened = False

    async def ensure_mobile_permissions(self) -> None:
        """Advisory pre-flight before write-heavy workflows.

        Failures are logged, never raised: the authoritative error is the
        later write's own :class:`PermissionDeniedError`.
        """
        try:
            state = await self._bridge.check_permissions()
            if state is not PermissionState.GRANTED:
                await self._bridge.request_permissions()
        except Exception:
            logger.warning("Storage permission check failed", exc_info=True)

        try:
            if await self._bridge.check_all_files_access():
                self._all_files_granted = True
            else:
                await self._open_settings_once()
        except Exception:
            logger.warning("All-files permission request failed", exc_info=True)

    async def require_public_storage(self, *, operation: str) -> None:
        if await self._bridge.check_permissions() is PermissionState.GRANTED:
            return
        await self._bridge.request_permissions()
        if await self._bridge.check_permissions() is not PermissionState.GRANTED:
            raise PermissionDeniedError(
                f"{operation}: storage permission was not granted",
                remedy="grant file access in system settings",
            )

    async def all_files_status(self) -> PermissionStatus:
        if self._all_files_granted:
            return PermissionStatus.GRANTED
        if await self._bridge.check_all_files_access():
            self._all_files_granted = True
            return PermissionStatus.GRANTED
        return PermissionStatus.NEEDS_SETTINGS

    async def require_all_files_access(self, *, operation: str) -> None:
        if await self.all_files_status() is PermissionStatus.GRANTED:
            return
        await self._open_settings_once()
        raise PermissionDeniedError(
            f"{operation}: all-files access is not granted", remedy=SETTINGS_REMEDY
        )

    async def _open_settings_once(self) -> None:
        if self._settings_opened:
            return
        self._settings_opened = True
        await self._bridge.request_all_files_access()
