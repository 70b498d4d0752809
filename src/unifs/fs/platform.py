"""Backend detection and the directory-picker support report."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .types import BackendKind, SupportReport

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from .handles import DirectoryHandle
    from .sandbox_bridge import SandboxBridge

logger = logging.getLogger(__name__)

SANDBOX_ROOT_ENV = "UNIFS_SANDBOX_ROOT"
USER_AGENT_ENV = "UNIFS_USER_AGENT"

MIN_CHROMIUM_VERSION = 86


@dataclass(frozen=True)
class PlatformProbe:
    """Capability markers of the running environment.

    ``directory_picker`` marks a handle-capable host, ``native_bridge`` a
    mobile sandbox runtime.  Neither means plain host disk access.
    """

    directory_picker: Callable[[], Awaitable[DirectoryHandle]] | None = None
    native_bridge: SandboxBridge | None = None
    user_agent: str = ""

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> PlatformProbe:
        """Build a probe from ``UNIFS_SANDBOX_ROOT`` / ``UNIFS_USER_AGENT``."""
        env = os.environ if environ is None else environ
        bridge = None
        sandbox_root = env.get(SANDBOX_ROOT_ENV)
        if sandbox_root:
            from .sandbox_bridge import LocalSandboxBridge

            logger.debug("Sandbox bridge rooted at %s", sandbox_root)
            bridge = LocalSandboxBridge(sandbox_root)
        return cls(native_bridge=bridge, user_agent=env.get(USER_AGENT_ENV, ""))


def detect_backend(probe: PlatformProbe) -> BackendKind:
    if probe.directory_picker is not None:
        return BackendKind.HANDLE
    if probe.native_bridge is not None:
        return BackendKind.SANDBOX
    return BackendKind.HOST


# =============================================================================
# Support report
# =============================================================================

_MOBILE_RE = re.compile(r"Android|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini", re.IGNORECASE)


def _version(pattern: str, user_agent: str) -> int:
    match = re.search(pattern, user_agent)
    return int(match.group(1)) if match else 0


def check_file_system_support(user_agent: str, has_picker: bool) -> SupportReport:
    """Report whether interactive directory picking works in this client.

    Chromium browsers from version 86 support it.  Everything else gets a
    reason and a suggestion for the user.
    """
    is_edge_legacy = "Edge/" in user_agent
    is_edge = "Edg/" in user_agent
    is_chrome = "Chrome" in user_agent and not is_edge_legacy and not is_edge
    is_firefox = "Firefox" in user_agent
    is_safari = "Safari" in user_agent and "Chrome" not in user_agent
    is_mobile = _MOBILE_RE.search(user_agent) is not None

    chrome_version = _version(r"Chrome/(\d+)", user_agent) if is_chrome else 0
    edge_version = _version(r"Edg/(\d+)", user_agent) if is_edge else 0
    edge_legacy_version = _version(r"Edge/(\d+)", user_agent) if is_edge_legacy else 0

    debug = {
        "user_agent": user_agent,
        "details": [
            f"User-Agent: {user_agent}",
            f"API present: {has_picker}",
            f"Edge Legacy: {is_edge_legacy}",
            f"Edge Chromium: {is_edge}",
            f"Chrome: {is_chrome}",
            f"Firefox: {is_firefox}",
            f"Safari: {is_safari}",
            f"Mobile: {is_mobile}",
            f"Chrome Version: {chrome_version}",
            f"Edge Chromium Version: {edge_version}",
            f"Edge Legacy Version: {edge_legacy_version}",
        ],
    }
    upgrade = f"use Chrome {MIN_CHROMIUM_VERSION}+ or Edge {MIN_CHROMIUM_VERSION}+"

    if not has_picker:
        if is_mobile:
            browser, reason, suggestion = (
                "Mobile Browser",
                "mobile browsers do not support the File System Access API",
                "use desktop Chrome or Edge, or install the mobile app",
            )
        elif is_firefox:
            browser, reason, suggestion = (
                "Firefox",
                "Firefox does not support the File System Access API",
                f"{upgrade} for full file system access",
            )
        elif is_safari:
            browser, reason, suggestion = (
                "Safari",
                "Safari does not support the File System Access API",
                f"{upgrade}, or install the desktop app on Mac",
            )
        elif is_edge_legacy:
            browser, reason, suggestion = (
                f"Edge (Legacy) {edge_legacy_version}",
                "Edge Legacy does not support the File System Access API",
                "upgrade to the Chromium-based Edge or use Chrome",
            )
        else:
            browser, reason, suggestion = (
                "Unknown",
                "this browser does not support the File System Access API",
                "use the latest Chrome or Edge",
            )
        return SupportReport(
            supported=False, browser=browser, reason=reason, suggestion=suggestion, debug=debug
        )

    if is_chrome and chrome_version < MIN_CHROMIUM_VERSION:
        return SupportReport(
            supported=False,
            browser=f"Chrome {chrome_version}",
            reason=f"the File System Access API needs Chrome {MIN_CHROMIUM_VERSION}+",
            suggestion="update Chrome to the latest version",
            debug=debug,
        )
    if is_edge and edge_version < MIN_CHROMIUM_VERSION:
        return SupportReport(
            supported=False,
            browser=f"Edge {edge_version}",
            reason=f"the File System Access API needs Edge {MIN_CHROMIUM_VERSION}+",
            suggestion="update Edge to the latest version",
            debug=debug,
        )
    return SupportReport(supported=True, debug=debug)
