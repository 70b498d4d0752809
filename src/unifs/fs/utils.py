"""Path utilities, external URI parsing, entry ordering, binary detection."""

from __future__ import annotations

import locale
import mimetypes
import posixpath
from typing import TYPE_CHECKING
from urllib.parse import unquote

from .types import ExternalPathInfo

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .types import Entry

DEFAULT_VOLUME = "primary"
DEFAULT_DISPLAY_NAME = "ExternalStorage"

# Binary file extensions that are never searched as text
BINARY_EXTENSIONS = {
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".ico", ".svgz", ".psd",
    ".pdf", ".zip", ".rar", ".7z", ".gz", ".tar", ".tgz", ".bz2", ".xz",
    ".apk", ".aab", ".jar", ".war", ".class", ".exe", ".dll", ".so", ".dylib",
    ".wasm", ".ttf", ".otf", ".woff", ".woff2", ".eot",
    ".mp3", ".wav", ".flac", ".aac", ".ogg", ".mp4", ".mkv", ".mov", ".avi", ".webm",
}

BINARY_SAMPLE_SIZE = 2048
CONTROL_CHAR_RATIO = 0.25


# =============================================================================
# Path Utilities
# =============================================================================


def normalize_path(path: str) -> str:
    """Normalize a backend path to canonical forward-slash form.

    - Converts backslashes to /
    - Resolves .. and . references
    - Removes double slashes
    - Removes trailing slash (except for root)
    - Keeps relative paths relative

    Examples:
        normalize_path("C:\\\\Users\\\\me") -> "C:/Users/me"
        normalize_path("/foo//bar/") -> "/foo/bar"
        normalize_path("./notes/") -> "notes"
        normalize_path("") -> ""
    """
    if not path:
        return ""

    path = path.strip().replace("\\", "/")
    if not path:
        return ""

    path = posixpath.normpath(path)
    if path == ".":
        return ""
    # posixpath keeps a leading "//" as a distinct root
    if path.startswith("//"):
        path = "/" + path.lstrip("/")
    return path


def join_path(base: str, name: str) -> str:
    """Join a directory path and a child name without doubling slashes."""
    if not base:
        return name.strip("/")
    if not name:
        return base
    if base == "/":
        return "/" + name.lstrip("/")
    return f"{base.rstrip('/')}/{name.lstrip('/')}"


def split_path(path: str) -> tuple[str, str]:
    """Split a normalized path into (parent, name).

    Examples:
        split_path("a/b/c.txt") -> ("a/b", "c.txt")
        split_path("/c.txt") -> ("/", "c.txt")
        split_path("c.txt") -> ("", "c.txt")
    """
    path = normalize_path(path)
    if path in ("", "/"):
        return path, ""
    return posixpath.split(path)


def basename(path: str) -> str:
    """Last segment of a path, empty for roots."""
    return split_path(path)[1]


def relative_to(path: str, root: str) -> str:
    """Strip ``root/`` from the front of ``path`` when it is a prefix."""
    path = normalize_path(path)
    root = normalize_path(root)
    if not root:
        return path
    if path.startswith(root.rstrip("/") + "/"):
        return path[len(root.rstrip("/")) + 1 :]
    return path


def is_within(path: str, ancestor: str) -> bool:
    """True when ``path`` equals ``ancestor`` or lies underneath it."""
    path = normalize_path(path)
    ancestor = normalize_path(ancestor)
    if path == ancestor or not ancestor:
        return True
    prefix = ancestor if ancestor.endswith("/") else ancestor + "/"
    return path.startswith(prefix)


# =============================================================================
# External (device) paths
# =============================================================================


def is_full_device_path(path: str | None) -> bool:
    """True for ``content://`` and ``file://`` URIs."""
    if not path:
        return False
    return path.startswith(("content://", "file://"))


def _strip_slashes(segment: str) -> str:
    return segment.strip("/")


def _extract_encoded_id(uri: str, key: str) -> str | None:
    marker = f"/{key}/"
    idx = uri.find(marker)
    if idx == -1:
        return None
    start = idx + len(marker)
    end = len(uri)
    for stop in ("/", "?", "#"):
        pos = uri.find(stop, start)
        if pos != -1:
            end = min(end, pos)
    encoded = uri[start:end]
    return unquote(encoded) if encoded else None


def _parse_document_id(document_id: str) -> ExternalPathInfo:
    volume, _, raw_path = document_id.partition(":")
    relative_path = _strip_slashes(raw_path)
    segments = [s for s in relative_path.split("/") if s]
    display_name = segments[-1] if segments else (volume or DEFAULT_DISPLAY_NAME)
    return ExternalPathInfo(
        volume=volume or DEFAULT_VOLUME,
        relative_path=relative_path,
        display_name=display_name,
    )


def to_relative_external_path(path: str | None) -> ExternalPathInfo:
    """Reduce a device path or SAF URI to a volume-relative path.

    ``content://.../tree/<enc>/document/<enc>`` URIs use the decoded document
    id (falling back to the tree id), split on the first ``:`` into
    ``volume:relative/path``.  ``file://`` URIs and plain paths are stripped
    of slashes.  Unrecognized input degrades to a best-effort result.

    Examples:
        to_relative_external_path(
            "content://com.android.externalstorage.documents/tree/primary%3ADocuments%2FNotes"
        ) -> ExternalPathInfo("primary", "Documents/Notes", "Notes")
        to_relative_external_path("file:///sdcard/Download/") -> (..., "sdcard/Download", "Download")
    """
    if not path:
        return ExternalPathInfo(
            volume=DEFAULT_VOLUME, relative_path="", display_name=DEFAULT_DISPLAY_NAME
        )

    if path.startswith("content://"):
        document_id = (
            _extract_encoded_id(path, "document")
            or _extract_encoded_id(path, "tree")
            or ""
        )
        return _parse_document_id(document_id)

    if path.startswith("file://"):
        path = unquote(path[len("file://") :])

    cleaned = _strip_slashes(path.replace("\\", "/"))
    return ExternalPathInfo(
        volume=DEFAULT_VOLUME,
        relative_path=cleaned,
        display_name=cleaned.split("/")[-1] or DEFAULT_DISPLAY_NAME,
    )


# =============================================================================
# Entry ordering
# =============================================================================


def _name_key(name: str) -> tuple[str, str]:
    try:
        collated = locale.strxfrm(name.casefold())
    except (ValueError, OSError):
        collated = name.casefold()
    return collated, name


def sort_entries(entries: Iterable[Entry]) -> list[Entry]:
    """Directories first, then locale-aware order by name."""
    return sorted(entries, key=lambda e: (not e.is_directory, _name_key(e.name)))


def guess_mime_type(filename: str) -> str:
    """Guess the MIME type of a file based on its name."""
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or "application/octet-stream"


# =============================================================================
# Binary Detection
# =============================================================================


def has_binary_extension(path: str) -> bool:
    """Check the path's extension against known binary formats."""
    return posixpath.splitext(path.lower())[1] in BINARY_EXTENSIONS


def looks_like_binary(content: str) -> bool:
    """Sniff decoded text for binary indicators.

    Looks at the first 2 KB: any NUL character, or more than 25% control
    characters (excluding tab, newline, vertical tab, form feed, CR).
    """
    if not content:
        return False

    sample = content[:BINARY_SAMPLE_SIZE]
    if "\x00" in sample:
        return True

    control = sum(1 for ch in sample if ord(ch) < 9 or 13 < ord(ch) < 32)
    return control / len(sample) > CONTROL_CHAR_RATIO
