"""Custom exception hierarchy for the unifs filesystem layer."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class FsError(Exception):
    """Base exception for all unifs filesystem errors."""


class PermissionDeniedError(FsError):
    """Raised when the OS or a handle grant blocks a read or write.

    ``remedy`` carries actionable advice for the user, e.g. which system
    setting to open.
    """

    def __init__(self, message: str, *, remedy: str | None = None) -> None:
        super().__init__(f"{message} ({remedy})" if remedy else message)
        self.remedy = remedy


class UnsupportedOperationError(FsError):
    """Raised when an operation is unavailable on the active backend."""


class InvalidHandleError(FsError):
    """Raised on stale, wrong-kind, or missing capability references."""


class NotFoundError(FsError):
    """Raised when a path or document can no longer be resolved."""


class PatternError(FsError):
    """Raised when a search pattern or glob fails to compile."""


class StorageError(FsError):
    """Raised on generic backend I/O failures."""


@contextmanager
def wrap_os_error(operation: str, target: str) -> Iterator[None]:
    """Translate native ``OSError``s raised inside the block.

    ``operation`` names the adapter call (``"local.read_text"``) and
    ``target`` the path or name it acted on.  The original error is chained.
    """
    try:
        yield
    except FsError:
        raise
    except FileNotFoundError as e:
        raise NotFoundError(f"{operation}: not found: {target}") from e
    except NotADirectoryError as e:
        raise InvalidHandleError(f"{operation}: not a directory: {target}") from e
    except PermissionError as e:
        raise PermissionDeniedError(
            f"{operation}: access denied: {target}",
            remedy="grant file access in system settings",
        ) from e
    except UnicodeDecodeError as e:
        raise StorageError(f"{operation}: not valid UTF-8: {target}") from e
    except OSError as e:
        raise StorageError(f"{operation} failed for {target}: {e}") from e
