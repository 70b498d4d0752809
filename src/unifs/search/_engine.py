"""SearchSession / SearchHost — streaming full-text search over the facade."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Literal, Protocol

from pydantic import ValidationError

from unifs.fs.exceptions import FsError, PatternError
from unifs.fs.utils import has_binary_extension, join_path, looks_like_binary
from unifs.search.matching import (
    DEFAULT_EXCLUDES,
    compile_globs,
    compile_matcher,
    find_matches,
    is_excluded,
    should_include,
)
from unifs.search.types import (
    CancelRequest,
    DoneMessage,
    ErrorMessage,
    FileResultMessage,
    ProgressMessage,
    SearchRequest,
    inbound_adapter,
)

if TYPE_CHECKING:
    import re
    from collections.abc import Callable, Iterator

    from unifs.fs.types import Entry
    from unifs.search.types import OutboundMessage, SearchMatch

    Emit = Callable[[OutboundMessage], None]

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 20

StopReason = Literal["user", "limit"]


class SearchableFileSystem(Protocol):
    """The two facade operations a search needs."""

    async def list(self, directory: Entry) -> list[Entry]: ...

    async def read_text(self, entry: Entry) -> str: ...


def _millis_since(started: float) -> float:
    return (time.perf_counter() - started) * 1000


class SearchSession:
    """One search request, from first listing to its terminal message.

    The walk is a depth-first preorder over ``filesystem.list`` driven by
    an explicit stack of child iterators.  It yields to the event loop at
    every entry, so a cancel arriving mid-walk is seen before the next
    entry and before the next read.
    """

    def __init__(
        self,
        request: SearchRequest,
        filesystem: SearchableFileSystem,
        emit: Emit,
    ) -> None:
        self.request = request
        self.id = request.id
        self._fs = filesystem
        self._emit = emit
        self.stop_reason: StopReason | None = None
        self.scanned = 0
        self.matched = 0
        self.total_hits = 0

    @property
    def stopped(self) -> bool:
        return self.stop_reason is not None

    def cancel(self) -> None:
        if self.stop_reason is None:
            logger.debug("Cancelling search %s", self.id)
            self.stop_reason = "user"

    async def run(self) -> None:
        """Run to completion, emitting exactly one ``done`` or ``error``."""
        started = time.perf_counter()
        options = self.request.options
        try:
            regex = compile_matcher(self.request.query, options)
        except PatternError as e:
            self._emit(ErrorMessage(id=self.id, message=str(e)))
            return

        include = compile_globs(options.include)
        exclude = compile_globs([*DEFAULT_EXCLUDES, *options.exclude])

        try:
            await self._walk(regex, include, exclude, started)
        except Exception as e:
            logger.debug("Search %s failed", self.id, exc_info=True)
            self._emit(ErrorMessage(id=self.id, message=str(e) or type(e).__name__))
            return

        self._emit(
            DoneMessage(
                id=self.id,
                scanned=self.scanned,
                matched=self.matched,
                duration=_millis_since(started),
                cancelled=self.stop_reason == "user",
                limited=self.stop_reason == "limit",
            )
        )

    async def _walk(
        self,
        regex: re.Pattern[str],
        include: list[re.Pattern[str]],
        exclude: list[re.Pattern[str]],
        started: float,
    ) -> None:
        root = self.request.root
        if not root.is_directory:
            return

        # A failure listing the root is fatal; nested listing failures are not.
        stack: list[tuple[Iterator[Entry], str]] = [(iter(await self._fs.list(root)), "")]
        while stack:
            await asyncio.sleep(0)
            if self.stopped:
                return

            children, base = stack[-1]
            child = next(children, None)
            if child is None:
                stack.pop()
                continue

            rel = join_path(base, child.name)
            if child.is_directory:
                if is_excluded(f"{rel}/", exclude):
                    continue
                try:
                    listing = await self._fs.list(child)
                except FsError:
                    logger.warning("Skipping unreadable directory %s", child.path, exc_info=True)
                    continue
                stack.append((iter(listing), rel))
                continue

            self.scanned += 1
            matches = await self._scan_file(child, rel, regex, include, exclude)
            if matches:
                self.matched += 1
                self.total_hits += len(matches)
                self._emit(
                    FileResultMessage(id=self.id, entry=child, relative_path=rel, matches=matches)
                )
                if self.total_hits >= self.request.options.result_limit:
                    self.stop_reason = "limit"

            if self.scanned % PROGRESS_INTERVAL == 0:
                self._emit(
                    ProgressMessage(id=self.id, scanned=self.scanned, elapsed=_millis_since(started))
                )

    async def _scan_file(
        self,
        entry: Entry,
        rel: str,
        regex: re.Pattern[str],
        include: list[re.Pattern[str]],
        exclude: list[re.Pattern[str]],
    ) -> list[SearchMatch]:
        if not should_include(rel, include, exclude) or has_binary_extension(rel):
            return []
        if self.stopped:
            return []

        try:
            content = await self._fs.read_text(entry)
        except FsError:
            logger.debug("Skipping unreadable file %s", entry.path, exc_info=True)
            return []
        if looks_like_binary(content):
            return []

        options = self.request.options
        budget = min(options.per_file_limit, options.result_limit - self.total_hits)
        return find_matches(content, regex, budget)


class SearchHost:
    """Owns the sessions of one search endpoint and routes messages to them.

    A new search cancels every session still running, so sessions never
    interleave their output.  Malformed messages are answered with an
    ``error`` message rather than raised.
    """

    def __init__(
        self,
        emit: Emit,
        filesystem: SearchableFileSystem | None = None,
    ) -> None:
        if filesystem is None:
            from unifs.fs.unified import get_filesystem

            filesystem = get_filesystem()
        self._emit = emit
        self._fs = filesystem
        self._sessions: dict[str, SearchSession] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def active_ids(self) -> list[str]:
        return [sid for sid, session in self._sessions.items() if not session.stopped]

    def handle(self, message: Mapping[str, object] | SearchRequest | CancelRequest) -> None:
        """Dispatch one inbound message. Must be called on the host's loop."""
        if isinstance(message, (SearchRequest, CancelRequest)):
            parsed = message
        else:
            try:
                parsed = inbound_adapter.validate_python(message)
            except ValidationError as e:
                raw_id = message.get("id") if isinstance(message, Mapping) else None
                logger.debug("Rejected malformed search message: %s", e)
                self._emit(
                    ErrorMessage(
                        id=raw_id if isinstance(raw_id, str) else None,
                        message=f"Malformed message: {e.error_count()} validation error(s)",
                    )
                )
                return

        if isinstance(parsed, CancelRequest):
            self.cancel(parsed.id)
        else:
            self.start(parsed)

    def start(self, request: SearchRequest) -> SearchSession:
        self.cancel()
        session = SearchSession(request, self._fs, self._emit)
        self._sessions[request.id] = session
        task = asyncio.get_running_loop().create_task(self._run(session))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return session

    def cancel(self, search_id: str | None = None) -> None:
        """Cancel ``search_id``, or every active session when it is None."""
        if search_id is None:
            for session in self._sessions.values():
                session.cancel()
            return
        session = self._sessions.get(search_id)
        if session is not None:
            session.cancel()

    async def _run(self, session: SearchSession) -> None:
        try:
            await session.run()
        finally:
            if self._sessions.get(session.id) is session:
                del self._sessions[session.id]

    async def wait_idle(self) -> None:
        """Wait until every started session has emitted its terminal message."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        self.cancel()
        await self.wait_idle()
