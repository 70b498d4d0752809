"""SearchWorker — a search host on its own thread and event loop."""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
from typing import TYPE_CHECKING, Any

from unifs.search._engine import SearchHost

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from unifs.search._engine import SearchableFileSystem
    from unifs.search.types import CancelRequest, OutboundMessage, SearchRequest

logger = logging.getLogger(__name__)

TERMINAL_TYPES = frozenset({"done", "error"})


class SearchWorker:
    """Runs searches off the caller's thread and talks only in messages.

    A private event loop in a daemon thread hosts a :class:`SearchHost`.
    Callers ``post_message()`` plain dicts (or request models) in; outbound
    message models arrive on a thread-safe queue, or are handed to
    ``on_message`` on the worker thread when a callback is given.

    Usage::

        with SearchWorker(fs) as worker:
            worker.post_message({"type": "search", "id": "s1", "root": root, "query": "todo"})
            for message in worker.iter_messages("s1"):
                print(message.model_dump())
    """

    def __init__(
        self,
        filesystem: SearchableFileSystem | None = None,
        *,
        on_message: Callable[[OutboundMessage], None] | None = None,
    ) -> None:
        self._closed = False
        self._on_message = on_message
        self._outbox: queue.Queue[OutboundMessage] = queue.Queue()
        self._host = SearchHost(self._deliver, filesystem)

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever, name="unifs-search", daemon=True
        )
        self._thread.start()

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def _deliver(self, message: OutboundMessage) -> None:
        if self._on_message is not None:
            self._on_message(message)
        else:
            self._outbox.put(message)

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    def post_message(self, message: Mapping[str, Any] | SearchRequest | CancelRequest) -> None:
        """Queue an inbound message for the worker. Returns immediately."""
        if self._closed:
            msg = "SearchWorker is closed"
            raise RuntimeError(msg)
        self._loop.call_soon_threadsafe(self._host.handle, message)

    def get_message(self, timeout: float | None = None) -> OutboundMessage:
        """Next outbound message; raises ``queue.Empty`` after ``timeout``."""
        return self._outbox.get(timeout=timeout)

    def iter_messages(
        self, search_id: str | None = None, *, timeout: float | None = 30.0
    ) -> Iterator[OutboundMessage]:
        """Yield outbound messages until the terminal one for ``search_id``.

        With no ``search_id`` the first terminal message of any session ends
        the iteration.
        """
        while True:
            message = self.get_message(timeout)
            yield message
            if message.type in TERMINAL_TYPES and search_id in (None, message.id):
                return

    def wait_idle(self) -> None:
        """Block until every started session has finished."""
        self._run(self._host.wait_idle())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Cancel running searches, stop the event loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        try:
            self._run(self._host.aclose())
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)
            logger.debug("Search worker stopped")

    def __enter__(self) -> SearchWorker:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()
