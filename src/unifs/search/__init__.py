"""Full-text search — matching, message models, session host, threaded worker."""

from unifs.search._engine import PROGRESS_INTERVAL, SearchHost, SearchSession
from unifs.search.matching import (
    DEFAULT_EXCLUDES,
    DEFAULT_PREVIEW_WIDTH,
    compile_matcher,
    find_matches,
    glob_to_regex,
)
from unifs.search.types import (
    DEFAULT_MAX_PER_FILE,
    DEFAULT_MAX_RESULTS,
    CancelRequest,
    DoneMessage,
    ErrorMessage,
    FileResultMessage,
    ProgressMessage,
    SearchMatch,
    SearchOptions,
    SearchRequest,
)
from unifs.search.worker import SearchWorker

__all__ = [
    "DEFAULT_EXCLUDES",
    "DEFAULT_MAX_PER_FILE",
    "DEFAULT_MAX_RESULTS",
    "DEFAULT_PREVIEW_WIDTH",
    "PROGRESS_INTERVAL",
    "CancelRequest",
    "DoneMessage",
    "ErrorMessage",
    "FileResultMessage",
    "ProgressMessage",
    "SearchHost",
    "SearchMatch",
    "SearchOptions",
    "SearchRequest",
    "SearchSession",
    "SearchWorker",
    "compile_matcher",
    "find_matches",
    "glob_to_regex",
]
