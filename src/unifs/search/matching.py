"""Query compilation, glob rules, and per-file match extraction."""

from __future__ import annotations

import re
from bisect import bisect_right
from typing import TYPE_CHECKING

from unifs.fs.exceptions import PatternError
from unifs.search.types import SearchMatch

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from unifs.search.types import SearchOptions

DEFAULT_PREVIEW_WIDTH = 180
MIN_PREVIEW_CONTEXT = 20

DEFAULT_EXCLUDES = (
    "node_modules/**",
    "**/node_modules/**",
    ".git/**",
    "**/.git/**",
    "dist/**",
    "**/dist/**",
    ".quasar/**",
    "**/.quasar/**",
    "build/**",
    "**/build/**",
)

_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


# ------------------------------------------------------------------
# Query
# ------------------------------------------------------------------


def compile_matcher(query: str, options: SearchOptions) -> re.Pattern[str]:
    """Build the search regex for ``query``.

    Raises:
        PatternError: The query is blank or not a valid regular expression.
    """
    text = query.strip()
    if not text:
        msg = "Search query must not be empty"
        raise PatternError(msg)

    source = text if options.use_regex else re.escape(text)
    if options.whole_word:
        source = rf"\b(?:{source})\b"
    flags = 0 if options.match_case else re.IGNORECASE
    try:
        return re.compile(source, flags)
    except re.error as e:
        msg = f"Invalid search pattern: {e}"
        raise PatternError(msg) from e


# ------------------------------------------------------------------
# Globs
# ------------------------------------------------------------------


def glob_to_regex(glob: str) -> re.Pattern[str]:
    """Anchored regex for a path glob.

    ``**`` matches across ``/``, ``*`` and ``?`` stay within one segment.
    """
    glob = glob.replace("\\", "/")
    parts: list[str] = []
    i = 0
    while i < len(glob):
        ch = glob[i]
        if glob.startswith("**", i):
            parts.append(".*")
            i += 2
            continue
        if ch == "*":
            parts.append("[^/]*")
        elif ch == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(ch))
        i += 1
    return re.compile("".join(parts), re.DOTALL)


def compile_globs(globs: Iterable[str]) -> list[re.Pattern[str]]:
    return [glob_to_regex(g.strip()) for g in globs if g.strip()]


def is_excluded(path: str, exclude: Sequence[re.Pattern[str]]) -> bool:
    return any(rule.fullmatch(path) for rule in exclude)


def should_include(
    path: str,
    include: Sequence[re.Pattern[str]],
    exclude: Sequence[re.Pattern[str]],
) -> bool:
    """Exclusion wins; an empty include list admits everything else."""
    if is_excluded(path, exclude):
        return False
    if not include:
        return True
    return any(rule.fullmatch(path) for rule in include)


# ------------------------------------------------------------------
# Lines & previews
# ------------------------------------------------------------------


def compute_line_starts(text: str) -> list[int]:
    """Offsets at which each line begins. ``\\n``, ``\\r\\n`` and ``\\r`` all break lines."""
    return [0, *(m.end() for m in _LINE_BREAK_RE.finditer(text))]


def locate_line(offset: int, line_starts: Sequence[int]) -> int:
    """0-based index of the line containing ``offset``."""
    return max(0, bisect_right(line_starts, offset) - 1)


def line_text(text: str, line_starts: Sequence[int], index: int) -> str:
    start = line_starts[index]
    end = line_starts[index + 1] if index + 1 < len(line_starts) else len(text)
    return text[start:end].rstrip("\r\n")


def build_preview(
    line: str, column: int, length: int, width: int = DEFAULT_PREVIEW_WIDTH
) -> tuple[str, int]:
    """Return ``(preview, start)`` for a match at ``column`` in ``line``.

    Short lines are returned whole.  Long lines are cut to a ``width``-char
    window keeping at least ``MIN_PREVIEW_CONTEXT`` chars before the match;
    ``start`` is then relative to the window.
    """
    if len(line) <= width:
        return line, column
    context = max(MIN_PREVIEW_CONTEXT, (width - length) // 2)
    window_start = max(0, column - context)
    window_end = min(len(line), window_start + width)
    return line[window_start:window_end], column - window_start


# ------------------------------------------------------------------
# Matching
# ------------------------------------------------------------------


def find_matches(
    text: str,
    regex: re.Pattern[str],
    limit: int,
    *,
    preview_width: int = DEFAULT_PREVIEW_WIDTH,
) -> list[SearchMatch]:
    """Collect at most ``limit`` non-empty matches of ``regex`` in ``text``."""
    matches: list[SearchMatch] = []
    if limit <= 0:
        return matches

    line_starts = compute_line_starts(text)
    for m in regex.finditer(text):
        start, end = m.span()
        if start == end:
            continue
        index = locate_line(start, line_starts)
        line = line_text(text, line_starts, index)
        preview, column = build_preview(
            line, start - line_starts[index], end - start, preview_width
        )
        matches.append(
            SearchMatch(line=index + 1, start=column, length=end - start, preview=preview)
        )
        if len(matches) >= limit:
            break
    return matches
