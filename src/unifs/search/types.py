"""Search message protocol — pydantic models exchanged with a search host.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from unifs.fs.types import Entry

DEFAULT_MAX_RESULTS = 1200
DEFAULT_MAX_PER_FILE = 120


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        validate_by_name=True,
        validate_by_alias=True,
        serialize_by_alias=True,
        frozen=True,
    )


# ------------------------------------------------------------------
# Inbound
# ------------------------------------------------------------------


class SearchOptions(CamelModel):
    """How to interpret the query and which files to consider.

    Attributes:
        match_case: Case-sensitive matching.
        use_regex: Treat the query as a regular expression.
        whole_word: Only match at word boundaries.
        include: Glob patterns; empty means every file.
        exclude: Glob patterns added to the built-in excludes.
        max_results: Global cap on matches across all files.
        max_per_file: Cap on matches within a single file.
    """

    match_case: bool = False
    use_regex: bool = False
    whole_word: bool = False
    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    max_results: int | None = Field(default=None, ge=1)
    max_per_file: int | None = Field(default=None, ge=1)

    @property
    def result_limit(self) -> int:
        return self.max_results if self.max_results is not None else DEFAULT_MAX_RESULTS

    @property
    def per_file_limit(self) -> int:
        return self.max_per_file if self.max_per_file is not None else DEFAULT_MAX_PER_FILE


class SearchRequest(CamelModel):
    type: Literal["search"] = "search"
    id: str
    root: Entry
    query: str
    options: SearchOptions = Field(default_factory=SearchOptions)


class CancelRequest(CamelModel):
    """Cancel one session, or every active session when ``id`` is omitted."""

    type: Literal["cancel"] = "cancel"
    id: str | None = None


InboundMessage = Annotated[SearchRequest | CancelRequest, Field(discriminator="type")]
inbound_adapter: TypeAdapter[SearchRequest | CancelRequest] = TypeAdapter(InboundMessage)


# ------------------------------------------------------------------
# Outbound
# ------------------------------------------------------------------


class SearchMatch(CamelModel):
    """One hit. ``line`` is 1-based; ``start`` is the column within ``preview``."""

    line: int
    start: int
    length: int
    preview: str


class FileResultMessage(CamelModel):
    type: Literal["file-result"] = "file-result"
    id: str
    entry: Entry
    relative_path: str
    matches: list[SearchMatch]


class ProgressMessage(CamelModel):
    """Liveness signal. ``elapsed`` is in milliseconds."""

    type: Literal["progress"] = "progress"
    id: str
    scanned: int
    elapsed: float


class DoneMessage(CamelModel):
    """Terminal message of a session that was not a fatal error.

    Attributes:
        scanned: Files visited by the walk.
        matched: Files that produced at least one match.
        duration: Wall time in milliseconds.
        cancelled: The session was stopped by a cancel request or a newer search.
        limited: The global match cap was reached.
    """

    type: Literal["done"] = "done"
    id: str
    scanned: int
    matched: int
    duration: float
    cancelled: bool = False
    limited: bool = False


class ErrorMessage(CamelModel):
    type: Literal["error"] = "error"
    id: str | None = None
    message: str


OutboundMessage = Annotated[
    FileResultMessage | ProgressMessage | DoneMessage | ErrorMessage,
    Field(discriminator="type"),
]
