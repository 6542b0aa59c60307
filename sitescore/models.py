from __future__ import annotations

import dataclasses
import enum
from typing import Iterator, Optional

# Separates documents in the concatenated corpus buffer. Normalized text never
# contains control characters, and the index encodes every separator below any
# content character.
SENTINEL = "\x00"


class ContentKind(str, enum.Enum):
    HTML = "html"
    PLAIN_TEXT = "plain_text"
    UNKNOWN = "unknown"


@dataclasses.dataclass(frozen=True)
class Document:
    id: str
    content: str
    kind: ContentKind = ContentKind.PLAIN_TEXT

    @property
    def length(self) -> int:
        return len(self.content)


@dataclasses.dataclass(frozen=True)
class Corpus:
    """Ordered, immutable set of documents indexed together.

    ``offsets[i]`` is the ``(start, end)`` range of ``documents[i]`` inside
    :attr:`buffer`; each document is followed by one :data:`SENTINEL`.
    """

    documents: tuple[Document, ...] = ()
    offsets: tuple[tuple[int, int], ...] = dataclasses.field(init=False, repr=False)

    def __post_init__(self) -> None:
        docs = tuple(self.documents)
        offsets = []
        start = 0
        for doc in docs:
            end = start + doc.length
            offsets.append((start, end))
            start = end + len(SENTINEL)
        object.__setattr__(self, "documents", docs)
        object.__setattr__(self, "offsets", tuple(offsets))

    @classmethod
    def from_texts(cls, texts, ids=None) -> "Corpus":
        """Build a corpus from already-normalized strings (ids default to ``doc-<n>``)."""
        texts = list(texts)
        ids = list(ids) if ids is not None else [f"doc-{i}" for i in range(len(texts))]
        return cls(tuple(Document(id=i, content=t) for i, t in zip(ids, texts)))

    @property
    def buffer(self) -> str:
        return "".join(doc.content + SENTINEL for doc in self.documents)

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(doc.id for doc in self.documents)

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self) -> Iterator[Document]:
        return iter(self.documents)


@dataclasses.dataclass(frozen=True)
class Match:
    """Longest common substring between two documents.

    ``positions`` is ``(offset_in_a, offset_in_b)``, or ``()`` when nothing matched.
    """

    length: int = 0
    positions: tuple[int, ...] = ()
    text: str = ""


@dataclasses.dataclass(frozen=True)
class Span:
    document_id: str
    offset: int
    length: int
    text: str
    other_document_id: Optional[str] = None
    other_offset: Optional[int] = None

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclasses.dataclass(frozen=True)
class ScoreRecord:
    document_id: str
    score: float
    policy: str
    evidence: tuple[Span, ...] = ()


class UrlState(str, enum.Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    FETCHED = "fetched"
    FETCH_FAILED = "fetch_failed"
    NORMALIZED = "normalized"
    NORMALIZE_FAILED = "normalize_failed"
    INCLUDED = "included"
    EXCLUDED = "excluded"

    @property
    def terminal(self) -> bool:
        return self in (UrlState.INCLUDED, UrlState.EXCLUDED)


_TRANSITIONS: dict[UrlState, tuple[UrlState, ...]] = {
    UrlState.PENDING: (UrlState.FETCHING, UrlState.EXCLUDED),
    UrlState.FETCHING: (UrlState.FETCHED, UrlState.FETCH_FAILED),
    UrlState.FETCHED: (UrlState.NORMALIZED, UrlState.NORMALIZE_FAILED),
    UrlState.FETCH_FAILED: (UrlState.EXCLUDED,),
    UrlState.NORMALIZED: (UrlState.INCLUDED, UrlState.EXCLUDED),
    UrlState.NORMALIZE_FAILED: (UrlState.EXCLUDED,),
    UrlState.INCLUDED: (),
    UrlState.EXCLUDED: (),
}


@dataclasses.dataclass
class UrlOutcome:
    """Progress of one input URL through the fetch pipeline."""

    url: str
    position: int
    state: UrlState = UrlState.PENDING
    history: list[UrlState] = dataclasses.field(default_factory=lambda: [UrlState.PENDING])
    reason: Optional[str] = None
    status_code: Optional[int] = None
    content_type: Optional[str] = None
    final_url: Optional[str] = None
    document: Optional[Document] = None
    elapsed: float = 0.0

    def advance(self, state: UrlState, reason: Optional[str] = None) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise ValueError(f"Illegal transition {self.state.value} -> {state.value} for {self.url}")
        self.state = state
        self.history.append(state)
        if reason is not None:
            self.reason = reason

    @property
    def included(self) -> bool:
        return self.state is UrlState.INCLUDED
