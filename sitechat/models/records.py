"""Records shared by the indexer, the similarity search and the chat pipeline.

`EmbeddingRecord` rows are owned by the embedding store; `ConversationState`
is owned by the conversation state store. Everything else is a value object
returned to callers.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class SourceType(str, Enum):
    """Kinds of content that can be chunked and embedded."""
    POST = "post"
    PRODUCT = "product"
    TERM = "term"
    SITE = "site"
    FILE = "file"
    RENDERED = "rendered"
    DB_QUERY = "db_query"
    URL = "url"


def source_key(source_type) -> str:
    """Plain string form of a SourceType member or a raw string."""
    if isinstance(source_type, Enum):
        return source_type.value
    return str(source_type)


@dataclass
class EmbeddingRecord:
    """One stored chunk and its embedding vector.

    Attributes:
        id: Row id assigned by the store.
        source_type: One of SourceType values.
        source_id: Id of the source object (0 when not applicable).
        chunk_text: The chunk as it was embedded.
        embedding: The embedding vector.
        provider: Embedding provider that produced the vector ('openai', 'google').
        model: Embedding model name.
        created_at: Row creation timestamp as stored by sqlite.
    """
    id: int
    source_type: str
    source_id: int
    chunk_text: str
    embedding: List[float]
    provider: str = ""
    model: str = ""
    created_at: Optional[str] = None


@dataclass
class SearchResult:
    """A ranked chunk returned by the similarity search."""
    chunk_text: str
    source_type: str
    source_id: int
    similarity: float


@dataclass
class ConversationState:
    """Short-lived per-session memory used to resolve follow-up questions."""
    topic: str = ""
    last_question: str = ""


@dataclass
class IndexJobResult:
    """Outcome of indexing a single source.

    `error` holds the last embedding error when not every chunk made it.
    """
    chunks_total: int = 0
    chunks_embedded: int = 0
    error: str = ""

    @property
    def complete(self) -> bool:
        return not self.error and self.chunks_embedded == self.chunks_total

    def to_dict(self) -> dict:
        return {
            "chunks_total": self.chunks_total,
            "chunks_embedded": self.chunks_embedded,
            "error": self.error,
        }


@dataclass
class ReindexSummary:
    """Aggregate of a full re-index run."""
    sources: int = 0
    chunks_total: int = 0
    chunks_embedded: int = 0
    errors: List[str] = field(default_factory=list)

    def add(self, result: Optional[IndexJobResult]) -> None:
        if result is None:
            return
        self.sources += 1
        self.chunks_total += result.chunks_total
        self.chunks_embedded += result.chunks_embedded
        if result.error:
            self.errors.append(result.error)

    def to_dict(self) -> dict:
        return {
            "sources": self.sources,
            "chunks_total": self.chunks_total,
            "chunks_embedded": self.chunks_embedded,
            "errors": list(self.errors),
        }
