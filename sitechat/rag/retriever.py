"""
Retriever module for semantic chunk retrieval at query time.

Scores every stored chunk against the query embedding (exact cosine
similarity, full scan), boosts chunks of the page the user is viewing and
returns the top results. The scan is O(n·d) and meant for small corpora;
anything exposing `list_all()` can stand in for the store.
"""

import logging
import math
from typing import Callable, List, Optional, Sequence

from ..models.records import SearchResult

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5

# Chunks of the page currently being viewed get their similarity multiplied by this
CURRENT_PAGE_BOOST = 1.2

# Results below this similarity are not used as grounding context
MIN_SIMILARITY = 0.15

# Maximum total characters of retrieved content to put in the prompt
MAX_CONTEXT_CHARS = 6000


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Ragged vectors are compared over the shorter length. Returns 0.0 when
    either vector has zero norm.
    """
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def _comparable(record, provider: str, model: str) -> bool:
    """Untagged rows and rows from the same provider/model are comparable."""
    if provider and record.provider and record.provider != provider:
        return False
    if model and record.model and record.model != model:
        return False
    return True


def search(
    store,
    query_embedding: Sequence[float],
    current_source_id: Optional[int] = None,
    limit: int = DEFAULT_LIMIT,
    provider: str = "",
    model: str = "",
) -> List[SearchResult]:
    """Rank every stored chunk by similarity to the query.

    Args:
        store: Embedding store exposing `list_all()`.
        query_embedding: Embedding vector of the user query.
        current_source_id: Id of the page being viewed; its chunks are boosted.
        limit: Number of results to return.
        provider: Provider that embedded the query; rows tagged with another
            provider (or model) are not comparable and are skipped.
        model: Model that embedded the query.

    Returns:
        Results sorted by descending (boosted) similarity.
    """
    if not query_embedding:
        return []

    results = [
        SearchResult(
            chunk_text=record.chunk_text,
            source_type=record.source_type,
            source_id=record.source_id,
            similarity=cosine_similarity(query_embedding, record.embedding),
        )
        for record in store.list_all()
        if record.embedding and _comparable(record, provider, model)
    ]
    results.sort(key=lambda r: r.similarity, reverse=True)

    if current_source_id:
        boosted = 0
        for result in results:
            if result.source_id == current_source_id:
                result.similarity *= CURRENT_PAGE_BOOST
                boosted += 1
        results.sort(key=lambda r: r.similarity, reverse=True)
        logger.debug(f"[RETRIEVER] Boosted {boosted} chunks of source {current_source_id}")

    top = results[:limit]
    if top:
        logger.info(
            f"[RETRIEVER] Scanned {len(results)} chunks, top similarity "
            f"{top[0].similarity:.3f} ({top[0].source_type}:{top[0].source_id})"
        )
    return top


def filter_relevant(results: List[SearchResult], threshold: float = MIN_SIMILARITY) -> List[SearchResult]:
    """Drop results below the relevance floor."""
    return [r for r in results if r.similarity >= threshold]


def with_title(title: str, text: str) -> str:
    """Put `title` on its own first line of a chunk."""
    if not title:
        return text
    if text.startswith(title) and text[len(title):len(title) + 1] in ("", " ", "\n"):
        rest = text[len(title):].strip()
        return f"{title}\n{rest}" if rest else text
    return f"{title}\n{text}"


def format_context(results: List[SearchResult], max_chars: int = MAX_CONTEXT_CHARS,
                   title_for: Optional[Callable[[SearchResult], str]] = None) -> str:
    """Join chunk texts into a context block, one paragraph per chunk.

    With `title_for`, each paragraph starts with its source title line.
    Stops before the chunk that would push the block past `max_chars`.
    The first chunk is truncated instead of dropped.
    """
    parts = []
    total_chars = 0

    for r in results:
        text = r.chunk_text.strip()
        if not text:
            continue
        if title_for is not None:
            text = with_title(title_for(r), text)
        if total_chars + len(text) > max_chars:
            if not parts:
                parts.append(text[:max_chars])
            logger.info(f"[RETRIEVER] Reached char limit ({max_chars}), stopping at {len(parts)} chunks")
            break
        parts.append(text)
        total_chars += len(text)

    return "\n\n".join(parts)
