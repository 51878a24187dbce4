"""
Indexer module: chunk, embed and store site content.

Every source kind follows the same pattern: delete the source's existing
rows, chunk its text, embed each chunk and store the successes. A failed
chunk is counted and skipped; the run continues with the next one.

Run `python -m sitechat.rag.indexer` (e.g. from cron) for a full re-index.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..config import ConfigProvider
from ..documents import extract_text
from ..models.records import IndexJobResult, ReindexSummary, SourceType, source_key
from ..models.site_content import PRODUCT_POST_TYPE, Product
from ..site_content import SiteContent
from .chunker import DEFAULT_MAX_CHUNK_CHARS, chunk_text, strip_markup
from .chunk_store import EmbeddingStore
from .embedder import EmbeddingClient, EmbeddingPurpose

logger = logging.getLogger(__name__)

# Uploaded documents survive a full re-index
PRESERVED_ON_REINDEX = {SourceType.FILE}

REINDEX_PAGE_SIZE = 50


class Indexer:
    """Turns site content into stored embedding rows."""

    def __init__(self, cfg: ConfigProvider, site: SiteContent, store: EmbeddingStore,
                 embedder: EmbeddingClient, query_runner=None):
        self.config = cfg
        self.site = site
        self.store = store
        self.embedder = embedder
        self.query_runner = query_runner

    @property
    def max_chunk_chars(self) -> int:
        return self.config.get_int("max_chunk_chars", DEFAULT_MAX_CHUNK_CHARS)

    async def _index_text(self, source_type, source_id: int, text: str, max_chunks: int = 0) -> IndexJobResult:
        """Replace the rows of one source with freshly embedded chunks of `text`."""
        self.store.delete_by_source(source_type, source_id)

        chunks = chunk_text(text, self.max_chunk_chars)
        if max_chunks > 0 and len(chunks) > max_chunks:
            logger.info(f"[INDEXER] Truncating {source_key(source_type)}:{source_id} from {len(chunks)} to {max_chunks} chunks")
            chunks = chunks[:max_chunks]

        result = IndexJobResult(chunks_total=len(chunks))
        if not chunks:
            return result

        if not self.embedder.has_provider():
            result.error = "No hay ningún proveedor de embeddings configurado (OpenAI o Google)."
            logger.warning(f"[INDEXER] Skipping {source_key(source_type)}:{source_id}, no embedding provider configured")
            return result

        for chunk in chunks:
            embedding = await self.embedder.embed(chunk, EmbeddingPurpose.DOCUMENT)
            if not embedding:
                result.error = self.embedder.last_error
                continue
            self.store.insert(
                source_type, source_id, chunk, embedding,
                provider=self.embedder.last_provider, model=self.embedder.last_model,
            )
            result.chunks_embedded += 1

        level = logging.INFO if result.complete else logging.WARNING
        logger.log(
            level,
            f"[INDEXER] {source_key(source_type)}:{source_id} embedded {result.chunks_embedded}/{result.chunks_total} chunks"
            + (f" (last error: {result.error})" if result.error else ""),
        )
        return result

    async def index_post(self, post_id: int) -> Optional[IndexJobResult]:
        """Index a published post. Products are routed to `index_product`.

        Returns:
            The job result, or None when the post was skipped.
        """
        post = self.site.get_post(post_id)
        if post is None or post.is_revision or post.is_autosave:
            return None
        if not post.is_published:
            logger.debug(f"[INDEXER] Skipping post {post_id} with status '{post.status}'")
            return None
        if post.post_type == PRODUCT_POST_TYPE:
            return await self.index_product(post_id)

        text = f"{post.title}\n\n{strip_markup(post.content)}"
        return await self._index_text(SourceType.POST, post_id, text)

    async def index_product(self, product_id: int) -> Optional[IndexJobResult]:
        product = self.site.get_product(product_id)
        if product is None:
            return None
        return await self._index_text(SourceType.PRODUCT, product_id, build_product_text(product))

    async def index_term(self, term_id: int, taxonomy: str) -> Optional[IndexJobResult]:
        term = self.site.get_term(term_id, taxonomy)
        if term is None:
            return None
        label = term.taxonomy_label or taxonomy
        text = f"{label}: {term.name}. {strip_markup(term.description)}".strip()
        return await self._index_text(SourceType.TERM, term_id, text)

    async def index_site_metadata(self) -> IndexJobResult:
        info = self.site.get_site_info()
        parts = []
        if info.name:
            parts.append(f"Sitio: {info.name}.")
        if info.description:
            parts.append(f"Descripción: {info.description}.")
        if info.front_page_title:
            parts.append(f"Página de inicio: {info.front_page_title}.")
        if info.url:
            parts.append(f"Dirección web: {info.url}")
        return await self._index_text(SourceType.SITE, 0, " ".join(parts))

    async def index_document(self, source_id: int, raw_text: str, source_type=SourceType.FILE,
                             max_chunks: int = 0) -> IndexJobResult:
        """Index externally extracted text (uploaded files, fetched URLs, ...).

        Args:
            source_id: Id of the document (e.g. the attachment id).
            raw_text: Text supplied by the document-to-text collaborator.
            source_type: Source type to tag the rows with.
            max_chunks: When > 0, only the first `max_chunks` chunks are embedded.

        Returns:
            IndexJobResult with how many candidate chunks were embedded.
        """
        if not raw_text or not raw_text.strip():
            logger.warning(f"[INDEXER] Nothing to index for {source_key(source_type)}:{source_id}")
            return IndexJobResult(chunks_total=0, chunks_embedded=0, error="El documento no contiene texto para indexar.")
        return await self._index_text(source_type, source_id, raw_text, max_chunks=max_chunks)

    async def index_file(self, source_id: int, file_path: str, mime_type: str,
                         extractor: Callable[[str, str], str] = extract_text,
                         max_chunks: Optional[int] = None) -> IndexJobResult:
        if max_chunks is None:
            max_chunks = self.config.get_int("document_max_chunks", 0)
        return await self.index_document(source_id, extractor(file_path, mime_type), SourceType.FILE, max_chunks)

    async def index_url(self, source_id: int, text: str) -> IndexJobResult:
        return await self.index_document(source_id, text, SourceType.URL)

    async def index_rendered_content(self, post_id: int, rendered_html: str) -> IndexJobResult:
        """Index the rendered HTML of a dynamic page."""
        return await self._index_text(SourceType.RENDERED, post_id, rendered_html)

    async def index_custom_queries(self) -> ReindexSummary:
        """Index the results of the configured read-only SQL queries."""
        from ..db_query import format_results_for_indexing

        summary = ReindexSummary()
        if self.query_runner is None:
            return summary

        results = await asyncio.to_thread(self.query_runner.execute_custom_queries)
        texts = format_results_for_indexing(results)
        # Old result sets may outnumber the new ones
        for stale in {r.source_id for r in self.store.list_all() if r.source_type == SourceType.DB_QUERY.value}:
            if stale > len(texts):
                self.store.delete_by_source(SourceType.DB_QUERY, stale)
        for position, text in enumerate(texts, start=1):
            summary.add(await self._index_text(SourceType.DB_QUERY, position, text))
        return summary

    def delete_document_embeddings(self, source_id: int, source_type=SourceType.FILE) -> int:
        return self.store.delete_by_source(source_type, source_id)

    def remove_post(self, post_id: int) -> int:
        """Deletion hook: drop every row derived from a post."""
        removed = 0
        for source_type in (SourceType.POST, SourceType.PRODUCT, SourceType.RENDERED):
            removed += self.store.delete_by_source(source_type, post_id)
        return removed

    async def reindex_all(self) -> ReindexSummary:
        """Rebuild the whole corpus, keeping uploaded documents."""
        logger.info("[INDEXER] Starting full re-index...")
        self.store.delete_all_except(PRESERVED_ON_REINDEX)
        summary = ReindexSummary()

        summary.add(await self.index_site_metadata())

        page_size = self.config.get_int("reindex_page_size", REINDEX_PAGE_SIZE)
        for post_type in self.site.public_post_types():
            page = 1
            while True:
                post_ids = self.site.published_post_ids(post_type, page, page_size)
                if not post_ids:
                    break
                for post_id in post_ids:
                    summary.add(await self.index_post(post_id))
                if len(post_ids) < page_size:
                    break
                page += 1

        for taxonomy in self.site.public_taxonomies():
            for term in self.site.get_terms(taxonomy):
                summary.add(await self.index_term(term.id, taxonomy))

        if self.query_runner is not None and self.query_runner.has_queries():
            queries = await self.index_custom_queries()
            summary.sources += queries.sources
            summary.chunks_total += queries.chunks_total
            summary.chunks_embedded += queries.chunks_embedded
            summary.errors.extend(queries.errors)

        logger.info(
            f"[INDEXER] Re-index complete: {summary.sources} sources, "
            f"{summary.chunks_embedded}/{summary.chunks_total} chunks embedded"
        )
        return summary


def build_product_text(product: Product) -> str:
    """Text blob describing a product, its price, stock and variations."""
    lines = [f"Producto: {product.name}"]
    description = strip_markup(product.description)
    if description:
        lines.append(f"Descripción: {description}")
    short_description = strip_markup(product.short_description)
    if short_description:
        lines.append(f"Descripción corta: {short_description}")
    if product.price:
        lines.append(f"Precio: {product.price} {product.currency}".strip())
    if product.sku:
        lines.append(f"SKU: {product.sku}")
    if product.stock_quantity is not None:
        lines.append(f"Stock: {product.stock_quantity} unidades")
    elif product.stock_status:
        lines.append(f"Estado de stock: {product.stock_status}")
    for variation in product.variations:
        attributes = ", ".join(f"{name}: {value}" for name, value in variation.attributes.items())
        line = f"Variación: {attributes}"
        if variation.price:
            line += f" - Precio: {variation.price} {product.currency}".rstrip()
        lines.append(line)
    return "\n".join(lines)


if __name__ == "__main__":
    # Standalone script: full re-index (cron entry point)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    from ..services import build_services

    services = build_services()
    summary = asyncio.run(services.indexer.reindex_all())
    print(f"\nDone! {summary.sources} sources, {summary.chunks_embedded}/{summary.chunks_total} chunks embedded.")
    for error in summary.errors:
        print(f"  error: {error}")
