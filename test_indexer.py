#!/usr/bin/env python3
"""
Test script for indexing posts, products, terms, documents and custom queries
"""
import asyncio
import os
import tempfile

from sitechat.models.records import SourceType
from sitechat.models.site_content import Post, Product, ProductVariation, SiteInfo, Term
from sitechat.rag.chunk_store import EmbeddingStore
from sitechat.rag.embedder import EmbeddingError
from sitechat.rag.indexer import Indexer, build_product_text
from sitechat.site_content import InMemorySiteContent
from testing_fakes import FakeEmbeddingProvider, make_config, make_embedder, temp_db_path


class FlakyEmbeddingProvider(FakeEmbeddingProvider):
    """Fails for chunks containing `trigger`."""

    def __init__(self, trigger: str):
        super().__init__("openai")
        self.trigger = trigger

    async def embed(self, text, purpose):
        if self.trigger in text:
            self.calls.append(text)
            raise EmbeddingError("timeout")
        return await super().embed(text, purpose)


class FakeQueryRunner:
    def __init__(self, results):
        self.results = results

    def has_queries(self):
        return True

    def execute_custom_queries(self):
        return self.results


def make_site():
    return InMemorySiteContent(
        site_info=SiteInfo(name="Hotel Las Palmas", description="Hotel frente al mar",
                           front_page_title="Inicio", url="https://laspalmas.example"),
        posts=[
            Post(42, "Horarios", "<p>Abrimos de lunes a viernes de 8 a 5.</p>",
                 url="https://laspalmas.example/horarios"),
            Post(43, "Borrador", "Texto sin publicar", status="draft"),
            Post(44, "Revisión", "Texto viejo", is_revision=True),
        ],
        products=[
            Product(7, "Café de altura", description="<p>Café molido de montaña</p>", price="12.50",
                    currency="USD", sku="CAF-1", stock_quantity=3,
                    url="https://laspalmas.example/cafe",
                    variations=[ProductVariation({"Tamaño": "500g"}, price="20.00")]),
        ],
        terms=[Term(3, "category", "Bebidas", "Bebidas calientes", taxonomy_label="Categoría")],
    )


def make_indexer(site=None, providers=None, query_runner=None, **overrides):
    cfg = make_config(**overrides)
    store = EmbeddingStore(temp_db_path())
    embedder = make_embedder(cfg, providers)
    return Indexer(cfg, site or make_site(), store, embedder, query_runner=query_runner)


def texts_of(store, source_type, source_id):
    return [r.chunk_text for r in store.list_all()
            if r.source_type == source_type.value and r.source_id == source_id]


def test_index_post_is_idempotent():
    indexer = make_indexer()
    first = asyncio.run(indexer.index_post(42))
    count_after_first = indexer.store.count_by_source(SourceType.POST, 42)
    second = asyncio.run(indexer.index_post(42))

    assert first.complete and second.complete
    assert count_after_first == first.chunks_total == 1
    assert indexer.store.count_by_source(SourceType.POST, 42) == count_after_first
    assert texts_of(indexer.store, SourceType.POST, 42) == ["Horarios Abrimos de lunes a viernes de 8 a 5."]
    record = indexer.store.list_all()[0]
    assert record.provider == "openai" and record.model == "fake-embedding"
    print("✅ Re-indexing a post replaces its rows")


def test_unpublished_posts_are_skipped():
    indexer = make_indexer()
    assert asyncio.run(indexer.index_post(43)) is None
    assert asyncio.run(indexer.index_post(44)) is None
    assert asyncio.run(indexer.index_post(999)) is None
    assert indexer.store.count() == 0
    print("✅ Drafts, revisions and missing posts skipped")


def test_products_are_indexed_with_price_and_stock():
    indexer = make_indexer()
    result = asyncio.run(indexer.index_post(7))

    assert result.complete
    assert indexer.store.count_by_source(SourceType.POST, 7) == 0
    text = " ".join(texts_of(indexer.store, SourceType.PRODUCT, 7))
    assert "Producto: Café de altura" in text
    assert "Precio: 12.50 USD" in text
    assert "SKU: CAF-1" in text
    assert "Stock: 3 unidades" in text
    assert "Tamaño: 500g" in text
    print("✅ Product routed to product text with price, stock and variations")


def test_build_product_text_stock_status():
    text = build_product_text(Product(1, "Té", stock_status="outofstock"))
    assert text == "Producto: Té\nEstado de stock: outofstock"
    print("✅ Stock status used when quantity is unknown")


def test_index_term_and_site_metadata():
    indexer = make_indexer()
    asyncio.run(indexer.index_term(3, "category"))
    asyncio.run(indexer.index_site_metadata())

    assert texts_of(indexer.store, SourceType.TERM, 3) == ["Categoría: Bebidas. Bebidas calientes"]
    site_text = texts_of(indexer.store, SourceType.SITE, 0)[0]
    assert site_text.startswith("Sitio: Hotel Las Palmas.")
    assert "Dirección web: https://laspalmas.example" in site_text
    assert asyncio.run(indexer.index_term(3, "post_tag")) is None
    print("✅ Term and site metadata indexed")


def test_document_max_chunks():
    indexer = make_indexer(max_chunk_chars=50)
    text = " ".join(f"palabra{i}" for i in range(100))
    result = asyncio.run(indexer.index_document(5, text, SourceType.FILE, max_chunks=2))

    assert result.chunks_total == 2
    assert result.chunks_embedded == 2
    assert indexer.store.count_by_source(SourceType.FILE, 5) == 2
    print("✅ Document truncated to max_chunks")


def test_empty_document_is_a_failure_without_side_effects():
    indexer = make_indexer()
    asyncio.run(indexer.index_document(5, "manual de usuario", SourceType.FILE))
    result = asyncio.run(indexer.index_document(5, "   ", SourceType.FILE))

    assert result.chunks_total == 0 and result.chunks_embedded == 0
    assert result.error
    assert indexer.store.count_by_source(SourceType.FILE, 5) == 1
    print("✅ Empty document reported, existing rows untouched")


def test_partial_failure_is_counted():
    indexer = make_indexer(providers=[FlakyEmbeddingProvider("fallo")], max_chunk_chars=11)
    result = asyncio.run(indexer.index_document(9, "alfa beta gamma fallo delta"))

    assert result.chunks_total == 3
    assert result.chunks_embedded == 2
    assert "timeout" in result.error
    assert not result.complete
    assert texts_of(indexer.store, SourceType.FILE, 9) == ["alfa beta", "delta"]
    print("✅ Failed chunk skipped and counted")


def test_no_provider_reports_error():
    indexer = make_indexer(providers=[FakeEmbeddingProvider("openai", api_key="")])
    result = asyncio.run(indexer.index_post(42))

    assert result.chunks_total == 1
    assert result.chunks_embedded == 0
    assert "proveedor" in result.error
    assert indexer.store.count() == 0
    print("✅ Missing provider reported per source")


def test_index_file_reads_plain_text():
    indexer = make_indexer()
    path = os.path.join(tempfile.mkdtemp(), "manual.txt")
    with open(path, "w", encoding="utf-8") as f:
        f.write("Instrucciones de check-in y check-out.")

    result = asyncio.run(indexer.index_file(11, path, "text/plain"))
    assert result.complete
    assert texts_of(indexer.store, SourceType.FILE, 11) == ["Instrucciones de check-in y check-out."]

    unsupported = asyncio.run(indexer.index_file(12, path, "application/x-unknown"))
    assert unsupported.error and unsupported.chunks_total == 0
    print("✅ Uploaded text file indexed, unknown type rejected")


def test_reindex_all_preserves_uploaded_files():
    indexer = make_indexer()
    asyncio.run(indexer.index_document(5, "manual de usuario", SourceType.FILE))
    indexer.store.insert(SourceType.POST, 999, "post borrado", [1.0])

    summary = asyncio.run(indexer.reindex_all())

    assert indexer.store.count_by_source(SourceType.FILE, 5) == 1
    assert indexer.store.count_by_source(SourceType.POST, 999) == 0
    assert indexer.store.count_by_source(SourceType.POST, 42) == 1
    assert indexer.store.count_by_source(SourceType.PRODUCT, 7) >= 1
    assert indexer.store.count_by_source(SourceType.TERM, 3) == 1
    assert indexer.store.count_by_source(SourceType.SITE, 0) == 1
    assert summary.sources == 4
    assert summary.chunks_embedded == summary.chunks_total
    assert summary.errors == []
    print(f"✅ Full re-index: {summary.to_dict()}")


def test_remove_post():
    indexer = make_indexer()
    asyncio.run(indexer.index_post(42))
    asyncio.run(indexer.index_rendered_content(42, "<div>Menú del día</div>"))
    assert indexer.remove_post(42) == 2
    assert indexer.store.count() == 0
    print("✅ Deleted post leaves no rows behind")


def test_custom_queries_are_indexed():
    runner = FakeQueryRunner([
        {"query": "SELECT name FROM rooms", "data": [{"name": "Suite"}, {"name": "Doble"}]},
    ])
    indexer = make_indexer(query_runner=runner)
    indexer.store.insert(SourceType.DB_QUERY, 3, "resultado viejo", [1.0])

    summary = asyncio.run(indexer.index_custom_queries())

    assert summary.sources == 1
    text = texts_of(indexer.store, SourceType.DB_QUERY, 1)[0]
    assert text.startswith("Consulta: SELECT name FROM rooms Resultados:")
    assert '{"name": "Suite"}' in text
    assert indexer.store.count_by_source(SourceType.DB_QUERY, 3) == 0
    print("✅ Custom query results indexed, stale result sets dropped")


if __name__ == "__main__":
    print("=" * 60)
    print("Testing Indexer")
    print("=" * 60)
    test_index_post_is_idempotent()
    test_unpublished_posts_are_skipped()
    test_products_are_indexed_with_price_and_stock()
    test_build_product_text_stock_status()
    test_index_term_and_site_metadata()
    test_document_max_chunks()
    test_empty_document_is_a_failure_without_side_effects()
    test_partial_failure_is_counted()
    test_no_provider_reports_error()
    test_index_file_reads_plain_text()
    test_reindex_all_preserves_uploaded_files()
    test_remove_post()
    test_custom_queries_are_indexed()
    print("\n✅ ALL TESTS PASSED!")
