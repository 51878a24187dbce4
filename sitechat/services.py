"""
Wiring of the chatbot components.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .chat import ChatOrchestrator
from .config import ConfigProvider
from .conversation_state import ConversationStateStore
from .db_query import CustomQueryRunner
from .option_store import OptionStore
from .rag.chunk_store import EmbeddingStore
from .rag.embedder import EmbeddingClient
from .rag.indexer import Indexer
from .rate_limiter import RateLimiter
from .site_content import InMemorySiteContent, SiteContent

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: ConfigProvider
    site: SiteContent
    store: EmbeddingStore
    embedder: EmbeddingClient
    state_store: ConversationStateStore
    rate_limiter: RateLimiter
    indexer: Indexer
    orchestrator: ChatOrchestrator


def build_services(
    cfg: Optional[ConfigProvider] = None,
    site: Optional[SiteContent] = None,
    store: Optional[EmbeddingStore] = None,
    embedder: Optional[EmbeddingClient] = None,
    chat_providers=None,
) -> Services:
    """Build every component from configuration, overriding the given ones."""
    if cfg is None:
        cfg = ConfigProvider(store=OptionStore())
    site = site or InMemorySiteContent()
    store = store or EmbeddingStore()
    embedder = embedder or EmbeddingClient(cfg)
    state_store = ConversationStateStore(ttl=cfg.get_int("conversation_ttl", 1800))
    rate_limiter = RateLimiter(
        per_minute=cfg.get_int("rate_limit_per_minute", 5),
        burst=cfg.get_int("rate_limit_burst", 3),
        burst_window=cfg.get_int("rate_limit_burst_window", 10),
    )
    query_runner = CustomQueryRunner(cfg) if cfg.get_lines("custom_queries") else None
    indexer = Indexer(cfg, site, store, embedder, query_runner=query_runner)
    orchestrator = ChatOrchestrator(cfg, store, embedder, site, state_store, chat_providers=chat_providers)
    logger.info(f"[SERVICES] Built chatbot services (embeddings db: {store.db_path})")
    return Services(
        config=cfg,
        site=site,
        store=store,
        embedder=embedder,
        state_store=state_store,
        rate_limiter=rate_limiter,
        indexer=indexer,
        orchestrator=orchestrator,
    )
