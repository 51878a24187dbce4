"""
Deterministic stand-ins shared by the test scripts: embedding and chat
providers that never touch the network, a controllable clock and a helper
that wires the whole service on a temporary sqlite database.
"""
import hashlib
import math
import os
import tempfile
from typing import List, Optional

from sitechat.chat_providers import ChatProvider
from sitechat.config import ConfigProvider
from sitechat.rag.chunk_store import EmbeddingStore
from sitechat.rag.embedder import EmbeddingClient, EmbeddingError, EmbeddingProvider, EmbeddingPurpose
from sitechat.services import build_services
from sitechat.utils.text import STOPWORDS, tokenize

DIMENSIONS = 256


def bag_of_words_vector(text: str, dimensions: int = DIMENSIONS) -> List[float]:
    """Hash every non-stopword token into a fixed-size, L2-normalized vector."""
    vector = [0.0] * dimensions
    for token in tokenize(text):
        if token in STOPWORDS:
            continue
        bucket = int(hashlib.md5(token.encode()).hexdigest(), 16) % dimensions
        vector[bucket] += 1.0
    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        return vector
    return [v / norm for v in vector]


class FakeEmbeddingProvider(EmbeddingProvider):
    """Embeds with `bag_of_words_vector`; `fail=True` makes every call raise."""

    def __init__(self, name: str = "openai", model: str = "fake-embedding", fail: bool = False,
                 api_key: str = "test-key"):
        super().__init__(api_key, model)
        self.name = name
        self.fail = fail
        self.calls: List[str] = []

    async def embed(self, text: str, purpose: EmbeddingPurpose) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise EmbeddingError(f"{self.name} is down")
        return bag_of_words_vector(text)


class FakeChatProvider(ChatProvider):
    """Returns `reply`, or raises ProviderUnavailable when `reply` is None."""

    def __init__(self, name: str, reply: Optional[str] = None, api_key: str = "test-key"):
        super().__init__(api_key, f"fake-{name}")
        self.name = name
        self.reply = reply
        self.prompts: List[str] = []
        self.messages: List[str] = []

    async def complete(self, prompt: str, message: str) -> str:
        self.prompts.append(prompt)
        self.messages.append(message)
        if self.reply is None:
            raise self._fail("simulated outage", prompt, 503)
        return self.reply


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def temp_db_path(name: str = "embeddings.db") -> str:
    return os.path.join(tempfile.mkdtemp(prefix="sitechat_test_"), name)


def make_config(**overrides) -> ConfigProvider:
    """Config isolated from the environment defaults (no real API keys)."""
    values = {
        "openai_api_key": "",
        "google_api_key": "",
        "embedding_provider": "",
        "custom_queries": "",
        "admin_passkey": "",
    }
    values.update(overrides)
    return ConfigProvider(overrides=values)


def make_embedder(cfg: ConfigProvider, providers=None) -> EmbeddingClient:
    return EmbeddingClient(cfg, providers=providers if providers is not None else [FakeEmbeddingProvider()])


def make_services(site=None, chat_providers=None, embedding_providers=None, **overrides):
    """Full service graph on a temporary database with fake providers."""
    cfg = make_config(**overrides)
    return build_services(
        cfg=cfg,
        site=site,
        store=EmbeddingStore(temp_db_path()),
        embedder=make_embedder(cfg, embedding_providers),
        chat_providers=chat_providers if chat_providers is not None else [],
    )
