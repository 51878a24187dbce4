"""
Embedder module for generating embeddings through OpenAI or Google.

Each provider embeds a single text. `EmbeddingClient` walks the configured
providers, sticky preference first, and remembers which provider last
succeeded so the next call goes straight to the healthy one.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from .. import config as config_module
from ..config import ConfigProvider

logger = logging.getLogger(__name__)

OPENAI = "openai"
GOOGLE = "google"

DEFAULT_OPENAI_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_GOOGLE_EMBEDDING_MODEL = "text-embedding-004"


class EmbeddingPurpose(Enum):
    """Why a text is embedded; Google optimizes the vector accordingly."""
    QUERY = "query"
    DOCUMENT = "document"


GOOGLE_TASK_TYPES = {
    EmbeddingPurpose.QUERY: "RETRIEVAL_QUERY",
    EmbeddingPurpose.DOCUMENT: "RETRIEVAL_DOCUMENT",
}


class EmbeddingError(Exception):
    """Raised by a provider when no embedding could be obtained"""
    pass


class EmbeddingProvider(ABC):
    """Base contract for embedding backends."""

    name: str = ""

    def __init__(self, api_key: str, model: str, timeout: float = 20.0):
        self.api_key = api_key or ""
        self.model = model
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @abstractmethod
    async def embed(self, text: str, purpose: EmbeddingPurpose) -> List[float]:
        """Return the embedding vector for `text` or raise EmbeddingError."""
        raise NotImplementedError


class OpenAIEmbeddingProvider(EmbeddingProvider):
    name = OPENAI

    def __init__(self, api_key: str, model: str = DEFAULT_OPENAI_EMBEDDING_MODEL, timeout: float = 20.0,
                 base_url: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        super().__init__(api_key, model, timeout)
        self.base_url = base_url
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    async def embed(self, text: str, purpose: EmbeddingPurpose) -> List[float]:
        try:
            response = await self._get_client().embeddings.create(model=self.model, input=text)
        except OpenAIError as e:
            status = getattr(e, "status_code", None)
            raise EmbeddingError(f"OpenAI API error (status={status}): {e}") from e

        data = getattr(response, "data", None)
        if not data or not getattr(data[0], "embedding", None):
            raise EmbeddingError("OpenAI response did not include an embedding")
        return list(data[0].embedding)


class GoogleEmbeddingProvider(EmbeddingProvider):
    name = GOOGLE

    def __init__(self, api_key: str, model: str = DEFAULT_GOOGLE_EMBEDDING_MODEL, timeout: float = 20.0,
                 base_url: str = "https://generativelanguage.googleapis.com",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(api_key, model, timeout)
        self.base_url = base_url.rstrip("/")
        self.transport = transport

    async def embed(self, text: str, purpose: EmbeddingPurpose) -> List[float]:
        url = f"{self.base_url}/v1beta/models/{self.model}:embedContent"
        payload = {
            "content": {"parts": [{"text": text}]},
            "taskType": GOOGLE_TASK_TYPES[purpose],
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, params={"key": self.api_key}, json=payload)
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise EmbeddingError(f"Google request failed: {e}") from e

        if not isinstance(body, dict):
            raise EmbeddingError(f"Google returned an unexpected payload (status={response.status_code})")
        if body.get("error"):
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise EmbeddingError(f"Google API error (status={response.status_code}): {message}")

        values = (body.get("embedding") or {}).get("values")
        if not values:
            raise EmbeddingError(f"Google response did not include an embedding (status={response.status_code})")
        return list(values)


def build_embedding_providers(cfg: ConfigProvider) -> List[EmbeddingProvider]:
    """Default provider list in fallback order: OpenAI first, then Google."""
    return [
        OpenAIEmbeddingProvider(
            api_key=cfg.get_str("openai_api_key"),
            model=cfg.get_str("openai_embedding_model", DEFAULT_OPENAI_EMBEDDING_MODEL),
            timeout=cfg.get_float("embedding_timeout", 20.0),
            base_url=cfg.get_str("openai_api_url") or None,
        ),
        GoogleEmbeddingProvider(
            api_key=cfg.get_str("google_api_key"),
            model=cfg.get_str("google_embedding_model", DEFAULT_GOOGLE_EMBEDDING_MODEL),
            timeout=cfg.get_float("embedding_timeout", 20.0),
            base_url=cfg.get_str("google_api_url") or "https://generativelanguage.googleapis.com",
        ),
    ]


class EmbeddingClient:
    """Embeds text with the first healthy configured provider.

    Attributes:
        last_error: Human readable description of the most recent failure.
        last_provider: Name of the provider that produced the last vector.
        last_model: Model that produced the last vector.
    """

    def __init__(self, cfg: ConfigProvider, providers: Optional[List[EmbeddingProvider]] = None):
        self.config = cfg
        self.providers = providers if providers is not None else build_embedding_providers(cfg)
        self.last_error = ""
        self.last_provider = ""
        self.last_model = ""

    def configured_providers(self) -> List[EmbeddingProvider]:
        """Configured providers, the sticky preferred provider first."""
        configured = [p for p in self.providers if p.is_configured()]
        preferred = self.config.get_str(config_module.PREFERRED_EMBEDDING_PROVIDER)
        if preferred:
            configured.sort(key=lambda p: 0 if p.name == preferred else 1)
        return configured

    def has_provider(self) -> bool:
        return bool(self.configured_providers())

    async def embed(self, text: str, purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT) -> Optional[List[float]]:
        """Embed `text`, falling through the provider chain on failure.

        Args:
            text: The text to embed.
            purpose: QUERY at retrieval time, DOCUMENT when indexing.

        Returns:
            The embedding vector, or None if no provider is configured or
            every configured provider failed (see `last_error`).
        """
        providers = self.configured_providers()
        if not providers:
            self.last_error = "No hay ningún proveedor de embeddings configurado (OpenAI o Google)."
            logger.warning("[EMBEDDER] No embedding provider configured")
            return None

        preferred = self.config.get_str(config_module.PREFERRED_EMBEDDING_PROVIDER)
        for provider in providers:
            try:
                vector = await provider.embed(text, purpose)
            except EmbeddingError as e:
                self.last_error = f"{provider.name}: {e}"
                logger.warning(
                    f"[EMBEDDER] {provider.name} ({provider.model}) failed for "
                    f"'{text[:80]}': {e}"
                )
                continue

            self.last_provider = provider.name
            self.last_model = provider.model
            if provider.name != preferred:
                logger.info(f"[EMBEDDER] Preferred embedding provider switched '{preferred}' -> '{provider.name}'")
                self.config.set(config_module.PREFERRED_EMBEDDING_PROVIDER, provider.name)
            return vector

        logger.error(f"[EMBEDDER] All embedding providers failed, last error: {self.last_error}")
        return None
