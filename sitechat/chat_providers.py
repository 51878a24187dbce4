"""
Chat completion providers (Google Gemini, OpenAI).

Any transport error, API error payload or missing response field is raised
as ProviderUnavailable so the orchestrator can move on to the next provider.
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from .config import ConfigProvider

logger = logging.getLogger(__name__)

USER_QUESTION_LABEL = "Pregunta del usuario:"


class ProviderUnavailable(Exception):
    """Raised when a chat provider could not produce an answer"""
    pass


class ChatProvider(ABC):
    """Base contract for chat completion backends."""

    name: str = ""

    def __init__(self, api_key: str, model: str, timeout: float = 30.0, max_tokens: int = 500):
        self.api_key = api_key or ""
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @abstractmethod
    async def complete(self, prompt: str, message: str) -> str:
        """Answer `message` following the grounding `prompt`."""
        raise NotImplementedError

    def _fail(self, reason: str, prompt: str, status: Optional[int] = None) -> ProviderUnavailable:
        logger.error(
            f"[{self.name.upper()}] model={self.model} status={status} {reason} "
            f"(prompt: {prompt[:80]!r})"
        )
        return ProviderUnavailable(f"{self.name}: {reason}")


class GoogleChatProvider(ChatProvider):
    name = "google"

    def __init__(self, api_key: str, model: str = "gemini-1.5-flash", timeout: float = 30.0,
                 max_tokens: int = 500, base_url: str = "https://generativelanguage.googleapis.com",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(api_key, model, timeout, max_tokens)
        self.base_url = base_url.rstrip("/")
        self.transport = transport

    async def complete(self, prompt: str, message: str) -> str:
        url = f"{self.base_url}/v1beta/models/{self.model}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": f"{prompt}\n\n{USER_QUESTION_LABEL} {message}"}]}],
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, params={"key": self.api_key}, json=payload)
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise self._fail(f"request failed: {e}", prompt) from e

        if not isinstance(body, dict):
            raise self._fail("unexpected payload", prompt, response.status_code)
        if body.get("error") or response.status_code >= 400:
            error = body.get("error") or {}
            detail = error.get("message", error) if isinstance(error, dict) else error
            raise self._fail(f"API error: {detail}", prompt, response.status_code)

        try:
            parts = body["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts).strip()
        except (KeyError, IndexError, TypeError, AttributeError):
            raise self._fail("response without candidates", prompt, response.status_code)
        if not text:
            raise self._fail("empty answer", prompt, response.status_code)
        return text


class OpenAIChatProvider(ChatProvider):
    name = "openai"

    def __init__(self, api_key: str, model: str = "gpt-3.5-turbo", timeout: float = 30.0,
                 max_tokens: int = 500, base_url: Optional[str] = None,
                 client: Optional[AsyncOpenAI] = None):
        super().__init__(api_key, model, timeout, max_tokens)
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

    async def complete(self, prompt: str, message: str) -> str:
        try:
            response = await self._get_client().chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": prompt},
                    {"role": "user", "content": message},
                ],
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            raise self._fail(f"API error: {e}", prompt, getattr(e, "status_code", None)) from e

        try:
            text = (response.choices[0].message.content or "").strip()
        except (AttributeError, IndexError, TypeError):
            raise self._fail("response without choices", prompt)
        if not text:
            raise self._fail("empty answer", prompt)
        return text


def build_chat_providers(cfg: ConfigProvider) -> List[ChatProvider]:
    """Chat providers in the order they are tried: Google first, then OpenAI."""
    timeout = cfg.get_float("chat_timeout", 30.0)
    max_tokens = cfg.get_int("chat_max_tokens", 500)
    return [
        GoogleChatProvider(
            api_key=cfg.get_str("google_api_key"),
            model=cfg.get_str("google_model", "gemini-1.5-flash"),
            timeout=timeout,
            max_tokens=max_tokens,
            base_url=cfg.get_str("google_api_url") or "https://generativelanguage.googleapis.com",
        ),
        OpenAIChatProvider(
            api_key=cfg.get_str("openai_api_key"),
            model=cfg.get_str("openai_model", "gpt-3.5-turbo"),
            timeout=timeout,
            max_tokens=max_tokens,
            base_url=cfg.get_str("openai_api_url") or None,
        ),
    ]
