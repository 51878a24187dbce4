import os
import logging
from dotenv import load_dotenv
from pathlib import Path
from typing import Any, Dict, List, Optional

# Load environment variables from .env file with explicit path
load_dotenv(dotenv_path=Path(__file__).parent.parent / '.env')

logger = logging.getLogger(__name__)

# Provider Configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_CHAT_MODEL = os.getenv("OPENAI_CHAT_MODEL", "gpt-3.5-turbo")
OPENAI_EMBEDDING_MODEL = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
OPENAI_API_URL = os.getenv("OPENAI_API_URL", "https://api.openai.com/v1")

GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", "")
GOOGLE_CHAT_MODEL = os.getenv("GOOGLE_CHAT_MODEL", "gemini-1.5-flash")
GOOGLE_EMBEDDING_MODEL = os.getenv("GOOGLE_EMBEDDING_MODEL", "text-embedding-004")
GOOGLE_API_URL = os.getenv("GOOGLE_API_URL", "https://generativelanguage.googleapis.com")

# Sticky embedding provider preference ('openai', 'google' or empty)
EMBEDDING_PROVIDER = os.getenv("EMBEDDING_PROVIDER", "")

# Local storage
EMBEDDINGS_DB_PATH = os.getenv("EMBEDDINGS_DB_PATH", "sitechat_embeddings.db")
OPTIONS_DB_PATH = os.getenv("OPTIONS_DB_PATH", "sitechat_options.db")

# Database Configuration (custom read-only queries)
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_USER = os.getenv("DB_USER", "")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_NAME = os.getenv("DB_NAME", "")
CUSTOM_QUERIES = os.getenv("CHATBOT_CUSTOM_QUERIES", "")

# Admin passkey (authenticated callers bypass rate limiting)
ADMIN_PASSKEY = os.getenv("CHATBOT_ADMIN_PASSKEY", "")

# Option keys written back by the core
PREFERRED_EMBEDDING_PROVIDER = "embedding_provider"

DEFAULTS: Dict[str, Any] = {
    "openai_api_key": OPENAI_API_KEY,
    "openai_model": OPENAI_CHAT_MODEL,
    "openai_embedding_model": OPENAI_EMBEDDING_MODEL,
    "openai_api_url": OPENAI_API_URL,
    "google_api_key": GOOGLE_API_KEY,
    "google_model": GOOGLE_CHAT_MODEL,
    "google_embedding_model": GOOGLE_EMBEDDING_MODEL,
    "google_api_url": GOOGLE_API_URL,
    PREFERRED_EMBEDDING_PROVIDER: EMBEDDING_PROVIDER,
    "custom_queries": CUSTOM_QUERIES,
    "db_host": DB_HOST,
    "db_user": DB_USER,
    "db_pass": DB_PASSWORD,
    "db_name": DB_NAME,
    "admin_passkey": ADMIN_PASSKEY,
    "max_chunk_chars": int(os.getenv("CHATBOT_MAX_CHUNK_CHARS", "500")),
    "search_limit": int(os.getenv("CHATBOT_SEARCH_LIMIT", "5")),
    "similarity_threshold": float(os.getenv("CHATBOT_SIMILARITY_THRESHOLD", "0.15")),
    "max_context_chars": int(os.getenv("CHATBOT_MAX_CONTEXT_CHARS", "6000")),
    "document_max_chunks": int(os.getenv("CHATBOT_DOCUMENT_MAX_CHUNKS", "0")),
    "chat_max_tokens": int(os.getenv("CHATBOT_CHAT_MAX_TOKENS", "500")),
    "embedding_timeout": float(os.getenv("CHATBOT_EMBEDDING_TIMEOUT", "20")),
    "chat_timeout": float(os.getenv("CHATBOT_CHAT_TIMEOUT", "30")),
    "conversation_ttl": int(os.getenv("CHATBOT_CONVERSATION_TTL", "1800")),  # 30 minutes
    "site_snapshot_ttl": int(os.getenv("CHATBOT_SITE_SNAPSHOT_TTL", "3600")),  # 1 hour
    "rate_limit_per_minute": int(os.getenv("CHATBOT_RATE_LIMIT_PER_MINUTE", "5")),
    "rate_limit_burst": int(os.getenv("CHATBOT_RATE_LIMIT_BURST", "3")),
    "rate_limit_burst_window": int(os.getenv("CHATBOT_RATE_LIMIT_BURST_WINDOW", "10")),
    "message_max_chars": int(os.getenv("CHATBOT_MESSAGE_MAX_CHARS", "1000")),
    "reindex_page_size": int(os.getenv("CHATBOT_REINDEX_PAGE_SIZE", "50")),
}

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ConfigProvider:
    """Typed access to the chatbot options.

    Values are looked up in the in-memory overrides first, then in the
    persistent option store (if any), then in the env-derived DEFAULTS.
    Only `set()` writes, and it writes through to the option store.
    """

    def __init__(self, overrides: Optional[Dict[str, Any]] = None, store=None, defaults: Optional[Dict[str, Any]] = None):
        self._overrides: Dict[str, Any] = dict(overrides or {})
        self._store = store
        self._defaults = DEFAULTS if defaults is None else defaults

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._overrides:
            return self._overrides[key]
        if self._store is not None:
            value = self._store.get_option(key)
            if value is not None:
                return value
        return self._defaults.get(key, default)

    def get_str(self, key: str, default: str = "") -> str:
        value = self.get(key, default)
        return default if value is None else str(value).strip()

    def get_int(self, key: str, default: int = 0) -> int:
        try:
            return int(self.get(key, default))
        except (TypeError, ValueError):
            logger.warning(f"[CONFIG] Invalid integer for option '{key}', using {default}")
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        try:
            return float(self.get(key, default))
        except (TypeError, ValueError):
            logger.warning(f"[CONFIG] Invalid float for option '{key}', using {default}")
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in _TRUE_VALUES

    def get_lines(self, key: str) -> List[str]:
        """Newline separated option as a list of non-empty trimmed lines."""
        value = self.get(key, "")
        if isinstance(value, (list, tuple)):
            lines = [str(v) for v in value]
        else:
            lines = str(value or "").splitlines()
        return [line.strip() for line in lines if line.strip()]

    def set(self, key: str, value: Any) -> None:
        self._overrides[key] = value
        if self._store is not None:
            self._store.set_option(key, value)
