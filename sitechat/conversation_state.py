"""
Short-lived per-session conversation memory (active topic, last question).

Entries live in memory for `ttl` seconds after their last write; an absent
or expired entry reads as a fresh, empty state.
"""
import logging
import re
import threading
import time
from typing import Callable, Dict, Optional

from .models.records import ConversationState

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60
MAX_SESSION_ID_LENGTH = 64

# Expired entries are swept on write at most once per interval
CLEANUP_INTERVAL_SECONDS = 60

_SESSION_ID_RE = re.compile(r"[^a-zA-Z0-9_-]")


def normalize_session_id(session_id: Optional[str]) -> str:
    """Keep only [a-zA-Z0-9_-] and truncate to 64 chars. '' means no session."""
    if not session_id:
        return ""
    return _SESSION_ID_RE.sub("", str(session_id))[:MAX_SESSION_ID_LENGTH]


class ConversationStateStore:
    """In-memory TTL store of ConversationState keyed by session id."""

    def __init__(self, ttl: int = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.time,
                 cleanup_interval: int = CLEANUP_INTERVAL_SECONDS):
        self.ttl = ttl
        self.clock = clock
        self.cleanup_interval = cleanup_interval
        self._entries: Dict[str, dict] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, session_id: Optional[str]) -> ConversationState:
        key = normalize_session_id(session_id)
        if not key:
            return ConversationState()
        with self._lock:
            entry = self._entries.get(key)
            if entry and entry["expires_at"] > self.clock():
                state = entry["state"]
                return ConversationState(topic=state.topic, last_question=state.last_question)
            if entry:
                del self._entries[key]
                logger.debug(f"[CONVERSATION_STATE] Expired entry removed: {key}")
        return ConversationState()

    def put(self, session_id: Optional[str], state: ConversationState, ttl: Optional[int] = None) -> None:
        key = normalize_session_id(session_id)
        if not key:
            return
        now = self.clock()
        expires_at = now + (self.ttl if ttl is None else ttl)
        with self._lock:
            self._entries[key] = {
                "state": ConversationState(topic=state.topic, last_question=state.last_question),
                "expires_at": expires_at,
            }
            if now - self._last_cleanup >= self.cleanup_interval:
                removed = self._remove_expired(now)
                if removed:
                    logger.info(f"[CONVERSATION_STATE] Swept {removed} expired sessions")

    def clear(self, session_id: Optional[str]) -> None:
        key = normalize_session_id(session_id)
        with self._lock:
            self._entries.pop(key, None)

    def cleanup_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        with self._lock:
            removed = self._remove_expired(self.clock())
        if removed:
            logger.info(f"[CONVERSATION_STATE] Cleaned up {removed} expired sessions")
        return removed

    def _remove_expired(self, now: float) -> int:
        expired = [k for k, v in self._entries.items() if v["expires_at"] <= now]
        for key in expired:
            del self._entries[key]
        self._last_cleanup = now
        return len(expired)
