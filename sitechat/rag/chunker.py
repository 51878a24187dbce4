"""
Chunker module for splitting site content into bounded, word-aligned chunks.

Markup is stripped first (scripts and styles are removed with their content),
then words are accumulated greedily until the next word would overflow
the chunk size.
"""

import html
import logging
import re
from typing import List

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK_CHARS = 500

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_SHORTCODE_RE = re.compile(r"\[/?[a-zA-Z_][\w-]*(?:\s[^\]]*)?\]")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_markup(text: str) -> str:
    """Remove HTML tags, shortcodes and entities, collapsing whitespace.

    Args:
        text: Raw text, possibly containing HTML.

    Returns:
        Plain text with single spaces between words.
    """
    if not text:
        return ""
    text = _SCRIPT_STYLE_RE.sub(" ", text)
    text = _TAG_RE.sub(" ", text)
    text = _SHORTCODE_RE.sub(" ", text)
    text = html.unescape(text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def chunk_text(text: str, max_chunk_chars: int = DEFAULT_MAX_CHUNK_CHARS) -> List[str]:
    """Split text into chunks of at most `max_chunk_chars` characters.

    A chunk only exceeds the limit when a single word is longer than
    the limit on its own.

    Args:
        text: Text to split. Markup is stripped first.
        max_chunk_chars: Maximum characters per chunk.

    Returns:
        List of chunks in document order (empty for empty input).
    """
    words = strip_markup(text).split()
    chunks = []
    current = ""

    for word in words:
        candidate = f"{current} {word}" if current else word
        if len(candidate) > max_chunk_chars and current:
            chunks.append(current.strip())
            current = word
        else:
            current = candidate

    if current:
        chunks.append(current.strip())

    logger.debug(f"[CHUNKER] Split {len(words)} words into {len(chunks)} chunks (max {max_chunk_chars} chars)")
    return chunks
