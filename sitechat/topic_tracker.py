"""
Conversation topic heuristics.

Decides when a message is an ambiguous follow-up that should be resolved
against the active topic, detects explicit topic switches and infers a topic
label from the best retrieved chunk.
"""
import logging
import re
from typing import Optional

from .models.records import SearchResult, SourceType
from .utils.text import STOPWORDS, fold, tokenize

logger = logging.getLogger(__name__)

MAX_TOPIC_CHARS = 80
MAX_TOPIC_WORDS = 8

TOPIC_SWITCH_PHRASES = (
    "cambiemos de tema",
    "cambiar de tema",
    "otro tema",
    "hablemos de",
    "change the subject",
    "another topic",
    "let's talk about",
    "lets talk about",
)

DEMONSTRATIVES = ("eso", "esto", "that", "it")

MEANING_QUESTIONS = (
    "a que se refiere",
    "a que te refieres",
    "que significa",
    "que paso",
    "what does that mean",
    "what does it mean",
    "what happened",
)

_YEAR_RE = re.compile(r"\b(19|20)\d{2}\b")


def is_topic_switch(message: str) -> bool:
    folded = fold(message)
    return any(phrase in folded for phrase in TOPIC_SWITCH_PHRASES)


def is_ambiguous_followup(message: str) -> bool:
    """True for messages that only make sense with the previous topic.

    Very short messages (at most 3 tokens with at most 1 non-stopword),
    messages opening with a demonstrative, messages mentioning a bare year
    and "what does it mean / what happened" questions.
    """
    tokens = tokenize(message)
    if not tokens:
        return False
    meaningful = [t for t in tokens if t not in STOPWORDS]
    if len(tokens) <= 3 and len(meaningful) <= 1:
        return True
    if tokens[0] in DEMONSTRATIVES:
        return True
    if _YEAR_RE.search(message):
        return True
    folded = fold(message)
    return any(phrase in folded for phrase in MEANING_QUESTIONS)


def rewrite_query(message: str, topic: str) -> str:
    """Append the active topic to an ambiguous follow-up."""
    if topic and is_ambiguous_followup(message):
        return f"{message} {topic}"
    return message


def _shorten(text: str) -> str:
    words = text.split()
    label = " ".join(words[:MAX_TOPIC_WORDS])
    return label[:MAX_TOPIC_CHARS].strip(" .,:;-")


def source_title(result: SearchResult, site=None) -> str:
    """Title of the post, product or site a chunk was indexed from, or empty."""
    title: Optional[str] = None
    if site is not None:
        if result.source_type == SourceType.PRODUCT.value:
            product = site.get_product(result.source_id)
            title = product.name if product else None
        if not title and result.source_type in (SourceType.POST.value, SourceType.PRODUCT.value,
                                                SourceType.RENDERED.value):
            post = site.get_post(result.source_id)
            title = post.title if post else None
        if not title and result.source_type == SourceType.SITE.value:
            title = site.get_site_info().name
    return (title or "").strip()


def infer_topic(result: SearchResult, site=None) -> str:
    """Topic label for a retrieved chunk: its source title, else its first words."""
    title = source_title(result, site)
    if not title:
        first_line = result.chunk_text.strip().splitlines()[0] if result.chunk_text.strip() else ""
        title = first_line.split(":", 1)[1] if first_line.startswith(("Producto:", "Sitio:")) else first_line

    topic = _shorten(title or "")
    logger.debug(f"[TOPIC] Inferred topic '{topic}' from {result.source_type}:{result.source_id}")
    return topic
