"""
Tokenizing helpers shared by the query rewriter and the keyword fallback.
"""
import re
import unicodedata
from typing import List

STOPWORDS = {
    # Spanish
    "a", "al", "algo", "ante", "antes", "aqui", "asi", "cada", "como", "con", "cual", "cuales",
    "cuando", "de", "del", "desde", "donde", "e", "el", "ella", "ellas", "ellos", "en", "entre",
    "era", "es", "esa", "esas", "ese", "eso", "esos", "esta", "estas", "este", "esto", "estos",
    "fue", "ha", "hay", "la", "las", "le", "les", "lo", "los", "mas", "me", "mi", "mis", "muy",
    "nada", "ni", "no", "nos", "o", "os", "para", "pero", "por", "porque", "puede", "pues", "que",
    "quien", "se", "sea", "segun", "ser", "si", "sin", "sobre", "son", "su", "sus", "tambien",
    "te", "tengo", "tiene", "tu", "tus", "un", "una", "unas", "uno", "unos", "usted", "y", "ya", "yo",
    "dime", "quiero", "saber", "hola", "favor", "gracias",
    # English
    "about", "an", "and", "are", "as", "at", "be", "by", "can", "do", "does", "for", "from", "how",
    "i", "in", "is", "it", "me", "my", "of", "on", "or", "tell", "that", "the", "this", "to",
    "what", "when", "where", "which", "who", "why", "with", "you", "your", "please",
}

_TOKEN_RE = re.compile(r"[a-z0-9ñ]+")


def fold(text: str) -> str:
    """Lowercase and strip accents (keeps ñ)."""
    text = (text or "").lower().replace("ñ", "\x00")
    text = "".join(
        c for c in unicodedata.normalize("NFD", text)
        if unicodedata.category(c) != "Mn"
    )
    return text.replace("\x00", "ñ")


def tokenize(text: str) -> List[str]:
    """Accent-folded lowercase word tokens."""
    return _TOKEN_RE.findall(fold(text))


def meaningful_words(text: str, min_length: int = 4) -> List[str]:
    """Tokens that are not stopwords and have at least `min_length` chars."""
    return [t for t in tokenize(text) if len(t) >= min_length and t not in STOPWORDS]
