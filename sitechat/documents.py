"""
Document-to-text extraction for uploaded files.

Plain text, CSV and Markdown are read here. Binary formats (PDF, DOCX) are
handled by parsers registered with `register_extractor`; unknown types
yield an empty string, which the indexer treats as nothing to index.
"""
import csv
import io
import logging
from typing import Callable, Dict

logger = logging.getLogger(__name__)

Extractor = Callable[[str], str]

_EXTRACTORS: Dict[str, Extractor] = {}


def register_extractor(mime_type: str, extractor: Extractor) -> None:
    """Register a text extractor for a mime type (e.g. application/pdf)."""
    _EXTRACTORS[mime_type.lower()] = extractor


def _read_text(file_path: str) -> str:
    with open(file_path, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


def _read_csv(file_path: str) -> str:
    rows = csv.reader(io.StringIO(_read_text(file_path)))
    return "\n".join(", ".join(cell.strip() for cell in row) for row in rows if any(c.strip() for c in row))


register_extractor("text/plain", _read_text)
register_extractor("text/markdown", _read_text)
register_extractor("text/csv", _read_csv)


def extract_text(file_path: str, mime_type: str) -> str:
    """Extract the text of a file.

    Args:
        file_path: Path of the uploaded file.
        mime_type: Detected mime type of the file.

    Returns:
        The extracted text, or '' when the type is unsupported or reading failed.
    """
    extractor = _EXTRACTORS.get((mime_type or "").lower())
    if extractor is None:
        logger.warning(f"[DOCUMENTS] No text extractor for mime type '{mime_type}' ({file_path})")
        return ""
    try:
        return (extractor(file_path) or "").strip()
    except OSError as e:
        logger.error(f"[DOCUMENTS] Could not read {file_path}: {e}")
        return ""
