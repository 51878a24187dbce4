"""
sqlite persistence for embedded chunks.

One row per chunk: (source_type, source_id, chunk_text, embedding). The store
is the only writer of these rows; re-indexing a source deletes its rows
before inserting the new ones.
"""

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Iterable, List, Optional

from .. import config
from ..models.records import EmbeddingRecord, source_key

logger = logging.getLogger(__name__)


class EmbeddingStore:
    """Table of EmbeddingRecord rows."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or os.environ.get("EMBEDDINGS_DB_PATH", config.EMBEDDINGS_DB_PATH)
        self.init_db()

    @contextmanager
    def get_conn(self):
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()

    def init_db(self):
        with self.get_conn() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS embeddings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                source_type TEXT NOT NULL,
                source_id INTEGER NOT NULL DEFAULT 0,
                chunk_text TEXT NOT NULL,
                embedding TEXT NOT NULL,
                provider TEXT DEFAULT '',
                model TEXT DEFAULT '',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_embeddings_source ON embeddings(source_type, source_id)")
            conn.commit()

    def insert(self, source_type: str, source_id: int, chunk_text: str, embedding: List[float],
               provider: str = "", model: str = "") -> int:
        """Append one record and return its row id."""
        with self.get_conn() as conn:
            cur = conn.execute(
                "INSERT INTO embeddings (source_type, source_id, chunk_text, embedding, provider, model, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)",
                (source_key(source_type), int(source_id or 0), chunk_text, json.dumps(embedding), provider, model),
            )
            conn.commit()
            return cur.lastrowid

    def delete_by_source(self, source_type: str, source_id: int) -> int:
        """Remove every record of one source. Returns the number of rows deleted."""
        with self.get_conn() as conn:
            cur = conn.execute(
                "DELETE FROM embeddings WHERE source_type = ? AND source_id = ?",
                (source_key(source_type), int(source_id or 0)),
            )
            conn.commit()
            if cur.rowcount:
                logger.info(f"[CHUNK_STORE] Deleted {cur.rowcount} chunks for {source_key(source_type)}:{source_id}")
            return cur.rowcount

    def delete_all_except(self, excluded_source_types: Iterable[str]) -> int:
        """Clear the store, keeping rows whose source_type is excluded."""
        excluded = sorted({source_key(t) for t in excluded_source_types})
        with self.get_conn() as conn:
            if excluded:
                placeholders = ", ".join("?" for _ in excluded)
                cur = conn.execute(f"DELETE FROM embeddings WHERE source_type NOT IN ({placeholders})", excluded)
            else:
                cur = conn.execute("DELETE FROM embeddings")
            conn.commit()
            logger.info(f"[CHUNK_STORE] Cleared {cur.rowcount} chunks (kept source types: {excluded})")
            return cur.rowcount

    def list_all(self) -> List[EmbeddingRecord]:
        """Full scan of the table, used by the similarity search."""
        with self.get_conn() as conn:
            conn.row_factory = sqlite3.Row
            cur = conn.execute(
                "SELECT id, source_type, source_id, chunk_text, embedding, provider, model, created_at "
                "FROM embeddings ORDER BY id"
            )
            records = []
            for row in cur.fetchall():
                try:
                    vector = json.loads(row["embedding"])
                except ValueError:
                    logger.warning(f"[CHUNK_STORE] Skipping row {row['id']} with unreadable embedding")
                    continue
                records.append(EmbeddingRecord(
                    id=row["id"],
                    source_type=row["source_type"],
                    source_id=row["source_id"],
                    chunk_text=row["chunk_text"],
                    embedding=vector,
                    provider=row["provider"] or "",
                    model=row["model"] or "",
                    created_at=row["created_at"],
                ))
            return records

    def count(self) -> int:
        with self.get_conn() as conn:
            return conn.execute("SELECT COUNT(*) FROM embeddings").fetchone()[0]

    def count_by_source(self, source_type: str, source_id: int) -> int:
        with self.get_conn() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM embeddings WHERE source_type = ? AND source_id = ?",
                (source_key(source_type), int(source_id or 0)),
            ).fetchone()[0]


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    store = EmbeddingStore()
    print(f"Database: {store.db_path}")
    print(f"Chunks stored: {store.count()}")
