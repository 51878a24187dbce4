"""
Persistent key/value options for the chatbot (the site "options" table).
"""
import json
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Optional

from . import config


class OptionStore:
    """sqlite-backed option table. Values are stored JSON encoded."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or os.environ.get("OPTIONS_DB_PATH", config.OPTIONS_DB_PATH)
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
            CREATE TABLE IF NOT EXISTS options (
                name TEXT PRIMARY KEY,
                value TEXT,
                last_updated TIMESTAMP
            )
            """)
            conn.commit()

    def get_option(self, name: str) -> Optional[Any]:
        with self.get_conn() as conn:
            cur = conn.execute("SELECT value FROM options WHERE name = ?", (name,))
            row = cur.fetchone()
            return json.loads(row[0]) if row else None

    def set_option(self, name: str, value: Any):
        """Inserts or updates an option using an UPSERT."""
        with self.get_conn() as conn:
            conn.execute("""
                INSERT INTO options (name, value, last_updated)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(name) DO UPDATE SET
                    value = excluded.value,
                    last_updated = excluded.last_updated;
            """, (name, json.dumps(value, ensure_ascii=False)))
            conn.commit()

    def delete_option(self, name: str):
        with self.get_conn() as conn:
            conn.execute("DELETE FROM options WHERE name = ?", (name,))
            conn.commit()

    def all_options(self) -> Dict[str, Any]:
        with self.get_conn() as conn:
            cur = conn.execute("SELECT name, value FROM options")
            return {name: json.loads(value) for name, value in cur.fetchall()}
