"""
Read-only custom SQL queries whose results are indexed for the chatbot.

The site administrator configures one query per line. Only single,
explicit-column SELECT statements are ever executed.
"""
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

import mysql.connector

from .config import ConfigProvider

logger = logging.getLogger(__name__)

DANGEROUS_KEYWORDS = (
    "INSERT", "UPDATE", "DELETE", "DROP", "ALTER", "CREATE", "TRUNCATE", "REPLACE",
    "GRANT", "REVOKE", "RENAME", "CALL", "EXEC", "EXECUTE", "HANDLER", "LOAD",
    "OUTFILE", "DUMPFILE", "INTO", "SLEEP", "BENCHMARK", "LOCK", "UNION", "SET",
)

_DANGEROUS_RE = re.compile(r"\b(" + "|".join(DANGEROUS_KEYWORDS) + r")\b", re.IGNORECASE)
_SELECT_RE = re.compile(r"^SELECT\s", re.IGNORECASE)
_COMMENT_RE = re.compile(r"(--|#|/\*|\*/)")
_STRING_LITERAL_RE = re.compile(r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\"")
_COUNT_STAR_RE = re.compile(r"\bCOUNT\s*\(\s*\*\s*\)", re.IGNORECASE)


def validate_select_query(query: str) -> bool:
    """Check that a configured query is a safe, single SELECT.

    Rejects non-SELECT statements, any `*` outside string literals other
    than `COUNT(*)` (subqueries included), multiple statements, comments
    and any dangerous keyword.

    Args:
        query: SQL text as configured.

    Returns:
        True if the query may be executed.
    """
    if not query:
        return False
    sql = query.strip().rstrip(";").strip()
    if not _SELECT_RE.match(sql):
        return False

    # Keywords inside string literals are harmless, everything else is inspected
    bare = _STRING_LITERAL_RE.sub("''", sql)
    if ";" in bare or _COMMENT_RE.search(bare):
        return False
    if _DANGEROUS_RE.search(bare):
        return False

    if "*" in _COUNT_STAR_RE.sub("", bare):
        return False
    return True


class CustomQueryRunner:
    """Executes the configured custom queries against the site database."""

    def __init__(self, cfg: ConfigProvider, connect: Optional[Callable[[], Any]] = None):
        self.config = cfg
        self._connect = connect or self._default_connect

    def _default_connect(self):
        return mysql.connector.connect(
            host=self.config.get_str("db_host"),
            user=self.config.get_str("db_user"),
            password=self.config.get_str("db_pass"),
            database=self.config.get_str("db_name"),
            connection_timeout=10,
        )

    def get_custom_queries(self) -> List[str]:
        return self.config.get_lines("custom_queries")

    def has_queries(self) -> bool:
        return bool(self.get_custom_queries())

    def execute_custom_queries(self) -> List[Dict[str, Any]]:
        """Run every valid configured query.

        Returns:
            List of {"query": str, "data": list of row dicts}, skipping
            rejected queries and queries that returned nothing.
        """
        queries = self.get_custom_queries()
        if not queries:
            return []

        valid = []
        for query in queries:
            if validate_select_query(query):
                valid.append(query)
            else:
                logger.warning(f"[DB_QUERY] Rejected custom query (only plain SELECT allowed): {query[:80]}")
        if not valid:
            return []

        try:
            conn = self._connect()
        except mysql.connector.Error as err:
            logger.error(f"[DB_QUERY] Connection failed: {err}")
            return []

        results = []
        try:
            for query in valid:
                data = self._execute(conn, query)
                if data:
                    results.append({"query": query, "data": data})
        finally:
            conn.close()
        return results

    def _execute(self, conn, query: str) -> List[Dict[str, Any]]:
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(query.strip().rstrip(";"))
            return list(cursor.fetchall())
        except mysql.connector.Error as err:
            logger.error(f"[DB_QUERY] Query failed ({query[:80]}): {err}")
            return []
        finally:
            cursor.close()


def format_results_for_indexing(results: List[Dict[str, Any]]) -> List[str]:
    """Render query results as indexable text, one text per query."""
    texts = []
    for result in results:
        lines = [f"Consulta: {result['query']}", "Resultados:"]
        for row in result["data"]:
            lines.append(json.dumps(row, ensure_ascii=False, default=str))
        texts.append("\n".join(lines))
    return texts
