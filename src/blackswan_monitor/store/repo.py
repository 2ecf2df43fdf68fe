"""Repository for validated analysis results.

Append-only: results are written once with a generated id and read back by id,
latest-one or latest-N (newest first by result timestamp). Write failures raise
StorageError for the caller to record; read failures return an error indicator.
"""

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..config import Settings, get_settings
from ..errors import StorageError
from ..schemas.outputs import AnalysisResult, RecentAnalyses
from .db import checked_table_name, get_db_connection

logger = logging.getLogger("storage")


class ResultStore:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.db_path = self.settings.DB_PATH
        self.table = checked_table_name(self.settings.RESULTS_TABLE)

    def clamp_limit(self, limit: Optional[int]) -> int:
        if not limit or limit < 1:
            limit = self.settings.RECENT_DEFAULT_LIMIT
        return min(limit, self.settings.RECENT_MAX_LIMIT)

    @retry(
        retry=retry_if_exception_type(sqlite3.OperationalError),
        stop=stop_after_attempt(3),
        wait=wait_fixed(0.5),
        reraise=True,
    )
    def _insert(self, doc_id: str, timestamp: str, document: Dict[str, Any]):
        with get_db_connection(self.db_path) as conn:
            conn.execute(
                f"""
                INSERT INTO {self.table} (id, timestamp, created_at, service, service_version, document)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    doc_id,
                    timestamp,
                    document["createdAt"],
                    document["service"],
                    document["serviceVersion"],
                    json.dumps(document, default=str),
                )
            )
            conn.commit()

    def append(self, result: AnalysisResult) -> str:
        """Persist a validated result and return its generated id."""
        doc_id = uuid.uuid4().hex
        document = {
            **result.model_dump(mode="json"),
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "service": self.settings.SERVICE_NAME,
            "serviceVersion": self.settings.SERVICE_VERSION,
        }
        try:
            self._insert(doc_id, result.timestamp, document)
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error(f"Error storing analysis: {e}")
            raise StorageError("Failed to store analysis", {"error": str(e)}) from e

        logger.info(f"Black Swan analysis stored with ID: {doc_id}")
        return doc_id

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Dict[str, Any]:
        return {"id": row["id"], **json.loads(row["document"])}

    def _read(self, query: str, params: tuple) -> RecentAnalyses:
        try:
            with get_db_connection(self.db_path) as conn:
                rows = conn.execute(query, params).fetchall()
            return RecentAnalyses(analyses=[self._row_to_record(r) for r in rows])
        except (sqlite3.Error, json.JSONDecodeError) as e:
            logger.error(f"Error fetching analyses: {e}")
            return RecentAnalyses(analyses=[], error=str(e))

    def get(self, doc_id: str) -> RecentAnalyses:
        """Look up one result by id; `analyses` holds at most one record."""
        return self._read(f"SELECT id, document FROM {self.table} WHERE id = ?", (doc_id,))

    def recent(self, limit: Optional[int] = None) -> RecentAnalyses:
        return self._read(
            f"SELECT id, document FROM {self.table} ORDER BY timestamp DESC, created_at DESC LIMIT ?",
            (self.clamp_limit(limit),)
        )

    def latest(self) -> RecentAnalyses:
        return self.recent(1)
