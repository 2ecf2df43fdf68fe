"""Feed documents written by the upstream analysis services.

Each upstream service writes its documents into a named collection. The watcher
asks two questions of a collection: which document is newest by a given field,
and what a fixed-id document currently holds.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..store.db import get_db_connection

logger = logging.getLogger("feeds")


@dataclass(frozen=True)
class FeedRecord:
    doc_id: str
    data: Dict[str, Any]
    revision: int

    @property
    def fingerprint(self):
        return (self.doc_id, self.revision)


def _json_path(field: str) -> str:
    return '$."' + field.replace('"', '\\"') + '"'


class FeedDocumentStore:
    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path

    def put_document(self, collection: str, doc_id: str, data: Mapping[str, Any]):
        """Insert or replace a document; every write bumps its revision."""
        with get_db_connection(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO feed_documents (collection, doc_id, data, revision)
                VALUES (?, ?, ?, 1)
                ON CONFLICT(collection, doc_id) DO UPDATE SET
                    data = excluded.data,
                    revision = feed_documents.revision + 1,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (collection, doc_id, json.dumps(dict(data), default=str))
            )
            conn.commit()
        logger.debug(f"Stored {collection}/{doc_id}")

    def delete_document(self, collection: str, doc_id: str) -> bool:
        with get_db_connection(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM feed_documents WHERE collection = ? AND doc_id = ?",
                (collection, doc_id)
            )
            conn.commit()
            return cursor.rowcount > 0

    @staticmethod
    def _to_record(row) -> Optional[FeedRecord]:
        if row is None:
            return None
        return FeedRecord(doc_id=row["doc_id"], data=json.loads(row["data"]), revision=row["revision"])

    def latest_document(self, collection: str, order_by: str) -> Optional[FeedRecord]:
        # NULL sorts lowest, so documents missing the field only win when nothing else exists
        with get_db_connection(self.db_path) as conn:
            row = conn.execute(
                """
                SELECT doc_id, data, revision FROM feed_documents
                WHERE collection = ?
                ORDER BY json_extract(data, ?) DESC, updated_at DESC
                LIMIT 1
                """,
                (collection, _json_path(order_by))
            ).fetchone()
        return self._to_record(row)

    def get_document(self, collection: str, doc_id: str) -> Optional[FeedRecord]:
        with get_db_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT doc_id, data, revision FROM feed_documents WHERE collection = ? AND doc_id = ?",
                (collection, doc_id)
            ).fetchone()
        return self._to_record(row)
