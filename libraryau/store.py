"""Belge deposu sözleşmesi ve SQLite uygulaması.

Çekirdek yalnızca :class:`DocumentStore` protokolünü bilir: koleksiyon adına
göre gruplanmış, opak kimlikli JSON belgeleri. ``SQLiteDocumentStore`` bu
belgeleri tek bir tabloda tutar; filtreleme ve sıralama Python tarafında
yapılır, böylece belge alanları için şema geçişi gerekmez.
"""

import json
import logging
import sqlite3
import uuid
from typing import Any, Dict, List, Mapping, Optional, Protocol

from .errors import StoreFailure

logger = logging.getLogger(__name__)

BOOK_TEMPLATES = "bookTemplates"
BOOK_COPIES = "bookCopies"
STUDENTS = "students"
BORROWED_BOOKS = "borrowedBooks"

Document = Dict[str, Any]


class DocumentStore(Protocol):
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        ...

    def get_all(self, collection: str) -> List[Document]:
        ...

    def query(
        self,
        collection: str,
        where: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        ...

    def insert(self, collection: str, data: Mapping[str, Any]) -> str:
        ...

    def replace(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        ...

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        ...


def _sorted(docs: List[Document], field: str, descending: bool) -> List[Document]:
    # None değerler her iki yönde de sona düşer
    present = [d for d in docs if d.get(field) is not None]
    missing = [d for d in docs if d.get(field) is None]
    present.sort(key=lambda d: d[field], reverse=descending)
    return present + missing


class SQLiteDocumentStore:
    """Belgeleri bir SQLite dosyasında saklar."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._create_table()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def _create_table(self) -> None:
        conn = None
        try:
            conn = self._connect()
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    body TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (collection, id)
                )
                """
            )
            conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Veritabanı başlatılamadı ({self.path}): {e}")
            raise StoreFailure(f"Veritabanı başlatılamadı: {e}") from e
        finally:
            if conn is not None:
                conn.close()

    def _execute(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        conn = None
        try:
            conn = self._connect()
            cursor = conn.execute(sql, params)
            rows = cursor.fetchall()
            conn.commit()
            return rows
        except sqlite3.Error as e:
            logger.error(f"Veritabanı hatası: {e}")
            raise StoreFailure(f"Veritabanı hatası: {e}") from e
        finally:
            if conn is not None:
                conn.close()

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> Document:
        doc = json.loads(row["body"])
        doc["id"] = row["id"]
        return doc

    @staticmethod
    def _encode(data: Mapping[str, Any]) -> str:
        body = {k: v for k, v in data.items() if k != "id"}
        return json.dumps(body, ensure_ascii=False)

    # ------------------------- Okuma ------------------------- #
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        rows = self._execute(
            "SELECT id, body FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        )
        return self._row_to_document(rows[0]) if rows else None

    def get_all(self, collection: str) -> List[Document]:
        rows = self._execute(
            "SELECT id, body FROM documents WHERE collection = ? ORDER BY rowid",
            (collection,),
        )
        return [self._row_to_document(r) for r in rows]

    def query(
        self,
        collection: str,
        where: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """Eşitlik filtreleri, isteğe bağlı sıralama ve sınır."""
        docs = self.get_all(collection)
        if where:
            docs = [d for d in docs if all(d.get(k) == v for k, v in where.items())]
        if order_by:
            docs = _sorted(docs, order_by, descending)
        if limit is not None:
            docs = docs[:limit]
        return docs

    # ------------------------- Yazma ------------------------- #
    def insert(self, collection: str, data: Mapping[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self._execute(
            "INSERT INTO documents (collection, id, body) VALUES (?, ?, ?)",
            (collection, doc_id, self._encode(data)),
        )
        return doc_id

    def replace(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        self._execute(
            """
            INSERT INTO documents (collection, id, body) VALUES (?, ?, ?)
            ON CONFLICT(collection, id) DO UPDATE SET body = excluded.body
            """,
            (collection, doc_id, self._encode(data)),
        )

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        current = self.get(collection, doc_id)
        if current is None:
            raise StoreFailure(f"{collection}/{doc_id} belgesi bulunamadı.")
        current.update(fields)
        self._execute(
            "UPDATE documents SET body = ? WHERE collection = ? AND id = ?",
            (self._encode(current), collection, doc_id),
        )

    def delete(self, collection: str, doc_id: str) -> None:
        self._execute(
            "DELETE FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        )
