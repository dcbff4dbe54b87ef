"""Document content storage for one branch language."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Optional

from wikigen.db.connection import Database
from wikigen.models import Document, utcnow
from wikigen.schemas import normalize_catalog_path


class DocumentStore:
    """SQLite-backed documents of one BranchLanguage, keyed by catalog path."""

    def __init__(self, db: Database, branch_language_id: str) -> None:
        self.db = db
        self.branch_language_id = branch_language_id

    def _row_to_document(self, row: sqlite3.Row) -> Document:
        return Document(
            path=row["path"],
            content=row["content"],
            source_files=json.loads(row["source_files"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def write(self, path: str, content: str, source_files: list[str] | None = None) -> Document:
        """Insert or overwrite the document at ``path`` (last writer wins)."""
        document = Document(
            path=normalize_catalog_path(path),
            content=content,
            source_files=sorted(set(source_files or [])),
            updated_at=utcnow(),
        )
        with self.db.transaction():
            self.db.execute(
                """
                INSERT INTO documents (branch_language_id, path, content, source_files, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(branch_language_id, path) DO UPDATE SET
                    content = excluded.content,
                    source_files = excluded.source_files,
                    updated_at = excluded.updated_at
                """,
                (
                    self.branch_language_id,
                    document.path,
                    document.content,
                    json.dumps(document.source_files),
                    document.updated_at.isoformat(),
                ),
            )
        return document

    def read(self, path: str) -> Optional[Document]:
        """Read the document at ``path``, or None if none was written."""
        row = self.db.fetchone(
            "SELECT * FROM documents WHERE branch_language_id = ? AND path = ?",
            (self.branch_language_id, normalize_catalog_path(path)),
        )
        return self._row_to_document(row) if row else None

    def exists(self, path: str) -> bool:
        return self.read(path) is not None

    def list_paths(self) -> list[str]:
        rows = self.db.fetchall(
            "SELECT path FROM documents WHERE branch_language_id = ? ORDER BY path",
            (self.branch_language_id,),
        )
        return [row["path"] for row in rows]

    def delete(self, path: str) -> bool:
        with self.db.transaction():
            cursor = self.db.execute(
                "DELETE FROM documents WHERE branch_language_id = ? AND path = ?",
                (self.branch_language_id, normalize_catalog_path(path)),
            )
        return cursor.rowcount > 0
