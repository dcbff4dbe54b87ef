"""Branch language registry."""

from __future__ import annotations

import sqlite3
from typing import Optional

from wikigen.db.connection import Database
from wikigen.models import BranchLanguage, MindMapStatus, normalize_language_code


class BranchLanguageStore:
    """SQLite-backed registry of BranchLanguage records."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def _row_to_record(self, row: sqlite3.Row) -> BranchLanguage:
        """Convert a database row to a BranchLanguage."""
        return BranchLanguage(
            id=row["id"],
            branch_id=row["branch_id"],
            language_code=row["language_code"],
            is_default=bool(row["is_default"]),
            mind_map_status=MindMapStatus(row["mind_map_status"]),
            mind_map_content=row["mind_map_content"],
        )

    def create(
        self, branch_id: str, language_code: str, is_default: bool = False
    ) -> BranchLanguage:
        """Create a new branch language.

        Raises:
            ValueError: If the branch already has this language.
        """
        record = BranchLanguage(
            branch_id=branch_id, language_code=language_code, is_default=is_default
        )
        try:
            with self.db.transaction():
                self.db.execute(
                    """
                    INSERT INTO branch_languages (id, branch_id, language_code, is_default,
                                                  mind_map_status)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        record.branch_id,
                        record.language_code,
                        int(record.is_default),
                        record.mind_map_status.value,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise ValueError(
                f"Branch {branch_id} already has language {record.language_code}"
            ) from e
        return record

    def get(self, branch_language_id: str) -> Optional[BranchLanguage]:
        """Get a branch language by ID."""
        row = self.db.fetchone(
            "SELECT * FROM branch_languages WHERE id = ?", (branch_language_id,)
        )
        return self._row_to_record(row) if row else None

    def find(self, branch_id: str, language_code: str) -> Optional[BranchLanguage]:
        """Find a branch language by branch and (case-insensitive) code."""
        row = self.db.fetchone(
            "SELECT * FROM branch_languages WHERE branch_id = ? AND language_code = ?",
            (branch_id, normalize_language_code(language_code)),
        )
        return self._row_to_record(row) if row else None

    def get_or_create(
        self, branch_id: str, language_code: str, is_default: bool = False
    ) -> BranchLanguage:
        """Return the existing branch language or create it."""
        existing = self.find(branch_id, language_code)
        if existing is not None:
            return existing
        return self.create(branch_id, language_code, is_default=is_default)

    def list_for_branch(self, branch_id: str) -> list[BranchLanguage]:
        """List all languages of a branch, default language first."""
        rows = self.db.fetchall(
            """
            SELECT * FROM branch_languages WHERE branch_id = ?
            ORDER BY is_default DESC, language_code
            """,
            (branch_id,),
        )
        return [self._row_to_record(row) for row in rows]

    def set_mind_map(
        self,
        branch_language: BranchLanguage,
        status: MindMapStatus,
        content: Optional[str] = None,
    ) -> None:
        """Update mind map status, and content when given.

        The passed record is updated in place so callers holding it see the
        new state.
        """
        with self.db.transaction():
            if content is None:
                self.db.execute(
                    "UPDATE branch_languages SET mind_map_status = ? WHERE id = ?",
                    (status.value, branch_language.id),
                )
            else:
                self.db.execute(
                    """
                    UPDATE branch_languages SET mind_map_status = ?, mind_map_content = ?
                    WHERE id = ?
                    """,
                    (status.value, content, branch_language.id),
                )
        branch_language.mind_map_status = status
        if content is not None:
            branch_language.mind_map_content = content
