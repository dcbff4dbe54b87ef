"""Append-only token usage ledger."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional

from wikigen.db.connection import Database
from wikigen.models import TokenUsageRecord


class TokenUsageStore:
    """SQLite-backed sink for TokenUsageRecords. Records are never updated."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def append(self, record: TokenUsageRecord) -> None:
        with self.db.transaction():
            self.db.execute(
                """
                INSERT INTO token_usage (repository_id, user_id, model_name, operation_name,
                                         input_tokens, output_tokens, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.repository_id,
                    record.user_id,
                    record.model_name,
                    record.operation_name,
                    record.input_tokens,
                    record.output_tokens,
                    record.recorded_at.isoformat(),
                ),
            )

    def _row_to_record(self, row: sqlite3.Row) -> TokenUsageRecord:
        return TokenUsageRecord(
            repository_id=row["repository_id"],
            user_id=row["user_id"],
            model_name=row["model_name"],
            operation_name=row["operation_name"],
            input_tokens=row["input_tokens"],
            output_tokens=row["output_tokens"],
            recorded_at=datetime.fromisoformat(row["recorded_at"]),
        )

    def records(
        self,
        operation_name: Optional[str] = None,
        repository_id: Optional[str] = None,
    ) -> list[TokenUsageRecord]:
        """List records in insertion order, optionally filtered."""
        sql = "SELECT * FROM token_usage WHERE 1 = 1"
        params: list[str] = []
        if operation_name is not None:
            sql += " AND operation_name = ?"
            params.append(operation_name)
        if repository_id is not None:
            sql += " AND repository_id = ?"
            params.append(repository_id)
        sql += " ORDER BY id"
        return [self._row_to_record(row) for row in self.db.fetchall(sql, tuple(params))]

    def totals(self, operation_name: Optional[str] = None) -> tuple[int, int]:
        """Summed (input, output) tokens, optionally for one operation."""
        if operation_name is None:
            row = self.db.fetchone(
                "SELECT COALESCE(SUM(input_tokens), 0), COALESCE(SUM(output_tokens), 0) "
                "FROM token_usage"
            )
        else:
            row = self.db.fetchone(
                "SELECT COALESCE(SUM(input_tokens), 0), COALESCE(SUM(output_tokens), 0) "
                "FROM token_usage WHERE operation_name = ?",
                (operation_name,),
            )
        assert row is not None
        return int(row[0]), int(row[1])
