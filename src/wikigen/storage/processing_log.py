"""Persistent processing log of generation progress messages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from wikigen.db.connection import Database
from wikigen.generation.progress import GenerationPhase, GenerationProgress, ProgressCallback


@dataclass(frozen=True)
class ProcessingLogEntry:
    """One stored progress message."""

    repository_id: Optional[str]
    phase: GenerationPhase
    message: str
    step: int
    total_steps: int
    created_at: datetime


class ProcessingLogStore:
    """Stores progress messages so a run can be inspected after the fact."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def record(self, repository_id: Optional[str], progress: GenerationProgress) -> None:
        with self.db.transaction():
            self.db.execute(
                """
                INSERT INTO processing_logs (repository_id, phase, message, step, total_steps,
                                             created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    repository_id,
                    progress.phase.value,
                    progress.message,
                    progress.step,
                    progress.total_steps,
                    progress.timestamp.isoformat(),
                ),
            )

    def entries(self, repository_id: Optional[str], limit: int = 100) -> list[ProcessingLogEntry]:
        """Most recent entries for a repository, oldest first."""
        rows = self.db.fetchall(
            """
            SELECT * FROM (
                SELECT * FROM processing_logs WHERE repository_id IS ?
                ORDER BY id DESC LIMIT ?
            ) ORDER BY id
            """,
            (repository_id, limit),
        )
        return [
            ProcessingLogEntry(
                repository_id=row["repository_id"],
                phase=GenerationPhase(row["phase"]),
                message=row["message"],
                step=row["step"],
                total_steps=row["total_steps"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    def callback_for(self, repository_id: Optional[str]) -> ProgressCallback:
        """A progress callback that stores every update for ``repository_id``."""

        async def record_progress(progress: GenerationProgress) -> None:
            self.record(repository_id, progress)

        return record_progress
