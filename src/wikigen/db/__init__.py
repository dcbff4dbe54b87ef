"""Database layer for wikigen."""

from wikigen.db.connection import Database
from wikigen.db.migrations import run_migrations

__all__ = ["Database", "run_migrations"]
