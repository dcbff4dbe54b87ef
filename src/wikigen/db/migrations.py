"""Database migrations and schema management for wikigen."""

from wikigen.db.connection import Database

# Schema version for tracking migrations
SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- One (branch, language) pair; owns one catalog tree and its documents
CREATE TABLE IF NOT EXISTS branch_languages (
    id TEXT PRIMARY KEY,
    branch_id TEXT NOT NULL,
    language_code TEXT NOT NULL,  -- Always lowercase
    is_default INTEGER NOT NULL DEFAULT 0,
    mind_map_status TEXT NOT NULL DEFAULT 'pending',  -- 'pending', 'processing', 'completed', 'failed'
    mind_map_content TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE(branch_id, language_code)
);

-- Catalog tree nodes
-- Replaced wholesale on every catalog write; paths are unique per branch language
CREATE TABLE IF NOT EXISTS catalog_nodes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    branch_language_id TEXT NOT NULL REFERENCES branch_languages(id) ON DELETE CASCADE,
    parent_id INTEGER REFERENCES catalog_nodes(id) ON DELETE CASCADE,
    path TEXT NOT NULL,
    title TEXT NOT NULL,
    sort_order INTEGER NOT NULL DEFAULT 0,
    UNIQUE(branch_language_id, path)
);

CREATE INDEX IF NOT EXISTS idx_catalog_nodes_parent ON catalog_nodes(parent_id);

-- Document content, joined to catalog nodes by path
CREATE TABLE IF NOT EXISTS documents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    branch_language_id TEXT NOT NULL REFERENCES branch_languages(id) ON DELETE CASCADE,
    path TEXT NOT NULL,
    content TEXT NOT NULL,
    source_files TEXT NOT NULL DEFAULT '[]',  -- JSON list of repository paths
    updated_at TEXT NOT NULL,
    UNIQUE(branch_language_id, path)
);

-- Append-only token usage ledger
CREATE TABLE IF NOT EXISTS token_usage (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id TEXT,
    user_id TEXT,
    model_name TEXT NOT NULL,
    operation_name TEXT NOT NULL,
    input_tokens INTEGER NOT NULL,
    output_tokens INTEGER NOT NULL,
    recorded_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_token_usage_operation ON token_usage(operation_name);

-- Human-readable progress messages per repository
CREATE TABLE IF NOT EXISTS processing_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id TEXT,
    phase TEXT NOT NULL,
    message TEXT NOT NULL,
    step INTEGER NOT NULL DEFAULT 0,
    total_steps INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_processing_logs_repository ON processing_logs(repository_id);
"""


def run_migrations(db: Database) -> None:
    """Run database migrations to set up or upgrade schema.

    Args:
        db: Database connection to run migrations on.
    """
    # Check current schema version
    row = db.fetchone(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'schema_version'"
    )
    current_version = 0
    if row is not None:
        result = db.fetchone("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
        current_version = result[0] if result else 0

    if current_version < SCHEMA_VERSION:
        # Note: executescript auto-commits, so we handle the version insert separately
        db.executescript(SCHEMA_SQL)
        with db.transaction():
            db.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
