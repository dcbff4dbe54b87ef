"""SQLite-backed stores for catalogs, documents, usage and progress logs."""

from wikigen.storage.branch_languages import BranchLanguageStore
from wikigen.storage.catalog_store import CatalogStore
from wikigen.storage.document_store import DocumentStore
from wikigen.storage.processing_log import ProcessingLogEntry, ProcessingLogStore
from wikigen.storage.token_usage import TokenUsageStore

__all__ = [
    "BranchLanguageStore",
    "CatalogStore",
    "DocumentStore",
    "ProcessingLogEntry",
    "ProcessingLogStore",
    "TokenUsageStore",
]
