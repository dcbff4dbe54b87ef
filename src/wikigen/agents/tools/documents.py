"""Document tools: read and write the content of catalog leaves."""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Optional

from wikigen.agents.tools.base import Tool, ToolCategory, ToolError, object_schema, success
from wikigen.agents.tools.repo_files import RepoFileTools
from wikigen.schemas import normalize_catalog_path
from wikigen.storage.catalog_store import CatalogStore
from wikigen.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)

_PATH_PARAMETER = {
    "path": {"type": "string", "description": "Catalog path of the document, e.g. 'overview/setup'"}
}


class DocumentTools:
    """Tools over one BranchLanguage's documents.

    When ``bound_path`` is set the tools address that single catalog leaf and
    take no path argument. Otherwise every tool takes the catalog path.

    Writes record the files read so far through ``file_tools`` as the
    document's source files.
    """

    def __init__(
        self,
        store: DocumentStore,
        catalog_store: CatalogStore,
        file_tools: Optional[RepoFileTools] = None,
        bound_path: Optional[str] = None,
    ):
        self.store = store
        self.catalog_store = catalog_store
        self.file_tools = file_tools
        self.bound_path = normalize_catalog_path(bound_path) if bound_path else None

    def _leaf_path(self, path: str) -> str:
        """Validate that ``path`` names an existing catalog leaf.

        Raises:
            ToolError: If the path is unknown or is a category.
        """
        normalized = normalize_catalog_path(path or "")
        if not normalized:
            raise ToolError("Document path cannot be empty.")
        node = self.catalog_store.find_by_path(normalized)
        if node is None:
            raise ToolError(
                f"Catalog item with path '{normalized}' not found. Please ensure the "
                "catalog item exists before writing content."
            )
        if not node.is_leaf:
            raise ToolError(
                f"Catalog item '{normalized}' has children and is a category. "
                "Only leaf items hold documents."
            )
        return normalized

    def _source_files(self, existing: Optional[list[str]] = None) -> list[str]:
        sources = set(existing or [])
        if self.file_tools is not None:
            sources.update(self.file_tools.read_files)
        return sorted(sources)

    def read_doc(self, path: str) -> str:
        normalized = normalize_catalog_path(path or "")
        document = self.store.read(normalized)
        if document is None:
            raise ToolError(f"No document exists for '{normalized}'. Use write_doc to create it.")
        return document.content

    def doc_exists(self, path: str) -> str:
        normalized = normalize_catalog_path(path or "")
        return "true" if self.store.exists(normalized) else "false"

    def write_doc(self, path: str, content: str) -> str:
        """Create or overwrite a leaf's document."""
        if not content or not content.strip():
            raise ToolError(
                "Content cannot be empty. Please provide valid Markdown content for the document."
            )
        normalized = self._leaf_path(path)
        existed = self.store.exists(normalized)
        document = self.store.write(normalized, content, self._source_files())
        logger.debug(
            f"Wrote document {normalized} ({len(content)} chars, "
            f"{len(document.source_files)} source files)"
        )
        verb = "updated" if existed else "created"
        return success(f"Document '{normalized}' has been {verb} successfully.")

    def edit_doc(self, path: str, old_content: str, new_content: str) -> str:
        """Replace the first occurrence of ``old_content`` in a document."""
        if not old_content:
            raise ToolError(
                "Old content cannot be empty. Please provide the exact text you want to replace."
            )
        normalized = self._leaf_path(path)
        document = self.store.read(normalized)
        if document is None:
            raise ToolError(
                f"No document associated with catalog item '{normalized}'. "
                "Use write_doc to create a document first."
            )
        if old_content not in document.content:
            raise ToolError(
                "The specified content to replace was not found in the document. Use "
                "read_doc to see the current content and ensure the text matches exactly."
            )
        updated = document.content.replace(old_content, new_content, 1)
        if not updated.strip():
            raise ToolError("Edit would leave the document empty.")
        self.store.write(normalized, updated, self._source_files(document.source_files))
        return success(f"Document '{normalized}' has been edited successfully.")

    def _bind(self, method: Any) -> Any:
        return partial(method, self.bound_path) if self.bound_path else method

    def _parameters(self, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
        if self.bound_path:
            return object_schema(properties, required)
        return object_schema({**_PATH_PARAMETER, **properties}, ["path", *required])

    def tools(self, writable: bool = True) -> list[Tool]:
        target = (
            f"the document '{self.bound_path}'" if self.bound_path else "the document at a catalog path"
        )
        tools = [
            Tool(
                name="read_doc",
                description=f"Read the Markdown content of {target}.",
                parameters=self._parameters({}, []),
                handler=self._bind(self.read_doc),
                category=ToolCategory.DOC_READ,
            ),
            Tool(
                name="doc_exists",
                description=f"Check whether {target} exists. Returns 'true' or 'false'.",
                parameters=self._parameters({}, []),
                handler=self._bind(self.doc_exists),
                category=ToolCategory.DOC_READ,
            ),
        ]
        if writable:
            tools.extend(
                [
                    Tool(
                        name="write_doc",
                        description=(
                            f"Write the complete Markdown content of {target}, replacing any "
                            "existing content."
                        ),
                        parameters=self._parameters(
                            {"content": {"type": "string", "description": "Markdown content"}},
                            ["content"],
                        ),
                        handler=self._bind(self.write_doc),
                        category=ToolCategory.DOC_WRITE,
                    ),
                    Tool(
                        name="edit_doc",
                        description=(
                            f"Edit {target} by replacing an exact piece of existing text."
                        ),
                        parameters=self._parameters(
                            {
                                "old_content": {
                                    "type": "string",
                                    "description": "Exact text to find (must exist in the document)",
                                },
                                "new_content": {"type": "string", "description": "Replacement text"},
                            },
                            ["old_content", "new_content"],
                        ),
                        handler=self._bind(self.edit_doc),
                        category=ToolCategory.DOC_WRITE,
                    ),
                ]
            )
        return tools
