"""Catalog tools: read, replace and edit the wiki's table of contents."""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from wikigen.agents.tools.base import Tool, ToolCategory, error, object_schema, success
from wikigen.schemas import CatalogNode, CatalogRoot
from wikigen.storage.catalog_store import CatalogStore

logger = logging.getLogger(__name__)

CATALOG_FORMAT_HINT = (
    '{"items": [{"title": "Overview", "path": "overview", "order": 0, "children": []}]}'
)


def _validation_message(e: ValidationError) -> str:
    details = "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'catalog'}: {err['msg']}"
        for err in e.errors()
    )
    return f"Invalid catalog: {details}. Expected format: {CATALOG_FORMAT_HINT}"


def _as_json(value: object) -> str:
    """Models sometimes send the JSON object itself instead of a string."""
    return value if isinstance(value, str) else json.dumps(value)


class CatalogTools:
    """Tools over one BranchLanguage's CatalogStore."""

    def __init__(self, store: CatalogStore):
        self.store = store

    def read_catalog(self) -> str:
        """Return the current catalog as JSON."""
        tree = self.store.get_tree()
        if not tree.items:
            return '{"items": []}'
        return tree.model_dump_json(indent=2)

    def write_catalog(self, catalog_json: str) -> str:
        """Replace the whole catalog."""
        try:
            root = CatalogRoot.model_validate_json(_as_json(catalog_json))
        except ValidationError as e:
            return error(_validation_message(e))
        if not root.items:
            return error(f"Catalog must contain at least one item. Expected format: {CATALOG_FORMAT_HINT}")

        self.store.set_tree(root)
        total = len(root.flatten_all())
        leaves = len(root.flatten_leaves())
        logger.debug(f"Catalog written with {total} nodes ({leaves} leaves)")
        return success(f"Catalog written with {total} items, {leaves} of which are documents.")

    def edit_catalog(self, path: str, node_json: str) -> str:
        """Replace the subtree at ``path`` with another node."""
        try:
            node = CatalogNode.model_validate_json(_as_json(node_json))
        except ValidationError as e:
            return error(_validation_message(e))

        tree = self.store.get_tree()
        try:
            updated = tree.replace_node(path, node)
        except KeyError:
            return error(f"Catalog item with path '{path}' not found. Use read_catalog to see paths.")
        except ValidationError as e:
            return error(_validation_message(e))

        self.store.set_tree(updated)
        return success(f"Catalog item '{path}' updated.")

    def tools(self, writable: bool = True) -> list[Tool]:
        tools = [
            Tool(
                name="read_catalog",
                description="Read the current wiki catalog as JSON.",
                parameters=object_schema({}),
                handler=self.read_catalog,
                category=ToolCategory.CATALOG_READ,
            )
        ]
        if writable:
            tools.extend(
                [
                    Tool(
                        name="write_catalog",
                        description=(
                            "Replace the whole wiki catalog. Nodes with children are "
                            "categories; only leaf nodes get documents. Paths must be unique. "
                            f"Format: {CATALOG_FORMAT_HINT}"
                        ),
                        parameters=object_schema(
                            {"catalog_json": {"type": "string", "description": "Catalog JSON"}},
                            required=["catalog_json"],
                        ),
                        handler=self.write_catalog,
                        category=ToolCategory.CATALOG_WRITE,
                    ),
                    Tool(
                        name="edit_catalog",
                        description=(
                            "Replace one catalog item, including its children, by path. "
                            'Node format: {"title", "path", "order", "children"}'
                        ),
                        parameters=object_schema(
                            {
                                "path": {"type": "string", "description": "Path of the item"},
                                "node_json": {"type": "string", "description": "Replacement node JSON"},
                            },
                            required=["path", "node_json"],
                        ),
                        handler=self.edit_catalog,
                        category=ToolCategory.CATALOG_WRITE,
                    ),
                ]
            )
        return tools
