"""Catalog schemas.

The catalog is the wiki's table of contents. Agents read and write it as
JSON of the form ``{"items": [{"title", "path", "order", "children"}]}``.
"""

from __future__ import annotations

from typing import Iterator

from pydantic import BaseModel, Field, field_validator, model_validator


def normalize_catalog_path(path: str) -> str:
    """Normalize a catalog path: trim whitespace and surrounding slashes."""
    return path.strip().strip("/")


class CatalogNode(BaseModel):
    """A titled catalog entry. Nodes with children are pure categories."""

    title: str = Field(..., min_length=1, description="Display title")
    path: str = Field(..., min_length=1, description="Stable identifier, e.g. 'overview/setup'")
    order: int = Field(0, description="Position among siblings")
    children: list[CatalogNode] = Field(default_factory=list)

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        normalized = normalize_catalog_path(value)
        if not normalized:
            raise ValueError("path cannot be empty")
        return normalized

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("title cannot be blank")
        return stripped

    @property
    def is_leaf(self) -> bool:
        return not self.children


def _walk(nodes: list[CatalogNode]) -> Iterator[CatalogNode]:
    for node in sorted(nodes, key=lambda n: n.order):
        yield node
        yield from _walk(node.children)


class CatalogRoot(BaseModel):
    """The whole catalog tree of one BranchLanguage."""

    items: list[CatalogNode] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_paths(self) -> CatalogRoot:
        seen: set[str] = set()
        for node in _walk(self.items):
            if node.path in seen:
                raise ValueError(f"duplicate catalog path: {node.path}")
            seen.add(node.path)
        return self

    def walk(self) -> Iterator[CatalogNode]:
        """Yield every node depth-first, parents before children."""
        return _walk(self.items)

    def flatten_all(self) -> list[CatalogNode]:
        """Every node at every depth."""
        return list(self.walk())

    def flatten_leaves(self) -> list[CatalogNode]:
        """Nodes without children, the only ones that carry documents."""
        return [node for node in self.walk() if node.is_leaf]

    def find(self, path: str) -> CatalogNode | None:
        target = normalize_catalog_path(path)
        for node in self.walk():
            if node.path == target:
                return node
        return None

    def with_titles(self, titles: dict[str, str]) -> CatalogRoot:
        """Return a copy with titles replaced by path; missing paths keep theirs."""

        def rebuild(node: CatalogNode) -> CatalogNode:
            return CatalogNode(
                title=titles.get(node.path) or node.title,
                path=node.path,
                order=node.order,
                children=[rebuild(child) for child in node.children],
            )

        return CatalogRoot(items=[rebuild(node) for node in self.items])

    def replace_node(self, path: str, replacement: CatalogNode) -> CatalogRoot:
        """Return a copy with the subtree at ``path`` replaced.

        Raises:
            KeyError: If no node has the given path.
        """
        target = normalize_catalog_path(path)
        found = False

        def rebuild(nodes: list[CatalogNode]) -> list[CatalogNode]:
            nonlocal found
            result = []
            for node in nodes:
                if node.path == target:
                    found = True
                    result.append(replacement)
                else:
                    result.append(node.model_copy(update={"children": rebuild(node.children)}))
            return result

        items = rebuild(self.items)
        if not found:
            raise KeyError(target)
        return CatalogRoot(items=items)
