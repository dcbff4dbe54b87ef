"""Catalog tree storage for one branch language."""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from typing import Optional

from wikigen.db.connection import Database
from wikigen.schemas import CatalogNode, CatalogRoot, normalize_catalog_path

logger = logging.getLogger(__name__)


class CatalogStore:
    """SQLite-backed catalog tree of one BranchLanguage.

    The tree is always read whole and written whole. ``set_tree`` replaces
    every node inside one transaction, so concurrent readers see either the
    previous tree or the new one, never a mix.
    """

    def __init__(self, db: Database, branch_language_id: str) -> None:
        self.db = db
        self.branch_language_id = branch_language_id

    def get_tree(self) -> CatalogRoot:
        """Load the whole catalog tree."""
        rows = self.db.fetchall(
            """
            SELECT id, parent_id, path, title, sort_order FROM catalog_nodes
            WHERE branch_language_id = ?
            ORDER BY sort_order, id
            """,
            (self.branch_language_id,),
        )
        return _build_tree(rows)

    def set_tree(self, root: CatalogRoot) -> None:
        """Atomically replace the whole tree.

        Documents whose path is no longer a leaf of the new tree are deleted
        with it, so every stored document keeps belonging to exactly one leaf.
        """
        leaf_paths = [node.path for node in root.flatten_leaves()]
        with self.db.transaction():
            self.db.execute(
                "DELETE FROM catalog_nodes WHERE branch_language_id = ?",
                (self.branch_language_id,),
            )
            for node in root.items:
                self._insert(node, parent_id=None)

            placeholders = ", ".join("?" for _ in leaf_paths)
            if leaf_paths:
                cursor = self.db.execute(
                    f"""
                    DELETE FROM documents
                    WHERE branch_language_id = ? AND path NOT IN ({placeholders})
                    """,
                    (self.branch_language_id, *leaf_paths),
                )
            else:
                cursor = self.db.execute(
                    "DELETE FROM documents WHERE branch_language_id = ?",
                    (self.branch_language_id,),
                )
        if cursor.rowcount:
            logger.info(
                f"Removed {cursor.rowcount} documents no longer in the catalog "
                f"of {self.branch_language_id}"
            )

    def _insert(self, node: CatalogNode, parent_id: Optional[int]) -> None:
        cursor = self.db.execute(
            """
            INSERT INTO catalog_nodes (branch_language_id, parent_id, path, title, sort_order)
            VALUES (?, ?, ?, ?, ?)
            """,
            (self.branch_language_id, parent_id, node.path, node.title, node.order),
        )
        # lastrowid is guaranteed non-None after INSERT
        assert cursor.lastrowid is not None
        for child in node.children:
            self._insert(child, parent_id=cursor.lastrowid)

    def find_by_path(self, path: str) -> Optional[CatalogNode]:
        """Look up one node, including its subtree."""
        return self.get_tree().find(path)

    def update_title(self, path: str, title: str) -> bool:
        """Rename a single node.

        Returns:
            True if a node with that path exists and was updated.
        """
        title = title.strip()
        if not title:
            raise ValueError("Catalog title cannot be empty")
        with self.db.transaction():
            cursor = self.db.execute(
                """
                UPDATE catalog_nodes SET title = ?
                WHERE branch_language_id = ? AND path = ?
                """,
                (title, self.branch_language_id, normalize_catalog_path(path)),
            )
        return cursor.rowcount > 0

    def is_empty(self) -> bool:
        row = self.db.fetchone(
            "SELECT COUNT(*) FROM catalog_nodes WHERE branch_language_id = ?",
            (self.branch_language_id,),
        )
        return row is None or row[0] == 0


def _build_tree(rows: list[sqlite3.Row]) -> CatalogRoot:
    """Assemble a CatalogRoot from flat node rows."""
    children: dict[Optional[int], list[sqlite3.Row]] = defaultdict(list)
    for row in rows:
        children[row["parent_id"]].append(row)

    def build(row: sqlite3.Row) -> CatalogNode:
        return CatalogNode(
            title=row["title"],
            path=row["path"],
            order=row["sort_order"],
            children=[build(child) for child in children.get(row["id"], [])],
        )

    return CatalogRoot(items=[build(row) for row in children.get(None, [])])
