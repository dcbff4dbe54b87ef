"""Mind map tool."""

from __future__ import annotations

import logging

from wikigen.agents.tools.base import Tool, ToolCategory, ToolError, object_schema, success
from wikigen.models import BranchLanguage, MindMapStatus
from wikigen.storage.branch_languages import BranchLanguageStore

logger = logging.getLogger(__name__)


class MindMapTools:
    """Writes the architecture mind map of one BranchLanguage.

    The mind map is plain text with one node per line: ``#`` markers give
    the level and an optional ``:path`` suffix links a source file.
    """

    def __init__(self, store: BranchLanguageStore, branch_language: BranchLanguage):
        self.store = store
        self.branch_language = branch_language
        self.written = False

    def write_mind_map(self, content: str) -> str:
        if not content or not content.strip():
            raise ToolError(
                "Mind map content cannot be empty. Please provide hierarchical content "
                "using # ## ### for levels."
            )
        if "#" not in content:
            raise ToolError(
                "Mind map content must contain at least one # header. Use # for level 1, "
                "## for level 2, ### for level 3."
            )
        self.store.set_mind_map(self.branch_language, MindMapStatus.COMPLETED, content.strip())
        self.written = True
        logger.debug(f"Mind map written for {self.branch_language.id}")
        return success("Mind map has been written successfully.")

    def tools(self) -> list[Tool]:
        return [
            Tool(
                name="write_mind_map",
                description=(
                    "Write the project architecture mind map. One node per line, '#' markers "
                    "for the level, optional ':path/to/file' suffix linking a source file. "
                    "Example:\n# Core\n## Parser:src/parser.py\n## Runtime"
                ),
                parameters=object_schema(
                    {"content": {"type": "string", "description": "Mind map content"}},
                    required=["content"],
                ),
                handler=self.write_mind_map,
                category=ToolCategory.MIND_MAP_WRITE,
            )
        ]
