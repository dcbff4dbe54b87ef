"""Tools offered to agent sessions, grouped by capability category."""

from wikigen.agents.tools.base import Tool, ToolCategory, ToolError, ToolSet
from wikigen.agents.tools.catalog import CatalogTools
from wikigen.agents.tools.documents import DocumentTools
from wikigen.agents.tools.mindmap import MindMapTools
from wikigen.agents.tools.repo_files import RepoFileTools, glob_to_regex

__all__ = [
    "CatalogTools",
    "DocumentTools",
    "MindMapTools",
    "RepoFileTools",
    "Tool",
    "ToolCategory",
    "ToolError",
    "ToolSet",
    "glob_to_regex",
]
