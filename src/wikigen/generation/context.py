"""Deterministic repository summary used to seed catalog prompts.

Nothing here calls a model: the project type, directory tree, README
excerpt, key files and entry points are read straight from the checkout.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from wikigen.constants.files import (
    DEFAULT_DIRECTORY_TREE_MAX_DEPTH,
    DEFAULT_MAX_ENTRY_POINTS,
    DEFAULT_README_MAX_LENGTH,
    EXCLUDED_DIRECTORIES,
    FILES_MAX_DEPTH,
    README_CANDIDATES,
    README_MISSING,
    README_TRUNCATED_MARKER,
    README_UNREADABLE,
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def load_project_types() -> dict[str, Any]:
    """Load project type signatures from YAML file.

    Returns:
        Dictionary with ``common_key_files`` and the ordered ``project_types``.
    """
    config_path = Path(__file__).parent.parent / "constants" / "project_types.yaml"
    with open(config_path) as f:
        result: dict[str, Any] = yaml.safe_load(f)
        return result


@dataclass
class RepositoryContext:
    """Summary of a working tree.

    Attributes:
        project_type: "unknown", one type such as "python", or
            "fullstack:a+b" when several types are detected.
        directory_tree: Indented listing, directories suffixed with "/".
        readme_content: README excerpt or a bracketed placeholder.
        key_files: Configuration files present at the root.
        entry_points: Likely entry point files, relative paths.
    """

    project_type: str = "unknown"
    directory_tree: str = ""
    readme_content: str = README_MISSING
    key_files: list[str] = field(default_factory=list)
    entry_points: list[str] = field(default_factory=list)

    @property
    def project_types(self) -> list[str]:
        """The individual detected types."""
        if self.project_type == "unknown":
            return []
        return self.project_type.removeprefix("fullstack:").split("+")


def _is_excluded_dir(name: str) -> bool:
    return name.startswith(".") or name in EXCLUDED_DIRECTORIES


def _walk_files(root: Path, extra_excluded: frozenset[str] = frozenset()):
    """Yield (relative posix path, file name) for every file below ``root``."""
    for directory, dirnames, filenames in os.walk(root, onerror=lambda e: None):
        dirnames[:] = sorted(
            d for d in dirnames if not _is_excluded_dir(d) and d not in extra_excluded
        )
        relative_dir = Path(directory).relative_to(root).as_posix()
        prefix = "" if relative_dir == "." else relative_dir + "/"
        for name in sorted(filenames):
            yield prefix + name, name


def _matches_manifest(root: Path, pattern: str) -> list[str]:
    """Files matching a manifest pattern; ``**/`` searches recursively."""
    if pattern.startswith("**/"):
        name_pattern = pattern[3:]
        return [rel for rel, name in _walk_files(root) if fnmatch.fnmatch(name, name_pattern)]
    try:
        return sorted(
            entry.name
            for entry in root.iterdir()
            if entry.is_file() and fnmatch.fnmatch(entry.name, pattern)
        )
    except OSError:
        return []


class RepositoryContextCollector:
    """Collects a RepositoryContext from a checkout."""

    def __init__(
        self,
        readme_max_length: int = DEFAULT_README_MAX_LENGTH,
        directory_tree_max_depth: int = DEFAULT_DIRECTORY_TREE_MAX_DEPTH,
        max_entry_points: int = DEFAULT_MAX_ENTRY_POINTS,
    ):
        self.readme_max_length = readme_max_length
        self.directory_tree_max_depth = directory_tree_max_depth
        self.max_entry_points = max_entry_points

    def collect(self, working_directory: Path) -> RepositoryContext:
        """Summarize ``working_directory``."""
        root = Path(working_directory)
        project_type = self.detect_project_type(root)
        context = RepositoryContext(
            project_type=project_type,
            directory_tree=self.directory_tree(root),
            readme_content=self.read_readme(root),
            key_files=self.key_files(root, project_type),
            entry_points=self.entry_points(root, project_type),
        )
        logger.debug(
            f"Repository context collected. Project type: {context.project_type}, "
            f"entry points: {', '.join(context.entry_points) or 'none'}"
        )
        return context

    def detect_project_type(self, root: Path) -> str:
        types: list[str] = []
        for signature in load_project_types()["project_types"]:
            matched = [
                path for pattern in signature["manifests"] for path in _matches_manifest(root, pattern)
            ]
            if not matched:
                continue
            name = signature["name"]
            markers = signature.get("contains")
            if markers:
                try:
                    text = (root / matched[0]).read_text(encoding="utf-8", errors="ignore")
                except OSError:
                    text = ""
                if not any(marker in text for marker in markers):
                    name = signature["otherwise"]
            if name not in types:
                types.append(name)

        if not types:
            return "unknown"
        if len(types) > 1:
            return "fullstack:" + "+".join(types)
        return types[0]

    def directory_tree(self, root: Path) -> str:
        lines: list[str] = []
        self._collect_tree(root, 0, lines)
        return "\n".join(lines)

    def _collect_tree(self, directory: Path, depth: int, lines: list[str]) -> None:
        if depth > self.directory_tree_max_depth:
            return
        try:
            entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
        except OSError:
            return

        indent = "  " * depth
        for entry in entries:
            if entry.is_dir() and not _is_excluded_dir(entry.name):
                lines.append(f"{indent}{entry.name}/")
                if depth < self.directory_tree_max_depth:
                    self._collect_tree(entry, depth + 1, lines)
        if depth <= FILES_MAX_DEPTH:
            for entry in entries:
                if entry.is_file() and not entry.name.startswith("."):
                    lines.append(f"{indent}{entry.name}")

    def read_readme(self, root: Path) -> str:
        for name in README_CANDIDATES:
            path = root / name
            if not path.is_file():
                continue
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Could not read {path}: {e}")
                return README_UNREADABLE
            if len(content) > self.readme_max_length:
                content = content[: self.readme_max_length] + README_TRUNCATED_MARKER
            return content
        return README_MISSING

    def key_files(self, root: Path, project_type: str) -> list[str]:
        config = load_project_types()
        types = RepositoryContext(project_type=project_type).project_types
        found = [name for name in config["common_key_files"] if (root / name).is_file()]
        for signature in config["project_types"]:
            if signature["name"] not in types:
                continue
            for pattern in signature.get("key_files", []):
                found.extend(_matches_manifest(root, pattern))
        return list(dict.fromkeys(found))

    def entry_points(self, root: Path, project_type: str) -> list[str]:
        types = RepositoryContext(project_type=project_type).project_types
        found: list[str] = []
        for signature in load_project_types()["project_types"]:
            entry_config = signature.get("entry_points")
            if signature["name"] not in types or not entry_config:
                continue
            excluded = frozenset(entry_config.get("exclude_dirs", []))
            files = list(_walk_files(root, excluded))
            for pattern in entry_config["patterns"]:
                matches = [rel for rel, name in files if name == pattern]
                found.extend(matches[: entry_config["per_pattern"]])
        return list(dict.fromkeys(found))[: self.max_entry_points]
