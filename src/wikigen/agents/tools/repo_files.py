"""Read-only repository file tools: read_file, list_files and grep."""

from __future__ import annotations

import logging
import re
from collections import deque
from functools import lru_cache
from pathlib import Path
from typing import Optional

from wikigen.agents.tools.base import Tool, ToolCategory, ToolError, error, object_schema
from wikigen.constants.files import (
    MAX_FILE_SIZE_KB,
    MAX_LINE_LENGTH,
    MAX_RESULTS,
    READ_LIMIT_LINES,
    TRUNCATED_LINE_MARKER,
)
from wikigen.repo.file_filter import FileFilter

logger = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def glob_to_regex(glob: str) -> re.Pattern[str]:
    """Translate a glob with ``**``, ``*`` and ``?`` into a path regex.

    ``**/`` matches zero or more directories, ``*`` and ``?`` never cross a
    slash. A glob without a slash matches the file name at any depth, so
    ``*.py`` finds every Python file.
    """
    glob = glob.strip().lstrip("/")
    if "/" not in glob and glob != "**":
        glob = "**/" + glob

    parts = []
    i = 0
    while i < len(glob):
        if glob.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif glob.startswith("**", i):
            parts.append(".*")
            i += 2
        elif glob[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif glob[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(glob[i]))
            i += 1
    return re.compile("^" + "".join(parts) + "$")


def _truncate_line(line: str, max_length: int) -> str:
    if len(line) > max_length:
        return line[:max_length] + TRUNCATED_LINE_MARKER
    return line


class RepoFileTools:
    """File tools rooted at one repository checkout.

    Every file successfully read is remembered in ``read_files`` so that
    document tools can record it as a source of the document being written.
    """

    def __init__(
        self,
        repo_path: Path,
        file_filter: Optional[FileFilter] = None,
        read_limit_lines: int = READ_LIMIT_LINES,
        max_line_length: int = MAX_LINE_LENGTH,
        max_results: int = MAX_RESULTS,
    ):
        self.repo_path = repo_path.resolve()
        self.file_filter = file_filter or FileFilter(self.repo_path, MAX_FILE_SIZE_KB)
        self.read_limit_lines = read_limit_lines
        self.max_line_length = max_line_length
        self.max_results = max_results
        self.read_files: set[str] = set()

    def _resolve(self, file_path: str) -> tuple[Path, str]:
        """Resolve a model-supplied path inside the repository.

        Raises:
            ToolError: If the path is empty or escapes the repository.
        """
        cleaned = file_path.strip().replace("\\", "/").lstrip("/")
        if not cleaned:
            raise ToolError(
                "File path cannot be empty. Please provide a path relative to the "
                "repository root."
            )
        full_path = (self.repo_path / cleaned).resolve()
        if not full_path.is_relative_to(self.repo_path):
            raise ToolError(
                f"Access denied. The path '{file_path}' is outside the repository boundaries."
            )
        return full_path, full_path.relative_to(self.repo_path).as_posix()

    def _matching_files(self, glob: Optional[str]) -> list[str]:
        pattern = glob_to_regex(glob) if glob and glob.strip() else None
        return [
            path for path in self.file_filter.iter_files() if pattern is None or pattern.match(path)
        ]

    def read_file(self, file_path: str, offset: int = 1, limit: Optional[int] = None) -> str:
        """Read numbered lines of a repository file."""
        full_path, relative = self._resolve(file_path)
        if not full_path.is_file():
            return error(
                f"File not found at path '{file_path}'. Please verify the file path with "
                "list_files."
            )
        if not self.file_filter.is_visible(relative):
            return error(f"File '{relative}' is excluded, binary or too large to read.")

        offset = max(int(offset), 1)
        limit = self.read_limit_lines if limit is None else max(int(limit), 1)
        try:
            lines = full_path.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError as e:
            return error(f"Failed to read file '{relative}': {e}")

        self.read_files.add(relative)
        if not lines:
            return f"[File '{relative}' is empty]"
        if offset > len(lines):
            return error(f"Offset {offset} is past the end of '{relative}' ({len(lines)} lines).")

        end = min(offset - 1 + limit, len(lines))
        output = [
            f"{number}: {_truncate_line(lines[number - 1], self.max_line_length)}"
            for number in range(offset, end + 1)
        ]
        remaining = len(lines) - end
        if remaining > 0:
            output.append(
                f"[{remaining} more lines not shown. Use offset={end + 1} to read more.]"
            )
        return "\n".join(output)

    def list_files(self, glob: Optional[str] = None, max_results: Optional[int] = None) -> str:
        """List visible files matching a glob, sorted."""
        max_results = self.max_results if max_results is None else max(int(max_results), 1)
        matches = sorted(self._matching_files(glob))
        if not matches:
            return f"No files match '{glob or '*'}'."
        shown = matches[:max_results]
        result = "\n".join(shown)
        if len(matches) > len(shown):
            result += f"\n[{len(matches) - len(shown)} more files not shown]"
        return result

    def grep(
        self,
        pattern: str,
        glob: Optional[str] = None,
        case_sensitive: bool = False,
        context_lines: int = 2,
        max_results: Optional[int] = None,
    ) -> str:
        """Search file contents with a regular expression."""
        if not pattern or not pattern.strip():
            return error(
                "Search pattern cannot be empty. Example patterns: 'class\\s+\\w+', "
                "'TODO|FIXME', '^import'."
            )
        try:
            regex = re.compile(pattern, 0 if case_sensitive else re.IGNORECASE)
        except re.error as e:
            return error(f"Invalid regex pattern: {e}")

        max_results = self.max_results if max_results is None else max(int(max_results), 1)
        context_lines = max(int(context_lines), 0)
        blocks: list[str] = []

        for relative in sorted(self._matching_files(glob)):
            if len(blocks) >= max_results:
                break
            try:
                text = (self.repo_path / relative).read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.debug(f"Skipping unreadable file {relative}: {e}")
                continue
            blocks.extend(
                self._grep_file(relative, text.splitlines(), regex, context_lines)[
                    : max_results - len(blocks)
                ]
            )

        if not blocks:
            return f"No matches for '{pattern}'."
        return "\n\n".join(blocks)

    def _grep_file(
        self, relative: str, lines: list[str], regex: re.Pattern[str], context_lines: int
    ) -> list[str]:
        """Match blocks of one file, each with surrounding context lines."""
        blocks = []
        before: deque[tuple[int, str]] = deque(maxlen=context_lines or None)
        index = 0
        while index < len(lines):
            line = lines[index]
            number = index + 1
            if not regex.search(line):
                if context_lines:
                    before.append((number, line))
                index += 1
                continue

            block = [f"{relative}:{number}"]
            block.extend(
                f"  {n}: {_truncate_line(text, self.max_line_length)}" for n, text in before
            )
            block.append(f"> {number}: {_truncate_line(line, self.max_line_length)}")
            after_end = min(index + 1 + context_lines, len(lines))
            block.extend(
                f"  {n + 1}: {_truncate_line(lines[n], self.max_line_length)}"
                for n in range(index + 1, after_end)
            )
            blocks.append("\n".join(block))
            before.clear()
            index = after_end
        return blocks

    def tools(self) -> list[Tool]:
        return [
            Tool(
                name="read_file",
                description=(
                    "Read a file from the repository. Returns numbered lines. Use offset "
                    "and limit to page through large files."
                ),
                parameters=object_schema(
                    {
                        "file_path": {
                            "type": "string",
                            "description": "Path relative to the repository root, e.g. 'src/main.py'",
                        },
                        "offset": {
                            "type": "integer",
                            "description": "1-based line to start reading from. Default: 1",
                        },
                        "limit": {
                            "type": "integer",
                            "description": f"Maximum lines to read. Default: {self.read_limit_lines}",
                        },
                    },
                    required=["file_path"],
                ),
                handler=self.read_file,
                category=ToolCategory.FILE_READ,
            ),
            Tool(
                name="list_files",
                description=(
                    "List repository files matching a glob such as '*.py', 'src/**/*.ts' "
                    "or '**/*.json'. Hidden and ignored files are excluded. Results are sorted."
                ),
                parameters=object_schema(
                    {
                        "glob": {"type": "string", "description": "Glob pattern. Default: all files"},
                        "max_results": {
                            "type": "integer",
                            "description": f"Maximum files to return. Default: {self.max_results}",
                        },
                    }
                ),
                handler=self.list_files,
                category=ToolCategory.FILE_READ,
            ),
            Tool(
                name="grep",
                description=(
                    "Search repository files for a regular expression. Each match is shown "
                    "with its line number and surrounding context."
                ),
                parameters=object_schema(
                    {
                        "pattern": {"type": "string", "description": "Regular expression"},
                        "glob": {"type": "string", "description": "Glob filter. Default: all files"},
                        "case_sensitive": {"type": "boolean", "description": "Default: false"},
                        "context_lines": {
                            "type": "integer",
                            "description": "Lines of context around each match. Default: 2",
                        },
                        "max_results": {
                            "type": "integer",
                            "description": f"Maximum matches to return. Default: {self.max_results}",
                        },
                    },
                    required=["pattern"],
                ),
                handler=self.grep,
                category=ToolCategory.FILE_READ,
            ),
        ]
