"""File filtering with default excludes and .gitignore support."""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterator, Optional

from wikigen.constants.files import (
    BINARY_CHECK_BYTES,
    BINARY_EXTENSIONS,
    DEFAULT_EXCLUDES,
    MAX_FILE_SIZE_KB,
)

logger = logging.getLogger(__name__)


def _read_ignore_patterns(ignore_path: Path) -> list[str]:
    """Read exclude patterns from a gitignore-style file.

    Negations are not supported and are skipped. A leading slash anchors the
    pattern at the repository root, which FileFilter treats as a path prefix.
    """
    patterns = []
    try:
        lines = ignore_path.read_text(encoding="utf-8", errors="ignore").splitlines()
    except OSError as e:
        logger.warning(f"Could not read {ignore_path}: {e}")
        return patterns
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#") or line.startswith("!"):
            continue
        patterns.append(line.lstrip("/") if line.startswith("/") and line != "/" else line)
    return patterns


class FileFilter:
    """Decide which repository files the agent tools may see."""

    def __init__(
        self,
        repo_path: Path,
        max_file_size_kb: int = MAX_FILE_SIZE_KB,
        extra_excludes: list[str] | None = None,
        ignore_path: Optional[Path] = None,
    ):
        """Initialize file filter.

        Args:
            repo_path: Path to repository root.
            max_file_size_kb: Files larger than this are hidden.
            extra_excludes: Additional exclude patterns.
            ignore_path: Path to ignore file. Defaults to the root .gitignore.
        """
        self.repo_path = repo_path
        self.max_file_size_bytes = max_file_size_kb * 1024

        self.exclude_patterns = list(DEFAULT_EXCLUDES)
        if extra_excludes:
            self.exclude_patterns.extend(extra_excludes)

        if ignore_path is None:
            ignore_path = repo_path / ".gitignore"
        if ignore_path.exists():
            self.exclude_patterns.extend(_read_ignore_patterns(ignore_path))

    def is_excluded(self, path: str) -> bool:
        """Check if a relative path matches any exclude pattern."""
        parts = path.split("/")

        for pattern in self.exclude_patterns:
            # Trailing slash means directory: match any path component
            if pattern.endswith("/"):
                dir_pattern = pattern.rstrip("/")
                if any(fnmatch.fnmatch(part, dir_pattern) for part in parts[:-1]):
                    return True
            # Patterns containing "/" match as path prefixes
            elif "/" in pattern:
                if path.startswith(pattern + "/") or path == pattern:
                    return True
                if fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(path, pattern + "/*"):
                    return True
            else:
                if any(fnmatch.fnmatch(part, pattern) for part in parts):
                    return True

        return False

    def is_binary(self, file_path: Path) -> bool:
        """Check if file appears to be binary, by extension or null bytes."""
        if file_path.suffix.lower() in BINARY_EXTENSIONS:
            return True
        try:
            with open(file_path, "rb") as f:
                return b"\x00" in f.read(BINARY_CHECK_BYTES)
        except OSError:
            return True

    def is_too_large(self, file_path: Path) -> bool:
        try:
            return file_path.stat().st_size > self.max_file_size_bytes
        except OSError:
            return True

    def is_visible(self, relative: str) -> bool:
        """Whether a repository-relative file passes every filter."""
        if self.is_excluded(relative):
            return False
        file_path = self.repo_path / relative
        if not file_path.is_file():
            return False
        return not self.is_too_large(file_path) and not self.is_binary(file_path)

    def iter_files(self) -> Iterator[str]:
        """Yield visible files, pruning excluded directories while walking."""
        for directory, dirnames, filenames in os.walk(self.repo_path):
            relative_dir = Path(directory).relative_to(self.repo_path).as_posix()
            prefix = "" if relative_dir == "." else relative_dir + "/"
            # The trailing slash lets directory-only patterns match
            dirnames[:] = sorted(d for d in dirnames if not self.is_excluded(prefix + d + "/"))
            for name in sorted(filenames):
                relative = prefix + name
                if self.is_visible(relative):
                    yield relative

    def get_files(self) -> list[str]:
        """Get sorted list of visible relative file paths."""
        return sorted(self.iter_files())
