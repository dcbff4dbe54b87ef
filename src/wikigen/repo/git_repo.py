"""Git repository wrapper using GitPython."""

import logging
from pathlib import Path
from typing import Optional

from git import Repo
from git.exc import BadName, BadObject, GitCommandError

logger = logging.getLogger(__name__)

# Diff change types that leave a file present in the new commit
_PRESENT_CHANGE_TYPES = ("A", "M", "R", "C", "T")


class GitRepo:
    """Wrapper for git repository operations."""

    def __init__(self, path: Path):
        """Initialize git repository wrapper.

        Args:
            path: Path to git repository root.
        """
        self.path = path
        self._repo = Repo(path)

    def get_head_commit(self) -> str:
        """Get current HEAD commit hash.

        Returns:
            Full commit SHA.
        """
        return self._repo.head.commit.hexsha

    def get_current_branch(self) -> str:
        """Get current branch name.

        Returns:
            Branch name or 'HEAD' if detached.
        """
        if self._repo.head.is_detached:
            return "HEAD"
        return self._repo.active_branch.name

    def get_remote_url(self, name: str = "origin") -> str:
        """Get the URL of a remote.

        Returns:
            The remote URL, or an empty string if the remote does not exist.
        """
        try:
            return str(self._repo.remote(name).url)
        except ValueError:
            return ""

    def list_files(self, commit_hash: Optional[str] = None) -> list[str]:
        """List all tracked files at a commit (HEAD by default).

        Returns:
            Sorted list of relative file paths.
        """
        commit = self._repo.commit(commit_hash) if commit_hash else self._repo.head.commit
        return sorted(
            str(item.path)
            for item in commit.tree.traverse()
            if not isinstance(item, tuple) and hasattr(item, "type") and item.type == "blob"
        )

    def get_changed_files(self, from_commit: Optional[str], to_commit: Optional[str] = None) -> list[str]:
        """Files added, modified, renamed or copied between two commits.

        Deleted files are not reported since there is nothing left to
        document. When ``from_commit`` is empty or unknown to the repository,
        every file tracked at ``to_commit`` counts as changed.

        Args:
            from_commit: Previously documented commit.
            to_commit: New commit, HEAD by default.

        Returns:
            Sorted list of relative file paths.

        Raises:
            ValueError: If ``to_commit`` does not exist.
        """
        try:
            new = self._repo.commit(to_commit) if to_commit else self._repo.head.commit
        except (BadName, BadObject, GitCommandError, ValueError) as e:
            raise ValueError(f"Unknown commit: {to_commit}") from e

        if not from_commit:
            return self.list_files(new.hexsha)
        try:
            old = self._repo.commit(from_commit)
        except (BadName, BadObject, GitCommandError, ValueError):
            logger.warning(f"Commit {from_commit} not found, treating all files as changed")
            return self.list_files(new.hexsha)

        changed: set[str] = set()
        for diff in old.diff(new):
            if diff.change_type in _PRESENT_CHANGE_TYPES and diff.b_path:
                changed.add(diff.b_path)
        return sorted(changed)
