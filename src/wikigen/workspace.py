"""Workspace module.

A Workspace is a prepared checkout of one repository branch. It is created
and cleaned up by the caller; generation only reads from it.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from wikigen.repo.git_repo import GitRepo
from wikigen.repo.url_parser import normalize_remote_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Workspace:
    """A repository checkout at a known commit.

    Attributes:
        organization: Owner of the repository.
        repository_name: Repository name.
        git_url: Remote URL, empty for local-only repositories.
        branch_name: Checked out branch.
        working_directory: Root of the checkout.
        commit_id: Commit the checkout is at.
        previous_commit_id: Commit documented by the previous run, if any.
    """

    organization: str
    repository_name: str
    git_url: str
    branch_name: str
    working_directory: Path
    commit_id: str
    previous_commit_id: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.organization}/{self.repository_name}"


def _names_from_url(git_url: str) -> tuple[Optional[str], Optional[str]]:
    """Extract (organization, repository) from a remote URL."""
    url = normalize_remote_url(git_url)
    parts = [part for part in url.split("/") if part]
    if len(parts) < 3 or not url.startswith("http"):
        return None, None
    return parts[-2], parts[-1]


def open_workspace(
    path: Path,
    organization: Optional[str] = None,
    repository_name: Optional[str] = None,
    previous_commit_id: Optional[str] = None,
) -> Workspace:
    """Describe a local git checkout as a Workspace.

    Organization and repository name default to the ``origin`` remote's
    owner and name, falling back to ``local`` and the directory name.

    Raises:
        git.exc.InvalidGitRepositoryError: If ``path`` is not a git checkout.
    """
    path = path.resolve()
    repo = GitRepo(path)
    git_url = repo.get_remote_url()
    url_org, url_name = _names_from_url(git_url)

    workspace = Workspace(
        organization=organization or url_org or "local",
        repository_name=repository_name or url_name or path.name,
        git_url=git_url,
        branch_name=repo.get_current_branch(),
        working_directory=path,
        commit_id=repo.get_head_commit(),
        previous_commit_id=previous_commit_id,
    )
    logger.info(
        f"Opened workspace {workspace.full_name} at {workspace.commit_id[:8]} "
        f"({workspace.branch_name})"
    )
    return workspace


def changed_files(workspace: Workspace) -> list[str]:
    """Files changed since the workspace's previous commit, deletions excluded."""
    repo = GitRepo(workspace.working_directory)
    return repo.get_changed_files(workspace.previous_commit_id, workspace.commit_id)
