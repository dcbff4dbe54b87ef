"""Git repository wrapper tests."""

import subprocess
import tempfile
from pathlib import Path

import pytest

from wikigen.repo import GitRepo


def git(repo_path: Path, *args: str) -> str:
    result = subprocess.run(["git", *args], cwd=repo_path, capture_output=True, text=True)
    return result.stdout.strip()


def commit_all(repo_path: Path, message: str) -> str:
    git(repo_path, "add", "-A")
    git(repo_path, "commit", "-m", message)
    return git(repo_path, "rev-parse", "HEAD")


@pytest.fixture
def temp_git_repo():
    """Create a temporary git repository with some files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        repo_path = Path(tmpdir)

        git(repo_path, "init")
        git(repo_path, "symbolic-ref", "HEAD", "refs/heads/main")
        git(repo_path, "config", "user.email", "test@test.com")
        git(repo_path, "config", "user.name", "Test User")

        (repo_path / "README.md").write_text("# Test Project")
        (repo_path / "src").mkdir()
        (repo_path / "src" / "main.py").write_text("def main(): pass")
        (repo_path / "src" / "old.py").write_text("x = 1")
        commit_all(repo_path, "Initial commit")

        yield repo_path


def test_git_repo_gets_head_commit(temp_git_repo: Path):
    """Can get HEAD commit hash."""
    commit_hash = GitRepo(temp_git_repo).get_head_commit()

    assert len(commit_hash) == 40
    assert commit_hash == git(temp_git_repo, "rev-parse", "HEAD")


def test_git_repo_gets_current_branch(temp_git_repo: Path):
    assert GitRepo(temp_git_repo).get_current_branch() == "main"


def test_detached_head_reports_head(temp_git_repo: Path):
    git(temp_git_repo, "checkout", "--detach")
    assert GitRepo(temp_git_repo).get_current_branch() == "HEAD"


def test_remote_url(temp_git_repo: Path):
    repo = GitRepo(temp_git_repo)
    assert repo.get_remote_url() == ""

    git(temp_git_repo, "remote", "add", "origin", "git@github.com:acme/app.git")

    assert GitRepo(temp_git_repo).get_remote_url() == "git@github.com:acme/app.git"


def test_list_files(temp_git_repo: Path):
    assert GitRepo(temp_git_repo).list_files() == ["README.md", "src/main.py", "src/old.py"]


def test_changed_files_exclude_deletions(temp_git_repo: Path):
    first = git(temp_git_repo, "rev-parse", "HEAD")
    (temp_git_repo / "src" / "main.py").write_text("def main(): return 1")
    (temp_git_repo / "src" / "new.py").write_text("y = 2")
    (temp_git_repo / "src" / "old.py").unlink()
    second = commit_all(temp_git_repo, "Change files")

    changed = GitRepo(temp_git_repo).get_changed_files(first, second)

    assert changed == ["src/main.py", "src/new.py"]


def test_renamed_file_reports_new_path(temp_git_repo: Path):
    first = git(temp_git_repo, "rev-parse", "HEAD")
    git(temp_git_repo, "mv", "src/old.py", "src/renamed.py")
    commit_all(temp_git_repo, "Rename")

    assert GitRepo(temp_git_repo).get_changed_files(first) == ["src/renamed.py"]


def test_no_previous_commit_means_every_file(temp_git_repo: Path):
    repo = GitRepo(temp_git_repo)
    assert repo.get_changed_files(None) == ["README.md", "src/main.py", "src/old.py"]


def test_unknown_previous_commit_means_every_file(temp_git_repo: Path):
    repo = GitRepo(temp_git_repo)
    assert repo.get_changed_files("0" * 40) == ["README.md", "src/main.py", "src/old.py"]


def test_unknown_target_commit_raises(temp_git_repo: Path):
    with pytest.raises(ValueError, match="Unknown commit"):
        GitRepo(temp_git_repo).get_changed_files(None, "not-a-commit")


def test_no_changes(temp_git_repo: Path):
    head = git(temp_git_repo, "rev-parse", "HEAD")
    assert GitRepo(temp_git_repo).get_changed_files(head, head) == []
