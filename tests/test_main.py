"""Command line tests."""

import asyncio
import json
import re
import subprocess
from dataclasses import replace
from pathlib import Path
from unittest.mock import patch

import pytest

from wikigen.agents.runner import AgentRunner
from wikigen.config import ConfigError
from wikigen.db.connection import Database
from wikigen.db.migrations import run_migrations
from wikigen.generation import prompts
from wikigen.generation.orchestrator import GenerationOrchestrator
from wikigen.main import (
    EXIT_CANCELLED,
    EXIT_FAILED,
    EXIT_OK,
    build_parser,
    execute_command,
    main,
)
from wikigen.models import MindMapStatus
from wikigen.storage import BranchLanguageStore, DocumentStore, ProcessingLogStore

CATALOG = {
    "items": [
        {"title": "Overview", "path": "overview", "order": 0, "children": []},
        {"title": "Utilities", "path": "utilities", "order": 1, "children": []},
    ]
}


def git(repo_path: Path, *args: str) -> str:
    result = subprocess.run(["git", *args], cwd=repo_path, capture_output=True, text=True)
    return result.stdout.strip()


def responder(system_prompt, user_message, tools):
    if system_prompt == prompts.CATALOG_SYSTEM_PROMPT:
        return [("tool", "write_catalog", {"catalog_json": json.dumps(CATALOG)}), ("usage", 10, 5)]
    if system_prompt == prompts.CONTENT_SYSTEM_PROMPT:
        match = re.search(r'catalog path "([^"]+)"', user_message)
        if match is None:
            return [("tool", "write_doc", {"path": "utilities", "content": "# Utilities v2"})]
        return [("tool", "write_doc", {"content": f"# {match.group(1)}"}), ("usage", 5, 5)]
    if system_prompt == prompts.MIND_MAP_SYSTEM_PROMPT:
        return [("tool", "write_mind_map", {"content": "# App"})]
    raise AssertionError("unexpected session")


@pytest.fixture
def git_repo(sample_repo):
    git(sample_repo, "init")
    git(sample_repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(sample_repo, "config", "user.email", "test@test.com")
    git(sample_repo, "config", "user.name", "Test User")
    git(sample_repo, "remote", "add", "origin", "git@github.com:acme/app.git")
    git(sample_repo, "add", "-A")
    git(sample_repo, "commit", "-m", "Initial commit")
    return sample_repo


@pytest.fixture
def settings(tmp_path, configured):
    return replace(configured(), data_dir=tmp_path / "data")


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "wiki.db"


@pytest.fixture
def wire(db_path, scripted_provider):
    """Replace the LLM-backed orchestrator with one driven by a scripted provider."""
    patches = []

    def install(session_responder=responder):
        provider = scripted_provider(session_responder)

        def build(settings):
            db = Database(db_path)
            run_migrations(db)
            return GenerationOrchestrator(AgentRunner(provider), db, settings), db

        patcher = patch("wikigen.main.build_orchestrator", build)
        patcher.start()
        patches.append(patcher)
        return provider

    yield install
    for patcher in patches:
        patcher.stop()


@pytest.fixture
def inspect_db(db_path):
    db = Database(db_path)
    run_migrations(db)
    yield db
    db.close()


def run(argv, settings, cancel_event=None):
    args = build_parser().parse_args(argv)
    return asyncio.run(execute_command(args, settings, cancel_event or asyncio.Event()))


class TestParser:
    def test_generate_defaults(self):
        args = build_parser().parse_args(["generate", "repo"])
        assert args.command == "generate"
        assert args.path == Path("repo")
        assert args.language == "en"
        assert not args.skip_mind_map
        assert args.repository_id is None

    def test_global_options(self):
        args = build_parser().parse_args(
            ["-v", "--branch-id", "b1", "regenerate", "repo", "guide/setup", "--language", "de"]
        )
        assert args.verbose
        assert args.branch_id == "b1"
        assert args.doc_path == "guide/setup"
        assert args.language == "de"

    def test_update_requires_since(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["update", "repo"])

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestExecuteCommand:
    def test_generate(self, git_repo, settings, wire, inspect_db):
        provider = wire()

        assert run(["generate", str(git_repo)], settings) == EXIT_OK

        branch_language = BranchLanguageStore(inspect_db).find("acme/app@main", "en")
        assert branch_language.is_default
        assert branch_language.mind_map_status == MindMapStatus.COMPLETED
        documents = DocumentStore(inspect_db, branch_language.id)
        assert documents.list_paths() == ["overview", "utilities"]
        assert len(provider.calls) == 4

        messages = [entry.message for entry in ProcessingLogStore(inspect_db).entries("acme/app")]
        assert "Mind map complete" in messages

    def test_generate_without_mind_map(self, git_repo, settings, wire):
        provider = wire()

        assert run(["generate", str(git_repo), "--skip-mind-map"], settings) == EXIT_OK
        assert len(provider.calls) == 3

    def test_failed_document_fails_the_run(self, git_repo, settings, wire):
        def failing_content(system_prompt, user_message, tools):
            if 'catalog path "utilities"' in user_message:
                return [ValueError("model refused")]
            return responder(system_prompt, user_message, tools)

        wire(failing_content)

        assert run(["generate", str(git_repo), "--skip-mind-map"], settings) == EXIT_FAILED

    def test_cancelled_generation(self, git_repo, settings, wire):
        wire()
        cancel = asyncio.Event()
        cancel.set()

        assert run(["generate", str(git_repo)], settings, cancel) == EXIT_CANCELLED

    def test_regenerate_unknown_document(self, git_repo, settings, wire):
        wire()

        assert run(["regenerate", str(git_repo), "missing"], settings) == EXIT_FAILED

    def test_regenerate(self, git_repo, settings, wire, inspect_db):
        provider = wire()
        run(["generate", str(git_repo), "--skip-mind-map"], settings)

        assert run(["regenerate", str(git_repo), "overview"], settings) == EXIT_OK
        assert len(provider.calls) == 4

    def test_update(self, git_repo, settings, wire, inspect_db):
        provider = wire()
        run(["generate", str(git_repo), "--skip-mind-map"], settings)
        since = git(git_repo, "rev-parse", "HEAD")
        (git_repo / "src" / "app" / "util.py").write_text("def run():\n    return 43\n")
        git(git_repo, "commit", "-am", "Bump")

        assert run(["update", str(git_repo), "--since", since], settings) == EXIT_OK

        assert "- src/app/util.py" in provider.calls[-1].user_message
        branch_language = BranchLanguageStore(inspect_db).find("acme/app@main", "en")
        document = DocumentStore(inspect_db, branch_language.id).read("utilities")
        assert document.content == "# Utilities v2"

    def test_translate_without_source_wiki(self, git_repo, settings, wire):
        wire()

        result = run(["translate", str(git_repo), "--source", "en", "--target", "de"], settings)

        assert result == EXIT_FAILED

    def test_not_a_git_repository(self, tmp_path, settings):
        assert run(["generate", str(tmp_path)], settings) == EXIT_FAILED

    def test_missing_path(self, tmp_path, settings):
        assert run(["generate", str(tmp_path / "nope")], settings) == EXIT_FAILED


class TestMain:
    def test_invalid_configuration(self):
        with patch("wikigen.main.load_settings", side_effect=ConfigError("bad")):
            assert main(["generate", "repo"]) == EXIT_FAILED

    def test_main_runs_command(self, tmp_path, settings):
        with patch("wikigen.main.load_settings", return_value=settings):
            assert main(["generate", str(tmp_path)]) == EXIT_FAILED
