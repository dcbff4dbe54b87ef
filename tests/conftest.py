"""Shared pytest fixtures for all tests.

These fixtures properly clean up resources to prevent file descriptor leaks.
"""

import asyncio
import gc
import json
from pathlib import Path
from types import SimpleNamespace

import pytest

from wikigen.config import Config, GenerationConfig, _section_defaults
from wikigen.db.connection import Database
from wikigen.db.migrations import run_migrations
from wikigen.llm.events import Done, TextDelta, ToolCallDelta, UsageDelta
from wikigen.storage.branch_languages import BranchLanguageStore
from wikigen.workspace import Workspace


@pytest.fixture(autouse=True)
def cleanup_after_test():
    """Clean up resources after each test to prevent file descriptor leaks."""
    yield
    # Force garbage collection to release file handles
    gc.collect()


@pytest.fixture
def temp_db(tmp_path):
    """Create a temporary database with the production schema.

    This fixture should be used instead of creating Database instances
    directly in tests to ensure SQLite connections are released.
    """
    db = Database(tmp_path / "test.db")
    run_migrations(db)
    yield db
    db.close()
    gc.collect()


@pytest.fixture
def branch_language(temp_db):
    """The default English BranchLanguage of a test branch."""
    return BranchLanguageStore(temp_db).create("acme/app@main", "en", is_default=True)


@pytest.fixture
def sample_repo(tmp_path) -> Path:
    """A small Python project on disk."""
    repo = tmp_path / "repo"
    (repo / "src" / "app").mkdir(parents=True)
    (repo / "README.md").write_text("# App\n\nDoes things.\n")
    (repo / "pyproject.toml").write_text('[project]\nname = "app"\n')
    (repo / "src" / "app" / "main.py").write_text("def main():\n    return run()\n")
    (repo / "src" / "app" / "util.py").write_text("def run():\n    return 42\n")
    return repo


@pytest.fixture
def workspace(sample_repo) -> Workspace:
    return Workspace(
        organization="acme",
        repository_name="app",
        git_url="git@github.com:acme/app.git",
        branch_name="main",
        working_directory=sample_repo,
        commit_id="b" * 40,
        previous_commit_id="a" * 40,
    )


def make_config(**generation) -> Config:
    """Config with fast retries and optional generation overrides."""
    values = {**_section_defaults("generation"), "retry_delay_ms": 0, **generation}
    return Config(generation=GenerationConfig(**values))


@pytest.fixture
def config():
    return make_config()


class ScriptedProvider:
    """Agent provider that plays scripted steps instead of calling a model.

    ``responder(system_prompt, user_message, tools)`` returns the steps of one
    session. A step is one of:

    - ``("text", str)``
    - ``("usage", input_tokens, output_tokens)``
    - ``("tool", name, arguments_dict)``: invokes the real tool
    - ``("sleep", seconds)``
    - an exception instance, which is raised
    """

    def __init__(self, responder):
        self.responder = responder
        self.calls = []

    @classmethod
    def sequence(cls, *sessions):
        """Provider whose n-th session plays the n-th list of steps."""
        remaining = list(sessions)

        def next_session(system_prompt, user_message, tools):
            return remaining.pop(0)

        return cls(next_session)

    async def stream_agent(
        self, system_prompt, messages, tools=None, model=None, max_tokens=None, temperature=None
    ):
        user_message = messages[-1]["content"]
        self.calls.append(
            SimpleNamespace(
                system_prompt=system_prompt,
                user_message=user_message,
                tools=tools,
                model=model,
                temperature=temperature,
            )
        )
        for number, step in enumerate(self.responder(system_prompt, user_message, tools)):
            if isinstance(step, BaseException):
                raise step
            kind = step[0]
            if kind == "text":
                yield TextDelta(step[1])
            elif kind == "usage":
                yield UsageDelta(step[1], step[2])
            elif kind == "sleep":
                await asyncio.sleep(step[1])
            elif kind == "tool":
                arguments = json.dumps(step[2])
                result = await tools.invoke(step[1], arguments)
                yield ToolCallDelta(f"call_{number}", step[1], arguments, result)
        yield Done()


@pytest.fixture
def scripted_provider():
    """The ScriptedProvider class, for building providers inside tests."""
    return ScriptedProvider


@pytest.fixture
def configured():
    """Factory for Configs with overridden generation settings."""
    return make_config
