"""GenerationOrchestrator tests against a scripted agent provider."""

import asyncio
import json
import re
from dataclasses import replace
from unittest.mock import patch

import pytest

from wikigen.agents.runner import AgentRunner
from wikigen.agents.tools.base import ToolCategory
from wikigen.generation import prompts
from wikigen.generation.errors import (
    AgentExecutionError,
    CatalogNotFoundError,
    FanOutCancelledError,
    GenerationError,
)
from wikigen.generation.fanout import FanOutOutcome
from wikigen.generation.orchestrator import GenerationOrchestrator, catalog_outline
from wikigen.models import MindMapStatus, OperationContext
from wikigen.schemas import CatalogRoot

CATALOG = {
    "items": [
        {
            "title": "A",
            "path": "a",
            "order": 0,
            "children": [
                {"title": "A1", "path": "a/1", "order": 0, "children": []},
                {"title": "A2", "path": "a/2", "order": 1, "children": []},
            ],
        },
        {"title": "B", "path": "b", "order": 1, "children": []},
    ]
}

CONTENT_PATH = re.compile(r'catalog path "([^"]+)"')


def content_path(user_message):
    return CONTENT_PATH.search(user_message).group(1)


def write_doc_session(user_message):
    path = content_path(user_message)
    return [
        ("tool", "read_file", {"file_path": "src/app/main.py"}),
        ("tool", "write_doc", {"content": f"# {path}\n\nBody."}),
        ("usage", 50, 10),
        ("text", "Done"),
    ]


def wiki_responder(system_prompt, user_message, tools):
    if system_prompt == prompts.CATALOG_SYSTEM_PROMPT:
        return [
            ("tool", "list_files", {}),
            ("tool", "write_catalog", {"catalog_json": json.dumps(CATALOG)}),
            ("usage", 100, 20),
            ("text", "Catalog ready"),
        ]
    if system_prompt == prompts.CONTENT_SYSTEM_PROMPT:
        return write_doc_session(user_message)
    if system_prompt == prompts.MIND_MAP_SYSTEM_PROMPT:
        return [
            ("tool", "write_mind_map", {"content": "# App\n## Main:src/app/main.py"}),
            ("usage", 30, 5),
        ]
    raise AssertionError(f"Unexpected session: {system_prompt[:40]}")


@pytest.fixture
def context():
    return OperationContext(repository_id="acme/app", user_id="user-1")


@pytest.fixture
def make_orchestrator(temp_db, config):
    def make(provider, settings=None):
        return GenerationOrchestrator(AgentRunner(provider), temp_db, settings or config)

    return make


@pytest.fixture
def no_jitter():
    with patch("wikigen.generation.retry.random.uniform", return_value=0):
        yield


def seed_catalog(orchestrator, branch_language):
    orchestrator.catalog_store(branch_language).set_tree(CatalogRoot.model_validate(CATALOG))


class TestCatalog:
    async def test_generate_catalog(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language
    ):
        provider = scripted_provider(wiki_responder)
        orchestrator = make_orchestrator(provider)
        progress = []

        async def on_progress(update):
            progress.append(update.message)

        tree = await orchestrator.generate_catalog(
            context, workspace, branch_language, progress_callback=on_progress
        )

        assert [node.path for node in tree.flatten_leaves()] == ["a/1", "a/2", "b"]
        assert orchestrator.catalog_store(branch_language).get_tree() == tree
        call = provider.calls[0]
        assert call.tools.categories == {
            ToolCategory.FILE_READ,
            ToolCategory.CATALOG_READ,
            ToolCategory.CATALOG_WRITE,
        }
        assert "acme/app" in call.user_message
        assert "python" in call.user_message
        assert call.model == "llama3"
        assert progress[-1] == "Catalog has 3 documents"

        records = orchestrator.token_usage.records(operation_name="CatalogGeneration")
        assert [(r.input_tokens, r.output_tokens) for r in records] == [(100, 20)]
        assert records[0].repository_id == "acme/app"
        assert records[0].user_id == "user-1"
        assert records[0].model_name == "llama3"

    async def test_catalog_session_without_write_fails(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language
    ):
        provider = scripted_provider(lambda s, u, t: [("text", "I could not decide")])
        orchestrator = make_orchestrator(provider)

        with pytest.raises(GenerationError, match="without writing a catalog"):
            await orchestrator.generate_catalog(context, workspace, branch_language)

    async def test_every_attempt_records_usage(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language, no_jitter
    ):
        provider = scripted_provider.sequence(
            [("usage", 10, 2), ConnectionError("connection reset")],
            [
                ("tool", "write_catalog", {"catalog_json": json.dumps(CATALOG)}),
                ("usage", 100, 20),
            ],
        )
        orchestrator = make_orchestrator(provider)

        await orchestrator.generate_catalog(context, workspace, branch_language)

        records = orchestrator.token_usage.records(operation_name="CatalogGeneration")
        assert [(r.input_tokens, r.output_tokens) for r in records] == [(10, 2), (100, 20)]
        assert orchestrator.token_usage.totals("CatalogGeneration") == (110, 22)

    async def test_failed_attempt_without_usage_writes_no_record(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language, no_jitter
    ):
        provider = scripted_provider.sequence(
            [ConnectionError("connection reset")],
            [
                ("tool", "write_catalog", {"catalog_json": json.dumps(CATALOG)}),
                ("usage", 100, 20),
            ],
        )
        orchestrator = make_orchestrator(provider)

        await orchestrator.generate_catalog(context, workspace, branch_language)

        assert len(provider.calls) == 2
        records = orchestrator.token_usage.records()
        assert [(r.input_tokens, r.output_tokens) for r in records] == [(100, 20)]

    async def test_retries_are_bounded(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language, no_jitter
    ):
        provider = scripted_provider(lambda s, u, t: [ConnectionError("connection reset")])
        orchestrator = make_orchestrator(provider)

        with pytest.raises(AgentExecutionError) as exc_info:
            await orchestrator.generate_catalog(context, workspace, branch_language)

        assert len(provider.calls) == 3
        assert exc_info.value.attempts == 3
        assert orchestrator.token_usage.records() == []

    async def test_non_transient_failure_is_not_retried(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language
    ):
        provider = scripted_provider(lambda s, u, t: [ValueError("model refused")])
        orchestrator = make_orchestrator(provider)

        with pytest.raises(AgentExecutionError, match="model refused"):
            await orchestrator.generate_catalog(context, workspace, branch_language)

        assert len(provider.calls) == 1

    async def test_catalog_model_override(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language, config
    ):
        settings = replace(config, models=replace(config.models, catalog_model="big-model"))
        provider = scripted_provider(wiki_responder)
        orchestrator = make_orchestrator(provider, settings)

        await orchestrator.generate_catalog(context, workspace, branch_language)

        assert provider.calls[0].model == "big-model"


class TestDocuments:
    async def test_generate_documents_for_every_leaf(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language
    ):
        provider = scripted_provider(wiki_responder)
        orchestrator = make_orchestrator(provider)
        seed_catalog(orchestrator, branch_language)

        result = await orchestrator.generate_documents(context, workspace, branch_language)

        assert result.outcome == FanOutOutcome.SUCCEEDED
        assert result.succeeded == 3
        documents = orchestrator.document_store(branch_language)
        assert documents.list_paths() == ["a/1", "a/2", "b"]
        assert documents.read("a") is None
        document = documents.read("a/2")
        assert document.content == "# a/2\n\nBody."
        assert document.source_files == ["src/app/main.py"]

        operations = {r.operation_name for r in orchestrator.token_usage.records()}
        assert operations == {"DocumentContent:a/1", "DocumentContent:a/2", "DocumentContent:b"}

    async def test_content_sessions_are_bound_to_their_leaf(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language
    ):
        provider = scripted_provider(wiki_responder)
        orchestrator = make_orchestrator(provider)
        seed_catalog(orchestrator, branch_language)

        await orchestrator.generate_documents(context, workspace, branch_language)

        for call in provider.calls:
            assert call.tools.categories == {
                ToolCategory.FILE_READ,
                ToolCategory.DOC_READ,
                ToolCategory.DOC_WRITE,
            }
            assert "write_catalog" not in call.tools
            assert "https://github.com/acme/app/blob/main" in call.user_message
            assert "- A (a)\n  - A1 (a/1)" in call.user_message

    async def test_one_failure_does_not_stop_the_others(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language
    ):
        def responder(system_prompt, user_message, tools):
            if content_path(user_message) == "a/2":
                return [ValueError("model refused")]
            return write_doc_session(user_message)

        orchestrator = make_orchestrator(scripted_provider(responder))
        seed_catalog(orchestrator, branch_language)

        result = await orchestrator.generate_documents(context, workspace, branch_language)

        assert (result.succeeded, result.failed) == (2, 1)
        assert result.outcome == FanOutOutcome.PARTIAL
        assert result.failures[0].item == "DocumentContent:a/2"
        assert orchestrator.document_store(branch_language).list_paths() == ["a/1", "b"]

    async def test_session_that_writes_nothing_fails(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language
    ):
        orchestrator = make_orchestrator(scripted_provider(lambda s, u, t: [("text", "Sure!")]))
        seed_catalog(orchestrator, branch_language)

        result = await orchestrator.generate_documents(context, workspace, branch_language)

        assert result.failed == 3
        assert result.outcome == FanOutOutcome.FAILED

    async def test_slow_document_times_out(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language, configured
    ):
        def responder(system_prompt, user_message, tools):
            if content_path(user_message) == "a/1":
                return [("sleep", 5)]
            return write_doc_session(user_message)

        settings = configured(document_generation_timeout_minutes=0.001)
        orchestrator = make_orchestrator(scripted_provider(responder), settings)
        seed_catalog(orchestrator, branch_language)

        result = await orchestrator.generate_documents(context, workspace, branch_language)

        assert (result.succeeded, result.timed_out) == (2, 1)
        assert not orchestrator.document_store(branch_language).exists("a/1")

    async def test_cancelled_context_starts_nothing(
        self, make_orchestrator, scripted_provider, workspace, branch_language
    ):
        cancel = asyncio.Event()
        cancel.set()
        provider = scripted_provider(wiki_responder)
        orchestrator = make_orchestrator(provider)
        seed_catalog(orchestrator, branch_language)

        with pytest.raises(FanOutCancelledError):
            await orchestrator.generate_documents(
                OperationContext(cancel_event=cancel), workspace, branch_language
            )

        assert provider.calls == []

    async def test_progress_is_reported_per_document(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language
    ):
        orchestrator = make_orchestrator(scripted_provider(wiki_responder))
        seed_catalog(orchestrator, branch_language)
        steps = []

        async def on_progress(update):
            steps.append((update.step, update.total_steps))

        await orchestrator.generate_documents(
            context, workspace, branch_language, progress_callback=on_progress
        )

        assert steps == [(0, 3), (1, 3), (2, 3), (3, 3)]


class TestRegenerate:
    async def test_regenerate_single_document(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language
    ):
        provider = scripted_provider(wiki_responder)
        orchestrator = make_orchestrator(provider)
        seed_catalog(orchestrator, branch_language)

        document = await orchestrator.regenerate_document(context, workspace, branch_language, "/b/")

        assert document.path == "b"
        assert document.content == "# b\n\nBody."
        assert len(provider.calls) == 1

    async def test_empty_path(self, make_orchestrator, scripted_provider, context, workspace, branch_language):
        orchestrator = make_orchestrator(scripted_provider(wiki_responder))
        with pytest.raises(ValueError, match="cannot be empty"):
            await orchestrator.regenerate_document(context, workspace, branch_language, "  ")

    async def test_unknown_path(self, make_orchestrator, scripted_provider, context, workspace, branch_language):
        orchestrator = make_orchestrator(scripted_provider(wiki_responder))
        seed_catalog(orchestrator, branch_language)

        with pytest.raises(CatalogNotFoundError, match="Catalog not found for path: missing"):
            await orchestrator.regenerate_document(context, workspace, branch_language, "missing")

    async def test_category_path(self, make_orchestrator, scripted_provider, context, workspace, branch_language):
        provider = scripted_provider(wiki_responder)
        orchestrator = make_orchestrator(provider)
        seed_catalog(orchestrator, branch_language)

        with pytest.raises(ValueError, match="is a category"):
            await orchestrator.regenerate_document(context, workspace, branch_language, "a")

        assert provider.calls == []


class TestIncrementalUpdate:
    async def test_no_changes_is_a_no_op(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language
    ):
        provider = scripted_provider(wiki_responder)
        orchestrator = make_orchestrator(provider)

        assert await orchestrator.incremental_update(context, workspace, branch_language, []) is None
        assert provider.calls == []

    async def test_updates_documents_of_changed_files(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language
    ):
        def responder(system_prompt, user_message, tools):
            return [
                ("tool", "read_file", {"file_path": "src/app/util.py"}),
                ("tool", "write_doc", {"path": "b", "content": "# B\n\nUpdated."}),
                ("usage", 40, 8),
            ]

        provider = scripted_provider(responder)
        orchestrator = make_orchestrator(provider)
        seed_catalog(orchestrator, branch_language)

        result = await orchestrator.incremental_update(
            context, workspace, branch_language, ["src/app/util.py"]
        )

        assert result.tool_calls == 2
        document = orchestrator.document_store(branch_language).read("b")
        assert document.content == "# B\n\nUpdated."
        assert document.source_files == ["src/app/util.py"]

        call = provider.calls[0]
        assert "- src/app/util.py" in call.user_message
        assert "a" * 40 in call.user_message
        assert "b" * 40 in call.user_message
        assert ToolCategory.CATALOG_WRITE in call.tools.categories
        assert orchestrator.token_usage.totals("IncrementalUpdate") == (40, 8)


class TestMindMap:
    async def test_generate_mind_map(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language
    ):
        provider = scripted_provider(wiki_responder)
        orchestrator = make_orchestrator(provider)

        content = await orchestrator.generate_mind_map(context, workspace, branch_language)

        assert content == "# App\n## Main:src/app/main.py"
        stored = orchestrator.branch_languages.get(branch_language.id)
        assert stored.mind_map_status == MindMapStatus.COMPLETED
        assert stored.mind_map_content == content
        assert provider.calls[0].tools.categories == {
            ToolCategory.FILE_READ,
            ToolCategory.MIND_MAP_WRITE,
        }

    async def test_mind_map_not_written_marks_failed(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language
    ):
        orchestrator = make_orchestrator(scripted_provider(lambda s, u, t: [("text", "no")]))

        with pytest.raises(GenerationError, match="without writing a mind map"):
            await orchestrator.generate_mind_map(context, workspace, branch_language)

        stored = orchestrator.branch_languages.get(branch_language.id)
        assert stored.mind_map_status == MindMapStatus.FAILED

    async def test_mind_map_session_failure_marks_failed(
        self, make_orchestrator, scripted_provider, context, workspace, branch_language
    ):
        orchestrator = make_orchestrator(scripted_provider(lambda s, u, t: [ValueError("bad")]))

        with pytest.raises(AgentExecutionError):
            await orchestrator.generate_mind_map(context, workspace, branch_language)

        assert branch_language.mind_map_status == MindMapStatus.FAILED


def test_catalog_outline():
    outline = catalog_outline(CatalogRoot.model_validate(CATALOG))
    assert outline == "- A (a)\n  - A1 (a/1)\n  - A2 (a/2)\n- B (b)"
    assert catalog_outline(CatalogRoot()) == "(empty)"
