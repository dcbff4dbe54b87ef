"""Wiki translation tests."""

import re

import pytest

from wikigen.agents.runner import AgentRunner
from wikigen.constants.llm import TRANSLATION_TEMPERATURE
from wikigen.generation.errors import TranslationIntegrityError
from wikigen.generation.fanout import FanOutOutcome
from wikigen.generation.orchestrator import GenerationOrchestrator
from wikigen.generation.translation import TranslationPipeline, parse_numbered_lines
from wikigen.models import MindMapStatus, OperationContext
from wikigen.schemas import CatalogRoot

CATALOG = {
    "items": [
        {
            "title": "Guide",
            "path": "guide",
            "order": 0,
            "children": [
                {"title": "Install", "path": "guide/install", "order": 0, "children": []},
                {"title": "Draft", "path": "guide/draft", "order": 1, "children": []},
            ],
        },
        {"title": "Reference", "path": "reference", "order": 1, "children": []},
    ]
}

INSTALL_DOC = (
    "# Hello install\n"
    "\n"
    "Hello, run `pip install app` or read https://example.com/Hello/docs.\n"
    "\n"
    "```python\n"
    "print('Hello')  # Hello stays\n"
    "```\n"
    "\n"
    "Hello again.\n"
)

MIND_MAP = "# App\n## Main:src/app/main.py\n## Utilities"

NUMBERED = re.compile(r"^(\d+)\. (.*)$")


def title_of(user_message):
    return user_message.rsplit("\n", 1)[-1]


def content_of(user_message):
    return user_message.split('"de".\n\n', 1)[1]


def translator(system_prompt, user_message, tools):
    """German-ish translator: prefixes titles and turns "Hello" into "Hallo"."""
    assert tools is None
    if user_message.startswith("Translate this documentation title"):
        return [("text", f"DE {title_of(user_message)}"), ("usage", 5, 1)]
    if user_message.startswith("Translate the following Markdown"):
        return [("text", content_of(user_message).replace("Hello", "Hallo")), ("usage", 50, 40)]
    if user_message.startswith("Translate each numbered line"):
        lines = [NUMBERED.match(line) for line in user_message.splitlines()]
        return [("text", "\n".join(f"{m.group(1)}. DE {m.group(2)}" for m in lines if m))]
    raise AssertionError(f"Unexpected prompt: {user_message[:40]}")


@pytest.fixture
def context():
    return OperationContext(repository_id="acme/app")


@pytest.fixture
def make_pipeline(temp_db, config, branch_language, scripted_provider):
    """Pipeline over an English wiki with three documents and a mind map."""

    def make(responder):
        provider = scripted_provider(responder)
        orchestrator = GenerationOrchestrator(AgentRunner(provider), temp_db, config)
        orchestrator.catalog_store(branch_language).set_tree(CatalogRoot.model_validate(CATALOG))
        documents = orchestrator.document_store(branch_language)
        documents.write("guide/install", INSTALL_DOC, ["README.md", "src/app/main.py"])
        documents.write("guide/draft", "   ")
        documents.write("reference", "Hello reference.")
        orchestrator.branch_languages.set_mind_map(
            branch_language, MindMapStatus.COMPLETED, MIND_MAP
        )
        return TranslationPipeline(orchestrator), provider

    return make


async def test_translate_wiki(make_pipeline, context, branch_language):
    pipeline, provider = make_pipeline(translator)

    result = await pipeline.translate_wiki(context, branch_language, "DE")

    target = result.branch_language
    assert target.language_code == "de"
    assert target.branch_id == branch_language.branch_id
    assert target.id != branch_language.id

    orchestrator = pipeline.orchestrator
    tree = orchestrator.catalog_store(target).get_tree()
    assert [(node.path, node.title) for node in tree.walk()] == [
        ("guide", "DE Guide"),
        ("guide/install", "DE Install"),
        ("guide/draft", "DE Draft"),
        ("reference", "DE Reference"),
    ]
    assert result.titles.succeeded == 4

    documents = orchestrator.document_store(target)
    assert documents.list_paths() == ["guide/install", "reference"]
    assert result.documents.total == 2
    assert result.documents.outcome == FanOutOutcome.SUCCEEDED

    installed = documents.read("guide/install")
    assert installed.source_files == ["README.md", "src/app/main.py"]
    assert installed.content == (
        "# Hallo install\n"
        "\n"
        "Hallo, run `pip install app` or read https://example.com/Hello/docs.\n"
        "\n"
        "```python\n"
        "print('Hello')  # Hello stays\n"
        "```\n"
        "\n"
        "Hallo again."
    )
    assert documents.read("reference").content == "Hallo reference."

    stored = orchestrator.branch_languages.get(target.id)
    assert stored.mind_map_status == MindMapStatus.COMPLETED
    assert stored.mind_map_content == "# DE App\n## DE Main:src/app/main.py\n## DE Utilities"

    assert all(call.temperature == TRANSLATION_TEMPERATURE for call in provider.calls)
    assert orchestrator.token_usage.totals("Translation:CatalogTitle") == (20, 4)
    assert orchestrator.token_usage.totals("Translation:Content") == (100, 80)


async def test_code_never_reaches_the_model(make_pipeline, context, branch_language):
    pipeline, provider = make_pipeline(translator)

    await pipeline.translate_wiki(context, branch_language, "de")

    prompts = [call.user_message for call in provider.calls]
    assert not any("print('Hello')" in prompt for prompt in prompts)
    assert not any("https://example.com" in prompt for prompt in prompts)


async def test_failed_title_keeps_source_title(make_pipeline, context, branch_language):
    def responder(system_prompt, user_message, tools):
        if user_message.startswith("Translate this documentation title") and title_of(
            user_message
        ) == "Reference":
            return [ValueError("cannot translate")]
        return translator(system_prompt, user_message, tools)

    pipeline, _ = make_pipeline(responder)

    result = await pipeline.translate_wiki(context, branch_language, "de")

    assert (result.titles.succeeded, result.titles.failed) == (3, 1)
    tree = pipeline.orchestrator.catalog_store(result.branch_language).get_tree()
    assert tree.find("reference").title == "Reference"
    assert tree.find("guide").title == "DE Guide"


async def test_lost_code_fails_only_that_document(make_pipeline, context, branch_language):
    def responder(system_prompt, user_message, tools):
        if user_message.startswith("Translate the following Markdown") and "install" in user_message:
            return [("text", "Alles weg.")]
        return translator(system_prompt, user_message, tools)

    pipeline, _ = make_pipeline(responder)

    result = await pipeline.translate_wiki(context, branch_language, "de")

    assert (result.documents.succeeded, result.documents.failed) == (1, 1)
    assert "Placeholders lost" in result.documents.failures[0].message
    documents = pipeline.orchestrator.document_store(result.branch_language)
    assert documents.list_paths() == ["reference"]


async def test_mind_map_failure_marks_target_failed(make_pipeline, context, branch_language):
    def responder(system_prompt, user_message, tools):
        if user_message.startswith("Translate each numbered line"):
            return [("text", "1. only one line")]
        return translator(system_prompt, user_message, tools)

    pipeline, _ = make_pipeline(responder)

    result = await pipeline.translate_wiki(context, branch_language, "de")

    stored = pipeline.orchestrator.branch_languages.get(result.branch_language.id)
    assert stored.mind_map_status == MindMapStatus.FAILED
    assert stored.mind_map_content is None
    assert result.documents.succeeded == 2


async def test_existing_target_is_reused(make_pipeline, context, branch_language):
    pipeline, _ = make_pipeline(translator)

    first = await pipeline.translate_wiki(context, branch_language, "de")
    second = await pipeline.translate_wiki(context, branch_language, "de")

    assert first.branch_language.id == second.branch_language.id


async def test_translating_into_source_language_is_rejected(make_pipeline, context, branch_language):
    pipeline, provider = make_pipeline(translator)

    with pytest.raises(ValueError, match="into itself"):
        await pipeline.translate_wiki(context, branch_language, " EN ")
    with pytest.raises(ValueError, match="cannot be empty"):
        await pipeline.translate_wiki(context, branch_language, "")

    assert provider.calls == []


async def test_translate_content_detects_lost_placeholders(make_pipeline, context):
    pipeline, _ = make_pipeline(lambda s, u, t: [("text", "No code here")])

    with pytest.raises(TranslationIntegrityError):
        await pipeline.translate_content(context, "Run `make` now.", "en", "de")


async def test_translate_mind_map_without_titles_is_unchanged(make_pipeline, context):
    pipeline, provider = make_pipeline(translator)

    assert await pipeline.translate_mind_map(context, "plain text", "en", "de") == "plain text"
    assert provider.calls == []


def test_parse_numbered_lines():
    assert parse_numbered_lines("2) Zwei\n1. Eins\nnoise", 2) == ["Eins", "Zwei"]
    with pytest.raises(ValueError, match="missing lines"):
        parse_numbered_lines("1. Eins", 2)
