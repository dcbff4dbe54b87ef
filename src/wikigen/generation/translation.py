"""Translation of a whole wiki into another language.

Titles, documents and the mind map of a source BranchLanguage are
translated into a target BranchLanguage of the same branch. Code and links
never pass through the model: they are masked before prompting and restored
byte for byte afterwards.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Optional

from wikigen.constants.generation import (
    OPERATION_TRANSLATE_CONTENT,
    OPERATION_TRANSLATE_MIND_MAP,
    OPERATION_TRANSLATE_TITLE,
)
from wikigen.constants.llm import TRANSLATION_TEMPERATURE
from wikigen.generation import prompts
from wikigen.generation.errors import GenerationError, TranslationIntegrityError
from wikigen.generation.fanout import FanOutResult, fan_out
from wikigen.generation.markdown import (
    PlaceholderError,
    mask_protected,
    mind_map_titles,
    rebuild_mind_map,
    restore_protected,
)
from wikigen.generation.orchestrator import GenerationOrchestrator
from wikigen.generation.progress import (
    GenerationPhase,
    GenerationProgress,
    ProgressCallback,
    emit_progress,
)
from wikigen.models import (
    BranchLanguage,
    Document,
    MindMapStatus,
    OperationContext,
    normalize_language_code,
)
from wikigen.schemas import CatalogNode

logger = logging.getLogger(__name__)

NUMBERED_LINE_PATTERN = re.compile(r"^\s*(\d+)\s*[.):]\s*(.*?)\s*$")


@dataclass
class TranslationResult:
    """Outcome of translate_wiki.

    Attributes:
        branch_language: The target BranchLanguage.
        titles: Tally of catalog title translations.
        documents: Tally of document translations.
    """

    branch_language: BranchLanguage
    titles: FanOutResult
    documents: FanOutResult


def parse_numbered_lines(text: str, count: int) -> list[str]:
    """Parse a "1. text" reply into ``count`` lines, in number order.

    Raises:
        ValueError: If a number is missing or a line is empty.
    """
    lines: dict[int, str] = {}
    for line in text.splitlines():
        match = NUMBERED_LINE_PATTERN.match(line)
        if match and match.group(2):
            lines.setdefault(int(match.group(1)), match.group(2))
    missing = [number for number in range(1, count + 1) if number not in lines]
    if missing:
        raise ValueError(f"Translation is missing lines {missing}")
    return [lines[number] for number in range(1, count + 1)]


def _first_line(text: str) -> str:
    for line in text.splitlines():
        line = line.strip().strip('"').strip()
        if line:
            return line
    return ""


class TranslationPipeline:
    """Translates wikis using a GenerationOrchestrator's sessions and stores."""

    def __init__(self, orchestrator: GenerationOrchestrator):
        self.orchestrator = orchestrator
        self.config = orchestrator.config

    async def _translate(
        self, context: OperationContext, user_message: str, operation: str
    ) -> str:
        result = await self.orchestrator.execute_agent_with_retry(
            context,
            self.config.translation_model,
            prompts.TRANSLATION_SYSTEM_PROMPT,
            user_message,
            None,
            operation,
            temperature=TRANSLATION_TEMPERATURE,
        )
        return result.text

    async def translate_title(
        self, context: OperationContext, title: str, source_language: str, target_language: str
    ) -> str:
        """Translate one catalog title.

        Raises:
            GenerationError: If the model returned nothing.
        """
        text = await self._translate(
            context,
            prompts.get_title_translation_prompt(title, source_language, target_language),
            OPERATION_TRANSLATE_TITLE,
        )
        translated = _first_line(text)
        if not translated:
            raise GenerationError(f"Empty translation for title '{title}'")
        return translated

    async def translate_content(
        self, context: OperationContext, content: str, source_language: str, target_language: str
    ) -> str:
        """Translate Markdown, keeping code and links byte-identical.

        Raises:
            TranslationIntegrityError: If the model lost a protected segment.
            GenerationError: If the model returned nothing.
        """
        masked = mask_protected(content)
        text = await self._translate(
            context,
            prompts.get_content_translation_prompt(masked.text, source_language, target_language),
            OPERATION_TRANSLATE_CONTENT,
        )
        if not text.strip():
            raise GenerationError("Empty document translation")
        try:
            return restore_protected(text, masked.segments)
        except PlaceholderError as e:
            raise TranslationIntegrityError(str(e)) from e

    async def translate_mind_map(
        self, context: OperationContext, content: str, source_language: str, target_language: str
    ) -> str:
        """Translate mind map titles, keeping levels and file links from the source."""
        titles = mind_map_titles(content)
        if not titles:
            return content
        text = await self._translate(
            context,
            prompts.get_mind_map_translation_prompt(titles, source_language, target_language),
            OPERATION_TRANSLATE_MIND_MAP,
        )
        return rebuild_mind_map(content, parse_numbered_lines(text, len(titles)))

    async def translate_wiki(
        self,
        context: OperationContext,
        source: BranchLanguage,
        target_language_code: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> TranslationResult:
        """Translate catalog, documents and mind map into another language.

        Title failures keep the source title. Document failures are tallied
        and leave no target document. A mind map failure marks the target's
        mind map FAILED without raising.

        Raises:
            ValueError: If the target language is the source language.
            FanOutCancelledError: If ``context.cancel_event`` was set.
        """
        target_code = normalize_language_code(target_language_code)
        if not target_code:
            raise ValueError("Target language code cannot be empty")
        if target_code == source.language_code:
            raise ValueError(f"Cannot translate {source.language_code} into itself")

        orchestrator = self.orchestrator
        target = orchestrator.branch_languages.get_or_create(source.branch_id, target_code)
        started = time.perf_counter()
        logger.info(
            f"Translating branch {source.branch_id} from {source.language_code} to {target_code}"
        )
        generation = self.config.generation

        # Titles
        source_tree = orchestrator.catalog_store(source).get_tree()
        nodes = [node for node in source_tree.flatten_all() if node.title.strip()]
        translated_titles: dict[str, str] = {}
        await emit_progress(
            progress_callback,
            GenerationProgress(
                phase=GenerationPhase.TRANSLATION,
                step=0,
                total_steps=len(nodes),
                message=f"Translating {len(nodes)} catalog titles...",
            ),
        )

        async def translate_node_title(node: CatalogNode) -> None:
            translated_titles[node.path] = await self.translate_title(
                context, node.title, source.language_code, target_code
            )

        titles = await fan_out(
            nodes,
            translate_node_title,
            parallel_count=generation.parallel_count,
            timeout_seconds=generation.title_translation_timeout_minutes * 60,
            cancel_event=context.cancel_event,
            name=lambda node: f"{OPERATION_TRANSLATE_TITLE}:{node.path}",
        )
        if titles.failed or titles.timed_out:
            logger.warning(
                f"{titles.failed + titles.timed_out} titles kept their {source.language_code} text"
            )
        orchestrator.catalog_store(target).set_tree(source_tree.with_titles(translated_titles))

        # Documents
        source_documents = orchestrator.document_store(source)
        target_documents = orchestrator.document_store(target)
        pending: list[Document] = []
        for leaf in source_tree.flatten_leaves():
            document = source_documents.read(leaf.path)
            if document is None or not document.content.strip():
                logger.warning(f"Skipping translation of {leaf.path}: source document is empty")
                continue
            pending.append(document)

        total = len(pending)
        completed = 0
        await emit_progress(
            progress_callback,
            GenerationProgress(
                phase=GenerationPhase.TRANSLATION,
                step=0,
                total_steps=total,
                message=f"Translating {total} documents...",
            ),
        )

        async def translate_document(document: Document) -> None:
            nonlocal completed
            content = await self.translate_content(
                context, document.content, source.language_code, target_code
            )
            target_documents.write(document.path, content, document.source_files)
            completed += 1
            await emit_progress(
                progress_callback,
                GenerationProgress(
                    phase=GenerationPhase.TRANSLATION,
                    step=completed,
                    total_steps=total,
                    message=f"Translated {document.path}",
                ),
            )

        documents = await fan_out(
            pending,
            translate_document,
            parallel_count=generation.parallel_count,
            timeout_seconds=generation.translation_timeout_minutes * 60,
            cancel_event=context.cancel_event,
            name=lambda document: f"{OPERATION_TRANSLATE_CONTENT}:{document.path}",
        )

        # Mind map
        if source.mind_map_content and context.cancelled:
            logger.warning("Cancelled before translating the mind map")
        elif source.mind_map_content:
            await self._translate_target_mind_map(context, source, target)

        logger.info(
            f"Translation to {target_code} finished in {time.perf_counter() - started:.1f}s: "
            f"titles {titles.outcome.value}, documents {documents.outcome.value} "
            f"({documents.succeeded}/{documents.total})"
        )
        return TranslationResult(branch_language=target, titles=titles, documents=documents)

    async def _translate_target_mind_map(
        self, context: OperationContext, source: BranchLanguage, target: BranchLanguage
    ) -> None:
        store = self.orchestrator.branch_languages
        store.set_mind_map(target, MindMapStatus.PROCESSING)
        timeout_seconds = self.config.generation.translation_timeout_minutes * 60
        try:
            async with asyncio.timeout(timeout_seconds):
                content = await self.translate_mind_map(
                    context, source.mind_map_content or "", source.language_code, target.language_code
                )
        except asyncio.CancelledError:
            store.set_mind_map(target, MindMapStatus.FAILED)
            raise
        except Exception as e:
            logger.error(f"Mind map translation to {target.language_code} failed: {e}")
            store.set_mind_map(target, MindMapStatus.FAILED)
            return
        store.set_mind_map(target, MindMapStatus.COMPLETED, content)
