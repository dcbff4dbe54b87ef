"""Generation orchestrator.

Runs the wiki generation operations for one BranchLanguage of a workspace:
catalog design, document content, single-document regeneration,
incremental updates and the architecture mind map. Every agent session
goes through ``execute_agent_with_retry``, which retries transient provider
failures and records the token usage of each attempt.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Optional

from wikigen.agents.runner import AgentRunner, AgentRunResult, UsageTally
from wikigen.agents.tools.base import ToolSet
from wikigen.agents.tools.catalog import CatalogTools
from wikigen.agents.tools.documents import DocumentTools
from wikigen.agents.tools.mindmap import MindMapTools
from wikigen.agents.tools.repo_files import RepoFileTools
from wikigen.config import Config
from wikigen.constants.generation import (
    CHANGED_FILES_LOG_LIMIT,
    OPERATION_CATALOG,
    OPERATION_DOCUMENT_PREFIX,
    OPERATION_INCREMENTAL,
    OPERATION_MIND_MAP,
)
from wikigen.db.connection import Database
from wikigen.generation import prompts
from wikigen.generation.context import RepositoryContext, RepositoryContextCollector
from wikigen.generation.errors import CatalogNotFoundError, GenerationError
from wikigen.generation.fanout import FanOutResult, fan_out
from wikigen.generation.progress import (
    GenerationPhase,
    GenerationProgress,
    ProgressCallback,
    emit_progress,
)
from wikigen.generation.retry import RetryPolicy, run_with_retry
from wikigen.models import (
    BranchLanguage,
    Document,
    GenerationTask,
    MindMapStatus,
    OperationContext,
    TaskStatus,
    TokenUsageRecord,
)
from wikigen.repo.file_filter import FileFilter
from wikigen.repo.url_parser import build_file_base_url
from wikigen.schemas import CatalogRoot, normalize_catalog_path
from wikigen.storage.branch_languages import BranchLanguageStore
from wikigen.storage.catalog_store import CatalogStore
from wikigen.storage.document_store import DocumentStore
from wikigen.storage.token_usage import TokenUsageStore
from wikigen.workspace import Workspace

logger = logging.getLogger(__name__)


def catalog_outline(root: CatalogRoot) -> str:
    """Indented "- Title (path)" listing of a catalog."""
    lines: list[str] = []

    def add(nodes, depth: int) -> None:
        for node in sorted(nodes, key=lambda n: n.order):
            lines.append(f"{'  ' * depth}- {node.title} ({node.path})")
            add(node.children, depth + 1)

    add(root.items, 0)
    return "\n".join(lines) or "(empty)"


class GenerationOrchestrator:
    """Orchestrates agent sessions that build and maintain a wiki.

    Attributes:
        runner: Agent runner used for every session.
        db: Database holding catalogs, documents and token usage.
        config: Application configuration.
    """

    def __init__(
        self,
        runner: AgentRunner,
        db: Database,
        config: Optional[Config] = None,
        context_collector: Optional[RepositoryContextCollector] = None,
    ):
        """Initialize the orchestrator.

        Args:
            runner: Agent runner used for every session.
            db: Database with migrations applied.
            config: Configuration; defaults to the schema defaults.
            context_collector: Collector for repository summaries.
        """
        self.runner = runner
        self.db = db
        self.config = config or Config()
        self.retry_policy = RetryPolicy(
            max_attempts=self.config.generation.max_retry_attempts,
            base_delay_ms=self.config.generation.retry_delay_ms,
        )
        self.context_collector = context_collector or RepositoryContextCollector(
            readme_max_length=self.config.context.readme_max_length,
            directory_tree_max_depth=self.config.context.directory_tree_max_depth,
            max_entry_points=self.config.context.max_entry_points,
        )
        self.branch_languages = BranchLanguageStore(db)
        self.token_usage = TokenUsageStore(db)

    # -------------------------------------------------------------------------
    # Stores and tools
    # -------------------------------------------------------------------------

    def catalog_store(self, branch_language: BranchLanguage) -> CatalogStore:
        return CatalogStore(self.db, branch_language.id)

    def document_store(self, branch_language: BranchLanguage) -> DocumentStore:
        return DocumentStore(self.db, branch_language.id)

    def _file_filter(self, workspace: Workspace) -> FileFilter:
        return FileFilter(workspace.working_directory, self.config.files.max_file_size_kb)

    def _file_tools(self, workspace: Workspace, file_filter: Optional[FileFilter] = None) -> RepoFileTools:
        return RepoFileTools(
            workspace.working_directory,
            file_filter=file_filter or self._file_filter(workspace),
            read_limit_lines=self.config.files.read_limit_lines,
            max_line_length=self.config.files.max_line_length,
            max_results=self.config.files.max_results,
        )

    async def collect_context(self, workspace: Workspace) -> RepositoryContext:
        """Summarize the workspace without blocking the event loop."""
        return await asyncio.to_thread(self.context_collector.collect, workspace.working_directory)

    # -------------------------------------------------------------------------
    # Agent execution
    # -------------------------------------------------------------------------

    def _record_usage(
        self, context: OperationContext, model: str, operation: str, usage: UsageTally
    ) -> None:
        if usage.total_tokens == 0:
            return
        self.token_usage.append(
            TokenUsageRecord(
                repository_id=context.repository_id,
                user_id=context.user_id,
                model_name=model,
                operation_name=operation,
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
            )
        )

    async def execute_agent_with_retry(
        self,
        context: OperationContext,
        model: str,
        system_prompt: str,
        user_message: str,
        tools: Optional[ToolSet],
        operation: str,
        temperature: Optional[float] = None,
        on_attempt: Optional[Callable[[int], None]] = None,
    ) -> AgentRunResult:
        """Run one agent session, retrying transient failures.

        Each attempt that consumed tokens appends one TokenUsageRecord, even
        when the attempt failed afterwards.

        Raises:
            AgentExecutionError: When retries are exhausted or the failure is
                not transient.
        """

        async def attempt(number: int) -> AgentRunResult:
            if on_attempt is not None:
                on_attempt(number)
            usage = UsageTally()
            started = time.perf_counter()
            try:
                result = await self.runner.run(
                    model,
                    system_prompt,
                    user_message,
                    tools=tools,
                    usage=usage,
                    temperature=temperature,
                )
            finally:
                self._record_usage(context, model, operation, usage)
            logger.debug(
                f"{operation} attempt {number} finished in {time.perf_counter() - started:.1f}s "
                f"({result.tool_calls} tool calls, {usage.total_tokens} tokens)"
            )
            return result

        return await run_with_retry(attempt, self.retry_policy, operation)

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    async def generate_catalog(
        self,
        context: OperationContext,
        workspace: Workspace,
        branch_language: BranchLanguage,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> CatalogRoot:
        """Design the catalog of a BranchLanguage from the workspace.

        Raises:
            AgentExecutionError: If the agent session failed.
            GenerationError: If the agent finished without writing a catalog.
        """
        started = time.perf_counter()
        logger.info(f"Generating catalog for {workspace.full_name} ({branch_language.language_code})")
        await emit_progress(
            progress_callback,
            GenerationProgress(
                phase=GenerationPhase.CATALOG,
                step=0,
                total_steps=1,
                message="Collecting repository context...",
            ),
        )

        repo_context = await self.collect_context(workspace)
        store = self.catalog_store(branch_language)
        tools = ToolSet.compose(
            self._file_tools(workspace).tools(),
            CatalogTools(store).tools(writable=True),
        )
        await emit_progress(
            progress_callback,
            GenerationProgress(
                phase=GenerationPhase.CATALOG,
                step=0,
                total_steps=1,
                message=f"Designing catalog ({repo_context.project_type})...",
            ),
        )
        await self.execute_agent_with_retry(
            context,
            self.config.catalog_model,
            prompts.CATALOG_SYSTEM_PROMPT,
            prompts.get_catalog_prompt(
                workspace.full_name, repo_context, branch_language.language_code
            ),
            tools,
            OPERATION_CATALOG,
        )

        tree = store.get_tree()
        if not tree.items:
            raise GenerationError(f"{OPERATION_CATALOG} finished without writing a catalog")

        await emit_progress(
            progress_callback,
            GenerationProgress(
                phase=GenerationPhase.CATALOG,
                step=1,
                total_steps=1,
                message=f"Catalog has {len(tree.flatten_leaves())} documents",
            ),
        )
        logger.info(
            f"Catalog generated with {len(tree.flatten_all())} items in "
            f"{time.perf_counter() - started:.1f}s"
        )
        return tree

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    async def _generate_document(
        self,
        context: OperationContext,
        workspace: Workspace,
        branch_language: BranchLanguage,
        tree: CatalogRoot,
        task: GenerationTask,
        file_filter: Optional[FileFilter] = None,
    ) -> Document:
        """One content session for one leaf, with tools bound to that leaf."""
        file_tools = self._file_tools(workspace, file_filter)
        documents = self.document_store(branch_language)
        tools = ToolSet.compose(
            file_tools.tools(),
            DocumentTools(
                documents,
                self.catalog_store(branch_language),
                file_tools=file_tools,
                bound_path=task.catalog_path,
            ).tools(writable=True),
        )
        operation = f"{OPERATION_DOCUMENT_PREFIX}{task.catalog_path}"
        user_message = prompts.get_content_prompt(
            repo_name=workspace.full_name,
            title=task.title,
            path=task.catalog_path,
            catalog_outline=catalog_outline(tree),
            file_base_url=build_file_base_url(workspace.git_url, workspace.branch_name),
            branch=workspace.branch_name,
            language=branch_language.language_code,
        )

        def track_attempt(number: int) -> None:
            task.attempt = number

        await self.execute_agent_with_retry(
            context,
            self.config.content_model,
            prompts.CONTENT_SYSTEM_PROMPT,
            user_message,
            tools,
            operation,
            on_attempt=track_attempt,
        )

        document = documents.read(task.catalog_path)
        if document is None:
            raise GenerationError(f"{operation} finished without writing the document")
        return document

    async def generate_documents(
        self,
        context: OperationContext,
        workspace: Workspace,
        branch_language: BranchLanguage,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> FanOutResult:
        """Generate the document of every catalog leaf in parallel.

        Item failures and timeouts are tallied in the result and never stop
        the other items.

        Raises:
            FanOutCancelledError: If ``context.cancel_event`` was set.
        """
        tree = self.catalog_store(branch_language).get_tree()
        tasks = [GenerationTask(catalog_path=node.path, title=node.title) for node in tree.flatten_leaves()]
        total = len(tasks)
        started = time.perf_counter()
        logger.info(
            f"Generating {total} documents for {workspace.full_name} "
            f"({branch_language.language_code}) with {self.config.generation.parallel_count} "
            "parallel sessions"
        )
        file_filter = self._file_filter(workspace)
        completed = 0

        async def generate(task: GenerationTask) -> None:
            nonlocal completed
            task.status = TaskStatus.RUNNING
            await self._generate_document(
                context, workspace, branch_language, tree, task, file_filter
            )
            completed += 1
            await emit_progress(
                progress_callback,
                GenerationProgress(
                    phase=GenerationPhase.CONTENT,
                    step=completed,
                    total_steps=total,
                    message=f"Generated {task.title}",
                ),
            )

        def mark_done(task: GenerationTask, status: TaskStatus) -> None:
            task.status = status

        await emit_progress(
            progress_callback,
            GenerationProgress(
                phase=GenerationPhase.CONTENT,
                step=0,
                total_steps=total,
                message=f"Generating {total} documents...",
            ),
        )
        result = await fan_out(
            tasks,
            generate,
            parallel_count=self.config.generation.parallel_count,
            timeout_seconds=self.config.generation.document_generation_timeout_minutes * 60,
            cancel_event=context.cancel_event,
            name=lambda task: f"{OPERATION_DOCUMENT_PREFIX}{task.catalog_path}",
            on_item_done=mark_done,
        )
        logger.info(
            f"Document generation {result.outcome.value}: {result.succeeded} succeeded, "
            f"{result.failed} failed, {result.timed_out} timed out in "
            f"{time.perf_counter() - started:.1f}s"
        )
        return result

    async def regenerate_document(
        self,
        context: OperationContext,
        workspace: Workspace,
        branch_language: BranchLanguage,
        path: str,
    ) -> Document:
        """Regenerate the document of one catalog leaf.

        Raises:
            ValueError: If the path is empty or names a category node.
            CatalogNotFoundError: If no catalog node has the path.
            AgentExecutionError: If the agent session failed.
        """
        normalized = normalize_catalog_path(path or "")
        if not normalized:
            raise ValueError("Document path cannot be empty")

        tree = self.catalog_store(branch_language).get_tree()
        node = tree.find(normalized)
        if node is None:
            raise CatalogNotFoundError(normalized)
        if not node.is_leaf:
            raise ValueError(f"Catalog item '{normalized}' is a category and has no document")

        logger.info(f"Regenerating document {normalized} for {workspace.full_name}")
        task = GenerationTask(catalog_path=normalized, title=node.title, status=TaskStatus.RUNNING)
        return await self._generate_document(context, workspace, branch_language, tree, task)

    # -------------------------------------------------------------------------
    # Incremental update
    # -------------------------------------------------------------------------

    async def incremental_update(
        self,
        context: OperationContext,
        workspace: Workspace,
        branch_language: BranchLanguage,
        changed_files: list[str],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Optional[AgentRunResult]:
        """Update catalog and documents after code changes.

        Returns:
            The session result, or None when nothing changed.
        """
        if not changed_files:
            logger.info(f"No changed files for {workspace.full_name}, skipping incremental update")
            return None

        shown = changed_files[:CHANGED_FILES_LOG_LIMIT]
        more = len(changed_files) - len(shown)
        logger.info(
            f"Incremental update of {workspace.full_name} for {len(changed_files)} changed files: "
            f"{', '.join(shown)}" + (f" (+{more} more)" if more > 0 else "")
        )
        await emit_progress(
            progress_callback,
            GenerationProgress(
                phase=GenerationPhase.INCREMENTAL,
                step=0,
                total_steps=1,
                message=f"Updating wiki for {len(changed_files)} changed files...",
            ),
        )

        catalogs = self.catalog_store(branch_language)
        file_tools = self._file_tools(workspace)
        tools = ToolSet.compose(
            file_tools.tools(),
            CatalogTools(catalogs).tools(writable=True),
            DocumentTools(
                self.document_store(branch_language), catalogs, file_tools=file_tools
            ).tools(writable=True),
        )
        result = await self.execute_agent_with_retry(
            context,
            self.config.catalog_model,
            prompts.CONTENT_SYSTEM_PROMPT,
            prompts.get_incremental_prompt(
                repo_name=workspace.full_name,
                previous_commit=workspace.previous_commit_id or "initial",
                current_commit=workspace.commit_id,
                changed_files=changed_files,
                catalog_outline=catalog_outline(catalogs.get_tree()),
                language=branch_language.language_code,
            ),
            tools,
            OPERATION_INCREMENTAL,
        )
        await emit_progress(
            progress_callback,
            GenerationProgress(
                phase=GenerationPhase.INCREMENTAL,
                step=1,
                total_steps=1,
                message="Incremental update complete",
            ),
        )
        return result

    # -------------------------------------------------------------------------
    # Mind map
    # -------------------------------------------------------------------------

    async def generate_mind_map(
        self,
        context: OperationContext,
        workspace: Workspace,
        branch_language: BranchLanguage,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> str:
        """Generate the architecture mind map of a BranchLanguage.

        The status is PROCESSING while the session runs and FAILED when it
        raises or never writes a mind map.

        Raises:
            AgentExecutionError: If the agent session failed.
            GenerationError: If the agent finished without writing a mind map.
        """
        self.branch_languages.set_mind_map(branch_language, MindMapStatus.PROCESSING)
        await emit_progress(
            progress_callback,
            GenerationProgress(
                phase=GenerationPhase.MIND_MAP,
                step=0,
                total_steps=1,
                message="Generating mind map...",
            ),
        )
        mind_map_tools = MindMapTools(self.branch_languages, branch_language)
        try:
            repo_context = await self.collect_context(workspace)
            tools = ToolSet.compose(self._file_tools(workspace).tools(), mind_map_tools.tools())
            await self.execute_agent_with_retry(
                context,
                self.config.catalog_model,
                prompts.MIND_MAP_SYSTEM_PROMPT,
                prompts.get_mind_map_prompt(
                    workspace.full_name, repo_context, branch_language.language_code
                ),
                tools,
                OPERATION_MIND_MAP,
            )
            if not mind_map_tools.written:
                raise GenerationError(f"{OPERATION_MIND_MAP} finished without writing a mind map")
        except BaseException:
            self.branch_languages.set_mind_map(branch_language, MindMapStatus.FAILED)
            raise

        await emit_progress(
            progress_callback,
            GenerationProgress(
                phase=GenerationPhase.MIND_MAP,
                step=1,
                total_steps=1,
                message="Mind map complete",
            ),
        )
        logger.info(f"Mind map generated for {workspace.full_name} ({branch_language.language_code})")
        return branch_language.mind_map_content or ""
