"""Command line entry point."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from git.exc import InvalidGitRepositoryError, NoSuchPathError

from wikigen.agents.runner import AgentRunner
from wikigen.config import Config, ConfigError, load_settings
from wikigen.db.connection import Database
from wikigen.db.migrations import run_migrations
from wikigen.generation.errors import FanOutCancelledError, GenerationError
from wikigen.generation.fanout import FanOutOutcome, FanOutResult
from wikigen.generation.orchestrator import GenerationOrchestrator
from wikigen.generation.progress import GenerationProgress, ProgressCallback
from wikigen.generation.translation import TranslationPipeline
from wikigen.llm.client import LLMClient
from wikigen.models import BranchLanguage, OperationContext
from wikigen.storage.processing_log import ProcessingLogStore
from wikigen.workspace import Workspace, changed_files, open_workspace

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        level=logging.DEBUG if verbose else logging.INFO,
    )
    # LiteLLM logs every request at INFO
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)


def build_orchestrator(settings: Config) -> tuple[GenerationOrchestrator, Database]:
    """Wire database, LLM client, agent runner and orchestrator from settings."""
    db = Database(settings.db_path)
    run_migrations(db)
    client = LLMClient(
        provider=settings.active_provider,
        model=settings.active_model,
        api_key=settings.llm_api_key,
        endpoint=settings.llm_endpoint,
        log_path=settings.llm_log_path,
        max_turns=settings.generation.max_agent_turns,
    )
    runner = AgentRunner(
        client,
        max_output_tokens=settings.models.max_output_tokens,
        temperature=settings.models.temperature,
    )
    return GenerationOrchestrator(runner, db, settings), db


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wikigen", description="Generate a documentation wiki for a git repository."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--repository-id", help="Identifier used for usage and logs")
    parser.add_argument("--branch-id", help="Branch identifier (default: <repo>@<branch>)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate catalog, documents and mind map")
    generate.add_argument("path", type=Path, help="Repository checkout")
    generate.add_argument("--language", default="en", help="Wiki language (default: en)")
    generate.add_argument("--skip-mind-map", action="store_true", help="Do not generate the mind map")

    regenerate = subparsers.add_parser("regenerate", help="Regenerate one document")
    regenerate.add_argument("path", type=Path, help="Repository checkout")
    regenerate.add_argument("doc_path", help="Catalog path of the document")
    regenerate.add_argument("--language", default="en", help="Wiki language (default: en)")

    update = subparsers.add_parser("update", help="Update the wiki after code changes")
    update.add_argument("path", type=Path, help="Repository checkout")
    update.add_argument("--since", required=True, help="Previously documented commit")
    update.add_argument("--language", default="en", help="Wiki language (default: en)")

    translate = subparsers.add_parser("translate", help="Translate the wiki")
    translate.add_argument("path", type=Path, help="Repository checkout")
    translate.add_argument("--source", required=True, help="Source language")
    translate.add_argument("--target", required=True, help="Target language")

    return parser


def _progress_callback(log_store: ProcessingLogStore, repository_id: str) -> ProgressCallback:
    record = log_store.callback_for(repository_id)

    async def report(progress: GenerationProgress) -> None:
        logger.info(f"[{progress.phase.value} {progress.fraction:.0%}] {progress.message}")
        await record(progress)

    return report


def _fan_out_exit_code(result: FanOutResult) -> int:
    return EXIT_OK if result.outcome is FanOutOutcome.SUCCEEDED else EXIT_FAILED


def _install_signal_handlers(cancel_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, cancel_event.set)
        except (NotImplementedError, RuntimeError):
            # Platforms without loop signal support keep the default handlers
            logger.debug(f"Signal handler for {signum} not installed")


async def execute_command(
    args: argparse.Namespace, settings: Config, cancel_event: asyncio.Event
) -> int:
    """Run one CLI command and return its exit code."""
    previous_commit = getattr(args, "since", None)
    try:
        workspace: Workspace = open_workspace(args.path, previous_commit_id=previous_commit)
    except (InvalidGitRepositoryError, NoSuchPathError) as e:
        logger.error(f"Not a git repository: {e}")
        return EXIT_FAILED
    repository_id = args.repository_id or workspace.full_name
    branch_id = args.branch_id or f"{workspace.full_name}@{workspace.branch_name}"
    context = OperationContext(repository_id=repository_id, cancel_event=cancel_event)

    orchestrator, db = build_orchestrator(settings)
    progress = _progress_callback(ProcessingLogStore(db), repository_id)
    try:
        if args.command == "translate":
            source = orchestrator.branch_languages.find(branch_id, args.source)
            if source is None:
                logger.error(f"No {args.source} wiki exists for {branch_id}")
                return EXIT_FAILED
            result = await TranslationPipeline(orchestrator).translate_wiki(
                context, source, args.target, progress
            )
            if result.documents.outcome is not FanOutOutcome.SUCCEEDED:
                return EXIT_FAILED
            return EXIT_OK

        branch_language: BranchLanguage = orchestrator.branch_languages.get_or_create(
            branch_id, args.language, is_default=True
        )

        if args.command == "generate":
            await orchestrator.generate_catalog(context, workspace, branch_language, progress)
            documents = await orchestrator.generate_documents(
                context, workspace, branch_language, progress
            )
            if not args.skip_mind_map:
                await orchestrator.generate_mind_map(context, workspace, branch_language, progress)
            return _fan_out_exit_code(documents)

        if args.command == "regenerate":
            await orchestrator.regenerate_document(context, workspace, branch_language, args.doc_path)
            return EXIT_OK

        if args.command == "update":
            files = await asyncio.to_thread(changed_files, workspace)
            await orchestrator.incremental_update(
                context, workspace, branch_language, files, progress
            )
            return EXIT_OK

        raise ValueError(f"Unknown command: {args.command}")
    except FanOutCancelledError as e:
        logger.warning(f"Cancelled: {e}")
        return EXIT_CANCELLED
    except (GenerationError, LookupError, ValueError) as e:
        logger.error(str(e))
        return EXIT_FAILED
    finally:
        db.close()


async def run_command(args: argparse.Namespace, settings: Config) -> int:
    """Run a command until it finishes or SIGINT/SIGTERM cancels it."""
    cancel_event = asyncio.Event()
    _install_signal_handlers(cancel_event)
    work = asyncio.create_task(execute_command(args, settings, cancel_event))
    watcher = asyncio.create_task(cancel_event.wait())
    await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
    watcher.cancel()
    if not work.done():
        # Fan-outs stop on the event themselves; anything else is cancelled here
        work.cancel()
        await asyncio.gather(work, watcher, return_exceptions=True)
        logger.warning("Cancelled")
        return EXIT_CANCELLED
    await asyncio.gather(watcher, return_exceptions=True)
    return work.result()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point of the ``wikigen`` command."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    try:
        settings = load_settings()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_FAILED
    try:
        return asyncio.run(run_command(args, settings))
    except KeyboardInterrupt:
        return EXIT_CANCELLED


if __name__ == "__main__":
    sys.exit(main())
