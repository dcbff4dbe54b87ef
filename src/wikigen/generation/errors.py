"""Errors raised by generation operations."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wikigen.generation.fanout import FanOutResult


class GenerationError(Exception):
    """Base exception for generation failures."""

    pass


class AgentExecutionError(GenerationError):
    """An agent session failed for good, after retries or on a fatal error.

    The last underlying exception is chained as ``__cause__``.
    """

    def __init__(self, operation: str, attempts: int, message: str):
        super().__init__(f"{operation} failed after {attempts} attempt(s): {message}")
        self.operation = operation
        self.attempts = attempts


class CatalogNotFoundError(GenerationError, LookupError):
    """Raised when a catalog path does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Catalog not found for path: {path}")
        self.path = path


class FanOutCancelledError(GenerationError):
    """A fan-out was cancelled through its cancel event.

    ``result`` holds the tally of items finished before cancellation.
    """

    def __init__(self, result: FanOutResult):
        super().__init__(
            f"Cancelled after {result.succeeded} succeeded, {result.failed} failed, "
            f"{result.timed_out} timed out of {result.total}"
        )
        self.result = result


class TranslationIntegrityError(GenerationError):
    """A translation lost content that must be preserved verbatim."""

    pass
