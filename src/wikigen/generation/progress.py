"""Progress events emitted while a wiki is generated, updated or translated."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Coroutine

from wikigen.models import utcnow


class GenerationPhase(Enum):
    WORKSPACE = "workspace"
    CATALOG = "catalog"
    CONTENT = "content"
    TRANSLATION = "translation"
    MIND_MAP = "mind_map"
    INCREMENTAL = "incremental"
    COMPLETE = "complete"


@dataclass
class GenerationProgress:
    """One progress event of an operation.

    ``step`` counts finished units of the phase (documents, titles or the
    single catalog session) out of ``total_steps``.
    """

    phase: GenerationPhase
    step: int = 0
    total_steps: int = 0
    message: str = ""
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def fraction(self) -> float:
        if self.total_steps <= 0:
            return 0.0
        return min(self.step / self.total_steps, 1.0)


ProgressCallback = Callable[[GenerationProgress], Coroutine[Any, Any, None]]


async def emit_progress(
    callback: ProgressCallback | None,
    progress: GenerationProgress,
) -> None:
    """Await ``callback`` with ``progress``; a missing callback is a no-op."""
    if callback is not None:
        await callback(progress)
