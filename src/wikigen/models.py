"""Domain records shared by the stores, tools and the orchestrator."""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def normalize_language_code(code: str) -> str:
    """Normalize a language code to its stored form (stripped, lowercase)."""
    return code.strip().lower()


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class MindMapStatus(str, Enum):
    """Generation status of a BranchLanguage's mind map."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class BranchLanguage:
    """One (branch, language) pair owning a catalog tree and its documents.

    Attributes:
        branch_id: Identifier of the repository branch.
        language_code: Language of the catalog and documents, lowercase.
        id: Unique identifier, generated when omitted.
        is_default: Whether this is the branch's primary language.
        mind_map_status: Status of the mind map generation.
        mind_map_content: Mind map text, if generated.
    """

    branch_id: str
    language_code: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    is_default: bool = False
    mind_map_status: MindMapStatus = MindMapStatus.PENDING
    mind_map_content: Optional[str] = None

    def __post_init__(self):
        self.language_code = normalize_language_code(self.language_code)
        if not self.language_code:
            raise ValueError("Language code cannot be empty")


@dataclass
class Document:
    """Generated document content for one catalog leaf."""

    path: str
    content: str
    source_files: list[str] = field(default_factory=list)
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class TokenUsageRecord:
    """Token consumption of one completed model session attempt."""

    model_name: str
    operation_name: str
    input_tokens: int
    output_tokens: int
    repository_id: Optional[str] = None
    user_id: Optional[str] = None
    recorded_at: datetime = field(default_factory=utcnow)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class TaskStatus(str, Enum):
    """Lifecycle of one fan-out item."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class GenerationTask:
    """An in-flight document generation item. Never persisted."""

    catalog_path: str
    title: str
    attempt: int = 0
    status: TaskStatus = TaskStatus.PENDING


@dataclass(frozen=True)
class OperationContext:
    """Explicit per-operation context passed to every orchestration entry point.

    Attributes:
        repository_id: Repository the operation works on, used to tag
            token usage and processing logs.
        user_id: User who requested the operation, if known.
        cancel_event: Shared cancellation signal. Setting it aborts the
            running operation, including every item of a fan-out.
    """

    repository_id: Optional[str] = None
    user_id: Optional[str] = None
    cancel_event: Optional[asyncio.Event] = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()
