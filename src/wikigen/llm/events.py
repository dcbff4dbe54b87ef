"""Provider-neutral events emitted by an agent session.

A provider adapter translates its wire format into this small set of
events, so consumers never branch on provider payload shapes.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol

from wikigen.agents.tools.base import ToolSet


@dataclass(frozen=True)
class TextDelta:
    """A chunk of assistant text."""

    text: str


@dataclass(frozen=True)
class ToolCallDelta:
    """A completed tool call and the result returned to the model."""

    call_id: str
    name: str
    arguments: str
    result: str


@dataclass(frozen=True)
class UsageDelta:
    """Tokens consumed by one model round."""

    input_tokens: int
    output_tokens: int


@dataclass(frozen=True)
class Done:
    """The session finished without requesting further tools."""

    finish_reason: str = "stop"


AgentEvent = TextDelta | ToolCallDelta | UsageDelta | Done


class AgentProvider(Protocol):
    """Anything that can run a tool-using session and stream AgentEvents."""

    def stream_agent(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
        tools: ToolSet | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[AgentEvent]: ...
