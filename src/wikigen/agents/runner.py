"""Runs one agent session and collects its text, tool calls and usage."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from wikigen.agents.tools.base import ToolSet
from wikigen.generation.markdown import remove_think_tags
from wikigen.llm.events import AgentProvider, Done, TextDelta, ToolCallDelta, UsageDelta

logger = logging.getLogger(__name__)


@dataclass
class UsageTally:
    """Token usage accumulated by one session attempt.

    Owned by the caller, so usage reported before a failure stays visible.
    """

    input_tokens: int = 0
    output_tokens: int = 0

    def add(self, usage: UsageDelta) -> None:
        self.input_tokens += usage.input_tokens
        self.output_tokens += usage.output_tokens

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class AgentRunResult:
    """Outcome of a finished session."""

    text: str
    tool_calls: int
    input_tokens: int
    output_tokens: int
    finish_reason: str


class AgentRunner:
    """Consumes an AgentProvider's event stream for one session."""

    def __init__(
        self,
        provider: AgentProvider,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        self.provider = provider
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature

    async def run(
        self,
        model: str,
        system_prompt: str,
        user_message: str,
        tools: Optional[ToolSet] = None,
        usage: Optional[UsageTally] = None,
        temperature: Optional[float] = None,
    ) -> AgentRunResult:
        """Run a session to completion.

        Args:
            model: Model name.
            system_prompt: System prompt.
            user_message: The single user message that starts the session.
            tools: Tools available to the model.
            usage: Tally that receives usage as it is reported.
            temperature: Overrides the runner's temperature for this session.

        Returns:
            The concatenated text with think blocks removed, and the usage.
        """
        usage = usage if usage is not None else UsageTally()
        text_parts: list[str] = []
        tool_calls = 0
        finish_reason = "stop"

        events = self.provider.stream_agent(
            system_prompt,
            [{"role": "user", "content": user_message}],
            tools=tools,
            model=model,
            max_tokens=self.max_output_tokens,
            temperature=self.temperature if temperature is None else temperature,
        )
        async for event in events:
            if isinstance(event, TextDelta):
                text_parts.append(event.text)
            elif isinstance(event, ToolCallDelta):
                tool_calls += 1
                logger.debug(f"Tool {event.name} returned {event.result[:120]!r}")
            elif isinstance(event, UsageDelta):
                usage.add(event)
            elif isinstance(event, Done):
                finish_reason = event.finish_reason

        return AgentRunResult(
            text=remove_think_tags("".join(text_parts)),
            tool_calls=tool_calls,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            finish_reason=finish_reason,
        )
