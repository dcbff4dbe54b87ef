"""LLM client abstraction."""

from wikigen.llm.client import (
    LLMAuthenticationError,
    LLMClient,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMServiceUnavailableError,
    LLMTimeoutError,
)
from wikigen.llm.events import AgentEvent, AgentProvider, Done, TextDelta, ToolCallDelta, UsageDelta

__all__ = [
    "AgentEvent",
    "AgentProvider",
    "Done",
    "LLMAuthenticationError",
    "LLMClient",
    "LLMConnectionError",
    "LLMError",
    "LLMRateLimitError",
    "LLMServiceUnavailableError",
    "LLMTimeoutError",
    "TextDelta",
    "ToolCallDelta",
    "UsageDelta",
]
