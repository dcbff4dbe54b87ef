"""LiteLLM-based LLM client and agent session adapter."""

import json
import logging
import time
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from litellm import acompletion
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    InternalServerError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
)

from wikigen.agents.tools.base import ToolSet
from wikigen.constants.llm import (
    DEFAULT_TEMPERATURE,
    LOGGED_RESPONSE_HEADERS,
    MAX_AGENT_TURNS,
    MAX_TOKENS,
)
from wikigen.llm.events import AgentEvent, Done, TextDelta, ToolCallDelta, UsageDelta

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base exception for LLM client errors."""

    pass


class LLMConnectionError(LLMError):
    """Raised when unable to connect to the LLM provider."""

    pass


class LLMAuthenticationError(LLMError):
    """Raised when authentication with the LLM provider fails."""

    pass


class LLMRateLimitError(LLMError):
    """Raised when rate limited by the LLM provider."""

    pass


class LLMTimeoutError(LLMError):
    """Raised when the provider does not answer in time."""

    pass


class LLMServiceUnavailableError(LLMError):
    """Raised when the provider reports a 5xx or overload condition."""

    pass


class LLMClient:
    """Unified LLM client supporting multiple providers via LiteLLM."""

    def __init__(
        self,
        provider: str,
        model: str,
        api_key: str | None = None,
        endpoint: str | None = None,
        log_path: Path | None = None,
        max_turns: int = MAX_AGENT_TURNS,
    ):
        """Initialize LLM client.

        Args:
            provider: LLM provider (openai, anthropic, google, ollama).
            model: Default model name, used when a call does not name one.
            api_key: Optional API key (uses env var if not provided).
            endpoint: Optional custom endpoint (for Ollama).
            log_path: Optional path to JSONL log file for query logging.
            max_turns: Maximum model rounds in one agent session.
        """
        self.provider = provider
        self.model = model
        self.api_key = api_key
        self.endpoint = endpoint
        self.log_path = log_path
        self.max_turns = max_turns

    def _log_query(
        self,
        model: str,
        system_prompt: str | None,
        messages: list[dict[str, Any]],
        turn: int,
        response: str | None,
        tool_calls: list[str],
        duration_ms: int,
        error: str | None,
        error_details: dict | None = None,
    ) -> None:
        """Log one model round to the JSONL log file.

        Args:
            model: Model string sent to LiteLLM.
            system_prompt: System prompt used.
            messages: Conversation sent in this round, excluding the system prompt.
            turn: Round number within the session, starting at 1.
            response: Response text (None if error or empty).
            tool_calls: Names of tools the model requested in this round.
            duration_ms: Request duration in milliseconds.
            error: Error message (None if success).
            error_details: Optional dict with status_code, headers, etc.
        """
        if not self.log_path:
            return

        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "provider": self.provider,
            "model": model,
            "turn": turn,
            "request": {
                "system_prompt": system_prompt,
                "messages": messages,
            },
            "response": response,
            "tool_calls": tool_calls,
            "duration_ms": duration_ms,
            "error": error,
        }

        if error_details:
            entry["error_details"] = error_details

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            # Don't let logging failures break the application
            logger.debug(f"Could not write LLM query log: {e}")

    def _extract_error_details(self, e: Exception) -> dict | None:
        """Extract HTTP details from LiteLLM exceptions.

        Args:
            e: The exception to extract details from.

        Returns:
            Dict with status_code, headers, and provider if available.
        """
        details: dict = {}

        if hasattr(e, "status_code"):
            details["status_code"] = e.status_code

        response = getattr(e, "response", None)
        if response is not None:
            if hasattr(response, "status_code"):
                details["status_code"] = response.status_code
            headers = getattr(response, "headers", None)
            if headers is not None:
                relevant_headers = {
                    k: v for k, v in dict(headers).items() if k.lower() in LOGGED_RESPONSE_HEADERS
                }
                if relevant_headers:
                    details["response_headers"] = relevant_headers

        if hasattr(e, "llm_provider"):
            details["llm_provider"] = e.llm_provider

        return details if details else None

    def _get_model_string(self, model: str | None = None) -> str:
        """Get LiteLLM model string.

        Args:
            model: Model name, defaults to the client's model.

        Returns:
            Model string in provider/model format.
        """
        model = model or self.model
        if self.provider == "openai":
            return model  # OpenAI is default
        elif self.provider == "ollama":
            return f"ollama/{model}"
        else:
            return f"{self.provider}/{model}"

    def _translate_error(self, e: Exception) -> LLMError:
        """Map a LiteLLM exception onto the LLMError hierarchy."""
        if isinstance(e, AuthenticationError):
            return LLMAuthenticationError(f"Authentication failed: {e}")
        if isinstance(e, RateLimitError):
            return LLMRateLimitError(f"Rate limit exceeded: {e}")
        if isinstance(e, Timeout):
            return LLMTimeoutError(f"Request timeout: {e}")
        if isinstance(e, APIConnectionError):
            return LLMConnectionError(f"Connection failed: {e}")
        if isinstance(e, (ServiceUnavailableError, InternalServerError)):
            return LLMServiceUnavailableError(f"Service unavailable: {e}")
        return LLMError(f"LLM API error: {e}")

    async def stream_agent(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
        tools: ToolSet | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> AsyncGenerator[AgentEvent, None]:
        """Run a tool-using session and stream its events.

        Each round streams one completion. When the model requests tools,
        they are invoked from ``tools``, their results are appended to the
        conversation and another round starts. The session ends with a Done
        event once a round finishes without tool calls.

        Args:
            system_prompt: System prompt for the session.
            messages: Initial user (and optionally assistant) messages.
            tools: Tools the model may call. None or empty disables tool use.
            model: Model name, defaults to the client's model.
            max_tokens: Maximum response tokens per round.
            temperature: Sampling temperature.

        Yields:
            TextDelta, ToolCallDelta and UsageDelta events, then one Done.

        Raises:
            LLMError: On provider failures, or when the session exceeds
                ``max_turns`` rounds.
        """
        model_string = self._get_model_string(model)
        conversation: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        conversation.extend(messages)

        for turn in range(1, self.max_turns + 1):
            kwargs: dict[str, Any] = {
                "model": model_string,
                "messages": conversation,
                "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
                "max_tokens": max_tokens or MAX_TOKENS,
                "stream": True,
                "stream_options": {"include_usage": True},
            }
            if tools:
                kwargs["tools"] = tools.schemas()
                kwargs["tool_choice"] = "auto"

            if self.api_key:
                kwargs["api_key"] = self.api_key

            if self.endpoint and self.provider == "ollama":
                kwargs["api_base"] = self.endpoint

            start_time = time.perf_counter()
            text_parts: list[str] = []
            pending: dict[int, dict[str, str]] = {}
            finish_reason: str | None = None
            error_msg: str | None = None
            error_details: dict | None = None

            try:
                response = await acompletion(**kwargs)
                async for chunk in response:
                    usage = getattr(chunk, "usage", None)
                    if usage is not None:
                        prompt_tokens = getattr(usage, "prompt_tokens", 0) or 0
                        completion_tokens = getattr(usage, "completion_tokens", 0) or 0
                        if prompt_tokens or completion_tokens:
                            yield UsageDelta(prompt_tokens, completion_tokens)

                    if not chunk.choices:
                        continue
                    choice = chunk.choices[0]
                    delta = choice.delta

                    content = getattr(delta, "content", None)
                    if content:
                        text_parts.append(content)
                        yield TextDelta(content)

                    for call in getattr(delta, "tool_calls", None) or []:
                        slot = pending.setdefault(
                            call.index or 0, {"id": "", "name": "", "arguments": ""}
                        )
                        if call.id:
                            slot["id"] = call.id
                        function = call.function
                        if function is not None:
                            if function.name:
                                slot["name"] = function.name
                            if function.arguments:
                                slot["arguments"] += function.arguments

                    if choice.finish_reason:
                        finish_reason = choice.finish_reason
            except (
                AuthenticationError,
                RateLimitError,
                Timeout,
                APIConnectionError,
                ServiceUnavailableError,
                InternalServerError,
                APIError,
            ) as e:
                error_msg = str(e)
                error_details = self._extract_error_details(e)
                raise self._translate_error(e) from e
            finally:
                duration_ms = int((time.perf_counter() - start_time) * 1000)
                self._log_query(
                    model_string,
                    system_prompt,
                    conversation[1:],
                    turn,
                    response="".join(text_parts) or None,
                    tool_calls=[slot["name"] for slot in pending.values()],
                    duration_ms=duration_ms,
                    error=error_msg,
                    error_details=error_details,
                )

            if not pending:
                yield Done(finish_reason or "stop")
                return

            calls = [pending[index] for index in sorted(pending)]
            for number, slot in enumerate(calls):
                if not slot["id"]:
                    slot["id"] = f"call_{turn}_{number}"
            conversation.append(
                {
                    "role": "assistant",
                    "content": "".join(text_parts) or None,
                    "tool_calls": [
                        {
                            "id": slot["id"],
                            "type": "function",
                            "function": {"name": slot["name"], "arguments": slot["arguments"]},
                        }
                        for slot in calls
                    ],
                }
            )
            for slot in calls:
                if tools:
                    result = await tools.invoke(slot["name"], slot["arguments"])
                else:
                    result = f"ERROR: Tool '{slot['name']}' is not available in this session"
                conversation.append(
                    {"role": "tool", "tool_call_id": slot["id"], "content": result}
                )
                yield ToolCallDelta(
                    call_id=slot["id"],
                    name=slot["name"],
                    arguments=slot["arguments"],
                    result=result,
                )

        raise LLMError(f"Agent session exceeded {self.max_turns} turns without finishing")
