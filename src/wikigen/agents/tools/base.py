"""Typed tool capabilities offered to agent sessions.

Every tool belongs to one ToolCategory. Operations compose the categories
they need into a ToolSet explicitly, so the capabilities of a session are
visible at the call site.
"""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., str | Awaitable[str]]


class ToolCategory(str, Enum):
    """Capability categories an operation can grant."""

    FILE_READ = "file_read"
    CATALOG_READ = "catalog_read"
    CATALOG_WRITE = "catalog_write"
    DOC_READ = "doc_read"
    DOC_WRITE = "doc_write"
    MIND_MAP_WRITE = "mind_map_write"


class ToolError(Exception):
    """An expected tool failure, reported back to the model as text."""

    pass


def error(message: str) -> str:
    return f"ERROR: {message}"


def success(message: str) -> str:
    return f"SUCCESS: {message}"


@dataclass(frozen=True)
class Tool:
    """One function the model can call.

    Attributes:
        name: Function name exposed to the model.
        description: What the tool does, shown to the model.
        parameters: JSON schema of the keyword arguments.
        handler: Callable invoked with the parsed arguments.
        category: Capability category the tool belongs to.
    """

    name: str
    description: str
    parameters: dict[str, Any]
    handler: ToolHandler
    category: ToolCategory

    def schema(self) -> dict[str, Any]:
        """OpenAI-style function schema, as accepted by LiteLLM."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


def object_schema(properties: dict[str, Any], required: Iterable[str] = ()) -> dict[str, Any]:
    """Build the JSON schema of a tool's arguments."""
    return {"type": "object", "properties": properties, "required": list(required)}


class ToolSet:
    """An immutable set of tools, addressed by name."""

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    @classmethod
    def compose(cls, *groups: Iterable[Tool]) -> ToolSet:
        """Combine tool groups into one set."""
        return cls(tool for group in groups for tool in group)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    @property
    def categories(self) -> frozenset[ToolCategory]:
        return frozenset(tool.category for tool in self._tools.values())

    def schemas(self) -> list[dict[str, Any]]:
        return [tool.schema() for tool in self._tools.values()]

    async def invoke(self, name: str, arguments: str) -> str:
        """Invoke a tool with JSON-encoded arguments.

        Unknown tools, malformed arguments and ToolErrors are returned as
        ``ERROR:`` strings so the model can correct itself. So are argument
        values of the wrong type or shape (TypeError, ValueError, including
        pydantic ValidationError, AttributeError, LookupError) and OSError
        from the filesystem. Any other exception propagates and fails the
        session.
        """
        tool = self._tools.get(name)
        if tool is None:
            return error(f"Unknown tool '{name}'. Available tools: {', '.join(self._tools)}")

        try:
            kwargs = json.loads(arguments) if arguments and arguments.strip() else {}
        except json.JSONDecodeError as e:
            return error(f"Invalid JSON arguments for {name}: {e}")
        if not isinstance(kwargs, dict):
            return error(f"Arguments for {name} must be a JSON object")

        try:
            inspect.signature(tool.handler).bind(**kwargs)
        except TypeError as e:
            return error(f"Invalid arguments for {name}: {e}")

        try:
            result = tool.handler(**kwargs)
            if inspect.isawaitable(result):
                result = await result
        except ToolError as e:
            logger.debug(f"Tool {name} reported an error: {e}")
            return error(str(e))
        except (TypeError, ValueError, AttributeError, LookupError) as e:
            logger.warning(f"Tool {name} rejected its arguments: {e}")
            return error(f"Invalid arguments for {name}: {e}")
        except OSError as e:
            logger.warning(f"Tool {name} failed: {e}")
            return error(f"{name} failed: {e}")
        return str(result)
