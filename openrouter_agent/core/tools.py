"""
Local tool definitions and the tool registry.

A tool pairs a pydantic input model with a plain function. The registry turns
tools into OpenAI function-calling schemas for the provider and executes
calls by name with JSON arguments.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, Iterator

from pydantic import BaseModel, ValidationError

from openrouter_agent.models.tool_result import ToolResult, timed_execution

logger = logging.getLogger(__name__)


class Tool:
    """A locally executable capability the model may call."""

    def __init__(
        self,
        name: str,
        description: str,
        input_model: type[BaseModel],
        execute: Callable[[BaseModel], Any],
    ):
        if not name:
            raise ValueError("Tool name must not be empty")
        self.name = name
        self.description = description
        self.input_model = input_model
        self.execute = execute

    def to_openai_tool(self) -> dict[str, Any]:
        """OpenAI function-calling format."""
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": schema,
            },
        }

    def __repr__(self) -> str:
        return f"Tool(name={self.name!r})"


def tool(
    name: str,
    description: str,
    input_model: type[BaseModel],
) -> Callable[[Callable[[Any], Any]], Tool]:
    """
    Decorator building a Tool from a function taking the validated input.

    Example:
        @tool("get_current_time", "Get the current date and time", TimeInput)
        def get_current_time(input: TimeInput) -> dict: ...
    """

    def decorator(func: Callable[[Any], Any]) -> Tool:
        return Tool(name, description, input_model, func)

    return decorator


class ToolRegistry:
    """Ordered set of tools with unique names."""

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: dict[str, Tool] = {}
        for t in tools:
            self.add(t)

    def add(self, new_tool: Tool) -> None:
        if new_tool.name in self._tools:
            raise ValueError(f"Tool '{new_tool.name}' is already registered")
        self._tools[new_tool.name] = new_tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def to_openai_tools(self) -> list[dict[str, Any]]:
        return [t.to_openai_tool() for t in self._tools.values()]

    def execute(self, name: str, arguments: str) -> ToolResult:
        """
        Run a tool with JSON-encoded arguments.

        Never raises: unknown tools, bad JSON, validation failures and errors
        raised by the tool itself all come back as failed results.
        """
        found = self._tools.get(name)
        if found is None:
            return ToolResult.fail(f"Unknown tool: {name}", "tool_not_found", tool_name=name)

        try:
            raw_args = json.loads(arguments or "{}")
        except json.JSONDecodeError:
            return ToolResult.fail(
                f"Invalid JSON arguments: {arguments}", "invalid_args", tool_name=name
            )

        try:
            validated = found.input_model.model_validate(raw_args)
        except ValidationError as e:
            return ToolResult.fail(str(e), "invalid_args", tool_name=name)

        with timed_execution() as timing:
            try:
                data = found.execute(validated)
            except Exception as e:
                logger.warning("Tool %s failed: %s", name, e)
                result = ToolResult.fail(str(e), type(e).__name__, tool_name=name)
            else:
                if isinstance(data, BaseModel):
                    data = data.model_dump(mode="json")
                result = ToolResult.success(data, tool_name=name)
        result.duration_ms = timing["duration_ms"]
        return result

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)
