"""
OpenRouter provider: one call in, a stream of fragments out.

A single call_model() runs the whole model/tool loop for a turn. The model is
streamed step by step; tool calls it makes are executed locally through the
ToolRegistry and fed back, until it answers without calling a tool or the
step budget runs out. Callers see the result as fragments (full text so far
per item) plus a final-text accessor.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Iterator, Protocol

from pydantic import BaseModel, ConfigDict, Field

from openrouter_agent.core.errors import OperationCancelled
from openrouter_agent.core.llm import LLMClient
from openrouter_agent.core.tools import Tool, ToolRegistry
from openrouter_agent.models.session import Message
from openrouter_agent.models.stream import (
    MessageFragment,
    ReasoningFragment,
    StreamFragment,
    ToolCallFragment,
    ToolResultFragment,
)

logger = logging.getLogger(__name__)


class ModelRequest(BaseModel):
    """Everything one provider call needs."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    model: str
    instructions: str
    input: list[Message]
    tools: list[Tool] | None = None
    step_budget: int = Field(default=5, ge=1)


class ModelResult(Protocol):
    """What a provider call returns."""

    def items_stream(self) -> Iterator[StreamFragment]: ...

    def get_text(self) -> str: ...


class ModelProvider(Protocol):
    """Anything that can run a ModelRequest."""

    def call_model(
        self, request: ModelRequest, cancel: threading.Event | None = None
    ) -> ModelResult: ...


def _short_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class StreamedModelResult:
    """
    Lazily executed provider call.

    The underlying loop starts on first use. items_stream() yields fragments
    as they are produced (replaying any already produced); get_text() drains
    the rest without exposing it and returns the final answer.
    """

    def __init__(self, fragments: Iterator[StreamFragment]):
        self._source = fragments
        self._produced: list[StreamFragment] = []
        self._exhausted = False
        self.final_text = ""

    def _pull(self) -> Iterator[StreamFragment]:
        index = 0
        while True:
            if index < len(self._produced):
                yield self._produced[index]
                index += 1
                continue
            if self._exhausted:
                return
            try:
                fragment = next(self._source)
            except StopIteration as stop:
                self._exhausted = True
                if stop.value is not None:
                    self.final_text = stop.value
                return
            self._produced.append(fragment)

    def items_stream(self) -> Iterator[StreamFragment]:
        yield from self._pull()

    def get_text(self) -> str:
        for _ in self._pull():
            pass
        return self.final_text


class OpenRouterProvider:
    """Runs requests against OpenRouter through LiteLLM."""

    def __init__(self, api_key: str, **llm_options: Any):
        self.api_key = api_key
        self.llm_options = llm_options

    def _client(self, model: str) -> LLMClient:
        return LLMClient(model=model, api_key=self.api_key, **self.llm_options)

    def call_model(
        self, request: ModelRequest, cancel: threading.Event | None = None
    ) -> StreamedModelResult:
        return StreamedModelResult(self._run(request, cancel))

    def _run(self, request: ModelRequest, cancel: threading.Event | None):
        """
        Model/tool loop. Yields fragments; returns the final answer text.
        """
        llm = self._client(request.model)
        registry = ToolRegistry(request.tools or ())
        tool_schemas = registry.to_openai_tools() or None

        messages: list[dict[str, Any]] = [{"role": "system", "content": request.instructions}]
        messages.extend(m.to_input() for m in request.input)

        final_text = ""
        for step in range(1, request.step_budget + 1):
            message_id = _short_id("msg")
            reasoning_id = _short_id("rs")
            collected_content = ""
            collected_reasoning = ""
            collected_tool_calls: list[dict[str, Any]] = []
            announced: set[int] = set()

            for chunk in llm.stream(messages, tools=tool_schemas):
                if cancel is not None and cancel.is_set():
                    raise OperationCancelled("Request cancelled")
                if not getattr(chunk, "choices", None):
                    continue
                delta = chunk.choices[0].delta

                reasoning = getattr(delta, "reasoning_content", None)
                if reasoning:
                    collected_reasoning += reasoning
                    yield ReasoningFragment(id=reasoning_id, text_so_far=collected_reasoning)

                if delta.content:
                    collected_content += delta.content
                    yield MessageFragment(id=message_id, text_so_far=collected_content)

                for tc in getattr(delta, "tool_calls", None) or []:
                    while len(collected_tool_calls) <= tc.index:
                        collected_tool_calls.append({
                            "id": "",
                            "type": "function",
                            "function": {"name": "", "arguments": ""},
                        })
                    entry = collected_tool_calls[tc.index]
                    if tc.id:
                        entry["id"] = tc.id
                    if tc.function:
                        if tc.function.name:
                            entry["function"]["name"] = tc.function.name
                        if tc.function.arguments:
                            entry["function"]["arguments"] += tc.function.arguments
                    if tc.index not in announced and entry["function"]["name"]:
                        announced.add(tc.index)
                        entry["id"] = entry["id"] or _short_id("call")
                        yield ToolCallFragment(
                            id=entry["id"],
                            name=entry["function"]["name"],
                            status="pending",
                        )

            if cancel is not None and cancel.is_set():
                raise OperationCancelled("Request cancelled")

            msg_dict: dict[str, Any] = {"role": "assistant", "content": collected_content}
            if collected_tool_calls:
                msg_dict["tool_calls"] = collected_tool_calls
            messages.append(msg_dict)
            final_text = collected_content

            if not collected_tool_calls:
                return final_text

            if step == request.step_budget:
                logger.warning(
                    "Step budget (%d) exhausted with %d tool call(s) outstanding",
                    request.step_budget,
                    len(collected_tool_calls),
                )
                break

            for tc in collected_tool_calls:
                call_id = tc["id"] or _short_id("call")
                tc["id"] = call_id
                name = tc["function"]["name"]
                arguments = tc["function"]["arguments"]
                yield ToolCallFragment(
                    id=call_id, name=name, arguments_json=arguments, status="completed"
                )

                result = registry.execute(name, arguments)
                logger.debug("Tool %s -> ok=%s", name, result.ok)
                output = result.to_llm_content()
                messages.append({"role": "tool", "tool_call_id": call_id, "content": output})
                yield ToolResultFragment(call_id=call_id, output=output)

        return final_text
