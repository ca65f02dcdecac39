"""
Agent: the conversation session.

The Agent owns the message history and makes exactly one provider call per
user turn. The provider runs its own model/tool loop within the step budget;
the Agent turns the resulting fragment stream into events, in arrival order,
and records the final answer.

A turn commits its assistant message only after the stream completes. If the
call fails, the user message stays in history (so a retry resends it) and
nothing else is added. Turns must not overlap on one Agent.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, assert_never

from openrouter_agent.core.errors import MalformedFragment, format_error
from openrouter_agent.core.provider import ModelProvider, ModelRequest, OpenRouterProvider
from openrouter_agent.core.stream import StreamReducer
from openrouter_agent.core.tools import Tool, ToolRegistry
from openrouter_agent.models.agent_config import AgentConfig
from openrouter_agent.models.events import (
    AgentEvent,
    AssistantMessageAppended,
    ErrorObserved,
    EventCallback,
    ReasoningUpdated,
    StreamDelta,
    StreamEnded,
    StreamStarted,
    ThinkingEnded,
    ThinkingStarted,
    ToolCallObserved,
    ToolResultObserved,
    UserMessageAppended,
)
from openrouter_agent.models.session import Message
from openrouter_agent.models.stream import (
    MessageFragment,
    ReasoningFragment,
    StreamFragment,
    ToolCallFragment,
    ToolResultFragment,
)

logger = logging.getLogger(__name__)


def parse_tool_arguments(fragment: ToolCallFragment) -> Any:
    """Decode a completed tool call's JSON arguments (empty means {})."""
    try:
        return json.loads(fragment.arguments_json or "{}")
    except json.JSONDecodeError as e:
        raise MalformedFragment(fragment.id, fragment.arguments_json, str(e)) from e


class Agent:
    """
    An OpenRouter chat session with local tools.

    Args:
        config: Session configuration. ``model`` and ``max_steps`` are fixed
            for the session; instructions and tools may change later.
        provider: Provider to call; defaults to OpenRouterProvider built from
            the config.
        on_event: Callback receiving every AgentEvent, synchronously and in
            order.
    """

    def __init__(
        self,
        config: AgentConfig,
        provider: ModelProvider | None = None,
        on_event: EventCallback | None = None,
    ):
        self._config = config.model_copy()
        self._tools = ToolRegistry(config.tools)
        self.provider = provider or OpenRouterProvider(
            api_key=config.api_key,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            retry_backoff=config.retry_backoff,
        )
        self._on_event = on_event
        self._messages: list[Message] = []

    # ── Session state ────────────────────────────────────────────────

    @property
    def model(self) -> str:
        return self._config.model

    @property
    def max_steps(self) -> int:
        return self._config.max_steps

    @property
    def instructions(self) -> str:
        return self._config.instructions

    @property
    def tools(self) -> list[Tool]:
        return list(self._tools)

    def get_messages(self) -> list[Message]:
        return list(self._messages)

    def clear_history(self) -> None:
        self._messages = []

    def set_instructions(self, instructions: str) -> None:
        self._config.instructions = instructions

    def add_tool(self, new_tool: Tool) -> None:
        self._tools.add(new_tool)

    # ── Turns ────────────────────────────────────────────────────────

    def send(self, content: str, cancel: threading.Event | None = None) -> str:
        """
        Send a user message and stream the answer as events.

        Returns the final answer text. Any failure is emitted as an error
        event and re-raised.
        """
        self._append_user(content)
        self._emit(ThinkingStarted())

        try:
            result = self.provider.call_model(self._build_request(), cancel=cancel)
            self._emit(StreamStarted())

            reducer = StreamReducer()
            for fragment in result.items_stream():
                self._route(fragment, reducer)

            full_text = reducer.final_text
            if not full_text:
                full_text = result.get_text()

            self._emit(StreamEnded(full_text=full_text))
            self._append_assistant(full_text)
            return full_text
        except Exception as e:
            self._fail(e)
            raise
        finally:
            self._emit(ThinkingEnded())

    def send_sync(self, content: str, cancel: threading.Event | None = None) -> str:
        """Like send(), but waits for the final text without streaming events."""
        self._append_user(content)

        try:
            result = self.provider.call_model(self._build_request(), cancel=cancel)
            full_text = result.get_text()
            self._append_assistant(full_text)
            return full_text
        except Exception as e:
            self._fail(e)
            raise

    # ── Internals ────────────────────────────────────────────────────

    def _emit(self, event: AgentEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)

    def _append_user(self, content: str) -> None:
        message = Message(role="user", content=content)
        self._messages.append(message)
        self._emit(UserMessageAppended(message=message))

    def _append_assistant(self, content: str) -> None:
        message = Message(role="assistant", content=content)
        self._messages.append(message)
        self._emit(AssistantMessageAppended(message=message))

    def _fail(self, error: Exception) -> None:
        logger.debug("Turn failed: %s", error, exc_info=True)
        self._emit(ErrorObserved(error=error, summary=format_error(error)))

    def _build_request(self) -> ModelRequest:
        return ModelRequest(
            model=self._config.model,
            instructions=self._config.instructions,
            input=list(self._messages),
            tools=list(self._tools) or None,
            step_budget=self._config.max_steps,
        )

    def _route(self, fragment: StreamFragment, reducer: StreamReducer) -> None:
        if isinstance(fragment, MessageFragment):
            update = reducer.apply_message(fragment)
            if update is not None:
                self._emit(
                    StreamDelta(
                        delta=update.delta,
                        accumulated=update.accumulated,
                        replaced=update.replaced,
                    )
                )
        elif isinstance(fragment, ToolCallFragment):
            if fragment.status != "completed":
                return
            try:
                arguments = parse_tool_arguments(fragment)
            except MalformedFragment as e:
                logger.warning("%s", e)
                self._emit(ErrorObserved(error=e, summary=format_error(e)))
                return
            self._emit(ToolCallObserved(call_id=fragment.id, name=fragment.name, arguments=arguments))
        elif isinstance(fragment, ToolResultFragment):
            self._emit(ToolResultObserved(call_id=fragment.call_id, output=fragment.output))
        elif isinstance(fragment, ReasoningFragment):
            update = reducer.apply_reasoning(fragment)
            if update is not None:
                self._emit(ReasoningUpdated(text=update.accumulated))
        else:
            assert_never(fragment)


def create_agent(config: AgentConfig, **kwargs: Any) -> Agent:
    return Agent(config, **kwargs)
