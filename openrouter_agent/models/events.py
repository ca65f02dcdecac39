"""
Events emitted by the Agent while it handles a turn.

Events are transient notifications delivered to the callback given at
construction; they are never persisted.
"""

from __future__ import annotations

from typing import Any, Callable, Literal, Union

from pydantic import BaseModel, ConfigDict

from openrouter_agent.models.session import Message


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class UserMessageAppended(_Event):
    type: Literal["message:user"] = "message:user"
    message: Message


class AssistantMessageAppended(_Event):
    type: Literal["message:assistant"] = "message:assistant"
    message: Message


class ThinkingStarted(_Event):
    type: Literal["thinking:start"] = "thinking:start"


class ThinkingEnded(_Event):
    type: Literal["thinking:end"] = "thinking:end"


class StreamStarted(_Event):
    type: Literal["stream:start"] = "stream:start"


class StreamDelta(_Event):
    type: Literal["stream:delta"] = "stream:delta"
    delta: str
    accumulated: str
    # Set when the item was rewritten; delta is then the whole new text
    replaced: bool = False


class StreamEnded(_Event):
    type: Literal["stream:end"] = "stream:end"
    full_text: str


class ToolCallObserved(_Event):
    type: Literal["tool:call"] = "tool:call"
    call_id: str
    name: str
    arguments: Any


class ToolResultObserved(_Event):
    type: Literal["tool:result"] = "tool:result"
    call_id: str
    output: str


class ReasoningUpdated(_Event):
    type: Literal["reasoning:update"] = "reasoning:update"
    text: str


class ErrorObserved(_Event):
    type: Literal["error"] = "error"
    error: Exception
    summary: str


AgentEvent = Union[
    UserMessageAppended,
    AssistantMessageAppended,
    ThinkingStarted,
    ThinkingEnded,
    StreamStarted,
    StreamDelta,
    StreamEnded,
    ToolCallObserved,
    ToolResultObserved,
    ReasoningUpdated,
    ErrorObserved,
]

EventCallback = Callable[[AgentEvent], None]
