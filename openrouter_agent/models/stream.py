"""
Stream fragment models.

A provider call produces a sequence of fragments. Message and reasoning
fragments carry the *full* text accumulated so far for their id, not a delta,
and the same fragment may be re-emitted unchanged.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _Fragment(BaseModel):
    model_config = ConfigDict(frozen=True)


class MessageFragment(_Fragment):
    """Final-answer text for one assistant message."""

    kind: Literal["message"] = "message"
    id: str
    text_so_far: str = ""


class ToolCallFragment(_Fragment):
    """A tool invocation requested by the model."""

    kind: Literal["function_call"] = "function_call"
    id: str
    name: str
    arguments_json: str = ""
    status: Literal["pending", "completed"] = "pending"


class ToolResultFragment(_Fragment):
    """Output of an executed tool, keyed by the originating call id."""

    kind: Literal["function_call_output"] = "function_call_output"
    call_id: str
    output: str


class ReasoningFragment(_Fragment):
    """Reasoning text, kept apart from the final answer."""

    kind: Literal["reasoning"] = "reasoning"
    id: str
    text_so_far: str = ""


StreamFragment = Annotated[
    Union[MessageFragment, ToolCallFragment, ToolResultFragment, ReasoningFragment],
    Field(discriminator="kind"),
]
