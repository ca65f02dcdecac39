"""
Conversation message model.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict


class Message(BaseModel):
    """A single message in the conversation history."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant", "system"]
    content: str

    def to_input(self) -> dict[str, str]:
        """Provider input format."""
        return {"role": self.role, "content": self.content}
