"""
Agent configuration models.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from openrouter_agent.models.catalog import FALLBACK_MODEL_ID

DEFAULT_INSTRUCTIONS = "You are a helpful assistant."
DEFAULT_MAX_STEPS = 5


class AgentConfig(BaseModel):
    """
    Session configuration for an Agent.

    Every default lives here; callers never re-apply defaults. ``tools`` holds
    ``openrouter_agent.core.tools.Tool`` instances.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    api_key: str = Field(..., min_length=1, description="OpenRouter API key")
    model: str = Field(default=FALLBACK_MODEL_ID, min_length=1, description="OpenRouter model id")
    instructions: str = Field(default=DEFAULT_INSTRUCTIONS)
    tools: list[Any] = Field(default_factory=list)
    max_steps: int = Field(
        default=DEFAULT_MAX_STEPS,
        ge=1,
        description="Tool-call round trips the provider may make before answering",
    )

    # Transport settings for the LiteLLM client
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int | None = Field(default=None, gt=0)
    max_retries: int = Field(default=3, ge=0, description="Max retries on transient LLM errors")
    retry_delay: float = Field(default=1.0, gt=0, description="Initial retry delay in seconds")
    retry_backoff: float = Field(default=2.0, gt=1, description="Exponential backoff multiplier")
