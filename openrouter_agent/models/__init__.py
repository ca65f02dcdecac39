"""Data models for openrouter-agent."""

from openrouter_agent.models.agent_config import AgentConfig
from openrouter_agent.models.catalog import (
    FALLBACK_MODEL_ID,
    ModelCatalog,
    ModelDescriptor,
    ModelPricing,
    SelectionCriteria,
)
from openrouter_agent.models.session import Message
from openrouter_agent.models.stream import (
    MessageFragment,
    ReasoningFragment,
    StreamFragment,
    ToolCallFragment,
    ToolResultFragment,
)
from openrouter_agent.models.tool_result import ToolResult

__all__ = [
    "AgentConfig",
    "FALLBACK_MODEL_ID",
    "Message",
    "MessageFragment",
    "ModelCatalog",
    "ModelDescriptor",
    "ModelPricing",
    "ReasoningFragment",
    "SelectionCriteria",
    "StreamFragment",
    "ToolCallFragment",
    "ToolResult",
    "ToolResultFragment",
]
