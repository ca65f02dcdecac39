"""Core module for openrouter_agent."""

from openrouter_agent.core.agent import Agent, create_agent
from openrouter_agent.core.catalog import fetch_catalog, fetch_models
from openrouter_agent.core.config import ConfigManager, get_config_manager
from openrouter_agent.core.errors import (
    AgentError,
    ConfigurationError,
    ErrorSummary,
    MalformedFragment,
    NetworkFailure,
    OperationCancelled,
    ProviderReportedError,
    format_error,
    normalize_error,
)
from openrouter_agent.core.llm import LLMClient
from openrouter_agent.core.provider import ModelRequest, OpenRouterProvider, StreamedModelResult
from openrouter_agent.core.selector import pick_free_model_id, select_model
from openrouter_agent.core.stream import StreamReducer
from openrouter_agent.core.tools import Tool, ToolRegistry, tool

__all__ = [
    "Agent",
    "AgentError",
    "ConfigManager",
    "ConfigurationError",
    "ErrorSummary",
    "LLMClient",
    "MalformedFragment",
    "ModelRequest",
    "NetworkFailure",
    "OpenRouterProvider",
    "OperationCancelled",
    "ProviderReportedError",
    "StreamReducer",
    "StreamedModelResult",
    "Tool",
    "ToolRegistry",
    "create_agent",
    "fetch_catalog",
    "fetch_models",
    "format_error",
    "get_config_manager",
    "normalize_error",
    "pick_free_model_id",
    "select_model",
    "tool",
]
