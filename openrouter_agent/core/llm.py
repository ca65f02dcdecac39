"""
LiteLLM wrapper for OpenRouter access.
"""

import logging
import re
import time
from typing import Any, Iterator

import litellm
from litellm import completion
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    BadRequestError,
    BudgetExceededError,
    ContextWindowExceededError,
    NotFoundError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
)
from litellm.types.utils import ModelResponse

from openrouter_agent.core.errors import AgentError, NetworkFailure, ProviderReportedError

# Suppress LiteLLM debug messages (e.g., "Provider List: ...")
litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)

API_KEY_NAME = "OPENROUTER_API_KEY"

LITELLM_ERRORS = (
    APIConnectionError,
    APIError,
    AuthenticationError,
    BadRequestError,
    BudgetExceededError,
    ContextWindowExceededError,
    NotFoundError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
)

_CREDIT_KEYWORDS = ("402", "credits", "insufficient", "budget")


def litellm_model_name(model_id: str) -> str:
    """
    LiteLLM routing name for an OpenRouter model id.

    The prefix is always added, so OpenRouter's own ``openrouter/auto``
    becomes ``openrouter/openrouter/auto``.
    """
    return f"openrouter/{model_id}"


def _extract_error_message(error: Exception) -> str:
    """Extract the most useful part of a LiteLLM error message."""
    msg = str(error)
    match = re.search(r'"message"\s*:\s*"([^"]+)"', msg)
    if match:
        return match.group(1)
    if len(msg) > 200:
        return msg[:200] + "..."
    return msg


def _is_credit_error(error: Exception) -> bool:
    msg = str(error).lower()
    return any(kw in msg for kw in _CREDIT_KEYWORDS)


def friendly_llm_error(model: str, error: Exception) -> AgentError:
    """Convert a LiteLLM exception to an error with actionable guidance."""
    if isinstance(error, AuthenticationError):
        return ProviderReportedError(
            f"Authentication failed for '{model}'. "
            f"Check that {API_KEY_NAME} is set correctly.\n"
            f"  Run: openrouter-agent config set {API_KEY_NAME}",
            original=error,
        )

    if isinstance(error, NotFoundError):
        return ProviderReportedError(
            f"Model '{model}' not found. Check the model id "
            f"(e.g., openai/gpt-4o-mini, meta-llama/llama-3.3-70b-instruct:free).\n"
            f"  See: openrouter-agent models",
            original=error,
        )

    if isinstance(error, RateLimitError):
        return ProviderReportedError(
            f"Rate limit exceeded for '{model}'. Wait a moment and try again.\n"
            f"  Free models have low per-minute limits on OpenRouter.",
            original=error,
        )

    if isinstance(error, BudgetExceededError):
        return ProviderReportedError(
            f"API budget/credits exhausted for '{model}'. "
            f"Add credits at https://openrouter.ai/settings/credits.",
            original=error,
        )

    if isinstance(error, ContextWindowExceededError):
        return ProviderReportedError(
            f"Context too large for '{model}'. "
            f"Clear the history (/clear) or pick a model with a larger context window.",
            original=error,
        )

    if isinstance(error, BadRequestError):
        return ProviderReportedError(
            f"Model '{model}' rejected the request. "
            f"It may not support tool calling.\n"
            f"  Details: {_extract_error_message(error)}",
            original=error,
        )

    if isinstance(error, (APIConnectionError, Timeout)) and not _is_credit_error(error):
        return NetworkFailure(
            "Cannot connect to the OpenRouter API. Check your internet connection.",
            status_code=getattr(error, "status_code", None),
        )

    if isinstance(error, ServiceUnavailableError):
        return NetworkFailure(
            "The OpenRouter API is temporarily unavailable. Try again in a moment.",
            status_code=getattr(error, "status_code", None),
        )

    if isinstance(error, APIError):
        if _is_credit_error(error):
            return ProviderReportedError(
                f"Credits exhausted for '{model}'. Add more at your OpenRouter dashboard.\n"
                f"  {_extract_error_message(error)}",
                original=error,
            )
        return ProviderReportedError(
            f"API error from OpenRouter: {_extract_error_message(error)}",
            original=error,
        )

    return ProviderReportedError(f"LLM error ({type(error).__name__}): {error}", original=error)


class LLMClient:
    """
    Wrapper around LiteLLM for OpenRouter chat completions.

    Transient failures are retried with exponential backoff; everything that
    escapes is converted to the openrouter_agent error taxonomy.
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        retry_backoff: float = 2.0,
    ):
        """
        Initialize the LLM client.

        Args:
            model: OpenRouter model id (e.g., 'openai/gpt-4o-mini')
            api_key: OpenRouter API key; LiteLLM falls back to OPENROUTER_API_KEY
            temperature: Sampling temperature (0-2)
            max_tokens: Maximum tokens in response
            max_retries: Maximum number of retries on transient errors
            retry_delay: Initial delay between retries (seconds)
            retry_backoff: Exponential backoff multiplier
        """
        self.model = model
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff

    def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        stream: bool = False,
    ) -> ModelResponse:
        """
        Send a chat completion request with automatic retry.

        Non-transient errors (auth, model not found, bad request) raise
        immediately.

        Args:
            messages: List of message dicts with 'role' and 'content'
            tools: Optional list of tool definitions (OpenAI format)
            stream: Whether to stream the response

        Returns:
            LiteLLM ModelResponse (or a chunk iterator when streaming)
        """
        kwargs: dict[str, Any] = {
            "model": litellm_model_name(self.model),
            "messages": messages,
            "temperature": self.temperature,
            "stream": stream,
        }

        if self.api_key:
            kwargs["api_key"] = self.api_key

        if self.max_tokens is not None:
            kwargs["max_tokens"] = self.max_tokens

        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        delay = self.retry_delay
        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                return completion(**kwargs)
            except (RateLimitError, ServiceUnavailableError, APIConnectionError, Timeout) as e:
                if _is_credit_error(e):
                    raise friendly_llm_error(self.model, e) from e
                last_error = e
            except (
                AuthenticationError,
                NotFoundError,
                BudgetExceededError,
                BadRequestError,
                ContextWindowExceededError,
            ) as e:
                raise friendly_llm_error(self.model, e) from e
            except APIError as e:
                if _is_credit_error(e):
                    raise friendly_llm_error(self.model, e) from e
                last_error = e

            if attempt < self.max_retries:
                logger.warning(
                    "LLM call failed (attempt %d/%d, model %s): %s. Retrying in %.1fs...",
                    attempt + 1,
                    self.max_retries + 1,
                    self.model,
                    last_error,
                    delay,
                )
                time.sleep(delay)
                delay *= self.retry_backoff

        raise friendly_llm_error(self.model, last_error) from last_error

    def stream(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> Iterator[Any]:
        """
        Stream completion chunks.

        Errors raised by LiteLLM while iterating the stream are converted the
        same way as errors raised when opening it.
        """
        response = self.chat(messages, tools=tools, stream=True)
        try:
            yield from response
        except LITELLM_ERRORS as e:
            raise friendly_llm_error(self.model, e) from e
