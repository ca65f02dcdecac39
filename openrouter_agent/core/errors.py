"""
Error taxonomy and error-payload normalization.

OpenRouter frequently reports failures as JSON strings tucked inside an
exception's body or message, sometimes quoted a second time. normalize_error()
digs the useful parts out of whatever it is given and never raises.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# How many available_providers entries to show before summarizing the rest
PROVIDER_DISPLAY_LIMIT = 12


class AgentError(Exception):
    """Base class for all openrouter-agent errors."""


class NetworkFailure(AgentError):
    """The catalog or provider endpoint was unreachable or answered non-2xx."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ProviderReportedError(AgentError):
    """
    User-friendly provider error with actionable guidance.

    ``body`` keeps the raw error payload (as a string) so it can be
    normalized for display.
    """

    def __init__(self, message: str, original: Exception | None = None):
        self.original = original
        self.body = _body_text(getattr(original, "body", None))
        super().__init__(message)


class MalformedFragment(AgentError):
    """Tool-call arguments in a stream fragment are not valid JSON."""

    def __init__(self, fragment_id: str, raw: str, reason: str = ""):
        self.fragment_id = fragment_id
        self.raw = raw
        detail = f": {reason}" if reason else ""
        super().__init__(f"Malformed tool-call arguments in fragment {fragment_id}{detail}")


class OperationCancelled(AgentError):
    """A cancellation signal was set while the operation was in flight."""


class ConfigurationError(AgentError):
    """Required configuration is missing or invalid."""


def _body_text(body: Any) -> str | None:
    if isinstance(body, str):
        return body
    if isinstance(body, Mapping):
        try:
            return json.dumps(body)
        except (TypeError, ValueError):
            return None
    return None


class ErrorSummary(BaseModel):
    """Structured, display-ready view of a failure."""

    message: str
    code: str | None = None
    requested_providers: list[str] = Field(default_factory=list)
    available_providers: list[str] = Field(default_factory=list)
    available_overflow: int = 0
    raw: str | None = None

    def render(self) -> str:
        if self.code is not None:
            lines = [f"{self.message} (code {self.code})"]
        else:
            lines = [self.message]
        if self.requested_providers:
            lines.append(f"requested_providers: {', '.join(self.requested_providers)}")
        if self.available_providers:
            more = f" (+{self.available_overflow} more)" if self.available_overflow else ""
            lines.append(f"available_providers: {', '.join(self.available_providers)}{more}")
        return "\n".join(lines)


def _lookup(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)


def _candidates(value: Any) -> list[Any]:
    """Raw-string candidates in priority order: body, message, error.message."""
    if isinstance(value, str):
        return [value]
    message = _lookup(value, "message")
    if message is None and isinstance(value, BaseException) and value.args:
        message = str(value)
    return [
        _lookup(value, "body"),
        message,
        _lookup(_lookup(value, "error"), "message"),
    ]


def _coerce(value: Any) -> str:
    message = _lookup(value, "message")
    if message:
        return str(message)
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return str(value) or type(value).__name__


def _looks_like_json(text: str) -> bool:
    return (text.startswith("{") and text.endswith("}")) or (
        text.startswith('"{') and text.endswith('}"')
    )


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def _safe_str(value: Any) -> str:
    try:
        return str(value) or type(value).__name__
    except Exception:
        return type(value).__name__


def normalize_error(value: Any) -> ErrorSummary:
    """Turn an arbitrary failure value into an ErrorSummary. Never raises."""
    try:
        return _normalize(value)
    except Exception as e:
        logger.debug("Could not normalize %s: %s", type(value).__name__, e)
        return ErrorSummary(message=_safe_str(value))


def _normalize(value: Any) -> ErrorSummary:
    raw = next((c for c in _candidates(value) if isinstance(c, str)), None)
    if raw is None:
        return ErrorSummary(message=_coerce(value))

    trimmed = raw.strip()
    if not _looks_like_json(trimmed):
        return ErrorSummary(message=raw, raw=raw)

    try:
        json_text = json.loads(trimmed) if trimmed.startswith('"') else trimmed
        parsed = json.loads(json_text)
    except (TypeError, ValueError):
        return ErrorSummary(message=raw, raw=raw)

    error = parsed.get("error") if isinstance(parsed, dict) else None
    if not isinstance(error, dict) or not error.get("message"):
        return ErrorSummary(message=json.dumps(parsed, separators=(",", ":")), raw=raw)

    metadata = error.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    available = _string_list(metadata.get("available_providers"))
    code = error.get("code")
    return ErrorSummary(
        message=str(error["message"]),
        code=str(code) if code is not None else None,
        requested_providers=_string_list(metadata.get("requested_providers")),
        available_providers=available[:PROVIDER_DISPLAY_LIMIT],
        available_overflow=max(0, len(available) - PROVIDER_DISPLAY_LIMIT),
        raw=raw,
    )


def format_error(value: Any) -> str:
    """Human-readable multi-line summary of a failure."""
    try:
        return normalize_error(value).render()
    except Exception:
        return repr(value)
