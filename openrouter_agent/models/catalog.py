"""
Model catalog models.

OpenRouter's /models payload is loosely typed: prices arrive as strings,
fields go missing, and architecture metadata is optional. Everything is
normalized here so nothing past this module sees raw payload dicts.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterator, Literal, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

# Returned by selection when no candidate survives filtering
FALLBACK_MODEL_ID = "openrouter/auto"


def as_number(value: Any) -> float | None:
    """Coerce a price-like value to a finite float, or None if it isn't one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _as_int(value: Any) -> int | None:
    number = as_number(value)
    if number is None:
        return None
    return int(number)


def _as_modalities(value: Any) -> frozenset[str] | None:
    if not isinstance(value, (list, tuple)):
        return None
    return frozenset(str(v).strip().lower() for v in value if isinstance(v, str))


class ModelPricing(BaseModel):
    """Per-token (or per-request/per-image) USD prices. None means unknown."""

    model_config = ConfigDict(frozen=True)

    prompt: float | None = None
    completion: float | None = None
    request: float | None = None
    image: float | None = None

    @field_validator("prompt", "completion", "request", "image", mode="before")
    @classmethod
    def _coerce_price(cls, value: Any) -> float | None:
        return as_number(value)


class ModelDescriptor(BaseModel):
    """A normalized entry of the model catalog."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str | None = None
    description: str | None = None
    context_length: int | None = None
    pricing: ModelPricing | None = None
    moderated: bool | None = None
    input_modalities: frozenset[str] | None = None
    output_modalities: frozenset[str] | None = None

    @field_validator("context_length", mode="before")
    @classmethod
    def _coerce_context(cls, value: Any) -> int | None:
        return _as_int(value)

    @classmethod
    def from_payload(cls, raw: Any) -> ModelDescriptor | None:
        """
        Build a descriptor from one raw /models entry.

        Returns None for entries without a usable string id.
        """
        if not isinstance(raw, Mapping):
            return None
        model_id = raw.get("id")
        if not isinstance(model_id, str) or not model_id.strip():
            return None

        pricing_raw = raw.get("pricing")
        pricing = ModelPricing.model_validate(
            {k: pricing_raw.get(k) for k in ("prompt", "completion", "request", "image")}
        ) if isinstance(pricing_raw, Mapping) else None

        top_provider = raw.get("top_provider")
        moderated = None
        if isinstance(top_provider, Mapping) and isinstance(top_provider.get("is_moderated"), bool):
            moderated = top_provider["is_moderated"]

        architecture = raw.get("architecture")
        input_modalities = output_modalities = None
        if isinstance(architecture, Mapping):
            input_modalities = _as_modalities(architecture.get("input_modalities"))
            output_modalities = _as_modalities(architecture.get("output_modalities"))

        name = raw.get("name")
        description = raw.get("description")
        return cls(
            id=model_id,
            name=name if isinstance(name, str) else None,
            description=description if isinstance(description, str) else None,
            context_length=raw.get("context_length"),
            pricing=pricing,
            moderated=moderated,
            input_modalities=input_modalities,
            output_modalities=output_modalities,
        )


class ModelCatalog:
    """An ordered, read-only snapshot of model descriptors."""

    def __init__(self, models: Sequence[ModelDescriptor] = ()):
        self._models: tuple[ModelDescriptor, ...] = tuple(models)

    @classmethod
    def from_payload(cls, payload: Any) -> ModelCatalog:
        """Normalize a /models response body ({"data": [...]})."""
        data = payload.get("data") if isinstance(payload, Mapping) else None
        if not isinstance(data, list):
            return cls()

        models: list[ModelDescriptor] = []
        for entry in data:
            descriptor = ModelDescriptor.from_payload(entry)
            if descriptor is None:
                logger.debug("Skipping catalog entry without id: %r", entry)
                continue
            models.append(descriptor)
        return cls(models)

    def get(self, model_id: str) -> ModelDescriptor | None:
        return next((m for m in self._models if m.id == model_id), None)

    @property
    def models(self) -> tuple[ModelDescriptor, ...]:
        return self._models

    def __iter__(self) -> Iterator[ModelDescriptor]:
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)


class SelectionCriteria(BaseModel):
    """Constraints for automatic model selection."""

    min_context_length: int = Field(default=0, ge=0)
    target_context_length: int | None = Field(default=None, ge=0)
    allow_moderated: bool = True
    preferred_id_substrings: list[str] = Field(
        default_factory=lambda: ["free", "trial"],
        description="Tried in order; the first substring with any match wins",
    )
    pricing: Literal["free", "paid", "any"] = "free"
    text_only: bool = False
