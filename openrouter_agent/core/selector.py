"""
Model selection heuristics over a catalog snapshot.

Everything here is pure: no network access except in pick_free_model_id()
when it is not handed a catalog.
"""

from __future__ import annotations

import logging
from typing import Iterable

from openrouter_agent.models.catalog import (
    FALLBACK_MODEL_ID,
    ModelDescriptor,
    SelectionCriteria,
)

logger = logging.getLogger(__name__)

# Blended USD price per 1M tokens, [min, max)
PRICE_TIERS: dict[str, tuple[str, float, float]] = {
    "minimal": ("Minimal (<$5 / 1M tokens)", 0.0, 5.0),
    "basic": ("Basic ($5-$10 / 1M tokens)", 5.0, 10.0),
    "full": ("Full ($10-$20 / 1M tokens)", 10.0, 20.0),
}


def is_text_only(model: ModelDescriptor) -> bool:
    """True when both input and output modalities are exactly {"text"}."""
    if model.input_modalities is None or model.output_modalities is None:
        return False
    return model.input_modalities == {"text"} and model.output_modalities == {"text"}


def is_free_model(model: ModelDescriptor, require_pricing: bool = False) -> bool:
    """
    Check that every known price is zero.

    Missing prices count as free unless ``require_pricing`` is set, in which
    case prompt and completion prices must be present.
    """
    pricing = model.pricing
    if pricing is None:
        return not require_pricing
    if require_pricing and (pricing.prompt is None or pricing.completion is None):
        return False
    prices = (pricing.prompt, pricing.completion, pricing.request)
    return all(p == 0 for p in prices if p is not None)


def model_price_per_1m(model: ModelDescriptor) -> float | None:
    """Blended (prompt + completion) / 2 price per 1M tokens, or None if unknown."""
    pricing = model.pricing
    if pricing is None or pricing.prompt is None or pricing.completion is None:
        return None
    return (pricing.prompt + pricing.completion) * 1_000_000 / 2


def parse_model_provider(model_id: str) -> str:
    """Provider prefix of a model id ("openai/gpt-4o" -> "openai")."""
    provider, sep, _ = model_id.partition("/")
    return provider if sep else "unknown"


def filter_by_price_tier(models: Iterable[ModelDescriptor], tier: str) -> list[ModelDescriptor]:
    """Keep models whose blended price falls in the tier; unknown prices are dropped."""
    models = list(models)
    if tier not in PRICE_TIERS:
        return models
    _, low, high = PRICE_TIERS[tier]
    result = []
    for m in models:
        price = model_price_per_1m(m)
        if price is not None and low <= price < high:
            result.append(m)
    return result


def sort_by_price(models: Iterable[ModelDescriptor]) -> list[ModelDescriptor]:
    """Cheapest first; models with unknown prices go last, in original order."""

    def key(m: ModelDescriptor) -> tuple[int, float]:
        price = model_price_per_1m(m)
        return (1, 0.0) if price is None else (0, price)

    return sorted(models, key=key)


def _passes_filters(model: ModelDescriptor, criteria: SelectionCriteria) -> bool:
    if criteria.text_only and not is_text_only(model):
        return False
    if criteria.pricing == "free" and not is_free_model(model):
        return False
    if criteria.pricing == "paid" and is_free_model(model):
        return False
    if (model.context_length or 0) < criteria.min_context_length:
        return False
    if not criteria.allow_moderated and model.moderated:
        return False
    return True


def select_model(models: Iterable[ModelDescriptor], criteria: SelectionCriteria) -> str:
    """
    Filter then rank candidates and return the winning model id.

    Never raises for "no match": the fallback id is returned instead.
    """
    survivors = [m for m in models if _passes_filters(m, criteria)]
    if not survivors:
        logger.info("No model matched the selection criteria; using %s", FALLBACK_MODEL_ID)
        return FALLBACK_MODEL_ID

    for needle in criteria.preferred_id_substrings:
        needle = needle.lower()
        hit = next((m for m in survivors if needle in m.id.lower()), None)
        if hit is not None:
            return hit.id

    target = criteria.target_context_length
    if target is not None:
        ranked = sorted(
            survivors,
            key=lambda m: (abs((m.context_length or 0) - target), -(m.context_length or 0)),
        )
    else:
        ranked = sorted(survivors, key=lambda m: -(m.context_length or 0))
    return ranked[0].id


def pick_free_model_id(
    catalog: Iterable[ModelDescriptor] | None = None,
    min_context: int = 0,
    target_context: int | None = None,
    allow_moderated: bool = True,
    prefer_id_includes: list[str] | None = None,
) -> str:
    """
    Pick a free model, fetching the catalog if none is given.

    Falls back to openrouter/auto when nothing free qualifies.
    """
    if catalog is None:
        from openrouter_agent.core.catalog import fetch_catalog

        catalog = fetch_catalog()

    criteria = SelectionCriteria(
        min_context_length=min_context,
        target_context_length=target_context,
        allow_moderated=allow_moderated,
        preferred_id_substrings=(
            ["free", "trial"] if prefer_id_includes is None else prefer_id_includes
        ),
        pricing="free",
    )
    return select_model(catalog, criteria)
