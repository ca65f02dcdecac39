"""
Interactive model picker.

Walks the user from pricing type to a concrete OpenRouter model id:
free models directly, paid models through a price tier and an optional
provider filter, then a price-sorted shortlist with a manual-entry escape.
"""

from typing import Iterable

import questionary
from questionary import Choice

from openrouter_agent.core.errors import ConfigurationError
from openrouter_agent.core.selector import (
    PRICE_TIERS,
    filter_by_price_tier,
    is_free_model,
    is_text_only,
    model_price_per_1m,
    parse_model_provider,
    sort_by_price,
)
from openrouter_agent.models.catalog import ModelDescriptor

SHORTLIST_SIZE = 30
MANUAL_ENTRY = "__manual__"
SKIP_PROVIDER = "skip"

WIZARD_STYLE = questionary.Style([
    ("qmark", "fg:ansicyan bold"),
    ("question", "bold"),
    ("pointer", "fg:ansicyan bold"),
    ("highlighted", "fg:ansicyan bold"),
    ("selected", "fg:ansigreen"),
    ("separator", "fg:ansibrightblack"),
    ("instruction", "fg:ansibrightblack"),
])


def format_usd(value: float) -> str:
    return f"${value:.2f}"


def price_label(model: ModelDescriptor) -> str:
    price = model_price_per_1m(model)
    return "unknown" if price is None else f"{format_usd(price)}/1M"


def shortlist_choices(models: list[ModelDescriptor]) -> list[Choice]:
    """Cheapest SHORTLIST_SIZE models plus the manual-entry option."""
    choices = [
        Choice(f"{m.id} ({price_label(m)})", value=m.id)
        for m in sort_by_price(models)[:SHORTLIST_SIZE]
    ]
    choices.append(Choice("Enter model id manually", value=MANUAL_ENTRY))
    return choices


def _ask_select(message: str, choices: list[Choice]) -> str | None:
    return questionary.select(
        message,
        choices=choices,
        style=WIZARD_STYLE,
        instruction="(arrow keys to move, enter to select)",
    ).ask()


def run_wizard(models: Iterable[ModelDescriptor]) -> str | None:
    """
    Ask the user to pick a model from the catalog.

    Returns the chosen model id, or None if the user aborted a prompt.

    Raises:
        ConfigurationError: no model matches the chosen filters
    """
    text_models = [m for m in models if is_text_only(m)]

    pricing = _ask_select(
        "Select pricing type",
        [Choice("Free models only", value="free"), Choice("Paid models", value="paid")],
    )
    if pricing is None:
        return None

    if pricing == "free":
        filtered = [m for m in text_models if is_free_model(m, require_pricing=True)]
    else:
        tier = _ask_select(
            "Choose a price tier",
            [Choice(label, value=tier_id) for tier_id, (label, _, _) in PRICE_TIERS.items()],
        )
        if tier is None:
            return None
        filtered = filter_by_price_tier(text_models, tier)

        providers = sorted({parse_model_provider(m.id) for m in filtered})
        provider = _ask_select(
            "Choose a provider (or skip)",
            [Choice("Skip provider filter", value=SKIP_PROVIDER)]
            + [Choice(p, value=p) for p in providers],
        )
        if provider is None:
            return None
        if provider != SKIP_PROVIDER:
            filtered = [m for m in filtered if parse_model_provider(m.id) == provider]

    if not filtered:
        raise ConfigurationError("No models matched your filters. Try a different tier or provider.")

    choice = _ask_select("Select a model", shortlist_choices(filtered))
    if choice is None:
        return None

    if choice == MANUAL_ENTRY:
        manual = questionary.text(
            "Enter model id (e.g., openai/gpt-4o-mini):",
            validate=lambda value: bool(value.strip()) or "Model id is required",
            style=WIZARD_STYLE,
        ).ask()
        return manual.strip() if manual else None

    return choice
