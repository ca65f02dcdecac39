"""
Reduction of full-text stream fragments into deltas.

The provider re-sends the whole accumulated text for an item every time it
grows, and may re-send an item unchanged. The reducer keeps the last text seen
per id and reports only what is new.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from openrouter_agent.models.stream import MessageFragment, ReasoningFragment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextUpdate:
    """The result of applying one fragment that changed an item's text."""

    id: str
    delta: str
    accumulated: str
    replaced: bool = False


class TextChannel:
    """Accumulated text per item id for a single kind of fragment."""

    def __init__(self, name: str):
        self.name = name
        self._accumulated: dict[str, str] = {}
        self._last_id: str | None = None

    def apply(self, item_id: str, text_so_far: str) -> TextUpdate | None:
        """
        Record the latest full text for ``item_id``.

        Returns None for a replayed fragment. If the new text does not extend
        the stored text, it replaces it wholesale and the delta is the entire
        new text.
        """
        previous = self._accumulated.get(item_id, "")
        if text_so_far == previous:
            self._accumulated.setdefault(item_id, text_so_far)
            return None

        self._accumulated[item_id] = text_so_far
        self._last_id = item_id

        if text_so_far.startswith(previous):
            return TextUpdate(item_id, text_so_far[len(previous):], text_so_far)

        logger.warning(
            "%s item %s was rewritten instead of extended (%d -> %d chars); "
            "treating it as a full replacement",
            self.name,
            item_id,
            len(previous),
            len(text_so_far),
        )
        return TextUpdate(item_id, text_so_far, text_so_far, replaced=True)

    def text(self, item_id: str) -> str:
        return self._accumulated.get(item_id, "")

    @property
    def latest(self) -> str:
        """Text of the most recently changed item, or "" if nothing changed."""
        if self._last_id is None:
            return ""
        return self._accumulated[self._last_id]


class StreamReducer:
    """
    Per-call reducer for message and reasoning fragments.

    Reasoning is tracked in its own channel so it never leaks into the
    final-answer transcript.
    """

    def __init__(self) -> None:
        self.messages = TextChannel("message")
        self.reasoning = TextChannel("reasoning")

    def apply_message(self, fragment: MessageFragment) -> TextUpdate | None:
        return self.messages.apply(fragment.id, fragment.text_so_far)

    def apply_reasoning(self, fragment: ReasoningFragment) -> TextUpdate | None:
        return self.reasoning.apply(fragment.id, fragment.text_so_far)

    @property
    def final_text(self) -> str:
        """The answer text accumulated from fragments ("" if none arrived)."""
        return self.messages.latest
