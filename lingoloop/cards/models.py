"""
Card models.

A card is a tagged union keyed by `kind`. The card id is the id of the
underlying content item, so mastery is keyed the same way whichever kind the
item was delivered as.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from . import CardKind


class _BaseCard(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    prompt: str = ""
    teaching_id: str | None = None


class TeachCard(_BaseCard):
    """Introduces a new phrase; viewing it resolves the card."""

    kind: Literal[CardKind.TEACH] = CardKind.TEACH
    phrase: str
    translation: str | None = None
    usage_note: str | None = None
    emoji: str | None = None


class ChoiceOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str


class MultipleChoiceCard(_BaseCard):
    kind: Literal[CardKind.MULTIPLE_CHOICE] = CardKind.MULTIPLE_CHOICE
    options: tuple[ChoiceOption, ...]
    correct_option_id: str
    explanation: str | None = None
    source_text: str | None = None


class FillBlankCard(_BaseCard):
    kind: Literal[CardKind.FILL_BLANK] = CardKind.FILL_BLANK
    text: str
    answer: str
    hint: str | None = None


class TranslateCard(_BaseCard):
    kind: Literal[CardKind.TRANSLATE_TO_TARGET, CardKind.TRANSLATE_FROM_TARGET]
    source: str
    expected: str
    hint: str | None = None


class ListeningCard(_BaseCard):
    kind: Literal[CardKind.LISTENING] = CardKind.LISTENING
    audio_url: str | None = None
    expected: str
    translation: str | None = None


Card = Annotated[
    Union[TeachCard, MultipleChoiceCard, FillBlankCard, TranslateCard, ListeningCard],
    Field(discriminator="kind"),
]
