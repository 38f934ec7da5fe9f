"""
Lesson content models.

A lesson is an ordered sequence of content items:
- TeachingItem: one concept (a target-language phrase and its translation)
- QuestionItem: a practice item for a teaching, deliverable as any of the
  card kinds it lists
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lingoloop.cards import PRACTICE_KINDS, CardKind, ChoiceOption


class TeachingItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["teaching"] = "teaching"
    id: str
    phrase: str
    translation: str
    usage_note: str | None = None
    emoji: str | None = None
    audio_url: str | None = None


class QuestionItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["question"] = "question"
    id: str
    teaching_id: str
    prompt: str = ""
    kinds: tuple[CardKind, ...]

    # Target-language text and its translation (translate + listening)
    phrase: str | None = None
    translation: str | None = None
    # Multiple choice
    options: tuple[ChoiceOption, ...] = ()
    correct_option_id: str | None = None
    explanation: str | None = None
    # Fill blank
    text: str | None = None
    answer: str | None = None
    hint: str | None = None
    audio_url: str | None = None

    @model_validator(mode="after")
    def _check_payloads(self) -> "QuestionItem":
        if not self.kinds:
            raise ValueError(f"Question '{self.id}' offers no card kinds")
        for kind in self.kinds:
            if kind not in PRACTICE_KINDS:
                raise ValueError(f"Question '{self.id}' cannot be delivered as {kind.value}")
            if kind is CardKind.MULTIPLE_CHOICE:
                option_ids = {option.id for option in self.options}
                if len(self.options) < 2 or self.correct_option_id not in option_ids:
                    raise ValueError(f"Question '{self.id}' has invalid choice options")
            elif kind is CardKind.FILL_BLANK:
                if not (self.text and self.answer):
                    raise ValueError(f"Question '{self.id}' is missing blank text or answer")
            elif kind is CardKind.LISTENING:
                if not self.phrase:
                    raise ValueError(f"Question '{self.id}' is missing the phrase to hear")
            elif not (self.phrase and self.translation):
                raise ValueError(f"Question '{self.id}' is missing translation text")
        return self


ContentItem = Annotated[Union[TeachingItem, QuestionItem], Field(discriminator="type")]


class Lesson(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    order: int = 0
    items: tuple[ContentItem, ...] = ()

    @property
    def teachings(self) -> tuple[TeachingItem, ...]:
        return tuple(item for item in self.items if isinstance(item, TeachingItem))

    @property
    def questions(self) -> tuple[QuestionItem, ...]:
        return tuple(item for item in self.items if isinstance(item, QuestionItem))
