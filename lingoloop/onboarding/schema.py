"""
Versioned onboarding answer schema.

Each question has a closed set of answers. An answer is a tagged variant keyed
by its question id, so the mapper can dispatch on `question` and every
question is handled explicitly.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

# Bump when an answer shape or a signal table changes. Stored submissions with
# an older version are re-derived from their answers.
ONBOARDING_SCHEMA_VERSION = 1

MAX_LEARNING_STYLES = 3


class Question(str, Enum):
    """Onboarding question ids."""
    MOTIVATION = "motivation"
    LEARNING_STYLES = "learning_styles"
    MEMORY_HABIT = "memory_habit"
    DIFFICULTY = "difficulty"
    GAMIFICATION = "gamification"
    FEEDBACK = "feedback"
    SESSION_STYLE = "session_style"
    TONE = "tone"
    EXPERIENCE = "experience"


REQUIRED_QUESTIONS = (Question.MOTIVATION,)

# Raw keys used by older clients and by the onboarding screens
QUESTION_ALIASES: dict[str, Question] = {
    "learningStyles": Question.LEARNING_STYLES,
    "preferred_learning": Question.LEARNING_STYLES,
    "memoryHabit": Question.MEMORY_HABIT,
    "memory_habits": Question.MEMORY_HABIT,
    "feedback_style": Question.FEEDBACK,
    "sessionStyle": Question.SESSION_STYLE,
}


class MotivationKey(str, Enum):
    TRAVEL = "travel"
    FAMILY = "family"
    STUDY = "study"
    FUN = "fun"
    OTHER = "other"


class LearningStyle(str, Enum):
    VISUAL = "visual"
    AUDITORY = "auditory"
    WRITING = "writing"
    ACTING = "acting"
    READING = "reading"
    KINESTHETIC = "kinesthetic"


class MemoryHabit(str, Enum):
    QUICK = "quick"
    MODERATE = "moderate"
    DEEP = "deep"


class Difficulty(str, Enum):
    EASY = "easy"
    BALANCED = "balanced"
    HARD = "hard"


class Gamification(str, Enum):
    NONE = "none"
    LIGHT = "light"
    FULL = "full"


class FeedbackStyle(str, Enum):
    GENTLE = "gentle"
    DIRECT = "direct"
    DETAILED = "detailed"


class SessionStyle(str, Enum):
    SHORT = "short"
    FOCUSED = "focused"
    DEEP = "deep"


class Tone(str, Enum):
    FRIENDLY = "friendly"
    PROFESSIONAL = "professional"
    CASUAL = "casual"


class Experience(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


_FROZEN = ConfigDict(frozen=True)


class MotivationAnswer(BaseModel):
    model_config = _FROZEN

    question: Literal["motivation"] = "motivation"
    key: MotivationKey
    other_text: str | None = None


class LearningStylesAnswer(BaseModel):
    model_config = _FROZEN

    question: Literal["learning_styles"] = "learning_styles"
    styles: tuple[LearningStyle, ...]


class MemoryHabitAnswer(BaseModel):
    model_config = _FROZEN

    question: Literal["memory_habit"] = "memory_habit"
    value: MemoryHabit


class DifficultyAnswer(BaseModel):
    model_config = _FROZEN

    question: Literal["difficulty"] = "difficulty"
    value: Difficulty


class GamificationAnswer(BaseModel):
    model_config = _FROZEN

    question: Literal["gamification"] = "gamification"
    value: Gamification


class FeedbackAnswer(BaseModel):
    model_config = _FROZEN

    question: Literal["feedback"] = "feedback"
    value: FeedbackStyle


class SessionStyleAnswer(BaseModel):
    model_config = _FROZEN

    question: Literal["session_style"] = "session_style"
    value: SessionStyle


class ToneAnswer(BaseModel):
    model_config = _FROZEN

    question: Literal["tone"] = "tone"
    value: Tone


class ExperienceAnswer(BaseModel):
    model_config = _FROZEN

    question: Literal["experience"] = "experience"
    value: Experience


Answer = Annotated[
    Union[
        MotivationAnswer,
        LearningStylesAnswer,
        MemoryHabitAnswer,
        DifficultyAnswer,
        GamificationAnswer,
        FeedbackAnswer,
        SessionStyleAnswer,
        ToneAnswer,
        ExperienceAnswer,
    ],
    Field(discriminator="question"),
]

# Enum domain of each single-choice question, keyed by question id
CHOICE_DOMAINS: dict[Question, type[Enum]] = {
    Question.MEMORY_HABIT: MemoryHabit,
    Question.DIFFICULTY: Difficulty,
    Question.GAMIFICATION: Gamification,
    Question.FEEDBACK: FeedbackStyle,
    Question.SESSION_STYLE: SessionStyle,
    Question.TONE: Tone,
    Question.EXPERIENCE: Experience,
}


class OnboardingAnswers(BaseModel):
    """Normalized answers in the order the user gave them."""

    model_config = _FROZEN

    answers: tuple[Answer, ...] = ()

    def get(self, question: Question | str) -> Any:
        """Return the answer variant for a question, or None if unanswered."""
        key = Question(question).value
        for answer in self.answers:
            if answer.question == key:
                return answer
        return None

    def choice(self, question: Question) -> str | None:
        """Return the enum value of a single-choice question."""
        answer = self.get(question)
        if answer is None:
            return None
        return answer.value.value

    @property
    def motivation(self) -> MotivationAnswer | None:
        return self.get(Question.MOTIVATION)

    @property
    def learning_styles(self) -> tuple[str, ...]:
        answer = self.get(Question.LEARNING_STYLES)
        if answer is None:
            return ()
        return tuple(style.value for style in answer.styles)

    def to_raw(self) -> dict[str, Any]:
        """Plain question -> value mapping, suitable for storage and re-normalization."""
        raw: dict[str, Any] = {}
        for answer in self.answers:
            if isinstance(answer, MotivationAnswer):
                motivation: dict[str, Any] = {"key": answer.key.value}
                if answer.other_text:
                    motivation["other_text"] = answer.other_text
                raw[answer.question] = motivation
            elif isinstance(answer, LearningStylesAnswer):
                raw[answer.question] = [style.value for style in answer.styles]
            else:
                raw[answer.question] = answer.value.value
        return raw


class OnboardingSignals(BaseModel):
    """Numeric and categorical personalization parameters."""

    model_config = _FROZEN

    challenge_weight: float = 0.5
    session_minutes: int | None = None
    feedback_depth: float | None = None
    gamification_intensity: float | None = None
    learning_style_focus: tuple[str, ...] = ()


class OnboardingPreferences(BaseModel):
    model_config = _FROZEN

    goal: str | None = None
    learning_styles: tuple[str, ...] = ()
    memory_habit: str | None = None
    difficulty: str | None = None
    gamification: str | None = None
    feedback: str | None = None
    session_style: str | None = None
    tone: str | None = None
    experience: str | None = None


class OnboardingSubmission(BaseModel):
    """What gets persisted with the profile."""

    model_config = _FROZEN

    version: int
    answers: OnboardingAnswers
    tags: tuple[str, ...]
    preferences: OnboardingPreferences
    signals: OnboardingSignals
