"""
Onboarding Signal Mapper.

Turns raw onboarding answers into a versioned submission of tags and
personalization signals. Every signal comes from a fixed lookup table so the
mapping stays auditable: the same answers and schema version always produce
the same submission.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from enum import Enum
from typing import Any

from loguru import logger

from lingoloop.errors import ValidationError

from .schema import (
    CHOICE_DOMAINS,
    MAX_LEARNING_STYLES,
    ONBOARDING_SCHEMA_VERSION,
    QUESTION_ALIASES,
    REQUIRED_QUESTIONS,
    DifficultyAnswer,
    ExperienceAnswer,
    FeedbackAnswer,
    GamificationAnswer,
    LearningStyle,
    LearningStylesAnswer,
    MemoryHabitAnswer,
    MotivationAnswer,
    MotivationKey,
    OnboardingAnswers,
    OnboardingPreferences,
    OnboardingSignals,
    OnboardingSubmission,
    Question,
    SessionStyleAnswer,
    ToneAnswer,
)

# =============================================================================
# Signal Tables
# =============================================================================

DEFAULT_CHALLENGE_WEIGHT = 0.5

DIFFICULTY_WEIGHTS: dict[str, float] = {
    "easy": 0.25,
    "balanced": DEFAULT_CHALLENGE_WEIGHT,
    "hard": 0.85,
}

SESSION_MINUTES: dict[str, int] = {
    "short": 8,
    "focused": 22,
    "deep": 45,
}

FEEDBACK_DEPTH: dict[str, float] = {
    "gentle": 0.3,
    "direct": 0.6,
    "detailed": 0.9,
}

GAMIFICATION_WEIGHTS: dict[str, float] = {
    "none": 0.0,
    "light": 0.45,
    "full": 0.9,
}

# Tag namespace per question
TAG_PREFIXES: dict[str, str] = {
    Question.MOTIVATION.value: "goal",
    Question.LEARNING_STYLES.value: "style",
    Question.MEMORY_HABIT.value: "habit",
    Question.DIFFICULTY.value: "difficulty",
    Question.GAMIFICATION.value: "gamification",
    Question.FEEDBACK.value: "feedback",
    Question.SESSION_STYLE.value: "session",
    Question.TONE.value: "tone",
    Question.EXPERIENCE.value: "experience",
}

_CHOICE_VARIANTS = {
    Question.MEMORY_HABIT: MemoryHabitAnswer,
    Question.DIFFICULTY: DifficultyAnswer,
    Question.GAMIFICATION: GamificationAnswer,
    Question.FEEDBACK: FeedbackAnswer,
    Question.SESSION_STYLE: SessionStyleAnswer,
    Question.TONE: ToneAnswer,
    Question.EXPERIENCE: ExperienceAnswer,
}


# =============================================================================
# Normalization
# =============================================================================


def _resolve_question(raw_key: str) -> Question | None:
    if raw_key in QUESTION_ALIASES:
        return QUESTION_ALIASES[raw_key]
    try:
        return Question(raw_key)
    except ValueError:
        return None


def _clean(value: Any) -> str:
    return str(value).strip().lower()


def _domain_error(value: Any, domain: type[Enum]) -> str:
    allowed = ", ".join(member.value for member in domain)
    return f"'{value}' is not one of {allowed}"


def _parse_motivation(value: Any) -> MotivationAnswer:
    if isinstance(value, Mapping):
        key = value.get("key")
        other_text = value.get("other_text", value.get("otherText"))
    else:
        key, other_text = value, None
    if key is None or not str(key).strip():
        raise ValueError("motivation key is required")
    cleaned = _clean(key)
    try:
        motivation_key = MotivationKey(cleaned)
    except ValueError:
        raise ValueError(_domain_error(key, MotivationKey)) from None
    if other_text is not None:
        other_text = str(other_text).strip() or None
    return MotivationAnswer(key=motivation_key, other_text=other_text)


def _parse_learning_styles(value: Any) -> LearningStylesAnswer:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, Iterable):
        raise ValueError("expected a list of learning styles")

    styles: list[LearningStyle] = []
    for item in value:
        try:
            style = LearningStyle(_clean(item))
        except ValueError:
            raise ValueError(_domain_error(item, LearningStyle)) from None
        if style not in styles:
            styles.append(style)

    if len(styles) > MAX_LEARNING_STYLES:
        logger.debug(
            f"Capping learning styles to first {MAX_LEARNING_STYLES} of {len(styles)}"
        )
        styles = styles[:MAX_LEARNING_STYLES]
    return LearningStylesAnswer(styles=tuple(styles))


def _parse_choice(question: Question, value: Any):
    domain = CHOICE_DOMAINS[question]
    try:
        member = domain(_clean(value))
    except ValueError:
        raise ValueError(_domain_error(value, domain)) from None
    return _CHOICE_VARIANTS[question](value=member)


def normalize(raw: Mapping[str, Any]) -> OnboardingAnswers:
    """
    Validate and coerce raw onboarding answers.

    Args:
        raw: question key -> answer value, camelCase or snake_case keys

    Returns:
        OnboardingAnswers in the insertion order of `raw`

    Raises:
        ValidationError: listing every offending field
    """
    if not isinstance(raw, Mapping):
        raise ValidationError({"answers": "expected a mapping of question -> answer"})

    errors: dict[str, str] = {}
    parsed: dict[Question, Any] = {}

    for raw_key, value in raw.items():
        question = _resolve_question(str(raw_key))
        if question is None:
            errors[str(raw_key)] = "unknown question"
            continue
        if question in parsed:
            errors[question.value] = "answered more than once"
            continue
        if value is None:
            continue

        try:
            if question is Question.MOTIVATION:
                parsed[question] = _parse_motivation(value)
            elif question is Question.LEARNING_STYLES:
                parsed[question] = _parse_learning_styles(value)
            else:
                parsed[question] = _parse_choice(question, value)
        except ValueError as exc:
            errors[question.value] = str(exc)

    for question in REQUIRED_QUESTIONS:
        if question not in parsed and question.value not in errors:
            errors[question.value] = "required"

    if errors:
        logger.warning(f"Onboarding answers rejected: {sorted(errors)}")
        raise ValidationError(errors)

    return OnboardingAnswers(answers=tuple(parsed.values()))


# =============================================================================
# Submission
# =============================================================================


def _iter_tags(answers: OnboardingAnswers) -> Iterator[str]:
    for answer in answers.answers:
        prefix = TAG_PREFIXES[answer.question]
        if isinstance(answer, MotivationAnswer):
            yield f"{prefix}:{answer.key.value}"
        elif isinstance(answer, LearningStylesAnswer):
            for style in answer.styles:
                yield f"{prefix}:{style.value}"
        else:
            yield f"{prefix}:{answer.value.value}"


def build_tags(answers: OnboardingAnswers) -> tuple[str, ...]:
    """Namespaced tags in answer order, without duplicates."""
    return tuple(dict.fromkeys(_iter_tags(answers)))


def build_signals(answers: OnboardingAnswers) -> OnboardingSignals:
    """Look up each signal in its table; unanswered questions use defaults."""
    difficulty = answers.choice(Question.DIFFICULTY)
    session_style = answers.choice(Question.SESSION_STYLE)
    feedback = answers.choice(Question.FEEDBACK)
    gamification = answers.choice(Question.GAMIFICATION)

    return OnboardingSignals(
        challenge_weight=DIFFICULTY_WEIGHTS.get(difficulty, DEFAULT_CHALLENGE_WEIGHT),
        session_minutes=SESSION_MINUTES.get(session_style),
        feedback_depth=FEEDBACK_DEPTH.get(feedback),
        gamification_intensity=GAMIFICATION_WEIGHTS.get(gamification),
        learning_style_focus=answers.learning_styles,
    )


def build_preferences(answers: OnboardingAnswers) -> OnboardingPreferences:
    motivation = answers.motivation
    return OnboardingPreferences(
        goal=motivation.key.value if motivation else None,
        learning_styles=answers.learning_styles,
        memory_habit=answers.choice(Question.MEMORY_HABIT),
        difficulty=answers.choice(Question.DIFFICULTY),
        gamification=answers.choice(Question.GAMIFICATION),
        feedback=answers.choice(Question.FEEDBACK),
        session_style=answers.choice(Question.SESSION_STYLE),
        tone=answers.choice(Question.TONE),
        experience=answers.choice(Question.EXPERIENCE),
    )


def build_submission(answers: OnboardingAnswers) -> OnboardingSubmission:
    """Build the versioned submission persisted alongside the profile."""
    return OnboardingSubmission(
        version=ONBOARDING_SCHEMA_VERSION,
        answers=answers,
        tags=build_tags(answers),
        preferences=build_preferences(answers),
        signals=build_signals(answers),
    )


# =============================================================================
# Schema Migration
# =============================================================================


def is_stale(submission: OnboardingSubmission) -> bool:
    """True if the submission was derived under an older schema version."""
    return submission.version < ONBOARDING_SCHEMA_VERSION


def rederive(submission: OnboardingSubmission) -> OnboardingSubmission:
    """Recompute tags and signals from the stored answers under the current schema."""
    answers = normalize(submission.answers.to_raw())
    return build_submission(answers)


def rederive_stale_submissions(sink) -> int:
    """
    Re-derive every stored submission older than the current schema version.

    Args:
        sink: OnboardingSink with iter_stale() and save()

    Returns:
        Number of submissions rewritten
    """
    rewritten = 0
    for user_id, submission in sink.iter_stale(ONBOARDING_SCHEMA_VERSION):
        sink.save(user_id, rederive(submission))
        rewritten += 1
    logger.info(f"Re-derived {rewritten} stale onboarding submissions")
    return rewritten


# =============================================================================
# Multi-select
# =============================================================================


def compute_next_selection(
    selected: list[str],
    key: str,
    multiple: bool = True,
    max_selections: int | None = None,
) -> list[str]:
    """
    Apply one tap on an option to the current selection.

    Toggling a present key removes it and toggling an absent key appends it.
    When the selection grows past `max_selections`, the oldest keys are
    evicted. Single-select questions always return `[key]`.
    """
    if not multiple:
        return [key]
    if key in selected:
        following = [item for item in selected if item != key]
    else:
        following = [*selected, key]
    if max_selections and len(following) > max_selections:
        following = following[len(following) - max_selections:]
    return following
