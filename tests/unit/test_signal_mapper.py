"""
Unit tests for the onboarding signal mapper.

Tests normalization, submission building, the multi-select toggle law and
schema re-derivation.
"""

import pytest

from lingoloop.errors import ValidationError
from lingoloop.onboarding import (
    HOME_ROUTE,
    ONBOARDING_SCHEMA_VERSION,
    ONBOARDING_WELCOME_ROUTE,
    Question,
    build_submission,
    compute_next_selection,
    is_stale,
    normalize,
    rederive,
    rederive_stale_submissions,
    resolve_post_auth_destination,
)
from lingoloop.onboarding.signal_mapper import DIFFICULTY_WEIGHTS


class TestNormalize:
    """Test validation and coercion of raw answers."""

    def test_accepts_camel_case_keys(self):
        answers = normalize({
            "motivation": {"key": "travel"},
            "learningStyles": ["visual"],
            "sessionStyle": "short",
        })

        assert answers.learning_styles == ("visual",)
        assert answers.choice(Question.SESSION_STYLE) == "short"

    def test_coerces_case_and_whitespace(self):
        answers = normalize({"motivation": {"key": " Travel "}, "difficulty": "HARD"})

        assert answers.motivation.key.value == "travel"
        assert answers.choice(Question.DIFFICULTY) == "hard"

    def test_plain_string_motivation(self):
        answers = normalize({"motivation": "family"})
        assert answers.motivation.key.value == "family"

    def test_other_text_kept(self):
        answers = normalize({"motivation": {"key": "other", "otherText": "  my partner  "}})
        assert answers.motivation.other_text == "my partner"

    def test_learning_styles_deduplicated_and_capped(self):
        answers = normalize({
            "motivation": {"key": "study"},
            "learning_styles": ["visual", "auditory", "visual", "reading", "writing"],
        })

        assert answers.learning_styles == ("visual", "auditory", "reading")

    def test_missing_motivation_is_required(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize({"difficulty": "easy"})

        assert "motivation" in exc_info.value.fields

    def test_none_motivation_is_required(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize({"motivation": None})

        assert exc_info.value.fields["motivation"] == "required"

    def test_unknown_motivation_key(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize({"motivation": {"key": "business"}})

        assert "business" in exc_info.value.fields["motivation"]

    def test_lists_every_offending_field(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize({
                "motivation": {"key": "travel"},
                "difficulty": "extreme",
                "tone": "sarcastic",
                "favourite_colour": "blue",
            })

        assert set(exc_info.value.fields) == {"difficulty", "tone", "favourite_colour"}

    def test_unknown_learning_style(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize({"motivation": "fun", "learning_styles": ["visual", "telepathic"]})

        assert "learning_styles" in exc_info.value.fields

    def test_same_question_twice_via_alias(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize({
                "motivation": "fun",
                "learning_styles": ["visual"],
                "learningStyles": ["auditory"],
            })

        assert "learning_styles" in exc_info.value.fields

    def test_optional_none_answers_dropped(self):
        answers = normalize({"motivation": "fun", "tone": None})
        assert answers.get(Question.TONE) is None

    def test_rejects_non_mapping(self):
        with pytest.raises(ValidationError):
            normalize(["motivation", "travel"])


class TestBuildSubmission:
    """Test tags and signal lookup tables."""

    def test_end_to_end_travel_balanced(self):
        submission = build_submission(normalize({
            "motivation": {"key": "travel"},
            "difficulty": "balanced",
        }))

        assert "goal:travel" in submission.tags
        assert submission.signals.challenge_weight == DIFFICULTY_WEIGHTS["balanced"] == 0.5
        assert submission.version == ONBOARDING_SCHEMA_VERSION

    def test_tags_follow_answer_order(self):
        submission = build_submission(normalize({
            "motivation": {"key": "travel"},
            "difficulty": "hard",
            "learning_styles": ["visual", "auditory"],
            "tone": "casual",
        }))

        assert submission.tags == (
            "goal:travel",
            "difficulty:hard",
            "style:visual",
            "style:auditory",
            "tone:casual",
        )

    def test_is_deterministic(self):
        raw = {
            "motivation": {"key": "study"},
            "learning_styles": ["reading", "writing"],
            "memory_habit": "deep",
            "difficulty": "easy",
            "gamification": "light",
            "feedback": "detailed",
            "session_style": "focused",
            "tone": "professional",
            "experience": "intermediate",
        }

        first = build_submission(normalize(raw)).model_dump_json()
        second = build_submission(normalize(dict(raw))).model_dump_json()

        assert first == second

    def test_challenge_weight_monotonic(self):
        weights = [
            build_submission(normalize({"motivation": "fun", "difficulty": level})).signals.challenge_weight
            for level in ("easy", "balanced", "hard")
        ]

        assert weights == sorted(weights)
        assert weights == [0.25, 0.5, 0.85]

    def test_absent_difficulty_defaults_to_mid(self):
        submission = build_submission(normalize({"motivation": "fun"}))
        assert submission.signals.challenge_weight == 0.5

    @pytest.mark.parametrize(
        "question,value,signal,expected",
        [
            ("session_style", "short", "session_minutes", 8),
            ("session_style", "focused", "session_minutes", 22),
            ("session_style", "deep", "session_minutes", 45),
            ("feedback", "gentle", "feedback_depth", 0.3),
            ("feedback", "detailed", "feedback_depth", 0.9),
            ("gamification", "none", "gamification_intensity", 0.0),
            ("gamification", "light", "gamification_intensity", 0.45),
            ("gamification", "full", "gamification_intensity", 0.9),
        ],
    )
    def test_signal_tables(self, question, value, signal, expected):
        submission = build_submission(normalize({"motivation": "fun", question: value}))
        assert getattr(submission.signals, signal) == expected

    def test_unanswered_signals_are_none(self):
        signals = build_submission(normalize({"motivation": "fun"})).signals

        assert signals.session_minutes is None
        assert signals.feedback_depth is None
        assert signals.gamification_intensity is None
        assert signals.learning_style_focus == ()

    def test_preferences_mirror_answers(self):
        submission = build_submission(normalize({
            "motivation": {"key": "family"},
            "learning_styles": ["acting"],
            "experience": "beginner",
        }))

        assert submission.preferences.goal == "family"
        assert submission.preferences.learning_styles == ("acting",)
        assert submission.preferences.experience == "beginner"


class TestComputeNextSelection:
    """Test the multi-select toggle law."""

    def test_appends_absent_key(self):
        assert compute_next_selection(["a"], "b") == ["a", "b"]

    def test_removes_present_key(self):
        assert compute_next_selection(["a", "b", "c"], "b") == ["a", "c"]

    def test_evicts_oldest_past_cap(self):
        assert compute_next_selection(["a", "b"], "c", max_selections=2) == ["b", "c"]

    def test_single_select_replaces(self):
        assert compute_next_selection(["a"], "b", multiple=False) == ["b"]

    def test_does_not_mutate_input(self):
        selected = ["a"]
        compute_next_selection(selected, "b")
        assert selected == ["a"]


class TestSchemaVersion:
    """Test stale submission detection and re-derivation."""

    @pytest.fixture
    def stale(self):
        current = build_submission(normalize({"motivation": "travel", "difficulty": "hard"}))
        return current.model_copy(update={"version": ONBOARDING_SCHEMA_VERSION - 1, "tags": ()})

    def test_is_stale(self, stale):
        assert is_stale(stale) is True
        assert is_stale(rederive(stale)) is False

    def test_rederive_recomputes_from_answers(self, stale):
        fresh = rederive(stale)

        assert fresh.version == ONBOARDING_SCHEMA_VERSION
        assert fresh.tags == ("goal:travel", "difficulty:hard")
        assert fresh.signals.challenge_weight == 0.85

    def test_batch_rederive(self, store, stale):
        current = build_submission(normalize({"motivation": "fun"}))
        store.save("old-user", stale)
        store.save("new-user", current)

        assert rederive_stale_submissions(store) == 1
        assert store.load("old-user").version == ONBOARDING_SCHEMA_VERSION
        assert store.load("new-user") == current


class TestPostAuthRouting:
    """Every entry path resolves the destination the same way."""

    def test_incomplete_goes_to_welcome(self):
        assert resolve_post_auth_destination(False) == ONBOARDING_WELCOME_ROUTE

    def test_complete_goes_home(self):
        assert resolve_post_auth_destination(True) == HOME_ROUTE
