"""
Unit tests for the session plan builder.

Tests lesson ordering, challenge-weighted kind selection, interleaving,
review ordering and determinism.
"""

from datetime import timedelta

import pytest

from lingoloop.cards import FREE_RESPONSE_KINDS, CardKind, FillBlankCard, MultipleChoiceCard
from lingoloop.errors import NotFoundError
from lingoloop.onboarding import OnboardingSignals, build_submission, normalize
from lingoloop.session import PlanConfig, SessionKind, SessionPlan, SessionPlanBuilder, estimate_minutes
from lingoloop.srs import MasteryRecord, MasteryScheduler

USER = "user-1"


@pytest.fixture
def builder(catalog, store, clock):
    return SessionPlanBuilder(catalog, store, clock=clock)


def practice_kinds(plan: SessionPlan) -> list[CardKind]:
    return [card.kind for card in plan.cards if card.kind != CardKind.TEACH]


def seed_record(store, card_id, due_at, streak, now):
    store.upsert_mastery(
        USER,
        card_id,
        MasteryRecord(
            user_id=USER,
            card_id=card_id,
            last_result=streak > 0,
            consecutive_correct=streak,
            interval_seconds=600,
            due_at=due_at,
            updated_at=now,
        ),
    )


class TestLessonPlan:
    """Test lesson plan composition."""

    def test_travel_balanced_starts_with_two_teach_cards(self, builder):
        signals = build_submission(normalize({
            "motivation": {"key": "travel"},
            "difficulty": "balanced",
        })).signals

        plan = builder.build_lesson_plan("greetings", signals, user_id=USER, session_id="s-1")

        assert plan.kind is SessionKind.LEARN
        assert [card.kind for card in plan.cards[:2]] == [CardKind.TEACH, CardKind.TEACH]
        assert plan.teach_count == 2
        assert [card.id for card in plan.cards[:2]] == ["t-hola", "t-gracias"]
        assert len(plan.cards) == 6

    def test_teach_cards_carry_teaching(self, builder):
        plan = builder.build_lesson_plan("greetings", OnboardingSignals(), session_id="s-1")
        first = plan.cards[0]

        assert first.phrase == "hola"
        assert first.translation == "hello"

    def test_seen_teachings_get_no_teach_card(self, builder, store, clock):
        MasteryScheduler(store, clock=clock).record_outcome(USER, "t-hola", True)

        plan = builder.build_lesson_plan("greetings", OnboardingSignals(), user_id=USER, session_id="s-1")

        assert [card.id for card in plan.cards if card.kind == CardKind.TEACH] == ["t-gracias"]

    def test_all_seen_means_no_teach_cards(self, builder, store, clock):
        scheduler = MasteryScheduler(store, clock=clock)
        scheduler.record_outcome(USER, "t-hola", True)
        scheduler.record_outcome(USER, "t-gracias", False)

        plan = builder.build_lesson_plan("greetings", OnboardingSignals(), user_id=USER, session_id="s-1")

        assert plan.teach_count == 0
        assert len(plan.cards) == 4

    def test_unknown_lesson(self, builder):
        with pytest.raises(NotFoundError):
            builder.build_lesson_plan("missing", OnboardingSignals())

    def test_empty_lesson_is_empty_plan(self, builder):
        plan = builder.build_lesson_plan("empty", OnboardingSignals(), session_id="s-1")

        assert plan.is_empty
        assert plan.lesson_id == "empty"

    def test_generates_session_id(self, builder):
        plan = builder.build_lesson_plan("greetings", OnboardingSignals())
        assert len(plan.id) == 32

    def test_same_session_id_same_plan(self, builder):
        signals = OnboardingSignals(challenge_weight=0.6)

        first = builder.build_lesson_plan("greetings", signals, session_id="seed-me")
        second = builder.build_lesson_plan("greetings", signals, session_id="seed-me")

        assert first == second


class TestKindSelection:
    """Test challenge-weighted practice kinds."""

    WEIGHTS = [0.0, 0.25, 0.5, 0.7, 0.85, 1.0]

    def free_ids(self, builder, weight, session_id="s-1"):
        plan = builder.build_lesson_plan(
            "greetings", OnboardingSignals(challenge_weight=weight), session_id=session_id
        )
        return {card.id for card in plan.cards if card.kind in FREE_RESPONSE_KINDS}

    @pytest.mark.parametrize("session_id", ["s-1", "s-2", "another-session"])
    def test_free_response_share_monotonic(self, builder, session_id):
        sets = [self.free_ids(builder, weight, session_id) for weight in self.WEIGHTS]

        for lower, higher in zip(sets, sets[1:]):
            assert lower <= higher

    def test_share_bounds(self, builder):
        # 4 mixable questions: round(0.2 * 4) = 1, round(0.8 * 4) = 3
        assert len(self.free_ids(builder, 0.0)) == 1
        assert len(self.free_ids(builder, 1.0)) == 3

    def test_out_of_range_weight_clamped(self, builder):
        assert self.free_ids(builder, 5.0) == self.free_ids(builder, 1.0)

    def test_low_challenge_prefers_fill_blank(self, builder):
        plan = builder.build_lesson_plan(
            "greetings", OnboardingSignals(challenge_weight=0.25), session_id="s-1"
        )
        free = [kind for kind in practice_kinds(plan) if kind in FREE_RESPONSE_KINDS]

        assert free and set(free) == {CardKind.FILL_BLANK}

    def test_high_challenge_prefers_production(self, builder):
        plan = builder.build_lesson_plan(
            "greetings", OnboardingSignals(challenge_weight=0.85), session_id="s-1"
        )
        free = [kind for kind in practice_kinds(plan) if kind in FREE_RESPONSE_KINDS]

        assert free and set(free) == {CardKind.TRANSLATE_TO_TARGET}

    def test_translate_to_target_asks_for_phrase(self, builder):
        plan = builder.build_lesson_plan(
            "greetings", OnboardingSignals(challenge_weight=1.0), session_id="s-1"
        )
        card = next(c for c in plan.cards if c.kind == CardKind.TRANSLATE_TO_TARGET)

        assert card.expected in {"hola", "gracias"}
        assert card.source in {"hello", "thank you"}

    def test_auditory_focus_prefers_listening(self, builder):
        signals = OnboardingSignals(learning_style_focus=("auditory",))
        plan = builder.build_lesson_plan("greetings", signals, session_id="s-1")
        by_id = {card.id: card for card in plan.cards}

        assert by_id["q-gracias-2"].kind == CardKind.LISTENING
        assert by_id["q-gracias-2"].expected == "gracias"

    def test_single_kind_questions_keep_their_kind(self, store, clock, project_root):
        from lingoloop.content import ContentCatalog

        catalog = ContentCatalog.from_dir(project_root / "lingoloop" / "lessons")
        builder = SessionPlanBuilder(catalog, store, clock=clock)

        for weight in self.WEIGHTS:
            plan = builder.build_lesson_plan(
                "greetings", OnboardingSignals(challenge_weight=weight), session_id="s-1"
            )
            by_id = {card.id: card for card in plan.cards}
            assert by_id["q-gracias-fill"].kind == CardKind.FILL_BLANK


class TestInterleave:
    """Test the same-kind run limit."""

    def mcq(self, card_id):
        return MultipleChoiceCard(
            id=card_id,
            options=({"id": "a", "label": "x"}, {"id": "b", "label": "y"}),
            correct_option_id="a",
        )

    def fill(self, card_id):
        return FillBlankCard(id=card_id, text="___", answer="x")

    def test_breaks_long_runs(self, builder):
        cards = [self.mcq("m1"), self.mcq("m2"), self.mcq("m3"), self.fill("f1"), self.fill("f2")]

        result = builder.interleave(cards)

        assert [card.id for card in result] == ["m1", "m2", "f1", "m3", "f2"]

    def test_keeps_order_when_no_alternative(self, builder):
        cards = [self.mcq("m1"), self.mcq("m2"), self.mcq("m3")]
        assert builder.interleave(cards) == cards

    def test_configurable_limit(self, catalog, store):
        builder = SessionPlanBuilder(catalog, store, PlanConfig(max_same_kind_in_row=1))
        cards = [self.mcq("m1"), self.mcq("m2"), self.fill("f1"), self.fill("f2")]

        result = builder.interleave(cards)

        assert [card.id for card in result] == ["m1", "f1", "m2", "f2"]


class TestReviewPlan:
    """Test due ordering, caps and recall cards."""

    def test_most_overdue_first_then_lowest_streak(self, builder, store, clock):
        t0 = clock()
        seed_record(store, "q-hola-1", t0, 3, t0)  # A
        seed_record(store, "q-hola-2", t0 - timedelta(minutes=5), 0, t0)  # B
        seed_record(store, "q-gracias-1", t0 - timedelta(minutes=1), 1, t0)  # C

        plan = builder.build_review_plan(USER, OnboardingSignals(), now=t0, session_id="r-1")

        assert plan.kind is SessionKind.REVIEW
        assert plan.card_ids == ["q-hola-2", "q-gracias-1", "q-hola-1"]

    def test_equal_due_breaks_tie_on_streak(self, builder, store, clock):
        t0 = clock()
        seed_record(store, "q-hola-1", t0, 4, t0)
        seed_record(store, "q-hola-2", t0, 1, t0)

        plan = builder.build_review_plan(USER, OnboardingSignals(), now=t0, session_id="r-1")

        assert plan.card_ids == ["q-hola-2", "q-hola-1"]

    def test_not_yet_due_excluded(self, builder, store, clock):
        t0 = clock()
        seed_record(store, "q-hola-1", t0 + timedelta(seconds=1), 0, t0)

        plan = builder.build_review_plan(USER, OnboardingSignals(), now=t0, session_id="r-1")

        assert plan.is_empty

    def test_empty_due_set_is_empty_plan(self, builder):
        assert builder.build_review_plan(USER, OnboardingSignals(), session_id="r-1").is_empty

    def test_capped_at_session_limit(self, catalog, store, clock):
        t0 = clock()
        for i, card_id in enumerate(["q-hola-1", "q-hola-2", "q-gracias-1"]):
            seed_record(store, card_id, t0 - timedelta(minutes=i), 0, t0)
        builder = SessionPlanBuilder(catalog, store, PlanConfig(review_session_limit=2), clock=clock)

        plan = builder.build_review_plan(USER, OnboardingSignals(), session_id="r-1")

        assert plan.card_ids == ["q-gracias-1", "q-hola-2"]

    def test_missing_catalog_items_skipped(self, builder, store, clock):
        t0 = clock()
        seed_record(store, "retired-item", t0 - timedelta(hours=1), 0, t0)
        seed_record(store, "q-hola-1", t0, 0, t0)

        plan = builder.build_review_plan(USER, OnboardingSignals(), now=t0, session_id="r-1")

        assert plan.card_ids == ["q-hola-1"]

    def test_due_teaching_becomes_recall_card(self, builder, store, clock):
        t0 = clock()
        seed_record(store, "t-gracias", t0, 1, t0)

        plan = builder.build_review_plan(USER, OnboardingSignals(), now=t0, session_id="r-1")
        card = plan.cards[0]

        assert card.kind == CardKind.TRANSLATE_FROM_TARGET
        assert card.source == "gracias"
        assert card.expected == "thank you"

    def test_other_users_items_ignored(self, builder, store, clock):
        t0 = clock()
        seed_record(store, "q-hola-1", t0, 0, t0)

        assert builder.build_review_plan("someone-else", OnboardingSignals(), now=t0).is_empty


class TestEstimateMinutes:
    def test_empty_plan(self):
        assert estimate_minutes(SessionPlan(id="x", kind=SessionKind.REVIEW)) == 0

    def test_rounds_up(self, builder):
        plan = builder.build_lesson_plan(
            "greetings", OnboardingSignals(challenge_weight=0.0), session_id="s-1"
        )
        # 2 teach (60s) + 3 mcq (90s) + 1 fill blank (45s) = 195s
        assert estimate_minutes(plan) == 4


class TestReviewPacing:
    """Test the session_minutes time budget on review plans."""

    @pytest.fixture
    def paced_builder(self, store, clock):
        from lingoloop.content import ContentCatalog, Lesson, TeachingItem

        teachings = tuple(
            TeachingItem(id=f"t-{i:02d}", phrase=f"palabra {i}", translation=f"word {i}")
            for i in range(20)
        )
        catalog = ContentCatalog([Lesson(id="words", items=teachings)])
        t0 = clock()
        for i, teaching in enumerate(teachings):
            seed_record(store, teaching.id, t0 - timedelta(minutes=20 - i), 0, t0)
        return SessionPlanBuilder(catalog, store, clock=clock)

    def review(self, builder, minutes):
        return builder.build_review_plan(
            USER, OnboardingSignals(session_minutes=minutes), session_id="r-1"
        )

    def test_short_session_fits_budget(self, paced_builder):
        plan = self.review(paced_builder, 8)

        # 8 min less 20% = 384s; recall cards take 60s each
        assert len(plan.cards) == 6
        assert plan.card_ids == [f"t-{i:02d}" for i in range(6)]

    def test_long_session_still_capped_by_limit(self, paced_builder):
        assert len(self.review(paced_builder, 45).cards) == 20

    def test_shorter_budget_never_more_cards(self, paced_builder):
        counts = [len(self.review(paced_builder, minutes).cards) for minutes in (8, 22, 45)]

        assert counts == sorted(counts)
        assert counts[0] < counts[-1]

    def test_tiny_budget_keeps_one_card(self, paced_builder):
        assert self.review(paced_builder, 1).card_ids == ["t-00"]

    def test_no_pacing_signal_uses_limit_only(self, paced_builder):
        assert len(self.review(paced_builder, None).cards) == 20
