"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from lingoloop.cards import CardKind, ChoiceOption  # noqa: E402
from lingoloop.content import ContentCatalog, Lesson, QuestionItem, TeachingItem  # noqa: E402
from lingoloop.srs import InMemoryStateStore  # noqa: E402

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite database)")
    config.addinivalue_line("markers", "smoke: CLI smoke tests (subprocess)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStateStore()


def make_question(question_id: str, teaching_id: str, kinds, phrase: str, translation: str, **extra):
    """A question offering the given kinds, with every payload filled in."""
    return QuestionItem(
        id=question_id,
        teaching_id=teaching_id,
        kinds=tuple(CardKind(kind) for kind in kinds),
        phrase=phrase,
        translation=translation,
        options=(
            ChoiceOption(id="a", label=translation),
            ChoiceOption(id="b", label="something else"),
            ChoiceOption(id="c", label="not this"),
        ),
        correct_option_id="a",
        text=f"___ ({translation})",
        answer=phrase,
        **extra,
    )


@pytest.fixture
def greetings_lesson():
    """A lesson with 2 new concepts and 4 practice questions."""
    mixed = ("mcq", "fill_blank", "translate_from_target", "translate_to_target")
    return Lesson(
        id="greetings",
        title="Greetings",
        order=1,
        items=(
            TeachingItem(id="t-hola", phrase="hola", translation="hello"),
            TeachingItem(id="t-gracias", phrase="gracias", translation="thank you"),
            make_question("q-hola-1", "t-hola", mixed, "hola", "hello"),
            make_question("q-hola-2", "t-hola", mixed, "hola", "hello"),
            make_question("q-gracias-1", "t-gracias", mixed, "gracias", "thank you"),
            make_question("q-gracias-2", "t-gracias", mixed + ("listening",), "gracias", "thank you"),
        ),
    )


@pytest.fixture
def catalog(greetings_lesson):
    empty = Lesson(id="empty", title="Nothing here", order=2)
    return ContentCatalog([greetings_lesson, empty])
