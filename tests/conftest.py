from datetime import datetime, timezone

import pytest

from cadence.domain.models import DifficultyLevel, Flashcard

DECK_YAML = """\
category: async-programming
difficulty: beginner
cards:
  - id: a1
    question: What does await do?
    answer: Suspends the coroutine until the awaitable completes.
  - id: a2
    question: What runs coroutines?
    answer: The event loop.
    tags: [event-loop]
  - id: b1
    question: What is a task group?
    answer: A structured way to run tasks together.
    difficulty: intermediate
  - id: c1
    question: How does cancellation propagate?
    answer: CancelledError is raised at the next await point.
    difficulty: senior
    category: cancellation
"""


@pytest.fixture
def now():
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def cards():
    return [
        Flashcard("a1", "q", "a", "async", DifficultyLevel.BEGINNER),
        Flashcard("a2", "q", "a", "async", DifficultyLevel.BEGINNER, frozenset({"loop"})),
        Flashcard("b1", "q", "a", "async", DifficultyLevel.INTERMEDIATE),
        Flashcard("b2", "q", "a", "tasks", DifficultyLevel.INTERMEDIATE),
        Flashcard("c1", "q", "a", "tasks", DifficultyLevel.ADVANCED),
    ]


@pytest.fixture
def deck_file(tmp_path):
    """Writes a small YAML deck to a temp dir."""
    path = tmp_path / "deck.yaml"
    path.write_text(DECK_YAML, encoding="utf-8")
    return path


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config and progress data
    monkeypatch.setenv("HOME", str(home))
    for var in ("CADENCE_DECK_PATH", "CADENCE_DATA_DIR", "CADENCE_USER_ID", "CADENCE_SESSION_SIZE"):
        monkeypatch.delenv(var, raising=False)
    return home
