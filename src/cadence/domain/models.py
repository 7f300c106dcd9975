"""
Domain models for flashcards, learning progress and study sessions.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from .constants import DEFAULT_CATEGORY, DEFAULT_EASE_FACTOR


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @property
    def rank(self) -> int:
        return DIFFICULTY_ORDER.index(self)


DIFFICULTY_ORDER: tuple[DifficultyLevel, ...] = (
    DifficultyLevel.BEGINNER,
    DifficultyLevel.INTERMEDIATE,
    DifficultyLevel.ADVANCED,
    DifficultyLevel.EXPERT,
)


class CardStatus(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    MASTERED = "mastered"


class Outcome(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    SKIPPED = "skipped"

    @property
    def is_graded(self) -> bool:
        return self is not Outcome.SKIPPED


@dataclass(frozen=True)
class Flashcard:
    """
    A question/answer pair owned by the content store.

    Attributes:
        id: Stable card identifier referenced by progress records.
        question: Prompt shown to the learner.
        answer: Expected answer.
        category: Topic grouping (e.g. "async-programming").
        difficulty: Difficulty tier of the card.
        tags: Free-form labels.
    """

    id: str
    question: str
    answer: str
    category: str = DEFAULT_CATEGORY
    difficulty: DifficultyLevel = DifficultyLevel.BEGINNER
    tags: frozenset[str] = frozenset()


@dataclass(frozen=True)
class ProgressRecord:
    """
    Learning state of one card for one user.

    Records are never mutated: the scheduler returns a replacement built with
    dataclasses.replace.

    Attributes:
        card_id: The card this record tracks (reference, not ownership).
        status: Position in the new -> learning -> review -> mastered machine.
        ease_factor: Interval growth multiplier, never below 1.3.
        interval_days: Days between last_reviewed and next_review_date.
        last_reviewed: Time of the most recent grading, None while new.
        next_review_date: When the card is due again, None while new.
        correct_count: Lifetime correct answers.
        incorrect_count: Lifetime incorrect answers.
        version: Optimistic-concurrency token maintained by the repository.
    """

    card_id: str
    status: CardStatus = CardStatus.NEW
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval_days: int = 0
    last_reviewed: datetime | None = None
    next_review_date: datetime | None = None
    correct_count: int = 0
    incorrect_count: int = 0
    version: int = 0

    @property
    def total_reviews(self) -> int:
        return self.correct_count + self.incorrect_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "card_id": self.card_id,
            "status": self.status.value,
            "ease_factor": self.ease_factor,
            "interval_days": self.interval_days,
            "last_reviewed": _iso(self.last_reviewed),
            "next_review_date": _iso(self.next_review_date),
            "correct_count": self.correct_count,
            "incorrect_count": self.incorrect_count,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProgressRecord":
        return cls(
            card_id=str(data["card_id"]),
            status=CardStatus(data.get("status", CardStatus.NEW.value)),
            ease_factor=float(data.get("ease_factor", DEFAULT_EASE_FACTOR)),
            interval_days=int(data.get("interval_days", 0)),
            last_reviewed=_parse_iso(data.get("last_reviewed")),
            next_review_date=_parse_iso(data.get("next_review_date")),
            correct_count=int(data.get("correct_count", 0)),
            incorrect_count=int(data.get("incorrect_count", 0)),
            version=int(data.get("version", 0)),
        )


@dataclass(frozen=True)
class ReviewEntry:
    """
    A single graded review.

    Attributes:
        card_id: The card that was graded.
        reviewed_at: When the grade was reported.
        outcome: Correct or incorrect (skips are not logged).
    """

    card_id: str
    reviewed_at: datetime
    outcome: Outcome


@dataclass
class SessionStats:
    """Running statistics of one study session."""

    total_cards: int
    started_at: datetime
    correct: int = 0
    incorrect: int = 0
    skipped: int = 0
    reviewed_card_ids: list[str] = field(default_factory=list)
    ended_at: datetime | None = None

    @property
    def duration(self) -> timedelta | None:
        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at

    @property
    def accuracy(self) -> float:
        graded = self.correct + self.incorrect
        if graded == 0:
            return 0.0
        return self.correct / graded

    def to_dict(self) -> dict[str, Any]:
        duration = self.duration
        return {
            "total_cards": self.total_cards,
            "correct": self.correct,
            "incorrect": self.incorrect,
            "skipped": self.skipped,
            "reviewed_card_ids": list(self.reviewed_card_ids),
            "started_at": _iso(self.started_at),
            "ended_at": _iso(self.ended_at),
            "duration_seconds": duration.total_seconds() if duration is not None else None,
            "accuracy": self.accuracy,
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_iso(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    # Stored timestamps without an offset are UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class StudyTimeTracker:
    """Study time accumulated across sessions, with the current daily streak."""

    total_minutes: int = 0
    session_count: int = 0
    last_study_date: datetime | None = None
    category_minutes: dict[str, int] = field(default_factory=dict)
    streak_days: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_minutes": self.total_minutes,
            "session_count": self.session_count,
            "last_study_date": _iso(self.last_study_date),
            "category_minutes": dict(self.category_minutes),
            "streak_days": self.streak_days,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StudyTimeTracker":
        return cls(
            total_minutes=int(data.get("total_minutes", 0)),
            session_count=int(data.get("session_count", 0)),
            last_study_date=_parse_iso(data.get("last_study_date")),
            category_minutes={k: int(v) for k, v in data.get("category_minutes", {}).items()},
            streak_days=int(data.get("streak_days", 0)),
        )
