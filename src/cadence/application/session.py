"""
Session planning and the study-session state machine.

A session walks a planned list of cards one at a time:

    AWAITING_OUTCOME(i) --ReportOutcome--> GradeApplied(i) --> AWAITING_OUTCOME(i+1)
    ... --> COMPLETE

The caller may abandon a session at any card boundary. Grading is one-shot per
card occurrence: there is no way back to an earlier card.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ulid import ULID

from cadence.application.scheduler import ReviewScheduler
from cadence.domain.errors import ConfigurationError, InvalidTransition
from cadence.domain.models import Outcome, ProgressRecord, ReviewEntry, SessionStats

logger = logging.getLogger(__name__)


def validate_session_size(max_size: int) -> None:
    if isinstance(max_size, bool) or not isinstance(max_size, int) or max_size < 1:
        raise ConfigurationError(f"max_size must be a positive integer, got {max_size!r}")


def plan_session(due_sorted: Iterable[ProgressRecord], max_size: int) -> list[ProgressRecord]:
    """
    Bound a priority-sorted due set to a session of at most `max_size` cards.

    Only the first occurrence of each card id is kept, in input order.

    Raises:
        ConfigurationError: If `max_size` is not a positive integer.
    """
    validate_session_size(max_size)
    return _unique_by_card(due_sorted)[:max_size]


def _unique_by_card(records: Iterable[ProgressRecord]) -> list[ProgressRecord]:
    unique: dict[str, ProgressRecord] = {}
    for progress in records:
        unique.setdefault(progress.card_id, progress)
    return list(unique.values())


class SessionState(str, Enum):
    AWAITING_OUTCOME = "awaiting_outcome"
    COMPLETE = "complete"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class ReportOutcome:
    """Command: the learner answered (or skipped) the card `card_id`."""

    card_id: str
    outcome: Outcome
    at: datetime


@dataclass(frozen=True)
class GradeApplied:
    """Result of one handled ReportOutcome."""

    index: int
    card_id: str
    outcome: Outcome
    progress: ProgressRecord  # unchanged for skips


class StudySession:
    """
    Drives one study session over a planned card list and accumulates its stats.

    The session owns its SessionStats for its lifetime; callers persist the
    updated records (see `updated`) and, if they want, a stats summary.
    """

    def __init__(
        self,
        planned: Iterable[ProgressRecord],
        started_at: datetime,
        scheduler: ReviewScheduler | None = None,
        session_id: str | None = None,
    ):
        self.cards: list[ProgressRecord] = _unique_by_card(planned)
        self.scheduler = scheduler or ReviewScheduler()
        self.session_id = session_id or str(ULID())
        self.stats = SessionStats(total_cards=len(self.cards), started_at=started_at)
        self.updated: dict[str, ProgressRecord] = {}
        self.review_log: list[ReviewEntry] = []
        self._index = 0
        self._state = SessionState.AWAITING_OUTCOME
        if not self.cards:
            self._finish(SessionState.COMPLETE, started_at)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def index(self) -> int:
        return self._index

    @property
    def is_finished(self) -> bool:
        return self._state is not SessionState.AWAITING_OUTCOME

    @property
    def current(self) -> ProgressRecord | None:
        """The card awaiting an outcome, or None once the session is over."""
        if self.is_finished:
            return None
        return self.cards[self._index]

    @property
    def remaining(self) -> int:
        return 0 if self.is_finished else len(self.cards) - self._index

    def expect(self, command: ReportOutcome) -> ProgressRecord:
        """
        Check that `command` may be handled now, without changing the session.

        Returns:
            The record of the card awaiting an outcome.

        Raises:
            InvalidTransition: If the session is finished or the command names
                a card other than the current one.
        """
        current = self.current
        if current is None:
            raise InvalidTransition(
                f"Session {self.session_id} is {self._state.value}; no card awaits an outcome"
            )
        if command.card_id != current.card_id:
            raise InvalidTransition(
                f"Expected outcome for {current.card_id}, got {command.card_id}"
            )
        return current

    def handle(
        self, command: ReportOutcome, persisted: ProgressRecord | None = None
    ) -> GradeApplied:
        """
        Apply one reported outcome to the current card and advance.

        Args:
            command: The reported outcome.
            persisted: The already stored result of grading this card. When
                given it is used instead of running the scheduler again.

        Raises:
            InvalidTransition: If the session is finished or the command names
                a card other than the current one.
        """
        current = self.expect(command)

        outcome = Outcome(command.outcome)
        if outcome.is_graded:
            progress = persisted or self.scheduler.update(current, outcome, command.at)
            self.updated[current.card_id] = progress
            self.review_log.append(
                ReviewEntry(card_id=current.card_id, reviewed_at=command.at, outcome=outcome)
            )
            if outcome is Outcome.CORRECT:
                self.stats.correct += 1
            else:
                self.stats.incorrect += 1
        else:
            progress = current
            self.stats.skipped += 1
        self.stats.reviewed_card_ids.append(current.card_id)

        result = GradeApplied(
            index=self._index, card_id=current.card_id, outcome=outcome, progress=progress
        )
        logger.debug(f"[session {self.session_id}] {current.card_id} -> {outcome.value}")

        self._index += 1
        if self._index >= len(self.cards):
            self._finish(SessionState.COMPLETE, command.at)
        return result

    def answer(self, correct: bool, at: datetime) -> GradeApplied:
        outcome = Outcome.CORRECT if correct else Outcome.INCORRECT
        return self.handle(ReportOutcome(self._current_id(), outcome, at))

    def skip(self, at: datetime) -> GradeApplied:
        return self.handle(ReportOutcome(self._current_id(), Outcome.SKIPPED, at))

    def abandon(self, at: datetime) -> SessionStats:
        """End the session early; already-graded cards keep their new state."""
        if self.is_finished:
            raise InvalidTransition(f"Session {self.session_id} is already {self._state.value}")
        self._finish(SessionState.ABANDONED, at)
        return self.stats

    def _current_id(self) -> str:
        current = self.current
        if current is None:
            raise InvalidTransition(f"Session {self.session_id} is {self._state.value}")
        return current.card_id

    def _finish(self, state: SessionState, at: datetime) -> None:
        self._state = state
        self.stats.ended_at = at
        logger.info(
            f"[session {self.session_id}] {state.value}: "
            f"{self.stats.correct} correct, {self.stats.incorrect} incorrect, "
            f"{self.stats.skipped} skipped"
        )
