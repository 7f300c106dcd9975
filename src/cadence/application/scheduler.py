"""
Review scheduler: computes a card's next learning state from a review outcome.

SM-2 derived. This is a pure computation module with no I/O: every call returns
a new ProgressRecord and never touches other cards.
"""

import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta

from cadence.domain.constants import (
    DEFAULT_EASE_FACTOR,
    EASE_BONUS,
    EASE_PENALTY,
    EASE_PRECISION,
    GRADUATING_INTERVAL,
    LEARNING_INTERVAL,
    MASTERY_INTERVAL,
    MAX_INTERVAL,
    MIN_EASE_FACTOR,
)
from cadence.domain.errors import ConfigurationError, InvariantViolationRecovered
from cadence.domain.models import CardStatus, Outcome, ProgressRecord

logger = logging.getLogger(__name__)


def new_progress(card_id: str) -> ProgressRecord:
    """Create the record for a card the user has never seen."""
    return ProgressRecord(
        card_id=card_id,
        status=CardStatus.NEW,
        ease_factor=DEFAULT_EASE_FACTOR,
        interval_days=0,
    )


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def sanitize_progress(
    progress: ProgressRecord,
) -> tuple[ProgressRecord, list[InvariantViolationRecovered]]:
    """
    Clamp out-of-bounds fields of a (possibly corrupted) persisted record.

    Returns:
        The repaired record (the same object when nothing was wrong) and one
        InvariantViolationRecovered per clamped field.
    """
    violations: list[InvariantViolationRecovered] = []
    changes: dict = {}

    def clamp(field_name: str, original, clamped) -> None:
        violations.append(
            InvariantViolationRecovered(progress.card_id, field_name, original, clamped)
        )
        changes[field_name] = clamped

    ease = progress.ease_factor
    if not math.isfinite(ease):
        clamp("ease_factor", ease, DEFAULT_EASE_FACTOR)
    elif ease < MIN_EASE_FACTOR:
        clamp("ease_factor", ease, MIN_EASE_FACTOR)

    interval = progress.interval_days
    if interval < 0:
        interval = 0
        clamp("interval_days", progress.interval_days, interval)
    if progress.status is not CardStatus.NEW and interval < LEARNING_INTERVAL:
        interval = LEARNING_INTERVAL
        clamp("interval_days", progress.interval_days, interval)

    if progress.correct_count < 0:
        clamp("correct_count", progress.correct_count, 0)
    if progress.incorrect_count < 0:
        clamp("incorrect_count", progress.incorrect_count, 0)

    last, nxt = progress.last_reviewed, progress.next_review_date
    if last is not None and nxt is not None and nxt < last:
        clamp("next_review_date", nxt, last + timedelta(days=interval))

    if not changes:
        return progress, violations
    return replace(progress, **changes), violations


class ReviewScheduler:
    """
    Applies one review outcome to one progress record.

    Stateless and side-effect free; the thresholds are fixed at construction.
    """

    def __init__(
        self,
        mastery_interval: int = MASTERY_INTERVAL,
        max_interval: int = MAX_INTERVAL,
    ):
        """
        Args:
            mastery_interval: Interval (days) at which a review card becomes mastered.
            max_interval: Upper bound on any computed interval (days).
        """
        if mastery_interval < 1:
            raise ConfigurationError(f"mastery_interval must be >= 1, got {mastery_interval}")
        if max_interval < mastery_interval:
            raise ConfigurationError(
                f"max_interval ({max_interval}) must not be below "
                f"mastery_interval ({mastery_interval})"
            )
        self.mastery_interval = mastery_interval
        self.max_interval = max_interval

    def update(
        self, progress: ProgressRecord, outcome: Outcome, now: datetime
    ) -> ProgressRecord:
        """
        Compute the record that results from grading `progress` at `now`.

        Incorrect answers always demote to learning with a one-day interval.
        Correct answers walk new -> learning -> review and grow the interval by
        the ease factor once in review; review cards whose interval reaches the
        mastery threshold become mastered.

        Raises:
            ValueError: If `outcome` is a skip, which does not grade a card.
        """
        outcome = Outcome(outcome)
        if not outcome.is_graded:
            raise ValueError("Skipped cards are not graded by the scheduler")

        progress, violations = sanitize_progress(progress)
        for violation in violations:
            logger.warning(f"Recovered malformed progress record: {violation}")

        if outcome is Outcome.INCORRECT:
            return replace(
                progress,
                status=CardStatus.LEARNING,
                interval_days=LEARNING_INTERVAL,
                ease_factor=max(
                    MIN_EASE_FACTOR, round(progress.ease_factor - EASE_PENALTY, EASE_PRECISION)
                ),
                incorrect_count=progress.incorrect_count + 1,
                last_reviewed=now,
                next_review_date=now + timedelta(days=LEARNING_INTERVAL),
            )

        ease = progress.ease_factor
        if progress.status is CardStatus.NEW:
            status, interval = CardStatus.LEARNING, LEARNING_INTERVAL
        elif progress.status is CardStatus.LEARNING:
            status, interval = CardStatus.REVIEW, GRADUATING_INTERVAL
        else:
            interval = self._grow_interval(progress.interval_days, ease)
            ease = round(ease + EASE_BONUS, EASE_PRECISION)
            if progress.status is CardStatus.MASTERED or interval >= self.mastery_interval:
                status = CardStatus.MASTERED
            else:
                status = CardStatus.REVIEW

        return replace(
            progress,
            status=status,
            interval_days=interval,
            ease_factor=ease,
            correct_count=progress.correct_count + 1,
            last_reviewed=now,
            next_review_date=now + timedelta(days=interval),
        )

    def _grow_interval(self, interval_days: int, ease_factor: float) -> int:
        grown = round_half_up(interval_days * ease_factor)
        return max(LEARNING_INTERVAL, min(grown, self.max_interval))
