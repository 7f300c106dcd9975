"""
Due-set selection for study sessions.

Selects the cards whose review date has arrived and orders them by:
1. How long they have been overdue
2. Learning status (review > learning > new > mastered)
3. How often they were answered incorrectly
4. Card id, so that identical input always yields identical order
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime

from cadence.application.scheduler import new_progress
from cadence.domain.models import CardStatus, DifficultyLevel, Flashcard, ProgressRecord
from cadence.domain.ports import ContentStore

logger = logging.getLogger(__name__)

STATUS_PRIORITY: dict[CardStatus, int] = {
    CardStatus.REVIEW: 0,
    CardStatus.LEARNING: 1,
    CardStatus.NEW: 2,
    CardStatus.MASTERED: 3,
}


@dataclass
class ProgressOverview:
    """Counts of a user's cards by status, plus how many are due and overdue."""

    total: int = 0
    new: int = 0
    learning: int = 0
    review: int = 0
    mastered: int = 0
    due: int = 0
    overdue: int = 0


def is_due(progress: ProgressRecord, now: datetime) -> bool:
    if progress.status is CardStatus.NEW:
        return True
    if progress.next_review_date is None:
        # Graded card without a schedule: treat as due rather than lose it.
        return True
    return progress.next_review_date <= now


def due_cards(
    all_progress: Iterable[ProgressRecord],
    now: datetime,
    content: ContentStore | None = None,
) -> list[ProgressRecord]:
    """
    Return the records that are due at `now`, in input order.

    Args:
        all_progress: Every progress record of one user.
        now: Reference time.
        content: Optional content store; when given, each due card must exist
            in it.

    Raises:
        NotFound: If `content` is given and a due record references a card it
            does not contain.
    """
    due = [p for p in all_progress if is_due(p, now)]
    if content is not None:
        for progress in due:
            content.get_flashcard(progress.card_id)
    logger.debug(f"{len(due)} cards due at {now.isoformat()}")
    return due


def overdue_seconds(progress: ProgressRecord, now: datetime) -> float:
    if progress.status is CardStatus.NEW or progress.next_review_date is None:
        return 0.0
    return (now - progress.next_review_date).total_seconds()


def priority_key(progress: ProgressRecord, now: datetime) -> tuple[float, int, int, str]:
    """Sort key implementing the priority order; smaller sorts first."""
    return (
        -overdue_seconds(progress, now),
        STATUS_PRIORITY[progress.status],
        -progress.incorrect_count,
        progress.card_id,
    )


def sort_by_priority(
    records: Iterable[ProgressRecord], now: datetime
) -> list[ProgressRecord]:
    """Return a new list ordered by study priority at `now`."""
    return sorted(records, key=lambda p: priority_key(p, now))


def summarize_progress(
    all_progress: Iterable[ProgressRecord], now: datetime
) -> ProgressOverview:
    overview = ProgressOverview()
    for progress in all_progress:
        overview.total += 1
        setattr(overview, progress.status.value, getattr(overview, progress.status.value) + 1)
        if is_due(progress, now):
            overview.due += 1
            if overdue_seconds(progress, now) > 0:
                overview.overdue += 1
    return overview


def filter_cards(
    cards: Iterable[Flashcard],
    categories: Iterable[str] | None = None,
    difficulties: Iterable[DifficultyLevel] | None = None,
    tags: Iterable[str] | None = None,
) -> list[Flashcard]:
    """
    Narrow candidate cards before building a due set.

    Each filter is optional; a card must pass every filter that is set. The tag
    filter keeps cards carrying at least one of the given tags.
    """
    category_set = set(categories) if categories else None
    difficulty_set = {DifficultyLevel(d) for d in difficulties} if difficulties else None
    tag_set = set(tags) if tags else None

    selected = []
    for card in cards:
        if category_set is not None and card.category not in category_set:
            continue
        if difficulty_set is not None and card.difficulty not in difficulty_set:
            continue
        if tag_set is not None and not (card.tags & tag_set):
            continue
        selected.append(card)
    return selected


def ensure_progress(
    cards: Iterable[Flashcard],
    existing: Iterable[ProgressRecord],
) -> dict[str, ProgressRecord]:
    """
    Pair every card with a progress record, creating new ones lazily.

    Records for cards not in `cards` are left out of the result.
    """
    by_id: Mapping[str, ProgressRecord] = {p.card_id: p for p in existing}
    return {card.id: by_id.get(card.id) or new_progress(card.id) for card in cards}
