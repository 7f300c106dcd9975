"""
Adaptive difficulty: recommends a difficulty tier from recent performance and
biases card selection toward it.

This is a pure computation module with no I/O.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from cadence.application.due_set import ensure_progress, sort_by_priority
from cadence.domain.constants import (
    DEFAULT_ADAPTIVE_WINDOW,
    DEFAULT_PROMOTION_THRESHOLD,
    MISMATCHED_TIER_PENALTY,
)
from cadence.domain.errors import ConfigurationError, NotFound
from cadence.domain.models import (
    DIFFICULTY_ORDER,
    CardStatus,
    DifficultyLevel,
    Flashcard,
    Outcome,
    ProgressRecord,
    ReviewEntry,
)

logger = logging.getLogger(__name__)


@dataclass
class TierPerformance:
    """Recent accuracy at one difficulty tier."""

    tier: DifficultyLevel
    correct: float = 0.0
    samples: float = 0.0

    @property
    def accuracy(self) -> float:
        if self.samples == 0:
            return 0.0
        return self.correct / self.samples


def next_tier(tier: DifficultyLevel) -> DifficultyLevel:
    return DIFFICULTY_ORDER[min(tier.rank + 1, len(DIFFICULTY_ORDER) - 1)]


class AdaptiveDifficultyEngine:
    """
    Recommends the difficulty tier a learner should practice next.

    Stateless and side-effect free; window and threshold are fixed at
    construction.
    """

    def __init__(
        self,
        window: int = DEFAULT_ADAPTIVE_WINDOW,
        promotion_threshold: float = DEFAULT_PROMOTION_THRESHOLD,
    ):
        """
        Args:
            window: Number of most recent graded reviews considered per tier.
            promotion_threshold: Accuracy needed at the current tier to move up.

        Raises:
            ConfigurationError: If either value is out of range.
        """
        if isinstance(window, bool) or not isinstance(window, int) or window < 1:
            raise ConfigurationError(f"window must be a positive integer, got {window!r}")
        if not 0 < promotion_threshold <= 1:
            raise ConfigurationError(
                f"promotion_threshold must be in (0, 1], got {promotion_threshold!r}"
            )
        self.window = window
        self.promotion_threshold = promotion_threshold

    def tier_performance(
        self,
        all_progress: Iterable[ProgressRecord],
        cards: Iterable[Flashcard],
        reviews: Sequence[ReviewEntry] | None = None,
    ) -> dict[DifficultyLevel, TierPerformance]:
        """
        Recent performance for every tier the user has a record at.

        With a review log, the most recent `window` graded entries per tier are
        used. Without one, records are taken newest-first and their lifetime
        counters are accumulated until `window` samples are reached.

        Raises:
            NotFound: If a record or review references a card not in `cards`.
        """
        tiers = {card.id: card.difficulty for card in cards}
        by_tier: dict[DifficultyLevel, list[ProgressRecord]] = defaultdict(list)
        for progress in all_progress:
            by_tier[self._tier_of(progress.card_id, tiers)].append(progress)

        performance = {tier: TierPerformance(tier) for tier in by_tier}
        if reviews is not None:
            ordered = sorted(reviews, key=lambda r: r.reviewed_at, reverse=True)
            for review in ordered:
                if not Outcome(review.outcome).is_graded:
                    continue
                tier = self._tier_of(review.card_id, tiers)
                perf = performance.setdefault(tier, TierPerformance(tier))
                if perf.samples >= self.window:
                    continue
                perf.samples += 1
                if Outcome(review.outcome) is Outcome.CORRECT:
                    perf.correct += 1
            return performance

        for tier, records in by_tier.items():
            perf = performance[tier]
            graded = [p for p in records if p.total_reviews > 0]
            graded.sort(key=lambda p: p.card_id)
            graded.sort(
                key=lambda p: p.last_reviewed.timestamp() if p.last_reviewed else float("-inf"),
                reverse=True,
            )
            for progress in graded:
                needed = self.window - perf.samples
                if needed <= 0:
                    break
                taken = min(needed, progress.total_reviews)
                perf.correct += progress.correct_count * taken / progress.total_reviews
                perf.samples += taken
        return performance

    def recommend_difficulty(
        self,
        all_progress: Iterable[ProgressRecord],
        cards: Iterable[Flashcard],
        reviews: Sequence[ReviewEntry] | None = None,
    ) -> DifficultyLevel:
        """
        Recommend the tier to practice next.

        Promotes one tier above the highest attempted tier when that tier has a
        full window of samples at or above the promotion threshold. Never skips
        a tier and never recommends below the lowest tier the user has any
        record for.
        """
        performance = self.tier_performance(all_progress, cards, reviews)
        if not performance:
            return DifficultyLevel.BEGINNER

        lowest = min(performance, key=lambda t: t.rank)
        attempted = [tier for tier, perf in performance.items() if perf.samples > 0]
        if not attempted:
            return lowest

        current = max(attempted, key=lambda t: t.rank)
        perf = performance[current]
        recommended = current
        if perf.samples >= self.window and perf.accuracy >= self.promotion_threshold:
            recommended = next_tier(current)
            logger.info(
                f"Promoting from {current.value} to {recommended.value} "
                f"(accuracy {perf.accuracy:.2f} over {perf.samples:g} reviews)"
            )
        return max(recommended, lowest, key=lambda t: t.rank)

    def generate_adaptive_flashcards(
        self,
        candidates: Iterable[Flashcard],
        all_progress: Iterable[ProgressRecord],
        limit: int,
        now: datetime,
        recommended: DifficultyLevel | None = None,
        reviews: Sequence[ReviewEntry] | None = None,
    ) -> list[Flashcard]:
        """
        Select up to `limit` non-mastered cards, favouring the recommended tier.

        The due-set priority order is the base order. Cards at the recommended
        tier keep their rank; other cards have their rank multiplied by a fixed
        penalty, so they are pushed back but never reshuffled among themselves.

        Raises:
            ConfigurationError: If `limit` is not a positive integer.
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ConfigurationError(f"limit must be a positive integer, got {limit!r}")

        cards = {card.id: card for card in candidates}
        known = [p for p in all_progress if p.card_id in cards]
        if recommended is None:
            if reviews is not None:
                reviews = [r for r in reviews if r.card_id in cards]
            recommended = self.recommend_difficulty(known, cards.values(), reviews)
        progress = ensure_progress(cards.values(), known)

        active = [p for p in progress.values() if p.status is not CardStatus.MASTERED]
        ranked = sort_by_priority(active, now)

        def weight(item: tuple[int, ProgressRecord]) -> tuple[int, int]:
            rank, record = item
            penalty = 1 if cards[record.card_id].difficulty == recommended else MISMATCHED_TIER_PENALTY
            return ((rank + 1) * penalty, rank)

        weighted = sorted(enumerate(ranked), key=weight)
        return [cards[record.card_id] for _, record in weighted[:limit]]

    @staticmethod
    def _tier_of(card_id: str, tiers: dict[str, DifficultyLevel]) -> DifficultyLevel:
        try:
            return tiers[card_id]
        except KeyError:
            raise NotFound(card_id) from None
