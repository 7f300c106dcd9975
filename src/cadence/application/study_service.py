"""
Study Service: Application layer orchestrator.

Loads progress through the repository port, runs it through the pure scheduling
functions and persists the results with compare-and-swap.
"""

import logging
from datetime import datetime

from cadence.application.adaptive import AdaptiveDifficultyEngine
from cadence.application.due_set import (
    ProgressOverview,
    due_cards,
    ensure_progress,
    filter_cards,
    sort_by_priority,
    summarize_progress,
)
from cadence.application.scheduler import ReviewScheduler, new_progress
from cadence.application.session import (
    GradeApplied,
    ReportOutcome,
    StudySession,
    plan_session,
    validate_session_size,
)
from cadence.application.study_time import record_session
from cadence.domain.constants import DEFAULT_SESSION_SIZE, MAX_SAVE_RETRIES
from cadence.domain.errors import InvalidTransition, VersionConflict
from cadence.domain.models import (
    DifficultyLevel,
    Flashcard,
    Outcome,
    ProgressRecord,
    StudyTimeTracker,
)
from cadence.domain.ports import ContentStore, ProgressRepository

logger = logging.getLogger(__name__)


class StudyService:
    """
    Application service for study sessions and review submission.

    Follows Dependency Inversion: depends on the ContentStore and
    ProgressRepository abstractions, not concrete adapter implementations.
    """

    def __init__(
        self,
        progress_repo: ProgressRepository,
        content: ContentStore,
        scheduler: ReviewScheduler | None = None,
        adaptive: AdaptiveDifficultyEngine | None = None,
        session_size: int = DEFAULT_SESSION_SIZE,
        max_retries: int = MAX_SAVE_RETRIES,
    ):
        """
        Args:
            progress_repo: The repository (port) for progress records.
            content: The content store (port) for flashcard definitions.
            scheduler: Optional custom scheduler; uses default if not provided.
            adaptive: Optional custom adaptive engine; uses default if not provided.
            session_size: Default number of cards per session.
            max_retries: Attempts at saving a grade that keeps losing its CAS.
        """
        validate_session_size(session_size)
        self._repo = progress_repo
        self._content = content
        self._scheduler = scheduler or ReviewScheduler()
        self._adaptive = adaptive or AdaptiveDifficultyEngine()
        self.session_size = session_size
        self.max_retries = max(1, max_retries)

    def cards(
        self,
        categories: list[str] | None = None,
        difficulties: list[DifficultyLevel] | None = None,
        tags: list[str] | None = None,
    ) -> list[Flashcard]:
        return filter_cards(self._content.list_flashcards(), categories, difficulties, tags)

    async def progress(
        self, user_id: str, cards: list[Flashcard] | None = None
    ) -> dict[str, ProgressRecord]:
        """
        The user's progress for `cards` (every card by default), with new
        records created for cards the user has never seen.
        """
        if cards is None:
            cards = self._content.list_flashcards()
        stored = await self._repo.load_progress(user_id)
        return ensure_progress(cards, stored)

    async def due(
        self,
        user_id: str,
        now: datetime,
        limit: int | None = None,
        categories: list[str] | None = None,
        difficulties: list[DifficultyLevel] | None = None,
        tags: list[str] | None = None,
    ) -> list[ProgressRecord]:
        """Due records in priority order, optionally truncated to `limit`."""
        progress = await self.progress(user_id, self.cards(categories, difficulties, tags))
        ordered = sort_by_priority(due_cards(progress.values(), now, self._content), now)
        return ordered[:limit] if limit else ordered

    async def start_session(
        self,
        user_id: str,
        now: datetime,
        max_size: int | None = None,
        categories: list[str] | None = None,
        difficulties: list[DifficultyLevel] | None = None,
        tags: list[str] | None = None,
    ) -> StudySession:
        """
        Plan a session from the user's current due set.

        Raises:
            ConfigurationError: If `max_size` is not a positive integer.
        """
        size = self.session_size if max_size is None else max_size
        validate_session_size(size)
        due = await self.due(
            user_id, now, categories=categories, difficulties=difficulties, tags=tags
        )
        session = StudySession(plan_session(due, size), now, self._scheduler)
        logger.info(
            f"[session {session.session_id}] {user_id}: {len(session.cards)} of "
            f"{len(due)} due cards planned"
        )
        return session

    async def record_review(
        self,
        user_id: str,
        card_id: str,
        outcome: Outcome,
        now: datetime,
        expected_version: int | None = None,
    ) -> ProgressRecord:
        """
        Grade one card against its latest stored record and persist the result.

        Without `expected_version`, a write that loses its compare-and-swap is
        retried on the fresh record so concurrent gradings are serialized, not
        dropped. With it, a stale version is reported to the caller instead.

        Raises:
            NotFound: If the card is not in the content store.
            ValueError: If `outcome` is a skip.
            VersionConflict: If the stored version does not match, or retries
                are exhausted.
        """
        outcome = Outcome(outcome)
        if not outcome.is_graded:
            raise ValueError("Skipped cards are not graded")
        self._content.get_flashcard(card_id)

        attempts = 1 if expected_version is not None else self.max_retries
        attempt = 0
        while True:
            attempt += 1
            stored = await self._repo.get_progress(user_id, card_id) or new_progress(card_id)
            if expected_version is not None and stored.version != expected_version:
                raise VersionConflict(card_id, expected_version, stored.version)

            updated = self._scheduler.update(stored, outcome, now)
            try:
                return await self._repo.save_progress(
                    user_id, updated, expected_version=stored.version
                )
            except VersionConflict:
                if attempt >= attempts:
                    raise
                logger.info(
                    f"Concurrent update of {user_id}/{card_id}; retrying (attempt {attempt})"
                )

    async def submit(
        self, user_id: str, session: StudySession, command: ReportOutcome
    ) -> GradeApplied:
        """
        Persist one graded outcome, then advance the session with the stored
        record.

        The session only moves past a card once its grade is saved; if
        persisting fails the same card can be reported again.

        Raises:
            InvalidTransition: If the session cannot accept `command`.
            VersionConflict: If the grade could not be saved.
        """
        session.expect(command)
        outcome = Outcome(command.outcome)
        if not outcome.is_graded:
            return session.handle(command)
        saved = await self.record_review(user_id, command.card_id, outcome, command.at)
        return session.handle(command, persisted=saved)

    async def finish_session(
        self,
        user_id: str,
        session: StudySession,
        category: str | None = None,
    ) -> StudyTimeTracker:
        """
        Add a finished session to the user's study time and streak.

        Raises:
            InvalidTransition: If the session is still awaiting outcomes.
        """
        if not session.is_finished:
            raise InvalidTransition(f"Session {session.session_id} has not finished")
        tracker = record_session(await self._repo.load_study_time(user_id), session.stats, category)
        await self._repo.save_study_time(user_id, tracker)
        return tracker

    async def study_time(self, user_id: str) -> StudyTimeTracker:
        return await self._repo.load_study_time(user_id)

    async def overview(self, user_id: str, now: datetime) -> ProgressOverview:
        progress = await self.progress(user_id)
        return summarize_progress(progress.values(), now)

    async def recommend(self, user_id: str) -> DifficultyLevel:
        cards = self._content.list_flashcards()
        return self._adaptive.recommend_difficulty(
            await self._known_progress(user_id, cards), cards
        )

    async def adaptive_deck(
        self,
        user_id: str,
        limit: int,
        now: datetime,
        categories: list[str] | None = None,
    ) -> list[Flashcard]:
        cards = self.cards(categories)
        return self._adaptive.generate_adaptive_flashcards(
            cards, await self._repo.load_progress(user_id), limit, now
        )

    async def _known_progress(
        self, user_id: str, cards: list[Flashcard]
    ) -> list[ProgressRecord]:
        known = {card.id for card in cards}
        stored = await self._repo.load_progress(user_id)
        orphans = [p.card_id for p in stored if p.card_id not in known]
        if orphans:
            logger.warning(
                f"Ignoring {len(orphans)} progress records for cards not in the deck: "
                f"{', '.join(orphans[:5])}"
            )
        return [p for p in stored if p.card_id in known]
