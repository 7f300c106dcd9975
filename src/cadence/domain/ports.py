"""
Ports (interfaces) for content and progress storage.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import Flashcard, ProgressRecord, StudyTimeTracker


class ContentStore(ABC):
    """
    Read-only catalog of flashcard definitions.

    Implementations:
        - YamlContentStore: Loads a deck from a YAML file.
    """

    @abstractmethod
    def get_flashcard(self, card_id: str) -> Flashcard:
        """
        Look up a single card.

        Raises:
            NotFound: If no card has this id.
        """
        pass

    @abstractmethod
    def list_flashcards(self) -> list[Flashcard]:
        """Return every card in the store, in deck order."""
        pass


class ProgressRepository(ABC):
    """
    Port for loading and saving per-user progress records.

    Writes use compare-and-swap on ProgressRecord.version so that concurrent
    gradings of the same card are serialized instead of silently dropped.

    Implementations:
        - InMemoryProgressRepository: Process-local dictionaries.
        - JsonProgressRepository: One JSON document per user on disk.
    """

    @abstractmethod
    async def load_progress(self, user_id: str) -> list[ProgressRecord]:
        """
        Fetch every stored record for a user.

        Returns:
            Records sorted by card id; empty for an unknown user.
        """
        pass

    @abstractmethod
    async def get_progress(self, user_id: str, card_id: str) -> ProgressRecord | None:
        """Fetch one record, or None if the card was never stored."""
        pass

    @abstractmethod
    async def save_progress(
        self,
        user_id: str,
        record: ProgressRecord,
        expected_version: int | None = None,
    ) -> ProgressRecord:
        """
        Store a record if the stored version still matches.

        Args:
            user_id: Owner of the record.
            record: The replacement record.
            expected_version: Version the caller read (0 for a card that was
                never stored). Defaults to record.version.

        Returns:
            The stored record with its version incremented.

        Raises:
            VersionConflict: If the stored version differs from expected_version.
        """
        pass

    @abstractmethod
    async def load_study_time(self, user_id: str) -> StudyTimeTracker:
        """Fetch the user's study-time tracker (an empty one if none was saved)."""
        pass

    @abstractmethod
    async def save_study_time(self, user_id: str, tracker: StudyTimeTracker) -> None:
        pass
