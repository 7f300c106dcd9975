"""
In-Memory Progress Repository: process-local storage for progress records.

Used by tests and by callers that embed the study service without persistence.
"""

import asyncio
import logging
from dataclasses import replace

from cadence.domain.errors import VersionConflict
from cadence.domain.models import ProgressRecord, StudyTimeTracker
from cadence.domain.ports import ProgressRepository

logger = logging.getLogger(__name__)


class InMemoryProgressRepository(ProgressRepository):
    """Keeps records in dictionaries; writes are serialized by one asyncio.Lock."""

    def __init__(self):
        self._progress: dict[str, dict[str, ProgressRecord]] = {}
        self._study_time: dict[str, StudyTimeTracker] = {}
        self._lock = asyncio.Lock()

    async def load_progress(self, user_id: str) -> list[ProgressRecord]:
        records = self._progress.get(user_id, {})
        return [records[card_id] for card_id in sorted(records)]

    async def get_progress(self, user_id: str, card_id: str) -> ProgressRecord | None:
        return self._progress.get(user_id, {}).get(card_id)

    async def save_progress(
        self,
        user_id: str,
        record: ProgressRecord,
        expected_version: int | None = None,
    ) -> ProgressRecord:
        expected = record.version if expected_version is None else expected_version
        async with self._lock:
            records = self._progress.setdefault(user_id, {})
            stored = records.get(record.card_id)
            actual = stored.version if stored is not None else 0
            if actual != expected:
                raise VersionConflict(record.card_id, expected, actual)
            saved = replace(record, version=actual + 1)
            records[record.card_id] = saved
        logger.debug(f"[memory] {user_id}/{record.card_id} -> v{saved.version}")
        return saved

    async def load_study_time(self, user_id: str) -> StudyTimeTracker:
        return self._study_time.get(user_id, StudyTimeTracker())

    async def save_study_time(self, user_id: str, tracker: StudyTimeTracker) -> None:
        self._study_time[user_id] = tracker
