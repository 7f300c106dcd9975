"""
JSON Progress Repository: Infrastructure adapter storing one JSON document
per user:

    {
      "format": 1,
      "progress": [{"card_id": "...", "status": "review", ...}, ...],
      "study_time": {"total_minutes": 42, ...}
    }

Documents are rewritten atomically (temp file + os.replace). The same document
shape is used for export/import of a user's progress.
"""

import asyncio
import json
import logging
import os
import re
import tempfile
from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path
from typing import Any

from cadence.domain.constants import PROGRESS_FORMAT_VERSION
from cadence.domain.errors import ConfigurationError, ContentError, VersionConflict
from cadence.domain.models import ProgressRecord, StudyTimeTracker
from cadence.domain.ports import ProgressRepository

logger = logging.getLogger(__name__)

USER_ID_RE = re.compile(r"^[A-Za-z0-9_.@-]+$")


def export_progress(
    records: Iterable[ProgressRecord],
    study_time: StudyTimeTracker | None = None,
) -> dict[str, Any]:
    """Build a portable document from a user's progress."""
    return {
        "format": PROGRESS_FORMAT_VERSION,
        "progress": [r.to_dict() for r in sorted(records, key=lambda r: r.card_id)],
        "study_time": (study_time or StudyTimeTracker()).to_dict(),
    }


def import_progress(document: dict[str, Any]) -> tuple[list[ProgressRecord], StudyTimeTracker]:
    """
    Parse a document produced by export_progress.

    Raises:
        ContentError: If the document is not a progress export.
    """
    if not isinstance(document, dict) or "progress" not in document:
        raise ContentError("Not a progress document: missing 'progress'")
    fmt = document.get("format", PROGRESS_FORMAT_VERSION)
    if fmt != PROGRESS_FORMAT_VERSION:
        raise ContentError(f"Unsupported progress format: {fmt}")
    try:
        records = [ProgressRecord.from_dict(item) for item in document["progress"]]
        tracker = StudyTimeTracker.from_dict(document.get("study_time") or {})
    except (KeyError, TypeError, ValueError) as e:
        raise ContentError(f"Malformed progress document: {e}") from e
    return records, tracker


def _is_ahead(record: ProgressRecord, current: ProgressRecord) -> bool:
    return (
        record.correct_count >= current.correct_count
        and record.incorrect_count >= current.incorrect_count
        and record.total_reviews > current.total_reviews
    )


def merge_progress(
    existing: Iterable[ProgressRecord],
    incoming: Iterable[ProgressRecord],
) -> list[ProgressRecord]:
    """
    Merge imported records into stored ones.

    An imported record replaces a stored one only when it is strictly ahead:
    neither counter is lower and at least one is higher. Lifetime counters
    therefore never go backwards. Replacements keep the stored version so the
    next write still passes compare-and-swap.
    """
    merged = {r.card_id: r for r in existing}
    for record in incoming:
        current = merged.get(record.card_id)
        if current is None:
            merged[record.card_id] = replace(record, version=0)
        elif _is_ahead(record, current):
            merged[record.card_id] = replace(record, version=current.version)
    return [merged[card_id] for card_id in sorted(merged)]


class JsonProgressRepository(ProgressRepository):
    """Stores each user's progress in `<data_dir>/<user_id>.json`."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self._locks: dict[str, asyncio.Lock] = {}

    def _path(self, user_id: str) -> Path:
        if not USER_ID_RE.match(user_id):
            raise ConfigurationError(f"Invalid user id: {user_id!r}")
        return self.data_dir / f"{user_id}.json"

    def _lock(self, user_id: str) -> asyncio.Lock:
        return self._locks.setdefault(user_id, asyncio.Lock())

    def _read(self, user_id: str) -> tuple[dict[str, ProgressRecord], StudyTimeTracker]:
        path = self._path(user_id)
        if not path.exists():
            return {}, StudyTimeTracker()
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ContentError(f"{path}: invalid JSON: {e}") from e
        records, tracker = import_progress(document)
        return {r.card_id: r for r in records}, tracker

    def _write(
        self,
        user_id: str,
        records: dict[str, ProgressRecord],
        tracker: StudyTimeTracker,
    ) -> None:
        path = self._path(user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(export_progress(records.values(), tracker), indent=2)

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{user_id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def load_progress(self, user_id: str) -> list[ProgressRecord]:
        records, _ = self._read(user_id)
        return [records[card_id] for card_id in sorted(records)]

    async def get_progress(self, user_id: str, card_id: str) -> ProgressRecord | None:
        records, _ = self._read(user_id)
        return records.get(card_id)

    async def save_progress(
        self,
        user_id: str,
        record: ProgressRecord,
        expected_version: int | None = None,
    ) -> ProgressRecord:
        expected = record.version if expected_version is None else expected_version
        async with self._lock(user_id):
            records, tracker = self._read(user_id)
            stored = records.get(record.card_id)
            actual = stored.version if stored is not None else 0
            if actual != expected:
                raise VersionConflict(record.card_id, expected, actual)
            saved = replace(record, version=actual + 1)
            records[record.card_id] = saved
            self._write(user_id, records, tracker)
        logger.debug(f"[json] {user_id}/{record.card_id} -> v{saved.version}")
        return saved

    async def load_study_time(self, user_id: str) -> StudyTimeTracker:
        _, tracker = self._read(user_id)
        return tracker

    async def save_study_time(self, user_id: str, tracker: StudyTimeTracker) -> None:
        async with self._lock(user_id):
            records, _ = self._read(user_id)
            self._write(user_id, records, tracker)

    async def export_document(self, user_id: str) -> dict[str, Any]:
        records, tracker = self._read(user_id)
        return export_progress(records.values(), tracker)

    async def import_document(self, user_id: str, document: dict[str, Any]) -> int:
        """
        Merge an exported document into the user's stored progress.

        Returns:
            Number of records that were added or replaced.
        """
        incoming, incoming_tracker = import_progress(document)
        async with self._lock(user_id):
            records, tracker = self._read(user_id)
            merged = merge_progress(records.values(), incoming)
            changed = [
                r for r in merged
                if r.card_id not in records or r is not records[r.card_id]
            ]
            # Bump versions of replaced records so stale writers lose their CAS
            updated = {r.card_id: r for r in merged}
            for r in changed:
                updated[r.card_id] = replace(r, version=r.version + 1)
            if incoming_tracker.session_count > tracker.session_count:
                tracker = incoming_tracker
            self._write(user_id, updated, tracker)
        logger.info(f"Imported {len(changed)} progress records for {user_id}")
        return len(changed)
