from datetime import timedelta

import pytest

from cadence.application.study_time import record_session
from cadence.domain.models import SessionStats, StudyTimeTracker


def _session(started, minutes):
    return SessionStats(total_cards=5, started_at=started, ended_at=started + timedelta(minutes=minutes))


def test_first_session_starts_streak(now):
    tracker = record_session(StudyTimeTracker(), _session(now, 12), "async")

    assert tracker.total_minutes == 12
    assert tracker.session_count == 1
    assert tracker.streak_days == 1
    assert tracker.category_minutes == {"async": 12}
    assert tracker.last_study_date == now + timedelta(minutes=12)


def test_same_day_keeps_streak(now):
    tracker = record_session(StudyTimeTracker(), _session(now, 5))
    tracker = record_session(tracker, _session(now + timedelta(hours=2), 5))

    assert tracker.streak_days == 1
    assert tracker.session_count == 2
    assert tracker.total_minutes == 10


def test_next_day_extends_streak(now):
    tracker = record_session(StudyTimeTracker(), _session(now, 5))
    tracker = record_session(tracker, _session(now + timedelta(days=1), 5))
    tracker = record_session(tracker, _session(now + timedelta(days=2), 5))

    assert tracker.streak_days == 3


def test_gap_resets_streak(now):
    tracker = StudyTimeTracker(streak_days=7, session_count=7, last_study_date=now)

    tracker = record_session(tracker, _session(now + timedelta(days=3), 5))

    assert tracker.streak_days == 1


def test_partial_minutes_are_truncated(now):
    stats = SessionStats(
        total_cards=1, started_at=now, ended_at=now + timedelta(seconds=119)
    )

    assert record_session(StudyTimeTracker(), stats).total_minutes == 1


def test_unfinished_session_is_rejected(now):
    with pytest.raises(ValueError):
        record_session(StudyTimeTracker(), SessionStats(total_cards=1, started_at=now))


def test_tracker_with_naive_last_date_accepts_aware_session(now):
    tracker = StudyTimeTracker.from_dict(
        {"session_count": 3, "streak_days": 3, "last_study_date": "2026-02-28T20:00:00"}
    )

    tracker = record_session(tracker, _session(now, 10))

    assert tracker.streak_days == 4
    assert tracker.last_study_date == now + timedelta(minutes=10)
