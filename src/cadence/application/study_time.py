"""Study time and streak tracking across sessions."""

from dataclasses import replace

from cadence.domain.models import SessionStats, StudyTimeTracker


def record_session(
    tracker: StudyTimeTracker,
    stats: SessionStats,
    category: str | None = None,
) -> StudyTimeTracker:
    """
    Fold a finished session into the tracker.

    A session on the same calendar day keeps the streak, one on the next day
    extends it, and any longer gap restarts it at 1.

    Raises:
        ValueError: If the session has not ended yet.
    """
    if stats.ended_at is None:
        raise ValueError("Cannot record a session that has not ended")

    minutes = int(stats.duration.total_seconds() // 60)
    day = stats.ended_at.date()

    if tracker.last_study_date is None:
        streak = 1
    else:
        gap = (day - tracker.last_study_date.date()).days
        if gap <= 0:
            streak = max(tracker.streak_days, 1)
        elif gap == 1:
            streak = tracker.streak_days + 1
        else:
            streak = 1

    category_minutes = dict(tracker.category_minutes)
    if category:
        category_minutes[category] = category_minutes.get(category, 0) + minutes

    return replace(
        tracker,
        total_minutes=tracker.total_minutes + minutes,
        session_count=tracker.session_count + 1,
        last_study_date=max(stats.ended_at, tracker.last_study_date or stats.ended_at),
        category_minutes=category_minutes,
        streak_days=streak,
    )
