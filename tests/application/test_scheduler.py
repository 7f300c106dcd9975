import math
from dataclasses import replace
from datetime import timedelta

import pytest

from cadence.application.scheduler import (
    ReviewScheduler,
    new_progress,
    round_half_up,
    sanitize_progress,
)
from cadence.domain.errors import ConfigurationError
from cadence.domain.models import CardStatus, Outcome, ProgressRecord


@pytest.fixture
def scheduler():
    return ReviewScheduler()


def test_new_card_correct_moves_to_learning(scheduler, now):
    updated = scheduler.update(new_progress("c1"), Outcome.CORRECT, now)

    assert updated.status is CardStatus.LEARNING
    assert updated.interval_days == 1
    assert updated.next_review_date == now + timedelta(days=1)
    assert updated.last_reviewed == now
    assert updated.correct_count == 1
    assert updated.ease_factor == 2.5


def test_learning_correct_graduates_to_review(scheduler, now):
    learning = ProgressRecord("c1", CardStatus.LEARNING, interval_days=1, correct_count=1)
    updated = scheduler.update(learning, Outcome.CORRECT, now)

    assert updated.status is CardStatus.REVIEW
    assert updated.interval_days == 6
    assert updated.next_review_date == now + timedelta(days=6)


def test_review_correct_grows_interval_by_ease(scheduler, now):
    review = ProgressRecord("c1", CardStatus.REVIEW, ease_factor=2.5, interval_days=6)
    updated = scheduler.update(review, Outcome.CORRECT, now)

    assert updated.interval_days == 15
    assert updated.ease_factor == pytest.approx(2.6)
    assert updated.status is CardStatus.REVIEW


def test_review_reaching_threshold_becomes_mastered(scheduler, now):
    review = ProgressRecord("c1", CardStatus.REVIEW, ease_factor=2.6, interval_days=20)
    updated = scheduler.update(review, Outcome.CORRECT, now)

    assert updated.interval_days == 52
    assert updated.status is CardStatus.MASTERED
    assert updated.next_review_date == now + timedelta(days=52)


def test_incorrect_clamps_ease_at_minimum(scheduler, now):
    review = ProgressRecord("c1", CardStatus.REVIEW, ease_factor=1.4, interval_days=30)
    updated = scheduler.update(review, Outcome.INCORRECT, now)

    assert updated.ease_factor == 1.3
    assert updated.status is CardStatus.LEARNING
    assert updated.interval_days == 1
    assert updated.incorrect_count == 1


@pytest.mark.parametrize("status", list(CardStatus))
def test_incorrect_always_demotes_to_learning(scheduler, now, status):
    record = ProgressRecord(
        "c1",
        status,
        ease_factor=2.0,
        interval_days=0 if status is CardStatus.NEW else 40,
    )
    updated = scheduler.update(record, Outcome.INCORRECT, now)

    assert updated.status is CardStatus.LEARNING
    assert updated.interval_days == 1
    assert updated.next_review_date == now + timedelta(days=1)
    assert updated.ease_factor == pytest.approx(1.8)


def test_correct_always_schedules_in_the_future(scheduler, now):
    record = new_progress("c1")
    for _ in range(12):
        record = scheduler.update(record, Outcome.CORRECT, now)
        assert record.next_review_date > now
        assert record.interval_days >= 1
        assert record.ease_factor >= 1.3


def test_mastered_card_stays_mastered_on_correct(scheduler, now):
    mastered = ProgressRecord("c1", CardStatus.MASTERED, ease_factor=2.5, interval_days=30)
    updated = scheduler.update(mastered, Outcome.CORRECT, now)

    assert updated.status is CardStatus.MASTERED
    assert updated.interval_days == 75
    assert updated.ease_factor == pytest.approx(2.6)


def test_interval_capped_at_max(now):
    scheduler = ReviewScheduler(max_interval=100)
    mastered = ProgressRecord("c1", CardStatus.MASTERED, ease_factor=3.0, interval_days=90)

    assert scheduler.update(mastered, Outcome.CORRECT, now).interval_days == 100


def test_update_never_mutates_input(scheduler, now):
    record = ProgressRecord("c1", CardStatus.REVIEW, interval_days=6, version=3)
    updated = scheduler.update(record, Outcome.CORRECT, now)

    assert record.interval_days == 6
    assert record.correct_count == 0
    assert updated is not record
    assert updated.version == 3


def test_update_accepts_string_outcome(scheduler, now):
    assert scheduler.update(new_progress("c1"), "correct", now).status is CardStatus.LEARNING


def test_skip_is_rejected(scheduler, now):
    with pytest.raises(ValueError):
        scheduler.update(new_progress("c1"), Outcome.SKIPPED, now)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(14.5) == 15
    assert round_half_up(14.49) == 14


def test_invalid_thresholds():
    with pytest.raises(ConfigurationError):
        ReviewScheduler(mastery_interval=0)
    with pytest.raises(ConfigurationError):
        ReviewScheduler(mastery_interval=30, max_interval=20)


# --- Malformed records ---


def test_sanitize_leaves_valid_record_untouched(now):
    record = ProgressRecord("c1", CardStatus.REVIEW, interval_days=6, last_reviewed=now)
    clean, violations = sanitize_progress(record)

    assert clean is record
    assert violations == []


def test_sanitize_clamps_every_bad_field(now):
    record = ProgressRecord(
        "c1",
        CardStatus.REVIEW,
        ease_factor=0.5,
        interval_days=-3,
        correct_count=-1,
        last_reviewed=now,
        next_review_date=now - timedelta(days=2),
    )
    clean, violations = sanitize_progress(record)

    assert clean.ease_factor == 1.3
    assert clean.interval_days == 1
    assert clean.correct_count == 0
    assert clean.next_review_date == now + timedelta(days=1)
    assert {v.field for v in violations} == {
        "ease_factor",
        "interval_days",
        "correct_count",
        "next_review_date",
    }


def test_sanitize_resets_non_finite_ease():
    clean, violations = sanitize_progress(replace(new_progress("c1"), ease_factor=math.nan))

    assert clean.ease_factor == 2.5
    assert violations[0].field == "ease_factor"


def test_update_recovers_from_corrupted_record(scheduler, now, caplog):
    corrupted = ProgressRecord("c1", CardStatus.REVIEW, ease_factor=-1.0, interval_days=10)

    with caplog.at_level("WARNING", logger="cadence.application.scheduler"):
        updated = scheduler.update(corrupted, Outcome.CORRECT, now)

    assert updated.ease_factor == pytest.approx(1.4)
    assert updated.interval_days == 13
    assert "Recovered malformed progress record" in caplog.text
