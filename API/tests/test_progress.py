from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from entitlements.core.clock import as_utc
from entitlements.core.errors import InvalidRequestError, NotFoundError
from entitlements.services import progress
from entitlements.services.progress import ChapterState, advance, percentage

T0 = datetime(2026, 4, 1, 9, 0, tzinfo=timezone.utc)


def test_percentage_rounds_half_up():
    assert percentage(3, 4) == 75
    assert percentage(2, 3) == 67
    assert percentage(1, 3) == 33
    assert percentage(1, 8) == 13  # 12.5
    assert percentage(0, 5) == 0
    assert percentage(5, 5) == 100


def test_state_machine_completion_is_terminal():
    assert advance(ChapterState.NOT_STARTED) == ChapterState.IN_PROGRESS
    assert advance(ChapterState.IN_PROGRESS, 74) == ChapterState.IN_PROGRESS
    assert advance(ChapterState.IN_PROGRESS, 75) == ChapterState.COMPLETED
    assert advance(ChapterState.COMPLETED, 10) == ChapterState.COMPLETED


@pytest.mark.asyncio
async def test_quiz_at_threshold_completes_chapter(db, learning_path):
    row = await progress.record_quiz(db, "s1", "c0a", total_questions=4, correct_answers=3, now=T0)
    assert row.quiz_score == 75
    assert row.quiz_attempts == 1
    assert as_utc(row.completed_at) == T0
    assert progress.chapter_state(row) == ChapterState.COMPLETED


@pytest.mark.asyncio
async def test_completion_survives_lower_retake(db, learning_path):
    await progress.record_quiz(db, "s1", "c0a", total_questions=4, correct_answers=4, now=T0)
    row = await progress.record_quiz(
        db, "s1", "c0a", total_questions=4, correct_answers=1, now=T0 + timedelta(hours=1)
    )
    assert row.quiz_score == 25
    assert row.quiz_attempts == 2
    assert as_utc(row.completed_at) == T0
    assert progress.chapter_state(row) == ChapterState.COMPLETED


@pytest.mark.asyncio
async def test_completion_time_is_first_mastery(db, learning_path):
    await progress.record_quiz(db, "s1", "c0a", total_questions=4, correct_answers=2, now=T0)
    await progress.record_quiz(db, "s1", "c0a", total_questions=4, correct_answers=3, now=T0 + timedelta(hours=1))
    row = await progress.record_quiz(db, "s1", "c0a", score=100, now=T0 + timedelta(hours=2))
    assert as_utc(row.completed_at) == T0 + timedelta(hours=1)


@pytest.mark.asyncio
async def test_below_threshold_stays_in_progress(db, learning_path):
    row = await progress.record_quiz(db, "s1", "c0a", total_questions=3, correct_answers=2, now=T0)
    assert row.quiz_score == 67
    assert row.completed_at is None
    assert progress.chapter_state(row) == ChapterState.IN_PROGRESS


@pytest.mark.asyncio
async def test_watch_time_never_decreases(db, learning_path):
    await progress.record_video_watch(db, "s1", "c0a", cumulative_watch_time=120, video_duration=600)
    row = await progress.record_video_watch(db, "s1", "c0a", cumulative_watch_time=60)
    assert row.video_watch_time == 120
    row = await progress.record_video_watch(db, "s1", "c0a", cumulative_watch_time=300)
    assert row.video_watch_time == 300
    assert row.video_duration == 600


@pytest.mark.asyncio
async def test_watching_alone_never_completes(db, learning_path):
    row = await progress.record_video_watch(db, "s1", "c0a", cumulative_watch_time=600, video_duration=600)
    assert row.completed_at is None
    assert progress.progress_percentage(row) == 70
    assert progress.chapter_state(row) == ChapterState.IN_PROGRESS


@pytest.mark.asyncio
async def test_watch_percentage_below_ceiling(db, learning_path):
    row = await progress.record_video_watch(db, "s1", "c0a", cumulative_watch_time=150, video_duration=600)
    assert progress.progress_percentage(row) == 25


@pytest.mark.asyncio
async def test_unknown_chapter_or_student(db, learning_path):
    with pytest.raises(NotFoundError):
        await progress.record_quiz(db, "s1", "missing", total_questions=4, correct_answers=3)
    with pytest.raises(NotFoundError):
        await progress.record_video_watch(db, "ghost", "c0a", cumulative_watch_time=1)


@pytest.mark.asyncio
async def test_rejects_inconsistent_counts(db, learning_path):
    with pytest.raises(InvalidRequestError):
        await progress.record_quiz(db, "s1", "c0a", total_questions=3, correct_answers=4)
    with pytest.raises(InvalidRequestError):
        await progress.record_quiz(db, "s1", "c0a")


@pytest.mark.asyncio
async def test_list_progress_summary(db, learning_path):
    await progress.record_quiz(db, "s1", "c0a", total_questions=4, correct_answers=4, now=T0)
    await progress.record_quiz(db, "s1", "c0b", total_questions=4, correct_answers=2, now=T0)
    await progress.record_video_watch(db, "s1", "c1a", cumulative_watch_time=30, video_duration=60)

    entries, summary = await progress.list_progress(db, "s1")
    assert [e.progress.chapter_id for e in entries] == ["c0a", "c0b", "c1a"]
    assert [e.module_index for e in entries] == [0, 0, 1]
    assert {e.learning_path_id for e in entries} == {"p1"}
    assert summary.chapters_started == 3
    assert summary.completed_chapters == 1
    assert summary.average_quiz_score == 75.0
    assert summary.total_video_watch_time == 30.0


@pytest.mark.asyncio
async def test_completion_times_only_lists_completed(db, learning_path):
    await progress.record_quiz(db, "s1", "c0a", total_questions=4, correct_answers=4, now=T0)
    await progress.record_quiz(db, "s1", "c0b", total_questions=4, correct_answers=1, now=T0)
    times = await progress.completion_times(db, "s1", ["c0a", "c0b", "c1a"])
    assert times == {"c0a": T0}
