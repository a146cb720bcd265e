from __future__ import annotations

import pytest

from entitlements.core.errors import InvalidRequestError, NotFoundError
from entitlements.services.quiz_evaluator import answer_key_for, evaluate_and_record, score_answers, store_quiz


def test_exact_match_scoring():
    result = score_answers(["4", "x = 2", "Paris", "True"], ["4", "x = 2", "paris", "True"])
    assert (result.correct_answers, result.total_questions, result.percentage) == (3, 4, 75)


def test_missing_answers_count_as_wrong():
    result = score_answers(["a", "b", "c"], ["a", None])
    assert (result.correct_answers, result.percentage) == (1, 33)


def test_empty_quiz_rejected():
    with pytest.raises(InvalidRequestError):
        score_answers([], [])


@pytest.mark.asyncio
async def test_stored_quiz_answer_key_is_owner_scoped(db, learning_path):
    quiz_id = await store_quiz(
        db,
        "s1",
        "c0a",
        [
            {"Q": 1, "question": "2+2?", "options": ["3", "4"], "answer": "4"},
            {"Q": 2, "question": "3*3?", "options": ["9", "6"], "answer": "9"},
        ],
    )
    assert await answer_key_for(db, quiz_id, "s1", "c0a") == ["4", "9"]
    with pytest.raises(NotFoundError):
        await answer_key_for(db, quiz_id, "someone-else", "c0a")
    with pytest.raises(NotFoundError):
        await answer_key_for(db, quiz_id, "s1", "c0b")


@pytest.mark.asyncio
async def test_evaluate_and_record_updates_progress(db, learning_path):
    result, row = await evaluate_and_record(db, "s1", "c0a", ["a", "b", "c", "d"], ["a", "b", "c", "x"])
    assert result.percentage == 75
    assert row.quiz_score == 75
    assert row.completed_at is not None
