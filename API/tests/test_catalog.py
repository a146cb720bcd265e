from __future__ import annotations

import pytest

from entitlements.core.errors import ConflictError, InvalidRequestError, NotFoundError
from entitlements.services import catalog, progress


def _modules(*chapter_groups):
    return [
        {"title": f"M{i}", "submodules": [{"title": "S", "chapters": [{"chapter_id": c} for c in group]}]}
        for i, group in enumerate(chapter_groups)
    ]


@pytest.mark.asyncio
async def test_module_chapters_keep_authored_order(db, learning_path):
    assert await catalog.module_chapters(db, "p1") == [["c0a", "c0b"], ["c1a"], ["c2a"]]
    chapter = await catalog.get_chapter(db, "c1a")
    assert (chapter.learning_path_id, chapter.module_index) == ("p1", 1)


@pytest.mark.asyncio
async def test_chapter_lookup_checks_path(db, learning_path):
    with pytest.raises(NotFoundError):
        await catalog.get_chapter(db, "c1a", "other-path")


@pytest.mark.asyncio
async def test_path_can_be_replaced_before_any_progress(db, learning_path):
    await catalog.register_learning_path(db, "p1", "Path v2", _modules(["c0a"], ["c1a", "c1b"]))
    assert await catalog.module_chapters(db, "p1") == [["c0a"], ["c1a", "c1b"]]


@pytest.mark.asyncio
async def test_path_frozen_after_progress(db, learning_path):
    await progress.record_video_watch(db, "s1", "c0a", cumulative_watch_time=10)
    with pytest.raises(ConflictError):
        await catalog.register_learning_path(db, "p1", "Path v2", _modules(["c0a"]))


@pytest.mark.asyncio
async def test_chapter_ids_are_unique_across_paths(db, learning_path):
    with pytest.raises(ConflictError):
        await catalog.register_learning_path(db, "p2", "Other", _modules(["c0a"]))
    with pytest.raises(InvalidRequestError):
        await catalog.register_learning_path(db, "p3", "Dup", _modules(["x1", "x1"]))


@pytest.mark.asyncio
async def test_register_student_is_idempotent(db):
    await catalog.register_student(db, "s9")
    student = await catalog.register_student(db, "s9", "Ravi")
    assert student.name == "Ravi"
    with pytest.raises(NotFoundError):
        await catalog.get_student(db, "missing")
