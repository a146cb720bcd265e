from __future__ import annotations

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from entitlements.schemas.catalog import LearningPathRequest, LearningPathResponse, ModuleSpec
from entitlements.services import catalog
from entitlements.storage.database import get_db

router = APIRouter(prefix="/api/learning-paths", tags=["learning-paths"])


def _response(path, chapter_count: int) -> LearningPathResponse:
    return LearningPathResponse(
        learning_path_id=path.learning_path_id,
        title=path.title,
        modules=[ModuleSpec.model_validate(m) for m in path.structure or []],
        chapter_count=chapter_count,
    )


@router.put("/{learning_path_id}", response_model=LearningPathResponse)
async def put_learning_path(
    payload: LearningPathRequest,
    learning_path_id: str = Path(min_length=1),
    db: AsyncSession = Depends(get_db),
):
    """Author or replace the module/submodule/chapter tree of a path."""
    modules = [m.model_dump() for m in payload.modules]
    path = await catalog.register_learning_path(db, learning_path_id, payload.title, modules)
    chapters = await catalog.module_chapters(db, learning_path_id)
    return _response(path, sum(len(c) for c in chapters))


@router.get("/{learning_path_id}", response_model=LearningPathResponse)
async def get_learning_path(learning_path_id: str, db: AsyncSession = Depends(get_db)):
    path = await catalog.get_learning_path(db, learning_path_id)
    chapters = await catalog.module_chapters(db, learning_path_id)
    return _response(path, sum(len(c) for c in chapters))
