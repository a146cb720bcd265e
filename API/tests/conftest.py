from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.mkdtemp(prefix='entitlements-unit-')) / 'unit.db'}",
)

from entitlements.models import entities  # noqa: E402,F401
from entitlements.models.base import Base  # noqa: E402
from entitlements.services import catalog  # noqa: E402


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'unit.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def learning_path(db):
    """Student s1 and path p1 with modules [[c0a, c0b], [c1a], [c2a]]."""
    await catalog.register_student(db, "s1", "Asha")
    modules = [
        {"title": "M0", "submodules": [{"title": "S", "chapters": [{"chapter_id": "c0a"}, {"chapter_id": "c0b"}]}]},
        {"title": "M1", "submodules": [{"title": "S", "chapters": [{"chapter_id": "c1a"}]}]},
        {"title": "M2", "submodules": [{"title": "S", "chapters": [{"chapter_id": "c2a"}]}]},
    ]
    await catalog.register_learning_path(db, "p1", "Path", modules)
    return {"student_id": "s1", "path_id": "p1"}
