from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from entitlements.core.errors import UnavailableError
from entitlements.core.settings import settings

engine = create_async_engine(settings.database_url, pool_pre_ping=True, echo=settings.database_echo)
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncSession:
    async with SessionLocal() as session:
        yield session


@asynccontextmanager
async def storage_guard(operation: str):
    """Translate driver/connection failures into UnavailableError.

    Integrity violations are left alone: callers use them for insert-if-absent races.
    """
    try:
        yield
    except IntegrityError:
        raise
    except (DBAPIError, OSError) as exc:
        raise UnavailableError(f"Storage unavailable during {operation}", details={"operation": operation}) from exc
