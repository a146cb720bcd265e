import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from entitlements.models.base import Base

# Imported for its side effect of registering every table on Base.metadata.
from entitlements.models import entities  # noqa: F401

logger = logging.getLogger(__name__)


async def initialize_database(engine: AsyncEngine) -> None:
    """Create missing tables. Schema changes on existing databases go through alembic."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready (%s tables)", len(Base.metadata.tables))
