from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from gst_ledger.config.settings import settings
from gst_ledger.infrastructure.db.base import Base


def create_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    return create_async_engine(url or settings.DATABASE_URL, echo=False, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create the documents table when running without migrations (tests, local dev)."""
    from gst_ledger.infrastructure.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
