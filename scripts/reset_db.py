# scripts/reset_db.py

import asyncio

from loguru import logger

from gst_ledger.infrastructure.db import models  # noqa: F401
from gst_ledger.infrastructure.db.base import Base
from gst_ledger.infrastructure.db.session import create_engine


async def reset_db():
    logger.info("Resetting the documents schema (drop_all + create_all)...")
    engine = create_engine()

    async with engine.begin() as conn:
        logger.info("Dropping all tables...")
        await conn.run_sync(Base.metadata.drop_all)

        logger.info("Creating all tables from current models...")
        await conn.run_sync(Base.metadata.create_all)

    await engine.dispose()
    logger.success("DB reset complete: documents table dropped and recreated.")


if __name__ == "__main__":
    asyncio.run(reset_db())
