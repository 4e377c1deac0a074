# scripts/run_backfill.py

import asyncio

from loguru import logger

from gst_ledger.core.logging_config import setup_logging
from gst_ledger.main import build_sql_engine


async def run_backfill():
    logger.info("Connecting to the document DB and backfilling missing GST ledger entries...")

    engine, db_engine = await build_sql_engine()
    try:
        report = await engine.backfill.run()
    finally:
        await db_engine.dispose()

    if report.failed:
        logger.warning("Backfill left {} invoice(s) for retry: {}", len(report.failed), report.failed)
    logger.success(
        "Backfill complete: {} created, {} already present.",
        len(report.created),
        report.skipped_existing,
    )


if __name__ == "__main__":
    setup_logging()
    asyncio.run(run_backfill())
