# gst_ledger/main.py
"""Wiring: one store shared by the ledger, synchronizer, backfill and return services."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from gst_ledger.config.settings import Settings, settings as default_settings
from gst_ledger.domain.services.gst_backfill import BackfillGenerator, BackfillReport
from gst_ledger.domain.services.gst_ledger import GSTLedger
from gst_ledger.domain.services.gst_returns import GSTReturnService
from gst_ledger.domain.services.invoice_sync import InvoiceLedgerSynchronizer, SyncErrorHook
from gst_ledger.infrastructure.db.repositories import SqlDocumentStore
from gst_ledger.infrastructure.db.session import create_engine, create_session_factory, create_tables
from gst_ledger.infrastructure.store.base import DocumentStore

logger = logging.getLogger("gst_ledger.main")


@dataclass
class GSTEngine:
    store: DocumentStore
    ledger: GSTLedger
    synchronizer: InvoiceLedgerSynchronizer
    backfill: BackfillGenerator
    returns: GSTReturnService

    async def startup(self) -> BackfillReport:
        """Catch up ledger entries missed while the process was down."""
        report = await self.backfill.run()
        logger.info("Startup backfill: %s", report.to_dict())
        return report

    async def shutdown(self) -> None:
        self.backfill.cancel()
        await self.synchronizer.drain()
        await self.backfill.drain()


def build_engine(
    store: DocumentStore,
    settings: Settings | None = None,
    *,
    actor: str | None = None,
    on_sync_error: SyncErrorHook | None = None,
) -> GSTEngine:
    settings = settings or default_settings
    return GSTEngine(
        store=store,
        ledger=GSTLedger(store, settings),
        synchronizer=InvoiceLedgerSynchronizer(
            store, settings, actor=actor, on_sync_error=on_sync_error
        ),
        backfill=BackfillGenerator(store, settings, actor=actor),
        returns=GSTReturnService(store, settings, actor=actor),
    )


async def build_sql_engine(
    url: str | None = None,
    settings: Settings | None = None,
    *,
    actor: str | None = None,
    create_schema: bool = True,
    **engine_kwargs,
) -> tuple[GSTEngine, AsyncEngine]:
    """GSTEngine over the SQL document table; the caller disposes the AsyncEngine."""
    settings = settings or default_settings
    db_engine = create_engine(url or settings.DATABASE_URL, **engine_kwargs)
    if create_schema:
        await create_tables(db_engine)
    store = SqlDocumentStore(create_session_factory(db_engine))
    return build_engine(store, settings, actor=actor), db_engine
