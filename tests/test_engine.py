# tests/test_engine.py
"""End-to-end wiring over the in-memory and SQL document stores."""

from decimal import Decimal

from sqlalchemy.pool import StaticPool

from gst_ledger.config.settings import Settings
from gst_ledger.main import build_engine, build_sql_engine


class TestInMemoryEngine:

    def test_startup_backfills_and_shutdown_drains(self, store, settings, make_invoice, event_loop):
        invoice = make_invoice()
        event_loop.run_until_complete(
            store.set(settings.INVOICES_COLLECTION, invoice.id, invoice.to_document())
        )
        engine = build_engine(store, settings, actor="system")

        report = event_loop.run_until_complete(engine.startup())
        assert report.created == ["INV-001"]
        event_loop.run_until_complete(engine.shutdown())
        assert not engine.backfill.is_processing


class TestSqlEngine:

    def test_invoice_to_filed_return(self, make_invoice, event_loop):
        """Save an invoice, file its month and delete it again against SQLite."""
        settings = Settings(_env_file=None, BACKFILL_BATCH_SIZE=1)
        engine, db_engine = event_loop.run_until_complete(build_sql_engine(
            "sqlite+aiosqlite://",
            settings,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        ))
        try:
            result = event_loop.run_until_complete(engine.synchronizer.save_invoice(make_invoice()))
            assert result.synced

            summary = event_loop.run_until_complete(engine.ledger.summary_for("2024-Q2"))
            assert summary.collected == Decimal("180")

            filing = event_loop.run_until_complete(engine.returns.file_period("2024-06"))
            assert filing.linked_entry_ids == ["gst_INV-001"]
            assert filing.net_tax == Decimal("1180")
            entry = event_loop.run_until_complete(engine.ledger.get("gst_INV-001"))
            assert entry.status == "filed"

            report = event_loop.run_until_complete(engine.startup())
            assert report.candidates == 0

            removed = event_loop.run_until_complete(engine.synchronizer.delete_invoice("INV-001"))
            assert removed == 1
            assert event_loop.run_until_complete(engine.ledger.list_entries()) == []
        finally:
            event_loop.run_until_complete(db_engine.dispose())
