# tests/test_gst_summary.py
"""Tests for period summaries, totals, filters and the report payload."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from gst_ledger.domain.models.gst import GSTFilterOptions, LedgerEntry
from gst_ledger.domain.services import gst_summary
from gst_ledger.domain.services.gst_ledger import GSTLedger
from gst_ledger.domain.services.invoice_sync import InvoiceLedgerSynchronizer
from gst_ledger.domain.services.periods import period_keys


def _entry(kind, tax, date, status="unfiled", invoice_id=None, entry_id=None) -> LedgerEntry:
    keys = period_keys(date)
    return LedgerEntry(
        id=entry_id or f"{kind}-{date}-{tax}",
        kind=kind,
        amount=Decimal(tax) * 10,
        tax_amount=Decimal(tax),
        status=status,
        invoice_id=invoice_id,
        date=date,
        month=keys.month,
        quarter=keys.quarter,
        year=keys.year,
    )


@pytest.fixture
def entries():
    return [
        _entry("collected", "180", "2024-06-15", invoice_id="INV-001"),
        _entry("collected", "90", "2024-06-20", invoice_id="INV-002", status="filed"),
        _entry("paid", "50", "2024-06-02"),
        _entry("collected", "300", "2024-05-10", invoice_id="INV-003"),
        _entry("paid", "400", "2024-04-01"),
        _entry("collected", "10", "2023-12-31", invoice_id="INV-004"),
    ]


class TestSummarize:

    def test_month(self, entries):
        summary = gst_summary.summarize(entries, "2024-06")
        assert summary.collected == Decimal("270")
        assert summary.paid == Decimal("50")
        assert summary.net == Decimal("220")
        assert summary.record_count == 3

    def test_quarter_and_year(self, entries):
        q2 = gst_summary.summarize(entries, "2024-Q2")
        assert q2.collected == Decimal("570")
        assert q2.paid == Decimal("450")
        assert q2.record_count == 5

        year = gst_summary.summarize(entries, "2024")
        assert year.net == year.collected - year.paid
        assert gst_summary.summarize(entries, "2023").collected == Decimal("10")

    def test_net_can_be_negative(self, entries):
        summary = gst_summary.summarize(entries, "2024-04")
        assert summary.net == Decimal("-400")

    def test_quarter_is_sum_of_its_months(self, entries):
        months = [gst_summary.summarize(entries, m) for m in ("2024-04", "2024-05", "2024-06")]
        quarter = gst_summary.summarize(entries, "2024-Q2")
        assert quarter.collected == sum((m.collected for m in months), Decimal("0"))
        assert quarter.paid == sum((m.paid for m in months), Decimal("0"))

    def test_empty_period(self, entries):
        summary = gst_summary.summarize(entries, "2022-01")
        assert summary.collected == summary.paid == summary.net == 0
        assert summary.record_count == 0

    def test_invalid_period_raises(self, entries):
        with pytest.raises(ValueError):
            gst_summary.summarize(entries, "June")

    def test_current_period_uses_clock(self, entries):
        now = datetime(2024, 6, 30, tzinfo=timezone.utc)
        summary = gst_summary.current_period_summary(entries, now)
        assert summary.period == "2024-06"
        assert summary.collected == Decimal("270")


class TestTotals:

    def test_all_time_totals(self, entries):
        assert gst_summary.total_collected(entries) == Decimal("580")
        assert gst_summary.total_paid(entries) == Decimal("450")
        assert gst_summary.net_liability(entries) == Decimal("130")

    def test_period_summaries_newest_first(self, entries):
        periods = [s.period for s in gst_summary.period_summaries(entries)]
        assert periods == ["2024-06", "2024-05", "2024-04", "2023-12"]


class TestReport:

    def test_monthly_report(self, entries):
        report = gst_summary.build_report(entries, GSTFilterOptions(year=2024, month=6))
        assert report.period == "2024-06"
        assert report.collected == Decimal("270")
        assert report.paid == Decimal("50")
        assert report.total_invoices == 2
        assert len(report.entries) == 3

    def test_yearly_report_with_filters(self, entries):
        options = GSTFilterOptions(year=2024, kind="collected", status="unfiled")
        report = gst_summary.build_report(entries, options)
        assert report.period == "2024"
        assert report.collected == Decimal("480")
        assert report.paid == 0
        assert {e.invoice_id for e in report.entries} == {"INV-001", "INV-003"}

    def test_month_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            GSTFilterOptions(year=2024, month=13)


class TestInvoiceLifecycle:

    def test_save_then_delete_moves_summary(self, store, settings, make_invoice, event_loop):
        """Saving the example invoice adds 180 collected; deleting it takes it back out."""
        sync = InvoiceLedgerSynchronizer(store, settings)
        ledger = GSTLedger(store, settings)

        event_loop.run_until_complete(sync.save_invoice(make_invoice()))
        summary = event_loop.run_until_complete(ledger.summary_for("2024-06"))
        assert (summary.collected, summary.paid, summary.net) == (Decimal("180"), 0, Decimal("180"))

        event_loop.run_until_complete(sync.delete_invoice("INV-001"))
        summary = event_loop.run_until_complete(ledger.summary_for("2024-06"))
        assert (summary.collected, summary.paid, summary.net) == (0, 0, 0)
        assert summary.record_count == 0
