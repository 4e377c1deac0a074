# tests/test_gst_ledger.py
"""Tests for the GST ledger adapter: manual entries, updates, removal, reads."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from gst_ledger.core.errors import NotFoundError, PersistenceError
from gst_ledger.domain.models.gst import LedgerEntryDraft
from gst_ledger.domain.services.gst_ledger import GSTLedger, ledger_entry_id


def _draft(**overrides) -> LedgerEntryDraft:
    defaults = {
        "kind": "paid",
        "amount": "5000",
        "tax_amount": "900",
        "tax_rate_percent": "18",
        "description": "Input credit on raw material",
        "date": "2024-06-10",
        "dealer_id": "dealer-1",
        "customer_name": "ABC Traders Pvt Ltd",
        "customer_tax_id": "36AABCU9603R1ZM",
    }
    defaults.update(overrides)
    return LedgerEntryDraft(**defaults)


@pytest.fixture
def ledger(store, settings) -> GSTLedger:
    return GSTLedger(store, settings)


class TestAddManualEntry:

    def test_paid_entry_is_stamped(self, ledger, event_loop):
        """Paid entries start unfiled with payment_status 'paid' and period keys."""
        entry = event_loop.run_until_complete(ledger.add_manual_entry(_draft(), actor="user-42"))

        assert entry.id
        assert entry.status == "unfiled"
        assert entry.payment_status == "paid"
        assert entry.month == "2024-06"
        assert entry.quarter == "2024-Q2"
        assert entry.year == "2024"
        assert entry.created_at and entry.created_at == entry.updated_at
        assert entry.created_by_actor == "user-42"

        stored = event_loop.run_until_complete(ledger.get(entry.id))
        assert stored.to_document() == entry.to_document()

    def test_collected_entry_is_pending(self, ledger, event_loop):
        entry = event_loop.run_until_complete(
            ledger.add_manual_entry(_draft(kind="collected"))
        )
        assert entry.payment_status == "pending"

    def test_dealer_fills_customer_fields(self, ledger, store, settings, event_loop):
        """Picking a dealer copies its name and GSTIN onto the entry."""
        event_loop.run_until_complete(store.set(settings.DEALERS_COLLECTION, "dealer-7", {
            "name": "Sharma Steel Suppliers", "tax_id": "07AAACS1234F1Z5",
        }))
        entry = event_loop.run_until_complete(ledger.add_manual_entry(
            _draft(dealer_id="dealer-7", customer_name=None, customer_tax_id=None)
        ))
        assert entry.dealer_id == "dealer-7"
        assert entry.customer_name == "Sharma Steel Suppliers"
        assert entry.customer_tax_id == "07AAACS1234F1Z5"

    def test_unknown_dealer_keeps_draft_fields(self, ledger, event_loop):
        entry = event_loop.run_until_complete(ledger.add_manual_entry(_draft(dealer_id="ghost")))
        assert entry.dealer_id == "ghost"
        assert entry.customer_name == "ABC Traders Pvt Ltd"

    def test_store_failure_propagates(self, ledger, store, event_loop):
        store.add = AsyncMock(side_effect=PersistenceError("write rejected"))
        with pytest.raises(PersistenceError):
            event_loop.run_until_complete(ledger.add_manual_entry(_draft()))


class TestUpdateAndRemove:

    def test_update_merges_fields(self, ledger, event_loop):
        entry = event_loop.run_until_complete(ledger.add_manual_entry(_draft()))
        event_loop.run_until_complete(
            ledger.update(entry.id, {"description": "Corrected", "tax_amount": Decimal("810")})
        )
        updated = event_loop.run_until_complete(ledger.get(entry.id))
        assert updated.description == "Corrected"
        assert updated.tax_amount == Decimal("810")
        assert updated.amount == Decimal("5000")
        assert updated.updated_at >= entry.updated_at

    def test_update_unknown_id_raises(self, ledger, event_loop):
        with pytest.raises(NotFoundError):
            event_loop.run_until_complete(ledger.update("missing", {"description": "x"}))

    def test_remove_is_idempotent(self, ledger, event_loop):
        entry = event_loop.run_until_complete(ledger.add_manual_entry(_draft()))
        event_loop.run_until_complete(ledger.remove(entry.id))
        event_loop.run_until_complete(ledger.remove(entry.id))
        event_loop.run_until_complete(ledger.remove("never-existed"))
        assert event_loop.run_until_complete(ledger.get(entry.id)) is None


class TestReads:

    def test_list_entries_newest_first(self, ledger, event_loop):
        event_loop.run_until_complete(ledger.add_manual_entry(_draft(date="2024-01-05")))
        event_loop.run_until_complete(ledger.add_manual_entry(_draft(date="2024-03-05")))
        event_loop.run_until_complete(ledger.add_manual_entry(_draft(date="2024-02-05")))
        entries = event_loop.run_until_complete(ledger.list_entries())
        assert [e.date for e in entries] == ["2024-03-05", "2024-02-05", "2024-01-05"]

    def test_totals(self, ledger, event_loop):
        event_loop.run_until_complete(ledger.add_manual_entry(_draft(kind="collected", tax_amount="500")))
        event_loop.run_until_complete(ledger.add_manual_entry(_draft(kind="paid", tax_amount="120")))
        assert event_loop.run_until_complete(ledger.total_collected()) == Decimal("500")
        assert event_loop.run_until_complete(ledger.total_paid()) == Decimal("120")
        assert event_loop.run_until_complete(ledger.net_liability()) == Decimal("380")

    def test_summary_for_month(self, ledger, event_loop):
        event_loop.run_until_complete(ledger.add_manual_entry(_draft(kind="collected", tax_amount="500")))
        event_loop.run_until_complete(
            ledger.add_manual_entry(_draft(kind="collected", tax_amount="70", date="2024-07-01"))
        )
        summary = event_loop.run_until_complete(ledger.summary_for("2024-06"))
        assert summary.collected == Decimal("500")
        assert summary.record_count == 1

    def test_summary_for_malformed_period_raises(self, ledger, event_loop):
        with pytest.raises(ValueError):
            event_loop.run_until_complete(ledger.summary_for("06/2024"))

    def test_entries_for_invoice(self, ledger, store, settings, event_loop):
        event_loop.run_until_complete(
            store.set(settings.LEDGER_COLLECTION, ledger_entry_id("INV-9"), {
                "kind": "collected", "invoice_id": "INV-9", "date": "2024-06-01",
                "month": "2024-06", "quarter": "2024-Q2", "year": "2024",
            })
        )
        entries = event_loop.run_until_complete(ledger.entries_for_invoice("INV-9"))
        assert [e.id for e in entries] == ["gst_INV-9"]

    def test_subscribe_delivers_entries(self, ledger, event_loop):
        seen = []
        event_loop.run_until_complete(ledger.subscribe(lambda entries: seen.append(entries)))
        event_loop.run_until_complete(ledger.add_manual_entry(_draft()))
        assert seen[0] == []
        assert len(seen[-1]) == 1
        assert seen[-1][0].kind == "paid"
