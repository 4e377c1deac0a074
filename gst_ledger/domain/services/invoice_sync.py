# gst_ledger/domain/services/invoice_sync.py
"""
Invoice → GST ledger synchronization.

Every invoice with positive tax owns exactly one ``collected`` ledger entry
stored at the deterministic id ``gst_<invoice_id>``. Saving an invoice
upserts that entry; deleting an invoice removes every entry pointing at it
before the invoice itself goes away.

A failed sync never fails the invoice save. In synchronous mode the error is
returned on the InvoiceSaveResult; in background mode the sync runs as an
asyncio task. Either way it is logged and handed to ``on_sync_error``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, Union

from gst_ledger.config.settings import Settings, settings as default_settings
from gst_ledger.core.errors import NotFoundError
from gst_ledger.domain.models.gst import DocumentTotals, Invoice, LedgerEntry
from gst_ledger.domain.services.gst_ledger import ledger_entry_id
from gst_ledger.domain.services.periods import now_iso, period_keys
from gst_ledger.domain.services.tax_calculator import (
    compute_document_totals,
    effective_tax_rate,
)
from gst_ledger.infrastructure.audit import log_ledger_action
from gst_ledger.infrastructure.store.base import DocumentStore

logger = logging.getLogger("invoice_sync")

ZERO = Decimal("0")

SyncErrorHook = Callable[[str, Exception], Union[None, Awaitable[None]]]

# Fields rewritten on every re-save; filing status and creation stamps survive.
DERIVED_FIELDS = (
    "kind", "amount", "tax_amount", "tax_rate_percent", "description",
    "payment_status", "invoice_id", "date", "month", "quarter", "year",
    "customer_name", "customer_tax_id", "updated_at",
)


@dataclass
class InvoiceSaveResult:
    invoice_id: str
    ledger_entry_id: Optional[str] = None
    skipped: bool = False        # zero-tax invoice, no ledger sync
    pending: bool = False        # sync dispatched in the background
    sync_error: Optional[Exception] = None

    @property
    def synced(self) -> bool:
        return self.ledger_entry_id is not None and self.sync_error is None


# ---------------------------------------------------------------------------
# Entry derivation
# ---------------------------------------------------------------------------

def invoice_tax_totals(invoice: Invoice) -> DocumentTotals:
    """Totals from the line items, or from the stored figures when there are none."""
    if invoice.items:
        return compute_document_totals(invoice.items, invoice.round_off)
    half = invoice.tax_amount / 2
    return DocumentTotals(
        subtotal=invoice.subtotal,
        tax_amount=invoice.tax_amount,
        cgst=half,
        sgst=half,
        round_off=invoice.round_off,
        total=invoice.total_amount,
    )


def invoice_is_paid(invoice: Invoice) -> bool:
    return invoice.status == "paid" or bool(invoice.paid)


def build_collected_entry(
    invoice: Invoice,
    *,
    actor: str | None = None,
    totals: DocumentTotals | None = None,
) -> LedgerEntry:
    """Derive the collected ledger entry for an invoice (pure)."""
    totals = totals or invoice_tax_totals(invoice)
    entry_date = invoice.invoice_date or invoice.created_at
    keys = period_keys(entry_date)
    rate = effective_tax_rate(invoice.items)
    stamp = now_iso()
    return LedgerEntry(
        id=ledger_entry_id(invoice.id),
        kind="collected",
        amount=totals.total,
        tax_amount=totals.tax_amount,
        tax_rate_percent=rate if rate > 0 else None,
        description=f"GST from invoice #{invoice.invoice_number or invoice.id}",
        status="unfiled",
        payment_status="paid" if invoice_is_paid(invoice) else "pending",
        invoice_id=invoice.id,
        date=entry_date,
        month=keys.month,
        quarter=keys.quarter,
        year=keys.year,
        customer_name=invoice.customer_name,
        customer_tax_id=invoice.customer_tax_id or "",
        created_at=stamp,
        updated_at=stamp,
        created_by_actor=actor,
    )


# ---------------------------------------------------------------------------
# Synchronizer
# ---------------------------------------------------------------------------

class InvoiceLedgerSynchronizer:
    def __init__(
        self,
        store: DocumentStore,
        settings: Settings | None = None,
        *,
        actor: str | None = None,
        background: bool | None = None,
        on_sync_error: SyncErrorHook | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or default_settings
        self.actor = actor
        self.background = self.settings.LEDGER_SYNC_BACKGROUND if background is None else background
        self.on_sync_error = on_sync_error
        self.ledger_collection = self.settings.LEDGER_COLLECTION
        self.invoice_collection = self.settings.INVOICES_COLLECTION
        self._pending: set[asyncio.Task] = set()

    # ---------- ledger side ----------

    async def sync_invoice(self, invoice: Invoice) -> str | None:
        """Upsert the invoice's collected entry; returns its id, or None when skipped.

        Raises whatever the store raises.
        """
        if not invoice.items:
            logger.debug("Invoice %s has no items, ledger sync skipped", invoice.id)
            return None

        totals = compute_document_totals(invoice.items, invoice.round_off)
        if totals.tax_amount <= ZERO:
            logger.debug("Invoice %s carries no tax, ledger sync skipped", invoice.id)
            return None

        entry = build_collected_entry(invoice, actor=self.actor, totals=totals)
        doc = entry.to_document()
        existing = await self.store.get(self.ledger_collection, entry.id)

        if existing is None:
            await self.store.set(self.ledger_collection, entry.id, doc)
            action = "ledger_entry_created"
        else:
            derived = {k: doc[k] for k in DERIVED_FIELDS}
            try:
                await self.store.update(self.ledger_collection, entry.id, derived)
            except NotFoundError:
                # Deleted between the read and the write; recreate it
                await self.store.set(self.ledger_collection, entry.id, doc)
            action = "ledger_entry_updated"

        log_ledger_action(
            action,
            actor=self.actor,
            collection=self.ledger_collection,
            doc_id=entry.id,
            details={"invoice_id": invoice.id, "tax_amount": str(entry.tax_amount)},
        )
        return entry.id

    # ---------- invoice side ----------

    async def save_invoice(self, invoice: Invoice) -> InvoiceSaveResult:
        """Persist the invoice, then sync its ledger entry."""
        doc = invoice.to_document()
        if invoice.id:
            await self.store.set(self.invoice_collection, invoice.id, doc)
        else:
            invoice.id = await self.store.add(self.invoice_collection, doc)

        result = InvoiceSaveResult(invoice_id=invoice.id)
        if self.background:
            task = asyncio.create_task(self._sync_safely(invoice))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            result.pending = True
            return result

        try:
            result.ledger_entry_id = await self.sync_invoice(invoice)
            result.skipped = result.ledger_entry_id is None
        except Exception as exc:
            await self._report_failure(invoice.id, exc)
            result.sync_error = exc
        return result

    async def delete_invoice(self, invoice_id: str) -> int:
        """Delete every ledger entry of the invoice, then the invoice.

        If any ledger delete fails the invoice is kept and the error propagates.
        Returns the number of ledger entries removed.
        """
        # Query by field, not by deterministic id: legacy entries used store ids
        rows = await self.store.query(self.ledger_collection, "invoice_id", invoice_id)
        for doc_id, _ in rows:
            await self.store.delete(self.ledger_collection, doc_id)

        await self.store.delete(self.invoice_collection, invoice_id)
        log_ledger_action(
            "invoice_deleted",
            actor=self.actor,
            collection=self.invoice_collection,
            doc_id=invoice_id,
            details={"ledger_entries_removed": len(rows)},
        )
        return len(rows)

    async def get_invoice(self, invoice_id: str) -> Invoice | None:
        data = await self.store.get(self.invoice_collection, invoice_id)
        return Invoice.from_document(invoice_id, data) if data is not None else None

    async def list_invoices(self) -> list[Invoice]:
        rows = await self.store.list(self.invoice_collection, order_by="created_at", descending=True)
        return [Invoice.from_document(doc_id, data) for doc_id, data in rows]

    # ---------- background plumbing ----------

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every background sync dispatched so far."""
        while True:
            pending = [t for t in self._pending if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending)

    async def _sync_safely(self, invoice: Invoice) -> None:
        try:
            await self.sync_invoice(invoice)
        except Exception as exc:
            await self._report_failure(invoice.id, exc)

    async def _report_failure(self, invoice_id: str, exc: Exception) -> None:
        logger.error("Ledger sync failed for invoice %s: %s", invoice_id, exc, exc_info=exc)
        if self.on_sync_error is None:
            return
        try:
            outcome: Any = self.on_sync_error(invoice_id, exc)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("on_sync_error hook failed for invoice %s", invoice_id)
