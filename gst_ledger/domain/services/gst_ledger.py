# gst_ledger/domain/services/gst_ledger.py
"""
GST ledger: the collection of dated tax events.

``collected`` entries come from sales (one per invoice, see invoice_sync),
``paid`` entries record input tax credit. Manual entries of either kind are
added here. Store errors propagate unchanged; there is no local retry.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, Union

from gst_ledger.config.settings import Settings, settings as default_settings
from gst_ledger.domain.models.gst import Dealer, LedgerEntry, LedgerEntryDraft, PeriodSummary
from gst_ledger.domain.services import gst_summary
from gst_ledger.domain.services.periods import now_iso, period_keys
from gst_ledger.infrastructure.audit import log_ledger_action
from gst_ledger.infrastructure.store.base import DocumentStore

logger = logging.getLogger("gst_ledger")

EntriesCallback = Callable[[list[LedgerEntry]], Union[None, Awaitable[None]]]


def ledger_entry_id(invoice_id: str) -> str:
    """Deterministic id of the collected entry derived from an invoice."""
    return f"gst_{invoice_id}"


class GSTLedger:
    def __init__(self, store: DocumentStore, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or default_settings
        self.collection = self.settings.LEDGER_COLLECTION
        self.dealers_collection = self.settings.DEALERS_COLLECTION

    # ---------- writes ----------

    async def add_manual_entry(
        self,
        draft: LedgerEntryDraft,
        actor: str | None = None,
    ) -> LedgerEntry:
        """Persist a user-entered entry under a store-generated id.

        With a ``dealer_id``, the dealer's name and tax id fill in any
        customer fields the draft leaves empty.
        """
        keys = period_keys(draft.date)
        fields = draft.model_dump()
        if draft.dealer_id:
            dealer = await self.get_dealer(draft.dealer_id)
            if dealer is None:
                logger.warning("Dealer %s not found for manual entry", draft.dealer_id)
            else:
                fields["customer_name"] = draft.customer_name or dealer.name
                fields["customer_tax_id"] = draft.customer_tax_id or dealer.tax_id
        stamp = now_iso()
        entry = LedgerEntry(
            **fields,
            status="unfiled",
            payment_status="paid" if draft.kind == "paid" else "pending",
            month=keys.month,
            quarter=keys.quarter,
            year=keys.year,
            created_at=stamp,
            updated_at=stamp,
            created_by_actor=actor,
        )
        entry.id = await self.store.add(self.collection, entry.to_document())
        log_ledger_action(
            "manual_entry_created",
            actor=actor,
            collection=self.collection,
            doc_id=entry.id,
            details={"kind": entry.kind, "tax_amount": str(entry.tax_amount)},
        )
        return entry

    async def update(self, entry_id: str, fields: dict[str, Any]) -> None:
        """Merge-write ``fields``; the store raises NotFoundError for unknown ids."""
        data = {**jsonable_fields(fields), "updated_at": now_iso()}
        await self.store.update(self.collection, entry_id, data)

    async def remove(self, entry_id: str) -> None:
        await self.store.delete(self.collection, entry_id)
        log_ledger_action("entry_removed", collection=self.collection, doc_id=entry_id)

    # ---------- reads ----------

    async def get(self, entry_id: str) -> LedgerEntry | None:
        data = await self.store.get(self.collection, entry_id)
        return LedgerEntry.from_document(entry_id, data) if data is not None else None

    async def get_dealer(self, dealer_id: str) -> Dealer | None:
        data = await self.store.get(self.dealers_collection, dealer_id)
        return Dealer.from_document(dealer_id, data) if data is not None else None

    async def list_entries(self) -> list[LedgerEntry]:
        """All entries, most recent date first."""
        rows = await self.store.list(self.collection, order_by="date", descending=True)
        return [LedgerEntry.from_document(doc_id, data) for doc_id, data in rows]

    async def entries_for_invoice(self, invoice_id: str) -> list[LedgerEntry]:
        rows = await self.store.query(self.collection, "invoice_id", invoice_id)
        return [LedgerEntry.from_document(doc_id, data) for doc_id, data in rows]

    async def subscribe(self, callback: EntriesCallback) -> Callable[[], None]:
        """Receive the full entry list (date desc) now and after every ledger write."""

        def _on_snapshot(rows):
            return callback([LedgerEntry.from_document(doc_id, data) for doc_id, data in rows])

        return await self.store.subscribe(
            self.collection, _on_snapshot, order_by="date", descending=True
        )

    # ---------- aggregation ----------

    async def summary_for(self, period: str) -> PeriodSummary:
        """Summary of a "YYYY-MM", "YYYY-Qn" or "YYYY" period.

        Raises ValueError for any other key instead of returning zeros.
        """
        return gst_summary.summarize(await self.list_entries(), period)

    async def current_period_summary(self) -> PeriodSummary:
        return gst_summary.current_period_summary(await self.list_entries())

    async def total_collected(self) -> Decimal:
        return gst_summary.total_collected(await self.list_entries())

    async def total_paid(self) -> Decimal:
        return gst_summary.total_paid(await self.list_entries())

    async def net_liability(self) -> Decimal:
        return gst_summary.net_liability(await self.list_entries())


def jsonable_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Decimal values are stored as strings, matching LedgerEntry.to_document()."""
    return {k: str(v) if isinstance(v, Decimal) else v for k, v in fields.items()}
