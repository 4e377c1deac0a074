# gst_ledger/domain/services/gst_backfill.py
"""
Backfill of missing GST ledger entries.

Catches invoices whose collected entry was never written (bulk imports,
failed syncs). A pass:

1. is skipped outright while another pass is in flight;
2. picks invoices with stored tax > 0, not yet handled by this generator
   and without any ledger entry pointing at them;
3. marks each candidate handled before writing, un-marks it on failure so
   a later pass retries;
4. re-checks the deterministic entry id right before writing;
5. writes in fixed-size batches, each committed atomically.

A failing invoice or batch is logged and never aborts the rest of the pass.
Stored invoices that do not parse count as failed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Sequence

from pydantic import ValidationError

from gst_ledger.config.settings import Settings, settings as default_settings
from gst_ledger.domain.models.gst import Invoice, LedgerEntry
from gst_ledger.domain.services.gst_ledger import ledger_entry_id
from gst_ledger.domain.services.invoice_sync import build_collected_entry
from gst_ledger.infrastructure.audit import log_ledger_action
from gst_ledger.infrastructure.store.base import DocumentStore, Snapshot

logger = logging.getLogger("gst_backfill")

ZERO = Decimal("0")


@dataclass
class BackfillReport:
    """Outcome of a single backfill pass."""
    candidates: int = 0
    created: list[str] = field(default_factory=list)   # invoice ids
    failed: list[str] = field(default_factory=list)    # invoice ids
    skipped_existing: int = 0
    batches_committed: int = 0
    skipped_reentrant: bool = False
    cancelled: bool = False

    def to_dict(self) -> dict:
        return {
            "candidates": self.candidates,
            "created": list(self.created),
            "failed": list(self.failed),
            "skipped_existing": self.skipped_existing,
            "batches_committed": self.batches_committed,
            "skipped_reentrant": self.skipped_reentrant,
            "cancelled": self.cancelled,
        }


def load_invoices(rows: Snapshot) -> tuple[list[Invoice], list[str]]:
    """Parse stored invoice rows; returns the invoices and the ids of malformed ones."""
    invoices: list[Invoice] = []
    rejected: list[str] = []
    for doc_id, data in rows:
        try:
            invoices.append(Invoice.from_document(doc_id, data))
        except ValidationError as exc:
            logger.error("Skipping malformed invoice %s: %s", doc_id, exc)
            rejected.append(doc_id)
    return invoices, rejected


class BackfillGenerator:
    def __init__(
        self,
        store: DocumentStore,
        settings: Settings | None = None,
        *,
        actor: str | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or default_settings
        self.actor = actor
        self.batch_size = self.settings.BACKFILL_BATCH_SIZE
        self.ledger_collection = self.settings.LEDGER_COLLECTION
        self.invoice_collection = self.settings.INVOICES_COLLECTION

        # Invoices already handled by this generator; an optimisation only,
        # the deterministic entry id is what prevents duplicates.
        self.processed_invoice_ids: set[str] = set()
        self._is_processing = False
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    # ---------- public API ----------

    async def run(self, invoices: Sequence[Invoice] | None = None) -> BackfillReport:
        """Run one pass over ``invoices`` (all stored invoices when omitted)."""
        if self._is_processing:
            logger.info("Backfill pass already in flight, skipping")
            return BackfillReport(skipped_reentrant=True)

        self._is_processing = True
        self._generation += 1
        generation = self._generation
        try:
            return await self._run_pass(generation, invoices)
        finally:
            if self._generation == generation:
                self._is_processing = False

    def cancel(self) -> None:
        """Abandon the running pass before its next batch; the in-flight batch completes."""
        if self._is_processing:
            self._generation += 1
            self._is_processing = False
            logger.info("Backfill pass cancelled")

    def reset(self) -> None:
        self.processed_invoice_ids.clear()

    async def watch(self) -> Callable[[], None]:
        """Trigger a pass whenever the invoice collection changes.

        Returns the unsubscribe function.
        """

        def _on_invoices(rows) -> None:
            if not rows or self._is_processing:
                return
            invoices, _ = load_invoices(rows)
            if not invoices:
                return
            task = asyncio.create_task(self.run(invoices))
            self._tasks.add(task)
            task.add_done_callback(self._on_pass_done)

        return await self.store.subscribe(self.invoice_collection, _on_invoices)

    async def drain(self) -> None:
        """Wait for passes started by ``watch``; their failures are already logged."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def _on_pass_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Watched backfill pass failed: %s", exc, exc_info=exc)

    # ---------- pass internals ----------

    async def _run_pass(
        self,
        generation: int,
        invoices: Sequence[Invoice] | None,
    ) -> BackfillReport:
        report = BackfillReport()
        if invoices is None:
            rows = await self.store.list(self.invoice_collection)
            invoices, rejected = load_invoices(rows)
            report.failed.extend(rejected)
        if not invoices:
            return report

        ledger_rows = await self.store.list(self.ledger_collection)
        linked = {data.get("invoice_id") for _, data in ledger_rows if data.get("invoice_id")}

        candidates = [
            inv for inv in invoices
            if inv.id
            and inv.tax_amount > ZERO
            and inv.id not in self.processed_invoice_ids
            and inv.id not in linked
        ]
        report.candidates = len(candidates)
        if not candidates:
            return report

        logger.info("Processing %d invoices for GST ledger entries", len(candidates))

        for start in range(0, len(candidates), self.batch_size):
            if self._generation != generation:
                report.cancelled = True
                break
            await self._process_batch(candidates[start:start + self.batch_size], report)

        logger.info(
            "Backfill finished: created=%d existing=%d failed=%d cancelled=%s",
            len(report.created), report.skipped_existing, len(report.failed), report.cancelled,
        )
        return report

    async def _process_batch(self, chunk: list[Invoice], report: BackfillReport) -> None:
        # Mark before any await so an overlapping pass cannot pick them up
        for inv in chunk:
            self.processed_invoice_ids.add(inv.id)

        outcomes = await asyncio.gather(
            *(self._prepare(inv) for inv in chunk),
            return_exceptions=True,
        )

        batch = self.store.batch()
        staged: list[str] = []
        for inv, outcome in zip(chunk, outcomes):
            if isinstance(outcome, Exception):
                logger.error("Error processing invoice %s: %s", inv.id, outcome)
                self.processed_invoice_ids.discard(inv.id)
                report.failed.append(inv.id)
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            if outcome is None:
                report.skipped_existing += 1
                continue
            batch.set(self.ledger_collection, outcome.id, outcome.to_document())
            staged.append(inv.id)

        if not staged:
            return

        try:
            await batch.commit()
        except Exception as exc:
            logger.error("Backfill batch of %d entries failed: %s", len(staged), exc)
            for invoice_id in staged:
                self.processed_invoice_ids.discard(invoice_id)
            report.failed.extend(staged)
            return

        report.created.extend(staged)
        report.batches_committed += 1
        log_ledger_action(
            "backfill_batch_committed",
            actor=self.actor,
            collection=self.ledger_collection,
            details={"invoice_ids": staged},
        )

    async def _prepare(self, invoice: Invoice) -> LedgerEntry | None:
        """Build the entry, or None when it appeared since the candidate scan."""
        if await self.store.get(self.ledger_collection, ledger_entry_id(invoice.id)) is not None:
            logger.info("GST ledger entry already exists for invoice %s", invoice.id)
            return None
        return build_collected_entry(invoice, actor=self.actor)
