# gst_ledger/domain/services/gst_returns.py
"""
GST return filing.

Lifecycle of a return:  draft → filed → paid (terminal)
Lifecycle of a ledger entry status:  unfiled → filed (driven from here only)

Filing writes the return and flips every linked entry to ``filed`` in one
store batch, so a failure leaves neither half behind.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Sequence

from gst_ledger.config.settings import Settings, settings as default_settings
from gst_ledger.core.errors import InvalidReturnTransitionError, NotFoundError
from gst_ledger.domain.models.gst import LedgerEntry, ReturnFiling, ReturnKind
from gst_ledger.domain.services.gst_ledger import jsonable_fields
from gst_ledger.domain.services.periods import (
    current_month,
    current_quarter,
    due_date_after,
    period_field,
    utc_now,
)
from gst_ledger.infrastructure.audit import log_ledger_action
from gst_ledger.infrastructure.store.base import DocumentStore

logger = logging.getLogger("gst_returns")

ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Valid state transitions
# ---------------------------------------------------------------------------

RETURN_TRANSITIONS: dict[str, list[str]] = {
    "draft": ["filed"],
    "filed": ["paid"],
    "paid": [],  # terminal
}


def validate_return_transition(current_status: str, new_status: str) -> None:
    """Raise InvalidReturnTransitionError if the transition is not allowed."""
    if current_status == new_status:
        return
    allowed = RETURN_TRANSITIONS.get(current_status, [])
    if new_status not in allowed:
        raise InvalidReturnTransitionError(
            f"Cannot transition return from '{current_status}' to '{new_status}'. "
            f"Allowed: {allowed}"
        )


def filing_total(entries: Sequence[LedgerEntry], field_name: str = "amount") -> Decimal:
    """Sum ``field_name`` (``amount`` or ``tax_amount``) over the entries."""
    return sum((getattr(e, field_name) or ZERO for e in entries), ZERO)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class GSTReturnService:
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
        self.collection = self.settings.RETURNS_COLLECTION
        self.ledger_collection = self.settings.LEDGER_COLLECTION

    async def file_return(
        self,
        period: str,
        entries: Sequence[LedgerEntry],
        kind: ReturnKind = "monthly",
        *,
        now: datetime | None = None,
    ) -> ReturnFiling:
        """Persist a filed return for ``entries`` and mark each of them filed."""
        now = now or utc_now()
        stamp = now.isoformat()
        # FILING_NET_TAX_FIELD defaults to "amount", the gross value, as the
        # returns filed so far were computed; "tax_amount" sums the tax itself.
        total = filing_total(entries, self.settings.FILING_NET_TAX_FIELD)

        filing = ReturnFiling(
            id=self.store.new_id(),
            period=period,
            kind=kind,
            due_date=due_date_after(now, self.settings.RETURN_DUE_DAY).isoformat(),
            net_tax=total,
            total_tax=total,
            linked_entry_ids=[e.id for e in entries if e.id],
            status="filed",
            filed_at=stamp,
            created_at=stamp,
            updated_at=stamp,
        )

        batch = self.store.batch()
        batch.set(self.collection, filing.id, filing.to_document())
        for entry_id in filing.linked_entry_ids:
            batch.update(self.ledger_collection, entry_id, {"status": "filed", "updated_at": stamp})
        await batch.commit()

        log_ledger_action(
            "return_filed",
            actor=self.actor,
            collection=self.collection,
            doc_id=filing.id,
            details={
                "period": period,
                "kind": kind,
                "net_tax": str(filing.net_tax),
                "entries": len(filing.linked_entry_ids),
            },
        )
        return filing

    async def file_period(self, period: str, *, now: datetime | None = None) -> ReturnFiling:
        """File every ledger entry of a month (monthly) or quarter (quarterly) return."""
        key = period_field(period)
        if key == "year":
            raise ValueError("Returns are filed per month or per quarter, not per year")
        kind: ReturnKind = "monthly" if key == "month" else "quarterly"

        rows = await self.store.query(self.ledger_collection, key, period)
        entries = [LedgerEntry.from_document(doc_id, data) for doc_id, data in rows]
        return await self.file_return(period, entries, kind, now=now)

    async def file_current_month(self, *, now: datetime | None = None) -> ReturnFiling:
        return await self.file_period(current_month(now), now=now)

    async def file_current_quarter(self, *, now: datetime | None = None) -> ReturnFiling:
        return await self.file_period(current_quarter(now), now=now)

    async def create_draft(
        self,
        period: str,
        entries: Sequence[LedgerEntry],
        kind: ReturnKind = "monthly",
        *,
        now: datetime | None = None,
    ) -> ReturnFiling:
        """Persist a draft return; entries stay unfiled until it is filed."""
        now = now or utc_now()
        stamp = now.isoformat()
        total = filing_total(entries, self.settings.FILING_NET_TAX_FIELD)
        draft = ReturnFiling(
            period=period,
            kind=kind,
            due_date=due_date_after(now, self.settings.RETURN_DUE_DAY).isoformat(),
            net_tax=total,
            total_tax=total,
            linked_entry_ids=[e.id for e in entries if e.id],
            status="draft",
            created_at=stamp,
            updated_at=stamp,
        )
        draft.id = await self.store.add(self.collection, draft.to_document())
        return draft

    async def update_return(self, return_id: str, fields: dict[str, Any]) -> ReturnFiling:
        """Merge-write ``fields`` into a return.

        Moving a return to ``filed`` stamps ``filed_at`` when missing and marks
        its linked entries filed in the same batch; linked entries deleted since
        the draft was created are dropped from the return. Status transitions are only
        validated when RETURN_LIFECYCLE_GUARD is on.
        """
        current = await self.get_return(return_id)
        if current is None:
            raise NotFoundError(self.collection, return_id)

        new_status = fields.get("status")
        if new_status and self.settings.RETURN_LIFECYCLE_GUARD:
            validate_return_transition(current.status, new_status)

        stamp = utc_now().isoformat()
        data = {**jsonable_fields(fields), "updated_at": stamp}
        if new_status == "filed" and not fields.get("filed_at") and not current.filed_at:
            data["filed_at"] = stamp

        to_flip: list[str] = []
        if new_status == "filed":
            linked = list(fields.get("linked_entry_ids", current.linked_entry_ids))
            for entry_id in linked:
                if await self.store.get(self.ledger_collection, entry_id) is None:
                    logger.warning(
                        "Return %s links missing ledger entry %s, dropped on filing",
                        return_id, entry_id,
                    )
                    continue
                to_flip.append(entry_id)
            if len(to_flip) != len(linked):
                data["linked_entry_ids"] = to_flip

        batch = self.store.batch()
        batch.update(self.collection, return_id, data)
        for entry_id in to_flip:
            batch.update(self.ledger_collection, entry_id, {"status": "filed", "updated_at": stamp})
        await batch.commit()

        if new_status and new_status != current.status:
            log_ledger_action(
                f"return_{new_status}",
                actor=self.actor,
                collection=self.collection,
                doc_id=return_id,
                details={"from": current.status},
            )
        return ReturnFiling.from_document(return_id, {**current.to_document(), **data})

    async def get_return(self, return_id: str) -> ReturnFiling | None:
        data = await self.store.get(self.collection, return_id)
        return ReturnFiling.from_document(return_id, data) if data is not None else None

    async def list_returns(self) -> list[ReturnFiling]:
        """All returns, latest period first."""
        rows = await self.store.list(self.collection, order_by="period", descending=True)
        return [ReturnFiling.from_document(doc_id, data) for doc_id, data in rows]
