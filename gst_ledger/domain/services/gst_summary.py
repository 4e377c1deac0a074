# gst_ledger/domain/services/gst_summary.py
"""
Read-side aggregation over ledger entries.

Everything here is pure: callers pass an entry snapshot and get derived
figures back. Collected and paid are sums of ``tax_amount``; net is
collected minus paid (may be negative when input credit exceeds output tax).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Sequence

from gst_ledger.domain.models.gst import (
    GSTFilterOptions,
    GSTReportData,
    LedgerEntry,
    PeriodSummary,
)
from gst_ledger.domain.services.periods import current_month, period_field

ZERO = Decimal("0")


def _tax_total(entries: Iterable[LedgerEntry], kind: str) -> Decimal:
    return sum((e.tax_amount for e in entries if e.kind == kind), ZERO)


def summarize(entries: Sequence[LedgerEntry], period: str) -> PeriodSummary:
    """Summarize entries whose month/quarter/year key equals ``period``."""
    key = period_field(period)
    matching = [e for e in entries if getattr(e, key) == period]
    collected = _tax_total(matching, "collected")
    paid = _tax_total(matching, "paid")
    return PeriodSummary(
        period=period,
        collected=collected,
        paid=paid,
        net=collected - paid,
        record_count=len(matching),
    )


def current_period_summary(
    entries: Sequence[LedgerEntry],
    now: datetime | None = None,
) -> PeriodSummary:
    return summarize(entries, current_month(now))


def total_collected(entries: Iterable[LedgerEntry]) -> Decimal:
    return _tax_total(entries, "collected")


def total_paid(entries: Iterable[LedgerEntry]) -> Decimal:
    return _tax_total(entries, "paid")


def net_liability(entries: Sequence[LedgerEntry]) -> Decimal:
    return total_collected(entries) - total_paid(entries)


def period_summaries(entries: Sequence[LedgerEntry]) -> list[PeriodSummary]:
    """One summary per distinct month present in the snapshot, newest first."""
    months = sorted({e.month for e in entries if e.month}, reverse=True)
    return [summarize(entries, m) for m in months]


def filter_entries(
    entries: Iterable[LedgerEntry],
    options: GSTFilterOptions,
) -> list[LedgerEntry]:
    """Apply the dashboard filters: year, optional month, kind, filing status."""
    year = str(options.year)
    month = f"{options.year}-{options.month:02d}" if options.month else None

    out: list[LedgerEntry] = []
    for e in entries:
        if e.year != year:
            continue
        if month and e.month != month:
            continue
        if options.kind != "all" and e.kind != options.kind:
            continue
        if options.status != "all" and e.status != options.status:
            continue
        out.append(e)
    return out


def build_report(
    entries: Iterable[LedgerEntry],
    options: GSTFilterOptions,
) -> GSTReportData:
    """Monthly report when ``options.month`` is set, yearly otherwise."""
    selected = filter_entries(entries, options)
    period = f"{options.year}-{options.month:02d}" if options.month else str(options.year)
    collected = total_collected(selected)
    paid = total_paid(selected)
    return GSTReportData(
        period=period,
        collected=collected,
        paid=paid,
        net=collected - paid,
        entries=selected,
        total_invoices=len({e.invoice_id for e in selected if e.invoice_id}),
    )
