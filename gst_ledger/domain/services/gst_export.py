# gst_ledger/domain/services/gst_export.py
"""
Payloads handed to the PDF/Excel renderers.

The renderers do no tax arithmetic: everything they print is computed here.
"""

from __future__ import annotations

import io
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font

from gst_ledger.domain.models.gst import GSTReportData, LineItem, PeriodSummary
from gst_ledger.domain.services.tax_calculator import (
    compute_document_totals,
    compute_line,
    effective_tax_rate,
)


def _d(val: Decimal | None) -> float:
    """Convert Decimal to float for JSON serialization."""
    if val is None:
        return 0.0
    return float(val)


def build_render_payload(
    items: Sequence[LineItem],
    round_off: Decimal | int | float = 0,
) -> Dict[str, Any]:
    """Line items with their computed figures plus the document totals."""
    totals = compute_document_totals(items, round_off)
    lines: List[Dict[str, Any]] = []
    for item in items:
        line = compute_line(item)
        lines.append({
            "description": item.description,
            "hsn_code": item.hsn_code,
            "quantity": _d(item.quantity),
            "rate": _d(item.rate),
            "tax_rate_percent": _d(item.tax_rate_percent),
            "amount": _d(line.amount),
            "tax_amount": _d(line.tax_amount),
            "cgst": _d(line.cgst),
            "sgst": _d(line.sgst),
            "line_total": _d(line.line_total),
        })

    rate = effective_tax_rate(items)
    return {
        "items": lines,
        "tax_rate_percent": _d(rate),
        "totals": {
            "subtotal": _d(totals.subtotal),
            "tax_amount": _d(totals.tax_amount),
            "cgst": _d(totals.cgst),
            "sgst": _d(totals.sgst),
            "round_off": _d(totals.round_off),
            "total": _d(totals.total),
        },
    }


def summary_rows(summaries: Iterable[PeriodSummary]) -> List[Dict[str, Any]]:
    """Flat period rows for the GST summary report."""
    return [
        {
            "period": s.period,
            "collected": _d(s.collected),
            "paid": _d(s.paid),
            "net": _d(s.net),
            "records": s.record_count,
        }
        for s in summaries
    ]


def export_report_xlsx(report: GSTReportData, include_details: bool = False) -> bytes:
    """Render a GST report as an .xlsx workbook.

    Sheet "Summary" always; sheet "Records" with one row per ledger entry
    when ``include_details`` is set.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Summary"
    ws.append(["Period", "GST Collected", "GST Paid", "Net GST", "Invoices"])
    ws.append([
        report.period,
        _d(report.collected),
        _d(report.paid),
        _d(report.net),
        report.total_invoices,
    ])
    for cell in ws[1]:
        cell.font = Font(bold=True)

    if include_details:
        details = wb.create_sheet("Records")
        details.append([
            "Date", "Type", "Description", "Customer", "GSTIN",
            "Amount", "GST Amount", "Status", "Payment",
        ])
        for cell in details[1]:
            cell.font = Font(bold=True)
        for e in report.entries:
            details.append([
                e.date,
                e.kind,
                e.description,
                e.customer_name or "",
                e.customer_tax_id or "",
                _d(e.amount),
                _d(e.tax_amount),
                e.status,
                e.payment_status,
            ])

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()
