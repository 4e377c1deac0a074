# gst_ledger/domain/services/tax_calculator.py
"""
GST line-item arithmetic.

Intra-state supplies only: the tax of every line is split 50/50 between
CGST and SGST. Inputs are assumed sanitized (non-negative numbers); use
``coerce_amount`` at the boundary to turn NaN/negative/garbage into zero.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from gst_ledger.domain.models.gst import DocumentTotals, LineItem, LineTotals

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TWO = Decimal("2")


def coerce_amount(value: Any) -> Decimal:
    """Safely convert incoming float/str/Decimal/None to a non-negative Decimal."""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return ZERO
    if dec.is_nan() or dec.is_infinite() or dec < 0:
        return ZERO
    return dec


def compute_line(item: LineItem) -> LineTotals:
    amount = item.quantity * item.rate
    tax_amount = amount * item.tax_rate_percent / HUNDRED
    half = tax_amount / TWO
    return LineTotals(
        amount=amount,
        tax_amount=tax_amount,
        cgst=half,
        sgst=half,
        line_total=amount + tax_amount,
    )


def compute_document_totals(
    items: Iterable[LineItem],
    round_off: Decimal | int | float = 0,
) -> DocumentTotals:
    """Sum line figures; ``total = subtotal + tax_amount - round_off``."""
    subtotal = ZERO
    tax_amount = ZERO
    for item in items:
        line = compute_line(item)
        subtotal += line.amount
        tax_amount += line.tax_amount

    round_off = Decimal(str(round_off))
    half = tax_amount / TWO
    return DocumentTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        cgst=half,
        sgst=half,
        round_off=round_off,
        total=subtotal + tax_amount - round_off,
    )


def effective_tax_rate(items: Iterable[LineItem]) -> Decimal:
    """Display rate for a document: mean of the non-zero item rates."""
    rates = [i.tax_rate_percent for i in items if i.tax_rate_percent > 0]
    if not rates:
        return ZERO
    return sum(rates, ZERO) / len(rates)
