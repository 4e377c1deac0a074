from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ZERO = Decimal("0")

EntryKind = Literal["collected", "paid"]
EntryStatus = Literal["unfiled", "filed"]
PaymentStatus = Literal["pending", "paid"]
ReturnKind = Literal["monthly", "quarterly"]
ReturnStatus = Literal["draft", "filed", "paid"]


class _Document(BaseModel):
    """Base for models persisted in the document store.

    The document id lives in the store key, never in the stored body.
    """
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]):
        return cls.model_validate({**data, "id": doc_id})


# ---------------------------------------------------------------------------
# Line items & totals
# ---------------------------------------------------------------------------

class LineItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    quantity: Decimal = Field(default=ZERO, ge=0)
    rate: Decimal = Field(default=ZERO, ge=0)
    tax_rate_percent: Decimal = Field(default=ZERO, ge=0)
    description: str = ""
    hsn_code: Optional[str] = None


class LineTotals(BaseModel):
    amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    line_total: Decimal = ZERO


class DocumentTotals(BaseModel):
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    round_off: Decimal = ZERO
    total: Decimal = ZERO


# ---------------------------------------------------------------------------
# External entities (read-only for the ledger)
# ---------------------------------------------------------------------------

class Invoice(_Document):
    invoice_number: str = ""
    customer_name: str = ""
    customer_tax_id: Optional[str] = None
    status: str = "draft"
    # Legacy flag kept by older invoices instead of status == "paid"
    paid: Optional[bool] = None
    items: list[LineItem] = Field(default_factory=list)
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    round_off: Decimal = ZERO
    invoice_date: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None


class Dealer(_Document):
    name: str
    tax_id: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

class LedgerEntryDraft(BaseModel):
    """User-entered fields of a manual ledger entry."""
    model_config = ConfigDict(extra="ignore")

    kind: EntryKind
    amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    tax_rate_percent: Optional[Decimal] = None
    description: str = ""
    date: str
    dealer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_tax_id: Optional[str] = None


class LedgerEntry(_Document):
    kind: EntryKind
    amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    tax_rate_percent: Optional[Decimal] = None
    description: str = ""
    status: EntryStatus = "unfiled"
    payment_status: PaymentStatus = "pending"
    invoice_id: Optional[str] = None
    dealer_id: Optional[str] = None
    date: str
    month: str
    quarter: str
    year: str
    customer_name: Optional[str] = None
    customer_tax_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    created_by_actor: Optional[str] = None


class PeriodSummary(BaseModel):
    period: str
    collected: Decimal = ZERO
    paid: Decimal = ZERO
    net: Decimal = ZERO
    record_count: int = 0


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------

class ReturnFiling(_Document):
    period: str
    kind: ReturnKind
    due_date: str
    net_tax: Decimal = ZERO
    total_tax: Decimal = ZERO
    linked_entry_ids: list[str] = Field(default_factory=list)
    status: ReturnStatus = "draft"
    filed_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------

class GSTFilterOptions(BaseModel):
    year: int
    month: Optional[int] = Field(default=None, ge=1, le=12)
    kind: Literal["collected", "paid", "all"] = "all"
    status: Literal["filed", "unfiled", "all"] = "all"


class GSTReportData(BaseModel):
    period: str
    collected: Decimal = ZERO
    paid: Decimal = ZERO
    net: Decimal = ZERO
    entries: list[LedgerEntry] = Field(default_factory=list)
    total_invoices: int = 0
