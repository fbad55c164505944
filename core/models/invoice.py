"""Invoice domain models.

Amounts are fixed-point decimals with two places (NUMERIC(12,2) in storage),
never floats. Tax rate is a percentage with two places: 16.00 = 16%.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    WRITTEN_OFF = "written_off"


class ExternalRegistrationStatus(str, Enum):
    """Registration state with the external tax authority."""

    NOT_SUBMITTED = "not_submitted"
    PENDING = "pending"
    SUBMITTED = "submitted"
    FAILED = "failed"


class LineItemInput(BaseModel):
    """A billable line supplied when creating an invoice."""

    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(Decimal("1"), gt=0, decimal_places=2)
    unit_price: Decimal = Field(..., ge=0, decimal_places=2)


class InvoiceCreate(BaseModel):
    """
    Data required to create an invoice.

    is_taxable and is_write_off select the numbering line: write-off wins,
    then taxable, otherwise the tax-exempt line.
    """

    client_id: int | None = None
    issue_date: date
    due_date: date
    currency: str | None = Field(None, min_length=3, max_length=3)
    tax_rate: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    discount_amount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    is_taxable: bool = False
    is_write_off: bool = False
    notes: str | None = Field(None, max_length=2000)
    terms: str | None = Field(None, max_length=2000)
    line_items: list[LineItemInput] = Field(..., min_length=1)


class InvoiceLineItem(BaseModel):
    """Line item as stored."""

    id: int
    invoice_id: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    sort_order: int

    model_config = {"from_attributes": True}


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: int
    invoice_number: str
    client_id: int | None
    status: InvoiceStatus
    is_taxable: bool
    issue_date: date
    due_date: date
    currency: str
    subtotal: Decimal
    discount_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    amount_paid: Decimal
    notes: str | None
    terms: str | None
    external_registration_status: ExternalRegistrationStatus
    external_registered_at: datetime | None
    sent_at: datetime | None
    paid_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def balance_due(self) -> Decimal:
        """Remaining amount to be paid. Negative when overpaid."""
        return self.total - self.amount_paid

    @property
    def is_externally_registered(self) -> bool:
        """Whether the tax authority has accepted this invoice."""
        return self.external_registration_status == ExternalRegistrationStatus.SUBMITTED

    @property
    def is_terminal(self) -> bool:
        """Paid and written-off invoices accept no further status change."""
        from core.lifecycle import TERMINAL_STATUSES

        return self.status in TERMINAL_STATUSES
