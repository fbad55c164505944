"""Payment domain models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class PaymentMethod(str, Enum):
    """How the payment was made."""

    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    CHECK = "check"
    OTHER = "other"


class PaymentCreate(BaseModel):
    """Data required to record a payment against an invoice."""

    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_date: date
    payment_method: PaymentMethod | None = None
    reference: str | None = Field(None, max_length=255)
    notes: str | None = Field(None, max_length=2000)


class Payment(BaseModel):
    """Full payment entity as stored."""

    id: int
    invoice_id: int
    amount: Decimal
    payment_date: date
    payment_method: PaymentMethod | None
    reference: str | None
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
