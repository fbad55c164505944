"""Core domain models."""

from core.models.invoice import (
    Invoice, InvoiceCreate, InvoiceLineItem, InvoiceStatus,
    LineItemInput, ExternalRegistrationStatus,
)
from core.models.payment import Payment, PaymentCreate, PaymentMethod
from core.models.numbering import (
    NumberingLine, NumberingCounter, NumberChangeRecord,
    EditTier, EditStatus,
    GapReport, ResequenceChange, ResequenceFailure, ResequenceResult,
)

__all__ = [
    # Invoice
    "Invoice", "InvoiceCreate", "InvoiceLineItem", "InvoiceStatus",
    "LineItemInput", "ExternalRegistrationStatus",
    # Payment
    "Payment", "PaymentCreate", "PaymentMethod",
    # Numbering
    "NumberingLine", "NumberingCounter", "NumberChangeRecord",
    "EditTier", "EditStatus",
    "GapReport", "ResequenceChange", "ResequenceFailure", "ResequenceResult",
]
