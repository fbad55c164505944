"""
Domain events for the invoicing core.

Immutable event objects describing state changes that have already been
committed. Services publish them after their unit of work succeeds; handlers
(notifications, reporting, external integrations) react without the
publisher knowing who is listening.

Event Categories:
- InvoiceEvent: invoice lifecycle (created, status changed, paid)
- NumberingEvent: invoice number changes (renumbered, line resequenced)
- PaymentEvent: payments recorded and reversed

Events carry the full domain object so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class InvoicingEvent:
    """Base class for all invoicing domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# INVOICE EVENTS
# =============================================================================


@dataclass(frozen=True)
class InvoiceEvent(InvoicingEvent):
    """Events related to invoice lifecycle."""
    pass


@dataclass(frozen=True)
class InvoiceCreated(InvoiceEvent):
    """A new invoice was created with a freshly issued number."""
    invoice: Any = None  # Invoice - using Any to avoid circular import

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceCreated":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoiceStatusChanged(InvoiceEvent):
    """An invoice moved between lifecycle statuses."""
    invoice: Any = None
    old_status: str = ""
    new_status: str = ""

    @classmethod
    def create(cls, invoice: Any, old_status: str) -> "InvoiceStatusChanged":
        return cls(invoice=invoice, old_status=old_status, new_status=invoice.status.value)


@dataclass(frozen=True)
class InvoicePaid(InvoiceEvent):
    """Invoice reached PAID, either by payments or by hand."""
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoicePaid":
        return cls(invoice=invoice)


# =============================================================================
# NUMBERING EVENTS
# =============================================================================


@dataclass(frozen=True)
class NumberingEvent(InvoicingEvent):
    """Events related to invoice numbers."""
    pass


@dataclass(frozen=True)
class InvoiceRenumbered(NumberingEvent):
    """An invoice number was changed through the audited path."""
    invoice: Any = None
    record: Any = None  # NumberChangeRecord

    @classmethod
    def create(cls, invoice: Any, record: Any) -> "InvoiceRenumbered":
        return cls(invoice=invoice, record=record)


@dataclass(frozen=True)
class NumberingLineResequenced(NumberingEvent):
    """A resequencing run changed at least one invoice number."""
    result: Any = None  # ResequenceResult

    @classmethod
    def create(cls, result: Any) -> "NumberingLineResequenced":
        return cls(result=result)


# =============================================================================
# PAYMENT EVENTS
# =============================================================================


@dataclass(frozen=True)
class PaymentEvent(InvoicingEvent):
    """Events related to payments."""
    pass


@dataclass(frozen=True)
class PaymentRecorded(PaymentEvent):
    """A payment was applied and the invoice reconciled."""
    payment: Any = None
    invoice: Any = None

    @classmethod
    def create(cls, payment: Any, invoice: Any) -> "PaymentRecorded":
        return cls(payment=payment, invoice=invoice)


@dataclass(frozen=True)
class PaymentReversed(PaymentEvent):
    """A payment was deleted and the invoice reconciled."""
    payment: Any = None
    invoice: Any = None

    @classmethod
    def create(cls, payment: Any, invoice: Any) -> "PaymentReversed":
        return cls(payment=payment, invoice=invoice)
