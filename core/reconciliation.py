"""
Payment reconciliation rules.

Status is always derived from the full sum of an invoice's payments, never
by adding or subtracting the amount of the payment being applied or removed.
Applying the same set of payments in any order therefore lands on the same
amount_paid and status.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from core.models import InvoiceStatus

CENTS = Decimal("0.01")

# Payments can only be recorded once the invoice has been issued to the client
PAYMENT_BLOCKED_STATUSES = frozenset({
    InvoiceStatus.DRAFT,
    InvoiceStatus.CANCELLED,
    InvoiceStatus.WRITTEN_OFF,
})


def to_cents(value: Decimal) -> Decimal:
    """Quantize to two decimal places, rounding half up."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def derive_payment_state(
    total: Decimal,
    amount_paid: Decimal,
    current_status: InvoiceStatus,
    current_paid_at: datetime | None,
    now: datetime,
) -> tuple[InvoiceStatus, datetime | None]:
    """
    Status and paid_at implied by the payment sum.

    - amount_paid >= total (and total > 0): PAID, keeping an existing paid_at
    - amount_paid > 0: PARTIALLY_PAID, paid_at cleared
    - nothing paid: an invoice that was PAID or PARTIALLY_PAID falls back to
      SENT (never to DRAFT); any other status is left alone
    """
    if total > 0 and amount_paid >= total:
        return InvoiceStatus.PAID, current_paid_at or now

    if amount_paid > 0:
        return InvoiceStatus.PARTIALLY_PAID, None

    if current_status in (InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID):
        return InvoiceStatus.SENT, None

    return current_status, None
