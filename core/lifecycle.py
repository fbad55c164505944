"""
Invoice lifecycle state machine.

The transition table is plain data so it can be inspected and tested on its
own. Services call apply_transition() to validate a manual status change and
obtain the column updates to persist.

Payment reconciliation does not go through this table: it re-derives
paid/partially_paid from the payment sum (see core.reconciliation).
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from core.exceptions import InvalidTransitionError
from core.models import Invoice, InvoiceStatus

S = InvoiceStatus

ALLOWED_TRANSITIONS: Mapping[InvoiceStatus, frozenset[InvoiceStatus]] = {
    S.DRAFT: frozenset({S.SENT, S.CANCELLED}),
    S.SENT: frozenset({S.PAID, S.PARTIALLY_PAID, S.OVERDUE, S.CANCELLED}),
    S.VIEWED: frozenset({S.PAID, S.PARTIALLY_PAID, S.OVERDUE, S.CANCELLED}),
    S.PARTIALLY_PAID: frozenset({S.PAID, S.OVERDUE, S.CANCELLED}),
    S.OVERDUE: frozenset({S.PAID, S.PARTIALLY_PAID, S.CANCELLED}),
    S.CANCELLED: frozenset({S.DRAFT}),
    S.PAID: frozenset(),
    S.WRITTEN_OFF: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)

# Statuses the overdue sweep moves to OVERDUE once the due date has passed
OVERDUE_CANDIDATES = frozenset({S.SENT, S.VIEWED, S.PARTIALLY_PAID})


def allowed_targets(current: InvoiceStatus) -> frozenset[InvoiceStatus]:
    """Statuses reachable from current in one manual step."""
    return ALLOWED_TRANSITIONS[current]


def can_transition(current: InvoiceStatus, requested: InvoiceStatus) -> bool:
    return requested in allowed_targets(current)


def apply_transition(
    invoice: Invoice,
    requested: InvoiceStatus,
    now: datetime,
    require_full_payment_for_paid: bool = False,
) -> dict[str, Any]:
    """
    Validate a manual status change and return the columns to update.

    Args:
        invoice: Current invoice state (re-fetched inside the unit of work)
        requested: Target status
        now: Timestamp for updated_at and the sent/paid markers
        require_full_payment_for_paid: Policy point. When False (the default)
            an invoice may be marked paid by hand regardless of
            amount_paid.

    Returns:
        Column updates: status and updated_at always, sent_at when moving
        to SENT, paid_at when moving to PAID.

    Raises:
        InvalidTransitionError: requested is not reachable from the current status
    """
    current = invoice.status

    if not can_transition(current, requested):
        if invoice.is_terminal:
            raise InvalidTransitionError(current.value, requested.value, f"'{current.value}' is terminal")
        raise InvalidTransitionError(current.value, requested.value)

    if (
        requested == S.PAID
        and require_full_payment_for_paid
        and invoice.amount_paid < invoice.total
    ):
        raise InvalidTransitionError(
            current.value,
            requested.value,
            f"amount paid {invoice.amount_paid} is below total {invoice.total}",
        )

    updates: dict[str, Any] = {"status": requested, "updated_at": now}
    if requested == S.SENT:
        updates["sent_at"] = now
    if requested == S.PAID:
        updates["paid_at"] = now

    return updates
