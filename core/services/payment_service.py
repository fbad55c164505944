"""
Payment service: applies and reverses payments against invoices.

After every payment insert or delete, amount_paid is recomputed as the SUM of
the invoice's remaining payments and the status re-derived from it. The
invoice row is locked first, so each recomputation runs after any competing
payment transaction on the same invoice has committed and sees its row:
concurrent payments converge on the same final state whatever order they
commit in.
"""

import logging

from clients.postgres_client import PostgresClient, UnitOfWork
from core.audit import AuditLogger, AuditAction
from core.config import InvoicingConfig
from core.event_bus import EventBus
from core.events import PaymentRecorded, PaymentReversed, InvoicePaid
from core.exceptions import PaymentNotAllowedError, OverpaymentError
from core.models import Invoice, InvoiceStatus, Payment, PaymentCreate
from core.reconciliation import PAYMENT_BLOCKED_STATUSES, derive_payment_state, to_cents
from core.services.invoice_service import fetch_invoice_for_update
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class PaymentService:
    """Service for payment operations."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        config: InvoicingConfig | None = None,
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.config = config or InvoicingConfig()

    def apply_payment(self, invoice_id: int, data: PaymentCreate) -> Invoice:
        """
        Record a payment and reconcile the invoice.

        Args:
            invoice_id: Invoice being paid
            data: Amount, date, method and reference

        Returns:
            Invoice with amount_paid and status re-derived from all payments

        Raises:
            ValueError: If invoice not found
            PaymentNotAllowedError: If the invoice is draft, cancelled or written off
            OverpaymentError: If amount exceeds the balance and overpayment is disabled
        """
        with self.postgres.transaction() as tx:
            current = fetch_invoice_for_update(tx, invoice_id)

            if current.status in PAYMENT_BLOCKED_STATUSES:
                raise PaymentNotAllowedError(invoice_id, current.status.value)

            if not self.config.accept_overpayment and data.amount > current.balance_due:
                raise OverpaymentError(invoice_id, data.amount, current.balance_due)

            row = tx.execute_returning(
                """
                INSERT INTO payments (
                    invoice_id, amount, payment_date, payment_method,
                    reference, notes, created_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    invoice_id, to_cents(data.amount), data.payment_date, data.payment_method,
                    data.reference, data.notes, now_utc()
                )
            )[0]
            payment = Payment.model_validate(row)

            updated = self._reconcile(tx, current)

            self.audit.log_change(
                entity_type="payment",
                entity_id=payment.id,
                action=AuditAction.CREATE,
                changes={"created": payment.model_dump(mode="json")},
                tx=tx,
            )
            self._log_reconciliation(tx, current, updated)

        logger.info(
            "Payment %s of %s applied to %s (paid %s of %s, status %s)",
            payment.id, payment.amount, updated.invoice_number,
            updated.amount_paid, updated.total, updated.status.value
        )
        self.event_bus.publish(PaymentRecorded.create(payment=payment, invoice=updated))
        if updated.status == InvoiceStatus.PAID and current.status != InvoiceStatus.PAID:
            self.event_bus.publish(InvoicePaid.create(invoice=updated))

        return updated

    def reverse_payment(self, payment_id: int) -> Invoice:
        """
        Delete a payment and reconcile its invoice from the remaining payments.

        Returns:
            Invoice with amount_paid and status re-derived

        Raises:
            ValueError: If payment not found
        """
        payment = self.get_by_id(payment_id)
        if payment is None:
            raise ValueError(f"Payment {payment_id} not found")

        with self.postgres.transaction() as tx:
            current = fetch_invoice_for_update(tx, payment.invoice_id)

            deleted = tx.execute_returning(
                "DELETE FROM payments WHERE id = %s RETURNING *",
                (payment_id,)
            )
            if not deleted:
                # Reversed by a concurrent request between the read and the lock
                raise ValueError(f"Payment {payment_id} not found")

            updated = self._reconcile(tx, current)

            self.audit.log_change(
                entity_type="payment",
                entity_id=payment_id,
                action=AuditAction.DELETE,
                changes={"deleted": payment.model_dump(mode="json")},
                tx=tx,
            )
            self._log_reconciliation(tx, current, updated)

        logger.info(
            "Payment %s reversed on %s (paid %s of %s, status %s)",
            payment_id, updated.invoice_number,
            updated.amount_paid, updated.total, updated.status.value
        )
        self.event_bus.publish(PaymentReversed.create(payment=payment, invoice=updated))

        return updated

    def _reconcile(self, tx: UnitOfWork, current: Invoice) -> Invoice:
        """Recompute amount_paid from the payments table and write the derived status."""
        amount_paid = tx.execute_scalar(
            "SELECT COALESCE(SUM(amount), 0) FROM payments WHERE invoice_id = %s",
            (current.id,)
        )
        amount_paid = to_cents(amount_paid)

        now = now_utc()
        status, paid_at = derive_payment_state(
            current.total, amount_paid, current.status, current.paid_at, now
        )

        row = tx.execute_returning(
            """
            UPDATE invoices
            SET amount_paid = %s, status = %s, paid_at = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (amount_paid, status.value, paid_at, now, current.id)
        )[0]

        return Invoice.model_validate(row)

    def _log_reconciliation(self, tx: UnitOfWork, current: Invoice, updated: Invoice) -> None:
        changes = {
            "amount_paid": {"old": str(current.amount_paid), "new": str(updated.amount_paid)},
        }
        if current.status != updated.status:
            changes["status"] = {"old": current.status.value, "new": updated.status.value}

        self.audit.log_change(
            entity_type="invoice",
            entity_id=current.id,
            action=AuditAction.UPDATE,
            changes=changes,
            tx=tx,
        )

    def get_by_id(self, payment_id: int) -> Payment | None:
        """Get payment by ID, or None."""
        row = self.postgres.execute_single(
            "SELECT * FROM payments WHERE id = %s",
            (payment_id,)
        )
        if row is None:
            return None
        return Payment.model_validate(row)

    def list_for_invoice(self, invoice_id: int) -> list[Payment]:
        """Payments of an invoice, most recent payment date first."""
        rows = self.postgres.execute(
            """
            SELECT * FROM payments
            WHERE invoice_id = %s
            ORDER BY payment_date DESC, id DESC
            """,
            (invoice_id,)
        )
        return [Payment.model_validate(row) for row in rows]
