"""
Invoice service: creation, lifecycle transitions and deletion guard.

Every invoice number comes from the SequenceLedger inside the same unit of
work that inserts the invoice, so a failed insert never leaves an invoice
without its number or two invoices with the same one. Manual status changes
go through the transition table in core.lifecycle.
"""

import logging
from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from clients.postgres_client import PostgresClient, UnitOfWork
from core.audit import AuditLogger, AuditAction, compute_changes
from core.config import InvoicingConfig
from core.event_bus import EventBus
from core.events import InvoiceCreated, InvoiceStatusChanged, InvoicePaid
from core.exceptions import InvalidTransitionError, InvoiceLockedError
from core.lifecycle import OVERDUE_CANDIDATES, apply_transition
from core.locking import LOCKED_EXTERNALLY_MESSAGE, resolve_edit_status
from core.models import (
    Invoice, InvoiceCreate, InvoiceLineItem, InvoiceStatus,
    LineItemInput, ExternalRegistrationStatus, EditTier, NumberingLine,
)
from core.numbering import line_for_selector
from core.reconciliation import to_cents
from core.services.sequence_ledger import SequenceLedger
from utils.timezone import now_utc, today_utc

logger = logging.getLogger(__name__)


def calculate_totals(
    line_items: Sequence[LineItemInput],
    tax_rate: Decimal,
    discount_amount: Decimal,
) -> dict[str, Decimal]:
    """
    Invoice totals from line items.

    Tax applies to the discounted subtotal. Every figure is rounded half up
    to cents.
    """
    subtotal = to_cents(sum((item.quantity * item.unit_price for item in line_items), Decimal("0")))
    discount = to_cents(discount_amount)
    tax_amount = to_cents((subtotal - discount) * tax_rate / Decimal("100"))
    total = subtotal - discount + tax_amount

    return {
        "subtotal": subtotal,
        "discount_amount": discount,
        "tax_amount": tax_amount,
        "total": total,
    }


def fetch_invoice_for_update(tx: UnitOfWork, invoice_id: int) -> Invoice:
    """
    Load an invoice and hold its row lock until the unit of work ends.

    Raises:
        ValueError: If invoice not found
    """
    row = tx.execute_single(
        "SELECT * FROM invoices WHERE id = %s FOR UPDATE",
        (invoice_id,)
    )
    if row is None:
        raise ValueError(f"Invoice {invoice_id} not found")
    return Invoice.model_validate(row)


class InvoiceService:
    """Service for invoice operations."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        ledger: SequenceLedger,
        config: InvoicingConfig | None = None,
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.ledger = ledger
        self.config = config or InvoicingConfig()

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create(self, data: InvoiceCreate) -> Invoice:
        """
        Create an invoice with a number issued from its numbering line.

        Args:
            data: Invoice data; is_taxable/is_write_off select the line

        Returns:
            Created invoice: DRAFT, or WRITTEN_OFF on the write-off line

        Raises:
            ConfigurationError: If the line's counter is not provisioned
        """
        line = line_for_selector(data.is_taxable, data.is_write_off)

        if not data.is_taxable:
            tax_rate = Decimal("0")
        elif data.tax_rate is not None:
            tax_rate = data.tax_rate
        else:
            tax_rate = self.config.default_tax_rate

        totals = calculate_totals(data.line_items, tax_rate, data.discount_amount)
        status = InvoiceStatus.WRITTEN_OFF if line == NumberingLine.WRITE_OFF else InvoiceStatus.DRAFT

        with self.postgres.transaction() as tx:
            invoice_number = self.ledger.issue_number(tx, line)

            invoice = self._insert_invoice(tx, {
                "invoice_number": invoice_number,
                "client_id": data.client_id,
                "status": status,
                "is_taxable": data.is_taxable,
                "issue_date": data.issue_date,
                "due_date": data.due_date,
                "currency": data.currency or self.config.default_currency,
                "tax_rate": tax_rate,
                "notes": data.notes,
                "terms": data.terms,
                **totals,
            })
            self._insert_line_items(tx, invoice.id, [
                (item.description, item.quantity, item.unit_price)
                for item in data.line_items
            ])

            self.audit.log_change(
                entity_type="invoice",
                entity_id=invoice.id,
                action=AuditAction.CREATE,
                changes={"created": {
                    "invoice_number": invoice.invoice_number,
                    "numbering_line": line.value,
                    "status": invoice.status.value,
                    "total": str(invoice.total),
                }},
                tx=tx,
            )

        logger.info("Invoice %s created (id=%s, line=%s)", invoice.invoice_number, invoice.id, line.value)
        self.event_bus.publish(InvoiceCreated.create(invoice=invoice))

        return invoice

    def duplicate(self, invoice_id: int) -> Invoice:
        """
        Copy an invoice into a new draft with a freshly issued number.

        The copy goes to the original's taxable or exempt line, is dated today
        and falls due after the configured payment terms.

        Raises:
            ValueError: If invoice not found
        """
        original = self.get_by_id(invoice_id)
        if original is None:
            raise ValueError(f"Invoice {invoice_id} not found")

        items = self.get_line_items(invoice_id)
        line = line_for_selector(original.is_taxable)
        today = today_utc()

        with self.postgres.transaction() as tx:
            invoice_number = self.ledger.issue_number(tx, line)

            duplicate = self._insert_invoice(tx, {
                "invoice_number": invoice_number,
                "client_id": original.client_id,
                "status": InvoiceStatus.DRAFT,
                "is_taxable": original.is_taxable,
                "issue_date": today,
                "due_date": today + timedelta(days=self.config.default_payment_terms_days),
                "currency": original.currency,
                "tax_rate": original.tax_rate,
                "notes": original.notes,
                "terms": original.terms,
                "subtotal": original.subtotal,
                "discount_amount": original.discount_amount,
                "tax_amount": original.tax_amount,
                "total": original.total,
            })
            self._insert_line_items(tx, duplicate.id, [
                (item.description, item.quantity, item.unit_price) for item in items
            ])

            self.audit.log_change(
                entity_type="invoice",
                entity_id=duplicate.id,
                action=AuditAction.CREATE,
                changes={"created": {
                    "invoice_number": duplicate.invoice_number,
                    "duplicated_from": original.invoice_number,
                }},
                tx=tx,
            )

        logger.info("Invoice %s duplicated as %s", original.invoice_number, duplicate.invoice_number)
        self.event_bus.publish(InvoiceCreated.create(invoice=duplicate))

        return duplicate

    def _insert_invoice(self, tx: UnitOfWork, fields: dict[str, Any]) -> Invoice:
        now = now_utc()
        columns = list(fields) + ["amount_paid", "external_registration_status", "created_at", "updated_at"]
        values = list(fields.values()) + [
            Decimal("0"), ExternalRegistrationStatus.NOT_SUBMITTED, now, now,
        ]

        row = tx.execute_returning(
            f"""
            INSERT INTO invoices ({', '.join(columns)})
            VALUES ({', '.join(['%s'] * len(columns))})
            RETURNING *
            """,
            tuple(values)
        )[0]

        return Invoice.model_validate(row)

    def _insert_line_items(
        self,
        tx: UnitOfWork,
        invoice_id: int,
        items: Sequence[tuple[str, Decimal, Decimal]],
    ) -> None:
        for sort_order, (description, quantity, unit_price) in enumerate(items):
            tx.execute(
                """
                INSERT INTO invoice_line_items (
                    invoice_id, description, quantity, unit_price, amount, sort_order
                ) VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (invoice_id, description, quantity, unit_price, to_cents(quantity * unit_price), sort_order)
            )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_by_id(self, invoice_id: int) -> Invoice | None:
        """
        Get invoice by ID.

        Returns:
            Invoice if found, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM invoices WHERE id = %s",
            (invoice_id,)
        )

        if row is None:
            return None

        return Invoice.model_validate(row)

    def get_line_items(self, invoice_id: int) -> list[InvoiceLineItem]:
        """Line items of an invoice in display order."""
        rows = self.postgres.execute(
            """
            SELECT * FROM invoice_line_items
            WHERE invoice_id = %s
            ORDER BY sort_order, id
            """,
            (invoice_id,)
        )
        return [InvoiceLineItem.model_validate(row) for row in rows]

    def list_invoices(
        self,
        status: InvoiceStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Invoice]:
        """
        List invoices, newest first, optionally filtered by status.
        """
        if status is None:
            rows = self.postgres.execute(
                "SELECT * FROM invoices ORDER BY created_at DESC, id DESC LIMIT %s OFFSET %s",
                (limit, offset)
            )
        else:
            rows = self.postgres.execute(
                """
                SELECT * FROM invoices
                WHERE status = %s
                ORDER BY created_at DESC, id DESC
                LIMIT %s OFFSET %s
                """,
                (status.value, limit, offset)
            )

        return [Invoice.model_validate(row) for row in rows]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def update_status(self, invoice_id: int, status: InvoiceStatus) -> Invoice:
        """
        Manually move an invoice to another lifecycle status.

        Args:
            invoice_id: Invoice ID
            status: Requested status

        Returns:
            Updated invoice (sent_at/paid_at set when moving to SENT/PAID)

        Raises:
            ValueError: If invoice not found
            InvalidTransitionError: If status is not reachable
        """
        with self.postgres.transaction() as tx:
            current = fetch_invoice_for_update(tx, invoice_id)
            updates = apply_transition(
                current,
                status,
                now_utc(),
                require_full_payment_for_paid=self.config.require_full_payment_for_manual_paid,
            )

            set_parts = [f"{column} = %s" for column in updates]
            row = tx.execute_returning(
                f"""
                UPDATE invoices
                SET {', '.join(set_parts)}
                WHERE id = %s
                RETURNING *
                """,
                (*updates.values(), invoice_id)
            )[0]

            updated = Invoice.model_validate(row)

            self.audit.log_change(
                entity_type="invoice",
                entity_id=invoice_id,
                action=AuditAction.UPDATE,
                changes=compute_changes(
                    current.model_dump(mode="json"),
                    updated.model_dump(mode="json")
                ),
                tx=tx,
            )

        logger.info(
            "Invoice %s status %s -> %s",
            updated.invoice_number, current.status.value, updated.status.value
        )
        self.event_bus.publish(InvoiceStatusChanged.create(invoice=updated, old_status=current.status.value))
        if updated.status == InvoiceStatus.PAID:
            self.event_bus.publish(InvoicePaid.create(invoice=updated))

        return updated

    def send(self, invoice_id: int) -> Invoice:
        """Mark an invoice as sent. Delivery itself happens elsewhere."""
        return self.update_status(invoice_id, InvoiceStatus.SENT)

    def cancel(self, invoice_id: int) -> Invoice:
        return self.update_status(invoice_id, InvoiceStatus.CANCELLED)

    def reopen(self, invoice_id: int) -> Invoice:
        """Bring a cancelled invoice back to draft."""
        return self.update_status(invoice_id, InvoiceStatus.DRAFT)

    def mark_overdue(self, as_of: date | None = None) -> list[Invoice]:
        """
        Move unpaid invoices past their due date to OVERDUE.

        Each invoice is transitioned in its own unit of work. An invoice whose
        status changed since the scan (paid, cancelled) is skipped.

        Args:
            as_of: Reference date (defaults to today, UTC). Invoices with
                due_date strictly before it are overdue.

        Returns:
            Invoices that were moved to OVERDUE
        """
        as_of = as_of or today_utc()

        rows = self.postgres.execute(
            """
            SELECT id FROM invoices
            WHERE status = ANY(%s) AND due_date < %s
            ORDER BY due_date, id
            """,
            ([s.value for s in sorted(OVERDUE_CANDIDATES, key=lambda s: s.value)], as_of)
        )

        overdue = []
        for row in rows:
            try:
                overdue.append(self.update_status(row["id"], InvoiceStatus.OVERDUE))
            except InvalidTransitionError as e:
                logger.info("Skipping invoice %s in overdue sweep: %s", row["id"], e)

        if overdue:
            logger.info("Marked %d invoice(s) overdue as of %s", len(overdue), as_of.isoformat())

        return overdue

    # -------------------------------------------------------------------------
    # External registration and deletion
    # -------------------------------------------------------------------------

    def set_external_registration_status(
        self,
        invoice_id: int,
        status: ExternalRegistrationStatus,
    ) -> Invoice:
        """
        Record the tax-authority registration state reported by the integration.

        SUBMITTED is irreversible: once set, the invoice number is locked
        forever and the registration status cannot change again.

        Raises:
            ValueError: If invoice not found
            InvoiceLockedError: If the invoice is already SUBMITTED
        """
        with self.postgres.transaction() as tx:
            current = fetch_invoice_for_update(tx, invoice_id)

            if current.external_registration_status == status:
                return current

            if current.is_externally_registered:
                raise InvoiceLockedError(invoice_id, LOCKED_EXTERNALLY_MESSAGE)

            now = now_utc()
            registered_at = now if status == ExternalRegistrationStatus.SUBMITTED else None

            row = tx.execute_returning(
                """
                UPDATE invoices
                SET external_registration_status = %s, external_registered_at = %s, updated_at = %s
                WHERE id = %s
                RETURNING *
                """,
                (status.value, registered_at, now, invoice_id)
            )[0]

            updated = Invoice.model_validate(row)

            self.audit.log_change(
                entity_type="invoice",
                entity_id=invoice_id,
                action=AuditAction.UPDATE,
                changes={"external_registration_status": {
                    "old": current.external_registration_status.value,
                    "new": status.value,
                }},
                tx=tx,
            )

        logger.info("Invoice %s registration status -> %s", updated.invoice_number, status.value)
        return updated

    def delete(self, invoice_id: int) -> bool:
        """
        Delete an invoice unless its number is locked.

        Line items and payments go with it; number change history is kept.

        Returns:
            True if deleted, False if not found

        Raises:
            InvoiceLockedError: If the invoice is written off or externally
                registered; only a separate credit/reversal invoice can undo it
        """
        with self.postgres.transaction() as tx:
            row = tx.execute_single(
                "SELECT * FROM invoices WHERE id = %s FOR UPDATE",
                (invoice_id,)
            )
            if row is None:
                return False

            current = Invoice.model_validate(row)
            edit_status = resolve_edit_status(current)
            if edit_status.tier == EditTier.LOCKED:
                raise InvoiceLockedError(invoice_id, edit_status.message)

            tx.execute("DELETE FROM invoices WHERE id = %s", (invoice_id,))

            self.audit.log_change(
                entity_type="invoice",
                entity_id=invoice_id,
                action=AuditAction.DELETE,
                changes={"deleted": current.model_dump(mode="json")},
                tx=tx,
            )

        logger.info("Invoice %s deleted (id=%s)", current.invoice_number, invoice_id)
        return True
