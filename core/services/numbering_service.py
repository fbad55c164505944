"""
Numbering service: edit tier lookup and audited invoice renumbering.

A renumber re-reads the invoice under a row lock, re-checks the edit tier,
checks the new number against every other invoice, writes it and appends
the change record, all in one unit of work. The unique index on
invoices.invoice_number is the final guard if two requests race for the same
new number on different invoices.
"""

import logging
from uuid import UUID

from psycopg2 import errors as pg_errors

from clients.postgres_client import PostgresClient
from core.audit import NumberChangeLog
from core.event_bus import EventBus
from core.events import InvoiceRenumbered
from core.exceptions import InvoiceLockedError, DuplicateNumberError, NoOpChangeError
from core.locking import resolve_edit_status
from core.models import Invoice, InvoiceStatus, EditTier, EditStatus, NumberChangeRecord
from core.numbering import MAX_NUMBER_LENGTH, line_for_number
from core.services.invoice_service import fetch_invoice_for_update
from core.services.sequence_ledger import SequenceLedger
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class NumberingService:
    """Service for invoice number changes."""

    def __init__(
        self,
        postgres: PostgresClient,
        change_log: NumberChangeLog,
        event_bus: EventBus,
        ledger: SequenceLedger,
    ):
        self.postgres = postgres
        self.change_log = change_log
        self.event_bus = event_bus
        self.ledger = ledger

    def edit_status(self, invoice_id: int) -> EditStatus:
        """
        Whether an invoice's number may be changed, and why.

        Raises:
            ValueError: If invoice not found
        """
        row = self.postgres.execute_single(
            "SELECT * FROM invoices WHERE id = %s",
            (invoice_id,)
        )
        if row is None:
            raise ValueError(f"Invoice {invoice_id} not found")

        return resolve_edit_status(Invoice.model_validate(row))

    def renumber(
        self,
        invoice_id: int,
        new_number: str,
        reason: str,
        actor_id: UUID | None = None,
        *,
        allow_written_off: bool = False,
    ) -> Invoice:
        """
        Change an invoice number through the audited path.

        Args:
            invoice_id: Invoice to renumber
            new_number: Requested number (surrounding whitespace is ignored)
            reason: Why the number changes, stored with the change record
            actor_id: Who requested it (defaults to current actor context)
            allow_written_off: Let a written-off invoice move. Only the
                resequencer passes this; external registration still locks.

        Returns:
            Updated invoice

        Raises:
            ValueError: If invoice not found, or new_number/reason is blank
            InvoiceLockedError: If the number is locked
            NoOpChangeError: If new_number equals the current number
            DuplicateNumberError: If another invoice already holds new_number
        """
        new_number = (new_number or "").strip()
        reason = (reason or "").strip()
        if not new_number:
            raise ValueError("New invoice number must not be blank")
        if len(new_number) > MAX_NUMBER_LENGTH:
            raise ValueError(f"Invoice number must be at most {MAX_NUMBER_LENGTH} characters")
        if not reason:
            raise ValueError("A reason is required to change an invoice number")

        with self.postgres.transaction() as tx:
            current = fetch_invoice_for_update(tx, invoice_id)

            edit_status = resolve_edit_status(current)
            if edit_status.tier == EditTier.LOCKED and not (
                allow_written_off
                and current.status == InvoiceStatus.WRITTEN_OFF
                and not current.is_externally_registered
            ):
                raise InvoiceLockedError(invoice_id, edit_status.message)

            if new_number == current.invoice_number:
                raise NoOpChangeError(new_number)

            holder = tx.execute_scalar(
                "SELECT id FROM invoices WHERE invoice_number = %s AND id <> %s",
                (new_number, invoice_id)
            )
            if holder is not None:
                raise DuplicateNumberError(new_number)

            try:
                row = tx.execute_returning(
                    """
                    UPDATE invoices
                    SET invoice_number = %s, updated_at = %s
                    WHERE id = %s
                    RETURNING *
                    """,
                    (new_number, now_utc(), invoice_id)
                )[0]
            except pg_errors.UniqueViolation as e:
                raise DuplicateNumberError(new_number) from e

            updated = Invoice.model_validate(row)

            record = self.change_log.append(
                tx,
                invoice_id=invoice_id,
                old_number=current.invoice_number,
                new_number=new_number,
                reason=reason,
                invoice_status=current.status,
                actor_id=actor_id,
            )

        if edit_status.tier == EditTier.WARNING:
            logger.warning(
                "Invoice %s renumbered to %s after leaving draft (status %s): %s",
                current.invoice_number, new_number, current.status.value, reason
            )
        else:
            logger.info("Invoice %s renumbered to %s: %s", current.invoice_number, new_number, reason)

        prefixes = self.ledger.prefixes()
        old_line = line_for_number(current.invoice_number, prefixes)
        if old_line is not None and line_for_number(new_number, prefixes) != old_line:
            logger.warning(
                "Invoice %s renumbered to %s leaves numbering line %s",
                current.invoice_number, new_number, old_line.value
            )

        self.event_bus.publish(InvoiceRenumbered.create(invoice=updated, record=record))

        return updated

    def history(self, invoice_id: int) -> list[NumberChangeRecord]:
        """Number changes of an invoice, oldest first."""
        return self.change_log.list_for_invoice(invoice_id)

    def recent_changes(self, limit: int = 100) -> list[NumberChangeRecord]:
        """Latest number changes across all invoices."""
        return self.change_log.list_recent(limit)
