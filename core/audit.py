"""
Audit trail for invoicing mutations.

Two append-only logs live here:

- audit_log: every create/update/delete/resequence of an invoicing entity,
  with a JSONB description of what changed.
- invoice_number_changes: one row per invoice number change, written in the
  same unit of work as the change itself.

Neither class exposes an update or delete operation, and the database
rejects UPDATE/DELETE on both tables (see schema.sql). Entries are
attributed to the current actor, or NULL for scheduled jobs.
"""

from enum import Enum
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient, UnitOfWork
from core.models import InvoiceStatus, NumberChangeRecord
from utils.actor_context import peek_current_actor_id
from utils.timezone import now_utc


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RESEQUENCE = "resequence"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at"}
    changes = {}

    for key in set(old.keys()) | set(new.keys()):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Append-only activity trail for invoicing entities.

    Always use model_dump(mode="json") when passing Pydantic models so that
    decimals, dates and enums are serialized to JSON-compatible values.

    Usage:
        audit = AuditLogger(postgres)

        # Inside a unit of work, so the entry commits with the change
        with postgres.transaction() as tx:
            ...
            audit.log_change(
                entity_type="invoice",
                entity_id=invoice.id,
                action=AuditAction.CREATE,
                changes={"created": invoice.model_dump(mode="json")},
                tx=tx,
            )

        history = audit.get_entity_history("invoice", invoice.id)
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def log_change(
        self,
        entity_type: str,
        entity_id: int | str,
        action: AuditAction,
        changes: dict[str, Any],
        actor_id: UUID | None = None,
        tx: UnitOfWork | None = None,
    ) -> None:
        """
        Log an entity change.

        Args:
            entity_type: "invoice", "payment", "numbering_line", ...
            entity_id: ID of the entity (numbering lines use their name)
            action: The action performed
            changes: The changes made (format depends on action)
            actor_id: Who made the change (defaults to current context)
            tx: Unit of work to write in; standalone statement when omitted

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        - DELETE: {"deleted": {full entity data at deletion}}
        - RESEQUENCE: {"start": n, "changes": [...]}
        """
        if actor_id is None:
            actor_id = peek_current_actor_id()

        executor = tx or self.postgres
        executor.execute(
            """
            INSERT INTO audit_log (actor_id, entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (
                actor_id,
                entity_type,
                str(entity_id),
                action.value,
                Json(changes),
                now_utc()
            )
        )

    def get_entity_history(
        self,
        entity_type: str,
        entity_id: int | str,
    ) -> list[dict[str, Any]]:
        """
        Get full audit history for an entity, newest first.
        """
        return self.postgres.execute(
            """
            SELECT id, actor_id, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC, id DESC
            """,
            (entity_type, str(entity_id))
        )


class NumberChangeLog:
    """
    Write-once log of invoice number changes.

    append() is the only write path. Records are immutable models and the
    table has no update or delete operation exposed anywhere.
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def append(
        self,
        tx: UnitOfWork,
        invoice_id: int,
        old_number: str,
        new_number: str,
        reason: str,
        invoice_status: InvoiceStatus,
        actor_id: UUID | None = None,
    ) -> NumberChangeRecord:
        """
        Record a number change inside the unit of work that performs it.

        A change record can never exist without its change: the caller's
        transaction commits or rolls back both together.
        """
        if actor_id is None:
            actor_id = peek_current_actor_id()

        row = tx.execute_returning(
            """
            INSERT INTO invoice_number_changes (
                invoice_id, old_number, new_number, reason,
                invoice_status, changed_by, created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (
                invoice_id, old_number, new_number, reason,
                invoice_status.value, actor_id, now_utc()
            )
        )[0]

        return NumberChangeRecord.model_validate(row)

    def list_for_invoice(self, invoice_id: int) -> list[NumberChangeRecord]:
        """All number changes for an invoice, oldest first."""
        rows = self.postgres.execute(
            """
            SELECT * FROM invoice_number_changes
            WHERE invoice_id = %s
            ORDER BY created_at ASC, id ASC
            """,
            (invoice_id,)
        )
        return [NumberChangeRecord.model_validate(row) for row in rows]

    def list_recent(self, limit: int = 100) -> list[NumberChangeRecord]:
        """Most recent number changes across all invoices, newest first."""
        rows = self.postgres.execute(
            """
            SELECT * FROM invoice_number_changes
            ORDER BY created_at DESC, id DESC
            LIMIT %s
            """,
            (limit,)
        )
        return [NumberChangeRecord.model_validate(row) for row in rows]
