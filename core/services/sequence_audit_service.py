"""
Sequence audit: gap detection and resequencing of numbering lines.

Line membership is decided by prefix. A line's invoices are those whose number
starts with the line's prefix followed by the separator; an invoice renamed to
a foreign prefix drops out of both the gap scan and the resequence.

Resequencing only moves invoices still in the line's movable status (draft on
the taxable and exempt lines, written_off on the write-off line) that were
never registered externally. Every move goes through NumberingService.renumber,
so each one gets its own change record and its own tier check. A failure on
one invoice is collected and the run continues.
"""

import logging
from uuid import UUID

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction
from core.config import InvoicingConfig
from core.event_bus import EventBus
from core.events import NumberingLineResequenced
from core.exceptions import InvoicingError
from core.models import (
    InvoiceStatus, ExternalRegistrationStatus, NumberingLine,
    GapReport, ResequenceFailure, ResequenceResult,
)
from core.numbering import SEPARATOR
from core.sequencing import detect_gaps, plan_resequence
from core.services.numbering_service import NumberingService
from core.services.sequence_ledger import SequenceLedger

logger = logging.getLogger(__name__)

RESEQUENCE_REASON = "Bulk resequence"

RESEQUENCE_STATUS = {
    NumberingLine.TAXABLE: InvoiceStatus.DRAFT,
    NumberingLine.EXEMPT: InvoiceStatus.DRAFT,
    NumberingLine.WRITE_OFF: InvoiceStatus.WRITTEN_OFF,
}


def _prefix_pattern(prefix: str) -> str:
    """LIKE pattern matching every number of a prefix."""
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}{SEPARATOR}%"


class SequenceAuditService:
    """Service for numbering line integrity checks and repair."""

    def __init__(
        self,
        postgres: PostgresClient,
        ledger: SequenceLedger,
        numbering: NumberingService,
        audit: AuditLogger,
        event_bus: EventBus,
        config: InvoicingConfig | None = None,
    ):
        self.postgres = postgres
        self.ledger = ledger
        self.numbering = numbering
        self.audit = audit
        self.event_bus = event_bus
        self.config = config or InvoicingConfig()

    def detect_gaps(self, line: NumberingLine) -> GapReport:
        """
        Scan a numbering line for missing and duplicate numbers.

        Read-only. Numbers of deleted invoices show up as missing; numbers of
        cancelled invoices are still held and listed separately.

        Raises:
            ConfigurationError: No counter provisioned for the line
        """
        counter = self.ledger.get_counter(line)

        rows = self.postgres.execute(
            "SELECT invoice_number, status FROM invoices WHERE invoice_number LIKE %s",
            (_prefix_pattern(counter.prefix),)
        )

        report = detect_gaps(
            line,
            counter.prefix,
            ((row["invoice_number"], InvoiceStatus(row["status"])) for row in rows),
            counter_next_value=counter.next_value,
            max_missing=self.config.max_reported_missing_numbers,
        )

        if report.has_gaps or report.duplicate_numbers:
            logger.warning(
                "Numbering line %s: %d missing, %d duplicate (highest %s%s%04d)",
                line.value, report.missing_count, len(report.duplicate_numbers),
                counter.prefix, SEPARATOR, report.highest_number
            )

        return report

    def resequence(
        self,
        line: NumberingLine,
        start: int = 1,
        actor_id: UUID | None = None,
    ) -> ResequenceResult:
        """
        Renumber a line's movable invoices consecutively from start.

        Invoices are taken in creation order. A candidate number held by any
        other invoice, on any line, is skipped and never taken from its
        holder. Externally registered invoices are never moved.

        Args:
            line: Numbering line to resequence
            start: First candidate value (>= 1)
            actor_id: Who requested it (defaults to current actor context)

        Returns:
            ResequenceResult with applied changes and per-invoice failures

        Raises:
            ValueError: If start < 1, or the write-off line is requested while
                write-off resequencing is disabled
            ConfigurationError: No counter provisioned for the line
        """
        if start < 1:
            raise ValueError("Resequence start must be at least 1")
        if line == NumberingLine.WRITE_OFF and not self.config.allow_write_off_resequence:
            raise ValueError("Resequencing the write-off line is disabled")

        counter = self.ledger.get_counter(line)

        eligible_rows = self.postgres.execute(
            """
            SELECT id, invoice_number FROM invoices
            WHERE invoice_number LIKE %s
              AND status = %s
              AND external_registration_status <> %s
            ORDER BY created_at ASC, id ASC
            """,
            (
                _prefix_pattern(counter.prefix),
                RESEQUENCE_STATUS[line].value,
                ExternalRegistrationStatus.SUBMITTED.value,
            )
        )
        taken_rows = self.postgres.execute("SELECT id, invoice_number FROM invoices")

        plan = plan_resequence(
            [(row["id"], row["invoice_number"]) for row in eligible_rows],
            {row["invoice_number"]: row["id"] for row in taken_rows},
            counter.prefix,
            start,
        )

        changes = []
        failures = []
        for change in plan:
            try:
                self.numbering.renumber(
                    change.invoice_id,
                    change.new_number,
                    RESEQUENCE_REASON,
                    actor_id=actor_id,
                    allow_written_off=line == NumberingLine.WRITE_OFF,
                )
            except (InvoicingError, ValueError) as e:
                logger.warning(
                    "Resequence of %s to %s failed: %s",
                    change.old_number, change.new_number, e
                )
                failures.append(ResequenceFailure(
                    invoice_id=change.invoice_id,
                    old_number=change.old_number,
                    attempted_number=change.new_number,
                    error=str(e),
                ))
                continue
            changes.append(change)

        result = ResequenceResult(line=line, start=start, changes=changes, failures=failures)

        if changes:
            self.audit.log_change(
                entity_type="numbering_line",
                entity_id=line.value,
                action=AuditAction.RESEQUENCE,
                changes={
                    "start": start,
                    "changes": [change.model_dump(mode="json") for change in changes],
                    "failures": [failure.model_dump(mode="json") for failure in failures],
                },
                actor_id=actor_id,
            )
            self.event_bus.publish(NumberingLineResequenced.create(result=result))

        logger.info(
            "Resequenced line %s from %d: %d changed, %d failed",
            line.value, start, len(changes), len(failures)
        )

        return result
