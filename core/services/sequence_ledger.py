"""
Sequence ledger: one counter row per numbering line.

Numbers are issued with a single UPDATE ... RETURNING against the counter
row, so the increment and the read of the issued value are one indivisible
statement. Concurrent issuers queue on the row lock and each receives a
distinct value. A value issued inside a transaction that later rolls back is
never handed out again: gaps are possible, duplicates are not.

The next value is never cached in process memory.
"""

import logging

from clients.postgres_client import PostgresClient, UnitOfWork
from core.exceptions import ConfigurationError
from core.models import NumberingLine, NumberingCounter
from core.numbering import format_invoice_number

logger = logging.getLogger(__name__)


class SequenceLedger:
    """Issues invoice numbers from the numbering_counters table."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def issue(self, tx: UnitOfWork, line: NumberingLine) -> tuple[str, int]:
        """
        Atomically take the next value of a numbering line.

        Args:
            tx: Unit of work the issuance belongs to (usually invoice creation)
            line: Numbering line to draw from

        Returns:
            (prefix, issued_value)

        Raises:
            ConfigurationError: No counter provisioned for the line
        """
        row = tx.execute_single(
            """
            UPDATE numbering_counters
            SET next_value = next_value + 1
            WHERE line = %s
            RETURNING prefix, next_value - 1 AS issued
            """,
            (line.value,)
        )

        if row is None:
            raise ConfigurationError(
                f"No numbering counter provisioned for line '{line.value}'. "
                "Provision counters before creating invoices."
            )

        return row["prefix"], row["issued"]

    def issue_number(self, tx: UnitOfWork, line: NumberingLine) -> str:
        """Issue the next value and format it as an invoice number."""
        prefix, value = self.issue(tx, line)
        invoice_number = format_invoice_number(prefix, value)
        logger.info("Issued %s on line %s", invoice_number, line.value)
        return invoice_number

    def provision(self, line: NumberingLine, prefix: str, next_value: int = 1) -> NumberingCounter:
        """
        Create the counter row for a line if it does not exist yet.

        An existing counter is left untouched: provisioning never moves a
        counter backwards.
        """
        if not prefix or not prefix.strip():
            raise ValueError("Counter prefix must not be blank")
        if next_value < 1:
            raise ValueError("Counter next_value must be at least 1")

        self.postgres.execute(
            """
            INSERT INTO numbering_counters (line, prefix, next_value)
            VALUES (%s, %s, %s)
            ON CONFLICT (line) DO NOTHING
            """,
            (line.value, prefix.strip(), next_value)
        )

        counter = self.get_counter(line)
        logger.info("Numbering line %s provisioned (prefix=%s)", line.value, counter.prefix)
        return counter

    def get_counter(self, line: NumberingLine) -> NumberingCounter:
        """
        Current counter state for a line.

        Raises:
            ConfigurationError: No counter provisioned for the line
        """
        row = self.postgres.execute_single(
            "SELECT line, prefix, next_value FROM numbering_counters WHERE line = %s",
            (line.value,)
        )
        if row is None:
            raise ConfigurationError(f"No numbering counter provisioned for line '{line.value}'")
        return NumberingCounter.model_validate(row)

    def list_counters(self) -> list[NumberingCounter]:
        """All provisioned counters."""
        rows = self.postgres.execute(
            "SELECT line, prefix, next_value FROM numbering_counters ORDER BY line"
        )
        return [NumberingCounter.model_validate(row) for row in rows]

    def prefixes(self) -> dict[NumberingLine, str]:
        """Prefix of every provisioned line."""
        return {counter.line: counter.prefix for counter in self.list_counters()}
