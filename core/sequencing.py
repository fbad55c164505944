"""
Gap detection and resequence planning for numbering lines.

Both functions are pure: the SequenceAuditService gathers the rows, calls
these, and applies the resulting plan one renumber at a time.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from itertools import islice

from core.models import (
    InvoiceStatus, NumberingLine, GapReport, ResequenceChange,
)
from core.numbering import format_invoice_number, parse_invoice_number


def detect_gaps(
    line: NumberingLine,
    prefix: str,
    issued: Iterable[tuple[str, InvoiceStatus]],
    counter_next_value: int | None = None,
    max_missing: int | None = None,
) -> GapReport:
    """
    Report missing, duplicate and cancelled numbers on one line.

    Args:
        line: Numbering line being scanned
        prefix: The line's prefix; numbers with another prefix are ignored
        issued: (invoice_number, status) for every invoice currently stored
        counter_next_value: The line counter's next value, reported as-is
        max_missing: Cap on the listed missing numbers (None lists them all).
            missing_count always counts every one.

    Returns:
        GapReport where missing_numbers lists the integers in
        [1, highest_number] that no invoice holds, lowest first, formatted
        with the prefix.
        Numbers whose remainder is not numeric are skipped.
    """
    held: dict[int, list[str]] = defaultdict(list)
    cancelled: list[tuple[int, str]] = []

    for invoice_number, status in issued:
        value = parse_invoice_number(prefix, invoice_number)
        if value is None:
            continue
        held[value].append(invoice_number)
        if status == InvoiceStatus.CANCELLED:
            cancelled.append((value, invoice_number))

    highest = max(held, default=0)

    missing_values = (value for value in range(1, highest + 1) if value not in held)
    missing = [
        format_invoice_number(prefix, value)
        for value in islice(missing_values, max_missing)
    ]
    missing_count = highest - sum(1 for value in held if value >= 1)

    duplicates = [
        number
        for value in sorted(held)
        if len(held[value]) > 1
        for number in sorted(held[value])
    ]

    return GapReport(
        line=line,
        prefix=prefix,
        highest_number=highest,
        total_issued=sum(len(numbers) for numbers in held.values()),
        counter_next_value=counter_next_value,
        missing_numbers=missing,
        missing_count=missing_count,
        duplicate_numbers=duplicates,
        cancelled_numbers=[number for _, number in sorted(cancelled)],
    )


def plan_resequence(
    eligible: Sequence[tuple[int, str]],
    taken: Mapping[str, int],
    prefix: str,
    start: int = 1,
) -> list[ResequenceChange]:
    """
    Assign consecutive numbers to eligible invoices in the given order.

    Args:
        eligible: (invoice_id, current_number), already ordered by creation
        taken: invoice_number -> invoice_id for every stored invoice
        prefix: Prefix of the line being resequenced
        start: First candidate value

    Returns:
        Changes for the invoices whose number actually moves. An invoice that
        already holds its candidate keeps it. A candidate held by any other
        invoice is skipped for the current invoice only; the holder is never
        touched.
    """
    if start < 1:
        raise ValueError("Resequence start must be at least 1")

    holders = dict(taken)
    changes: list[ResequenceChange] = []
    candidate = start

    for invoice_id, current_number in eligible:
        while True:
            number = format_invoice_number(prefix, candidate)
            candidate += 1

            if number == current_number:
                break

            holder = holders.get(number)
            if holder is not None and holder != invoice_id:
                continue

            changes.append(ResequenceChange(
                invoice_id=invoice_id,
                old_number=current_number,
                new_number=number,
            ))
            holders.pop(current_number, None)
            holders[number] = invoice_id
            break

    return changes
