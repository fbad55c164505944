"""Invoice number formatting and parsing.

format_invoice_number and parse_invoice_number are exact inverses for every
prefix and every value >= 1: parse(prefix, format(prefix, n)) == n.
"""

from collections.abc import Mapping

from core.models.numbering import NumberingLine

NUMBER_WIDTH = 4
SEPARATOR = "-"

# invoices.invoice_number is VARCHAR(50)
MAX_NUMBER_LENGTH = 50


def format_invoice_number(prefix: str, value: int) -> str:
    """Join prefix and zero-padded value: ("INV", 7) -> "INV-0007"."""
    return f"{prefix}{SEPARATOR}{value:0{NUMBER_WIDTH}d}"


def parse_invoice_number(prefix: str, invoice_number: str) -> int | None:
    """
    Extract the integer part of a number issued under prefix.

    Returns None when the number does not start with "<prefix>-" or the
    remainder is not purely numeric ("INV-0003a", "INV-", manual numbers).
    """
    head = f"{prefix}{SEPARATOR}"
    if not invoice_number.startswith(head):
        return None

    remainder = invoice_number[len(head):]
    if not remainder or not remainder.isascii() or not remainder.isdigit():
        return None

    return int(remainder)


def line_for_number(
    invoice_number: str,
    prefixes: Mapping[NumberingLine, str],
) -> NumberingLine | None:
    """Numbering line whose prefix produced this number, if any."""
    for line, prefix in prefixes.items():
        if parse_invoice_number(prefix, invoice_number) is not None:
            return line
    return None


def line_for_selector(is_taxable: bool, is_write_off: bool = False) -> NumberingLine:
    """Numbering line chosen at creation time. Write-off takes precedence."""
    if is_write_off:
        return NumberingLine.WRITE_OFF
    if is_taxable:
        return NumberingLine.TAXABLE
    return NumberingLine.EXEMPT
