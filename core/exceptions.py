"""Typed exceptions for the invoice numbering and lifecycle core.

Everything except ConfigurationError is a recoverable, user-facing error: the
invoice is left unchanged and the caller decides whether to retry with
corrected input. Storage failures are not wrapped and propagate as-is.
"""


class InvoicingError(Exception):
    """Base class for invoicing core errors."""


class ConfigurationError(InvoicingError):
    """
    Numbering counter not provisioned for a line.

    Fatal to the creation path. Counters must be provisioned before the first
    invoice on a line is issued; retrying will not help.
    """


class InvalidTransitionError(InvoicingError):
    """Requested lifecycle status is not reachable from the current status."""

    def __init__(self, current: str, requested: str, detail: str | None = None):
        self.current = current
        self.requested = requested
        message = f"Cannot change invoice status from '{current}' to '{requested}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvoiceLockedError(InvoicingError):
    """
    Invoice number is locked against changes.

    The message is the compliance explanation shown to the user and must be
    passed through verbatim.
    """

    def __init__(self, invoice_id: int, message: str):
        self.invoice_id = invoice_id
        self.message = message
        super().__init__(message)


class DuplicateNumberError(InvoicingError):
    """Requested invoice number is already held by another invoice."""

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(f"Invoice number '{invoice_number}' is already in use")


class NoOpChangeError(InvoicingError):
    """Requested invoice number equals the current one."""

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(f"Invoice number is already '{invoice_number}'")


class PaymentNotAllowedError(InvoicingError):
    """Payments cannot be recorded against an invoice in this status."""

    def __init__(self, invoice_id: int, status: str):
        self.invoice_id = invoice_id
        self.status = status
        super().__init__(f"Cannot record payment for {status} invoice {invoice_id}")


class OverpaymentError(InvoicingError):
    """Payment exceeds the balance due while overpayment is disabled."""

    def __init__(self, invoice_id: int, amount, balance_due):
        self.invoice_id = invoice_id
        self.amount = amount
        self.balance_due = balance_due
        super().__init__(
            f"Payment of {amount} exceeds balance due {balance_due} on invoice {invoice_id}"
        )
