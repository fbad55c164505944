"""
Edit tier resolution for invoice numbers.

An invoice number becomes permanently immutable once the invoice has been
registered with the tax authority or written off. The messages below are
shown to users as the compliance explanation and are passed through
InvoiceLockedError unchanged.
"""

from core.models import Invoice, InvoiceStatus, EditTier, EditStatus

LOCKED_EXTERNALLY_MESSAGE = (
    "This invoice has been registered with the tax authority and its number "
    "can no longer be changed. To correct it, issue a credit note against "
    "this invoice and create a new invoice."
)

LOCKED_WRITTEN_OFF_MESSAGE = (
    "This invoice has been written off and its number can no longer be "
    "changed. To correct it, issue a separate reversal invoice."
)

WARNING_MESSAGE = (
    "This invoice has already been sent or processed. Changing its number "
    "may cause confusion with copies your client already holds. The change "
    "will be recorded in the audit trail."
)

FREE_MESSAGE = "This invoice is still a draft. Its number can be changed freely."


def resolve_edit_status(invoice: Invoice) -> EditStatus:
    """Classify whether invoice's number may be changed."""
    if invoice.is_externally_registered:
        return EditStatus(tier=EditTier.LOCKED, message=LOCKED_EXTERNALLY_MESSAGE)

    if invoice.status == InvoiceStatus.WRITTEN_OFF:
        return EditStatus(tier=EditTier.LOCKED, message=LOCKED_WRITTEN_OFF_MESSAGE)

    if invoice.status != InvoiceStatus.DRAFT:
        return EditStatus(tier=EditTier.WARNING, message=WARNING_MESSAGE)

    return EditStatus(tier=EditTier.FREE, message=FREE_MESSAGE)
