"""Invoicing configuration and business-rule policy points."""

from decimal import Decimal

from pydantic import BaseModel, Field

from core.models.numbering import NumberingLine


class InvoicingConfig(BaseModel):
    """
    Invoicing configuration.

    The policy toggles default to the permissive behaviour: manual 'paid'
    without full payment, overpayment accepted, write-off line resequencable.
    """

    # Numbering
    default_prefixes: dict[NumberingLine, str] = Field(
        default_factory=lambda: {
            NumberingLine.TAXABLE: "INV",
            NumberingLine.EXEMPT: "EINV",
            NumberingLine.WRITE_OFF: "WO",
        },
        description="Prefix used when provisioning a numbering line's counter",
    )

    # Invoice defaults
    default_tax_rate: Decimal = Field(
        default=Decimal("0"),
        description="Tax rate (percent) applied to taxable invoices created without one",
        ge=0,
        le=100,
    )
    default_payment_terms_days: int = Field(
        default=30,
        description="Days until due for duplicated invoices",
        ge=0,
        le=365,
    )
    default_currency: str = Field(
        default="USD",
        description="Currency for invoices created without one",
        min_length=3,
        max_length=3,
    )

    # Reporting
    max_reported_missing_numbers: int = Field(
        default=1000,
        description="Most missing numbers listed in a gap report; the count is always complete",
        ge=1,
    )

    # Policy points
    require_full_payment_for_manual_paid: bool = Field(
        default=False,
        description="Reject a manual transition to 'paid' while amount_paid < total",
    )
    accept_overpayment: bool = Field(
        default=True,
        description="Accept payments larger than the remaining balance",
    )
    allow_write_off_resequence: bool = Field(
        default=True,
        description="Let the resequencer renumber written-off invoices on the write-off line",
    )
