"""Numbering line, edit tier and sequence audit models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.invoice import InvoiceStatus


class NumberingLine(str, Enum):
    """Independent invoice number sequences, each with its own prefix and counter."""

    TAXABLE = "taxable"
    EXEMPT = "exempt"
    WRITE_OFF = "write_off"


class EditTier(str, Enum):
    """Editability of an invoice number."""

    FREE = "free"
    WARNING = "warning"
    LOCKED = "locked"


class NumberingCounter(BaseModel):
    """Counter row for one numbering line."""

    line: NumberingLine
    prefix: str
    next_value: int = Field(..., ge=1)

    model_config = {"from_attributes": True}


class NumberChangeRecord(BaseModel):
    """Append-only record of one invoice number change."""

    id: int
    invoice_id: int
    old_number: str
    new_number: str
    reason: str
    invoice_status: InvoiceStatus
    changed_by: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True, "frozen": True}


class EditStatus(BaseModel):
    """Answer to "may this invoice's number be changed?"."""

    tier: EditTier
    message: str


class GapReport(BaseModel):
    """Result of scanning one numbering line for missing and duplicate numbers."""

    line: NumberingLine
    prefix: str
    highest_number: int
    total_issued: int
    counter_next_value: int | None
    missing_numbers: list[str]
    missing_count: int
    duplicate_numbers: list[str]
    cancelled_numbers: list[str]

    @property
    def has_gaps(self) -> bool:
        return self.missing_count > 0


class ResequenceChange(BaseModel):
    """One invoice moved to a new number by the resequencer."""

    invoice_id: int
    old_number: str
    new_number: str


class ResequenceFailure(BaseModel):
    """A planned change that could not be applied."""

    invoice_id: int
    old_number: str
    attempted_number: str
    error: str


class ResequenceResult(BaseModel):
    """Outcome of a resequencing run over one numbering line."""

    line: NumberingLine
    start: int
    changes: list[ResequenceChange]
    failures: list[ResequenceFailure]
