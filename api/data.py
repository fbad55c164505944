"""GET /api/data - unified read endpoint."""

from fastapi import APIRouter, Query, Request

from api.base import success_response
from core.models import InvoiceStatus, NumberingLine


VALID_TYPES = {"invoices", "payments", "edit_status", "number_history", "gaps", "counters"}


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    invoice_svc = services["invoice"]
    payment_svc = services["payment"]
    numbering_svc = services["numbering"]
    sequence_audit_svc = services["sequence_audit"]
    ledger = services["ledger"]

    @router.get("/data")
    def get_data(
        request: Request,
        type: str | None = Query(None),
        id: int | None = Query(None),
        invoice_id: int | None = Query(None),
        status: str | None = Query(None),
        line: str | None = Query(None),
        include: str | None = Query(None),
        limit: int = Query(50, ge=1, le=500),
        offset: int = Query(0, ge=0),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        includes = set(include.split(",")) if include else set()

        if type == "invoices":
            return _handle_invoices(invoice_svc, payment_svc, id, status, includes, limit, offset)

        if type == "payments":
            if invoice_id is None:
                raise ValueError("'payments' type requires 'invoice_id' parameter")
            payments = payment_svc.list_for_invoice(invoice_id)
            return success_response(
                [p.model_dump(mode="json") for p in payments]
            ).model_dump(mode="json")

        if type == "edit_status":
            if id is None:
                raise ValueError("'edit_status' type requires 'id' parameter")
            return success_response(
                numbering_svc.edit_status(id).model_dump(mode="json")
            ).model_dump(mode="json")

        if type == "number_history":
            if id is not None:
                records = numbering_svc.history(id)
            else:
                records = numbering_svc.recent_changes(limit)
            return success_response(
                [r.model_dump(mode="json") for r in records]
            ).model_dump(mode="json")

        if type == "gaps":
            if line is None:
                raise ValueError("'gaps' type requires 'line' parameter")
            report = sequence_audit_svc.detect_gaps(NumberingLine(line))
            return success_response(report.model_dump(mode="json")).model_dump(mode="json")

        if type == "counters":
            counters = ledger.list_counters()
            return success_response(
                [c.model_dump(mode="json") for c in counters]
            ).model_dump(mode="json")

    return router


def _handle_invoices(invoice_svc, payment_svc, id, status, includes, limit, offset):
    if id is not None:
        invoice = invoice_svc.get_by_id(id)
        if invoice is None:
            raise ValueError(f"Invoice {id} not found")

        data = invoice.model_dump(mode="json")
        if "line_items" in includes:
            items = invoice_svc.get_line_items(invoice.id)
            data["line_items"] = [li.model_dump(mode="json") for li in items]
        if "payments" in includes:
            payments = payment_svc.list_for_invoice(invoice.id)
            data["payments"] = [p.model_dump(mode="json") for p in payments]

        return success_response(data).model_dump(mode="json")

    invoices = invoice_svc.list_invoices(
        status=InvoiceStatus(status) if status else None,
        limit=limit,
        offset=offset,
    )
    return success_response(
        [i.model_dump(mode="json") for i in invoices]
    ).model_dump(mode="json")
