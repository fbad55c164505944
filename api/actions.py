"""POST /api/actions - unified mutation endpoint."""

from datetime import date

from fastapi import APIRouter, Request
from pydantic import BaseModel

from api.base import success_response
from core.config import InvoicingConfig
from core.models import (
    InvoiceCreate, InvoiceStatus, ExternalRegistrationStatus,
    PaymentCreate, NumberingLine,
)


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "invoice": InvoiceHandler(services["invoice"], services["numbering"]),
        "payment": PaymentHandler(services["payment"]),
        "numbering": NumberingHandler(
            services["ledger"],
            services["sequence_audit"],
            services.get("config") or InvoicingConfig(),
        ),
    }

    @router.post("/actions")
    def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}", None)
        result = method(body.data)
        return success_response(result).model_dump(mode="json")

    return router


def _require(data: dict, key: str):
    if data.get(key) is None:
        raise ValueError(f"'{key}' is required")
    return data[key]


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class InvoiceHandler:
    ALLOWED_ACTIONS = {
        "create", "duplicate", "update_status", "delete", "renumber",
        "set_external_registration", "mark_overdue",
    }

    def __init__(self, service, numbering):
        self.service = service
        self.numbering = numbering

    def _handle_create(self, data: dict):
        invoice = self.service.create(InvoiceCreate(**data))
        return invoice.model_dump(mode="json")

    def _handle_duplicate(self, data: dict):
        invoice = self.service.duplicate(int(_require(data, "id")))
        return invoice.model_dump(mode="json")

    def _handle_update_status(self, data: dict):
        invoice_id = int(_require(data, "id"))
        status = InvoiceStatus(_require(data, "status"))
        invoice = self.service.update_status(invoice_id, status)
        return invoice.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        invoice_id = int(_require(data, "id"))
        deleted = self.service.delete(invoice_id)
        if not deleted:
            raise ValueError(f"Invoice {invoice_id} not found")
        return {"deleted": True}

    def _handle_renumber(self, data: dict):
        invoice = self.numbering.renumber(
            int(_require(data, "id")),
            _require(data, "new_number"),
            _require(data, "reason"),
        )
        return invoice.model_dump(mode="json")

    def _handle_set_external_registration(self, data: dict):
        invoice_id = int(_require(data, "id"))
        status = ExternalRegistrationStatus(_require(data, "status"))
        invoice = self.service.set_external_registration_status(invoice_id, status)
        return invoice.model_dump(mode="json")

    def _handle_mark_overdue(self, data: dict):
        as_of = date.fromisoformat(data["as_of"]) if data.get("as_of") else None
        invoices = self.service.mark_overdue(as_of)
        return [i.model_dump(mode="json") for i in invoices]


class PaymentHandler:
    ALLOWED_ACTIONS = {"apply", "reverse"}

    def __init__(self, service):
        self.service = service

    def _handle_apply(self, data: dict):
        invoice_id = int(_require(data, "invoice_id"))
        payment_data = {k: v for k, v in data.items() if k != "invoice_id"}
        invoice = self.service.apply_payment(invoice_id, PaymentCreate(**payment_data))
        return invoice.model_dump(mode="json")

    def _handle_reverse(self, data: dict):
        invoice = self.service.reverse_payment(int(_require(data, "id")))
        return invoice.model_dump(mode="json")


class NumberingHandler:
    ALLOWED_ACTIONS = {"provision", "resequence"}

    def __init__(self, ledger, sequence_audit, config: InvoicingConfig):
        self.ledger = ledger
        self.sequence_audit = sequence_audit
        self.config = config

    def _handle_provision(self, data: dict):
        line = NumberingLine(_require(data, "line"))
        prefix = data.get("prefix") or self.config.default_prefixes[line]
        counter = self.ledger.provision(line, prefix, int(data.get("next_value", 1)))
        return counter.model_dump(mode="json")

    def _handle_resequence(self, data: dict):
        line = NumberingLine(_require(data, "line"))
        result = self.sequence_audit.resequence(line, int(data.get("start", 1)))
        return result.model_dump(mode="json")
