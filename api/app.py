"""Application wiring: services dict and FastAPI app factory."""

from fastapi import FastAPI

from api.actions import create_actions_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware, ActorContextMiddleware, ActorResolver, header_actor_resolver
from clients.postgres_client import PostgresClient
from clients.vault_client import get_database_url
from core.audit import AuditLogger, NumberChangeLog
from core.config import InvoicingConfig
from core.event_bus import EventBus
from core.services.invoice_service import InvoiceService
from core.services.numbering_service import NumberingService
from core.services.payment_service import PaymentService
from core.services.sequence_audit_service import SequenceAuditService
from core.services.sequence_ledger import SequenceLedger


def build_services(
    postgres: PostgresClient | None = None,
    config: InvoicingConfig | None = None,
    event_bus: EventBus | None = None,
) -> dict:
    """
    Construct every service over one connection pool.

    Reads the database URL from Vault when no client is given.
    """
    if postgres is None:
        postgres = PostgresClient(get_database_url())
    config = config or InvoicingConfig()
    event_bus = event_bus or EventBus()

    audit = AuditLogger(postgres)
    ledger = SequenceLedger(postgres)
    numbering = NumberingService(postgres, NumberChangeLog(postgres), event_bus, ledger)

    return {
        "config": config,
        "event_bus": event_bus,
        "ledger": ledger,
        "invoice": InvoiceService(postgres, audit, event_bus, ledger, config),
        "payment": PaymentService(postgres, audit, event_bus, config),
        "numbering": numbering,
        "sequence_audit": SequenceAuditService(postgres, ledger, numbering, audit, event_bus, config),
    }


def create_app(
    services: dict | None = None,
    actor_resolver: ActorResolver = header_actor_resolver,
) -> FastAPI:
    """FastAPI app with actor middleware, error handlers, and data/actions routes."""
    if services is None:
        services = build_services()

    app = FastAPI(title="Invoicing")
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(ActorContextMiddleware, actor_resolver=actor_resolver)
    register_error_handlers(app)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    return app
