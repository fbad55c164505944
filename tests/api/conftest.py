"""API test fixtures - TestClient over mocked services."""

from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from core.config import InvoicingConfig
from core.services.invoice_service import InvoiceService
from core.services.numbering_service import NumberingService
from core.services.payment_service import PaymentService
from core.services.sequence_audit_service import SequenceAuditService
from core.services.sequence_ledger import SequenceLedger


# =============================================================================
# SERVICES DICT
# =============================================================================


@pytest.fixture
def services():
    return {
        "config": InvoicingConfig(),
        "ledger": Mock(spec=SequenceLedger),
        "invoice": Mock(spec=InvoiceService),
        "payment": Mock(spec=PaymentService),
        "numbering": Mock(spec=NumberingService),
        "sequence_audit": Mock(spec=SequenceAuditService),
    }


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services):
    """FastAPI app with actor middleware, error handlers, and data/actions routes."""
    return create_app(services)


@pytest.fixture
def client(app, test_actor_id):
    """Client acting as the primary test actor."""
    c = TestClient(app, raise_server_exceptions=False)
    c.headers["X-Actor-ID"] = str(test_actor_id)
    return c


@pytest.fixture
def unauthed_client(app):
    """Client without an actor header."""
    return TestClient(app, raise_server_exceptions=False)
