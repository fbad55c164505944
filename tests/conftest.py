"""Shared test fixtures for the invoicing test suite."""

import os
from datetime import date
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock
from uuid import UUID

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from clients.postgres_client import PostgresClient, UnitOfWork
from core.models import Invoice, InvoiceStatus, ExternalRegistrationStatus
from utils.actor_context import actor_context, clear_current_actor_id
from utils.timezone import now_utc


# =============================================================================
# TEST ACTOR CONSTANTS
# =============================================================================

# Primary test actor - use for single-actor tests
TEST_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")

# Secondary test actor - use when attribution must differ
TEST_ACTOR_B_ID = UUID("00000000-0000-0000-0000-000000000002")


# =============================================================================
# ACTOR CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_actor_context():
    """Ensure clean actor context before and after each test."""
    clear_current_actor_id()
    yield
    clear_current_actor_id()


@pytest.fixture
def test_actor_id() -> UUID:
    """The primary test actor's ID."""
    return TEST_ACTOR_ID


@pytest.fixture
def as_test_actor(test_actor_id):
    """Run the test as the primary test actor."""
    with actor_context(test_actor_id):
        yield test_actor_id


# =============================================================================
# IN-MEMORY STAND-INS
# =============================================================================


def _make_invoice(**overrides) -> Invoice:
    """Build an Invoice without touching the database."""
    now = now_utc()
    fields = {
        "id": 1,
        "invoice_number": "INV-0001",
        "client_id": None,
        "status": InvoiceStatus.DRAFT,
        "is_taxable": True,
        "issue_date": date(2026, 1, 10),
        "due_date": date(2026, 2, 9),
        "currency": "USD",
        "subtotal": Decimal("100.00"),
        "discount_amount": Decimal("0.00"),
        "tax_rate": Decimal("0.00"),
        "tax_amount": Decimal("0.00"),
        "total": Decimal("100.00"),
        "amount_paid": Decimal("0.00"),
        "notes": None,
        "terms": None,
        "external_registration_status": ExternalRegistrationStatus.NOT_SUBMITTED,
        "external_registered_at": None,
        "sent_at": None,
        "paid_at": None,
        "created_at": now,
        "updated_at": now,
    }
    fields.update(overrides)
    return Invoice(**fields)


@pytest.fixture
def make_invoice():
    """Factory for in-memory invoices: make_invoice(status=..., total=...)."""
    return _make_invoice


@pytest.fixture
def invoice_row():
    """Factory for invoice rows as returned by RealDictCursor."""
    return lambda **overrides: _make_invoice(**overrides).model_dump()


@pytest.fixture
def tx():
    """Mocked unit of work."""
    return Mock(spec=UnitOfWork)


@pytest.fixture
def mock_db(tx):
    """Mocked PostgresClient whose transaction() yields the tx fixture."""
    db = Mock(spec=PostgresClient)
    db.transaction.return_value.__enter__ = Mock(return_value=tx)
    db.transaction.return_value.__exit__ = Mock(return_value=False)
    return db


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def db():
    """
    Session-scoped PostgresClient against TEST_DATABASE_URL.

    The schema in schema.sql is applied once. Skipped when the variable is
    not set.
    """
    database_url = os.getenv("TEST_DATABASE_URL")
    if not database_url:
        pytest.skip("TEST_DATABASE_URL not set")

    client = PostgresClient(database_url)
    schema = (Path(__file__).parent.parent / "schema.sql").read_text()
    client.execute(schema)
    yield client
    client.close()


@pytest.fixture
def clean_db(db):
    """Empty invoicing tables and reset counters before the test."""
    db.execute("""
        TRUNCATE invoices, invoice_line_items, payments,
                 invoice_number_changes, audit_log
        RESTART IDENTITY CASCADE
    """)
    db.execute("UPDATE numbering_counters SET next_value = 1")
    yield db
