"""Shared test fixtures for the ledger test suite."""

import os
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import UUID

import pytest
from dotenv import load_dotenv

# Load .env before anything reads LEDGER_* or VAULT_* variables
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

from clients.postgres_client import PostgresClient
from core.config import LedgerConfig
from core.event_bus import EventBus
from core.models import InvoiceCreate, LineItemCreate
from core.repositories.memory_repository import InMemoryInvoiceRepository
from core.repositories.postgres_repository import PostgresInvoiceRepository
from core.services.ledger_service import LedgerService
from utils.caller_context import caller_context, clear_current_caller_id


# =============================================================================
# TEST USER CONSTANTS
# =============================================================================

# Primary test user - owns the invoices in most tests
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")

# Secondary test user - use for ownership checks
TEST_USER_B_ID = UUID("00000000-0000-0000-0000-000000000002")

# Set to a throwaway database to run the PostgreSQL tests
POSTGRES_TEST_URL = os.getenv("LEDGER_TEST_DATABASE_URL")


# =============================================================================
# CALLER CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_caller_context():
    """Ensure clean caller context before and after each test."""
    clear_current_caller_id()
    yield
    clear_current_caller_id()


@pytest.fixture
def test_user_id() -> UUID:
    """The primary test user's ID."""
    return TEST_USER_ID


@pytest.fixture
def test_user_b_id() -> UUID:
    """The secondary test user's ID."""
    return TEST_USER_B_ID


@pytest.fixture
def as_test_user(test_user_id):
    """Run the test as the primary test user."""
    with caller_context(test_user_id):
        yield test_user_id


# =============================================================================
# LEDGER FIXTURES
# =============================================================================


@pytest.fixture
def repository():
    """Fresh in-memory repository per test."""
    return InMemoryInvoiceRepository(lock_timeout_seconds=2.0)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def ledger_config():
    return LedgerConfig()


@pytest.fixture
def ledger(repository, event_bus, ledger_config):
    """LedgerService over the in-memory repository."""
    return LedgerService(repository, event_bus, ledger_config)


@pytest.fixture
def invoice_header():
    """Header for the reference invoice: 10% tax."""
    return InvoiceCreate(
        invoice_number="INV-1001",
        customer_name="Acme Corp",
        issue_date=date(2026, 1, 1),
        due_date=date(2026, 1, 31),
        tax_percent=Decimal("10"),
    )


@pytest.fixture
def invoice_lines():
    """2 x 50 + 1 x 50 = 150 subtotal."""
    return [
        LineItemCreate(description="Consulting", quantity=Decimal("2"), unit_price=Decimal("50")),
        LineItemCreate(description="Setup fee", quantity=Decimal("1"), unit_price=Decimal("50")),
    ]


@pytest.fixture
def sample_invoice(ledger, test_user_id, invoice_header, invoice_lines):
    """Reference invoice: subtotal 150, tax 15, total 165."""
    invoice, _ = ledger.create_invoice(test_user_id, invoice_header, invoice_lines)
    return invoice


# =============================================================================
# POSTGRESQL FIXTURES
# =============================================================================


@pytest.fixture
def db():
    """PostgresClient on the test database. Skips when none is configured."""
    if not POSTGRES_TEST_URL:
        pytest.skip("LEDGER_TEST_DATABASE_URL not set")
    client = PostgresClient(POSTGRES_TEST_URL, minconn=1, maxconn=5)
    yield client
    client.close()


@pytest.fixture
def pg_repository(db):
    """PostgresInvoiceRepository on empty ledger tables."""
    repo = PostgresInvoiceRepository(db, lock_timeout_ms=500)
    repo.apply_schema()
    db.execute("TRUNCATE payments, line_items, invoices")
    return repo
