"""API test fixtures: TestClient over the in-memory ledger with bearer-token callers."""

import pytest
from starlette.testclient import TestClient

from api.app import create_app


# =============================================================================
# AUTH FIXTURES
# =============================================================================


@pytest.fixture
def tokens(test_user_id, test_user_b_id):
    """Bearer token -> caller ID for the two test users."""
    return {
        "token-a": test_user_id,
        "token-b": test_user_b_id,
    }


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(ledger, tokens):
    """Full app: middleware, error handlers and invoice routes."""
    return create_app(ledger, tokens.get)


@pytest.fixture
def client(app):
    """Client authenticated as the primary test user."""
    c = TestClient(app, raise_server_exceptions=False)
    c.headers["Authorization"] = "Bearer token-a"
    return c


@pytest.fixture
def client_b(app):
    """Client authenticated as the secondary test user."""
    c = TestClient(app, raise_server_exceptions=False)
    c.headers["Authorization"] = "Bearer token-b"
    return c


@pytest.fixture
def unauthed_client(app):
    """Client without credentials."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def invoice_body():
    """Request body for the reference invoice: subtotal 150, 10% tax."""
    return {
        "invoice_number": "INV-API-1",
        "customer_name": "Acme Corp",
        "issue_date": "2026-01-01",
        "due_date": "2026-01-31",
        "tax_percent": "10",
        "line_items": [
            {"description": "Consulting", "quantity": "2", "unit_price": "50"},
            {"description": "Setup fee", "quantity": "1", "unit_price": "50"},
        ],
    }


@pytest.fixture
def created_invoice(client, invoice_body):
    """Reference invoice created over HTTP. Returns its JSON."""
    response = client.post("/api/invoices", json=invoice_body)
    assert response.status_code == 201
    return response.json()["data"]["invoice"]
