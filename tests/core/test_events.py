"""Tests for ledger event models."""

from dataclasses import FrozenInstanceError
from datetime import date, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from core.events import (
    LedgerEvent,
    InvoiceArchived,
    InvoiceCreated,
    InvoiceDeleted,
    InvoicePaid,
    InvoiceRestored,
    PaymentRecorded,
)
from core.models import Currency, Invoice, Payment
from utils.timezone import now_utc


@pytest.fixture
def _invoice():
    now = now_utc()
    return Invoice(
        id=uuid4(), owner_id=uuid4(),
        invoice_number="INV-EVT", customer_name="Events Ltd",
        issue_date=date(2026, 3, 1), due_date=date(2026, 3, 31),
        currency=Currency.EUR, tax_percent=Decimal("0"),
        subtotal=Decimal("40"), total=Decimal("40"), balance_due=Decimal("40"),
        created_at=now, updated_at=now,
    )


@pytest.fixture
def _payment(_invoice):
    now = now_utc()
    return Payment(id=uuid4(), invoice_id=_invoice.id, amount=Decimal("15"), payment_date=now, created_at=now)


class TestLedgerEventBase:

    def test_has_event_id_and_timestamp(self, _invoice):
        event = InvoiceCreated.create(invoice=_invoice)

        assert event.event_id
        assert event.occurred_at.tzinfo == timezone.utc

    def test_event_ids_are_unique(self, _invoice):
        first = InvoiceCreated.create(invoice=_invoice)
        second = InvoiceCreated.create(invoice=_invoice)

        assert first.event_id != second.event_id

    def test_is_immutable(self, _invoice):
        event = InvoicePaid.create(invoice=_invoice)

        with pytest.raises(FrozenInstanceError):
            event.invoice = None

    @pytest.mark.parametrize("event_cls", [
        InvoiceCreated, InvoicePaid, InvoiceArchived, InvoiceRestored, InvoiceDeleted,
    ])
    def test_invoice_events_carry_invoice(self, event_cls, _invoice):
        event = event_cls.create(invoice=_invoice)

        assert isinstance(event, LedgerEvent)
        assert event.invoice is _invoice


class TestPaymentRecorded:

    def test_carries_payment_and_invoice(self, _invoice, _payment):
        event = PaymentRecorded.create(payment=_payment, invoice=_invoice)

        assert event.payment.amount == Decimal("15")
        assert event.invoice.id == _payment.invoice_id
