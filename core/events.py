"""
Domain events for the invoice ledger.

Immutable event objects describing what happened to an invoice. The
ledger publishes them after the write has committed, so handlers (document
rendering, notifications) never see a state that could still roll back.

Events carry the full domain object so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class LedgerEvent:
    """Base class for all ledger events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


@dataclass(frozen=True)
class InvoiceCreated(LedgerEvent):
    """A new invoice and its line items were stored."""
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceCreated":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class PaymentRecorded(LedgerEvent):
    """A payment was admitted. invoice reflects the recompute that followed."""
    payment: Any = None
    invoice: Any = None

    @classmethod
    def create(cls, payment: Any, invoice: Any) -> "PaymentRecorded":
        return cls(payment=payment, invoice=invoice)


@dataclass(frozen=True)
class InvoicePaid(LedgerEvent):
    """Recompute found a zero balance and moved the invoice from DRAFT to PAID."""
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoicePaid":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoiceArchived(LedgerEvent):
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceArchived":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoiceRestored(LedgerEvent):
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceRestored":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoiceDeleted(LedgerEvent):
    """Invoice and all of its children are gone. Carries the last snapshot."""
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceDeleted":
        return cls(invoice=invoice)
