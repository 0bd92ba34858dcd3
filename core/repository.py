"""
Entity repository contract consumed by the ledger engine.

The engine never assumes a storage technology. It relies on three things:
- save_invoice is last-write-wins on the derived fields
- reads observe earlier writes made inside the same transaction
- transaction() is all-or-nothing, and lock_invoice() serializes callers
  on one invoice until the enclosing transaction ends
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from core.models import Invoice, LineItem, LineItemCreate, Payment


class InvoiceRepository(ABC):
    """Read/write access to invoices, their line items and their payments."""

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """
        Transactional scope.

        Everything written inside commits together or not at all. Nested
        scopes join the outer one.
        """

    @abstractmethod
    def lock_invoice(self, invoice_id: UUID) -> None:
        """
        Take the per-invoice lock for the rest of the current transaction.

        Must be called inside transaction(). Raises ConflictError if the lock
        cannot be obtained in time.
        """

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    @abstractmethod
    def find_invoice(self, invoice_id: UUID) -> Invoice | None:
        """Invoice by id, or None."""

    @abstractmethod
    def list_invoices(self, owner_id: UUID, include_archived: bool = True) -> list[Invoice]:
        """Invoices belonging to owner_id, newest first."""

    @abstractmethod
    def insert_invoice(self, invoice: Invoice) -> Invoice:
        """Store a new invoice."""

    @abstractmethod
    def save_invoice(self, invoice: Invoice) -> Invoice:
        """Overwrite an existing invoice record (last write wins)."""

    @abstractmethod
    def delete_invoice(self, invoice_id: UUID) -> None:
        """Delete the invoice record itself."""

    # -------------------------------------------------------------------------
    # Line items
    # -------------------------------------------------------------------------

    @abstractmethod
    def list_line_items(self, invoice_id: UUID) -> list[LineItem]:
        """Line items of an invoice in creation order."""

    @abstractmethod
    def insert_line_items(self, invoice_id: UUID, items: list[LineItemCreate]) -> list[LineItem]:
        """Create all line items for an invoice, in the order given."""

    @abstractmethod
    def delete_line_items(self, invoice_id: UUID) -> int:
        """Delete every line item of an invoice. Returns how many were removed."""

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    @abstractmethod
    def list_payments(self, invoice_id: UUID) -> list[Payment]:
        """Payments of an invoice in the order they were recorded."""

    @abstractmethod
    def insert_payment(self, invoice_id: UUID, amount: Decimal, payment_date: datetime) -> Payment:
        """Append a payment."""

    @abstractmethod
    def delete_payments(self, invoice_id: UUID) -> int:
        """Delete every payment of an invoice. Returns how many were removed."""

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    @abstractmethod
    def sweep_orphans(self) -> dict[str, int]:
        """
        Remove line items and payments whose invoice no longer exists.

        Cleanup for cascades interrupted on storage without transactions.
        Safe to run repeatedly. Returns counts keyed "line_items"/"payments".
        """
