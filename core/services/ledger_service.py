"""
Ledger service: invoice totals, payment admission and lifecycle.

Derived invoice fields (subtotal, tax, total, amount paid, balance due) are
a materialized view of line items and payments. recompute() rebuilds that
view from the children and is called explicitly by every read and write
path that needs fresh totals.

Every operation on an existing invoice runs inside one repository
transaction that holds the invoice's lock, so the check-then-act of payment
admission cannot interleave with another admission on the same invoice.
Events are published only after the transaction has committed.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID, uuid4

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from core.config import LedgerConfig
from core.event_bus import EventBus
from core.events import (
    InvoiceArchived,
    InvoiceCreated,
    InvoiceDeleted,
    InvoicePaid,
    InvoiceRestored,
    LedgerEvent,
    PaymentRecorded,
)
from core.exceptions import NotFoundError, OverpaymentError, ValidationError
from core.guard import load_owned_invoice, require_active
from core.ledger import compute_totals
from core.models import (
    Invoice,
    InvoiceCreate,
    InvoiceDetail,
    InvoiceStatus,
    LineItem,
    LineItemCreate,
    Payment,
    RecomputedTotals,
)
from core.repository import InvoiceRepository
from utils.timezone import now_utc, to_utc

logger = logging.getLogger(__name__)

_LINE_ITEMS = TypeAdapter(list[LineItemCreate])


def _validation_message(exc: PydanticValidationError, prefix: str | None = None) -> str:
    parts = []
    for error in exc.errors():
        loc = ([prefix] if prefix else []) + list(error["loc"])
        location = ".".join(str(part) for part in loc) or "input"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def _parse_amount(amount: Any) -> Decimal:
    """
    Coerce a payment amount to a finite, positive Decimal.

    Floats go through str() so 0.1 becomes Decimal('0.1'), not its binary
    expansion. Booleans are rejected even though they are ints.
    """
    if amount is None or isinstance(amount, bool):
        raise ValidationError("Amount must be greater than 0")

    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Amount must be a number, got {amount!r}")

    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be greater than 0")

    return value


class LedgerService:
    """Service for invoice ledger operations."""

    def __init__(
        self,
        repository: InvoiceRepository,
        event_bus: EventBus | None = None,
        config: LedgerConfig | None = None,
    ):
        self.repository = repository
        self.event_bus = event_bus or EventBus()
        self.config = config or LedgerConfig()

    # -------------------------------------------------------------------------
    # Recompute
    # -------------------------------------------------------------------------

    def _recompute_locked(self, invoice: Invoice) -> tuple[Invoice, RecomputedTotals, bool]:
        """
        Rebuild derived fields from children and persist them.

        Caller must hold the invoice lock inside a transaction. Returns the
        refreshed invoice, the totals, and whether status just became PAID.
        Nothing is written when the stored snapshot already matches.
        """
        totals = compute_totals(
            invoice.tax_percent,
            self.repository.list_line_items(invoice.id),
            self.repository.list_payments(invoice.id),
        )

        status = invoice.status
        if totals.is_settled:
            status = InvoiceStatus.PAID
        became_paid = status == InvoiceStatus.PAID and invoice.status != InvoiceStatus.PAID

        if totals == invoice.totals and status == invoice.status:
            return invoice, totals, False

        refreshed = self.repository.save_invoice(invoice.model_copy(update={
            **totals.model_dump(),
            "status": status,
            "updated_at": now_utc(),
        }))

        if became_paid:
            logger.info("Invoice %s is now PAID", invoice.id)

        return refreshed, totals, became_paid

    def recompute(self, invoice_id: UUID) -> RecomputedTotals:
        """
        Recompute and store an invoice's derived totals.

        Idempotent: with no change to line items or payments a second call
        returns identical totals and writes nothing.

        Raises:
            NotFoundError: Invoice doesn't exist
        """
        with self.repository.transaction():
            self.repository.lock_invoice(invoice_id)
            invoice = self.repository.find_invoice(invoice_id)
            if invoice is None:
                raise NotFoundError(invoice_id)
            refreshed, totals, became_paid = self._recompute_locked(invoice)

        if became_paid:
            self._publish(InvoicePaid.create(invoice=refreshed))

        return totals

    # -------------------------------------------------------------------------
    # Create / read
    # -------------------------------------------------------------------------

    def create_invoice(
        self,
        owner_id: UUID,
        header: InvoiceCreate | dict,
        line_items: list[LineItemCreate | dict],
    ) -> tuple[Invoice, list[LineItem]]:
        """
        Create an invoice with its line items.

        Args:
            owner_id: Authenticated caller, becomes the invoice owner
            header: Invoice number, customer, dates, optional currency and tax percent
            line_items: Non-empty list of line items

        Returns:
            (invoice with recomputed totals, created line items)

        Raises:
            ValidationError: Missing header field, bad line item, or no line items
        """
        try:
            header = InvoiceCreate.model_validate(header)
        except PydanticValidationError as e:
            raise ValidationError(_validation_message(e)) from e

        try:
            specs = _LINE_ITEMS.validate_python(line_items if line_items is not None else [])
        except PydanticValidationError as e:
            raise ValidationError(_validation_message(e, "line_items")) from e

        if not specs:
            raise ValidationError("Line items are required")

        now = now_utc()
        invoice = Invoice(
            id=uuid4(),
            owner_id=owner_id,
            invoice_number=header.invoice_number,
            customer_name=header.customer_name,
            issue_date=header.issue_date,
            due_date=header.due_date,
            currency=header.currency or self.config.default_currency,
            tax_percent=header.tax_percent if header.tax_percent is not None else Decimal("0"),
            status=InvoiceStatus.DRAFT,
            is_archived=False,
            created_at=now,
            updated_at=now,
        )

        with self.repository.transaction():
            self.repository.lock_invoice(invoice.id)
            self.repository.insert_invoice(invoice)
            created_items = self.repository.insert_line_items(invoice.id, specs)
            invoice, _, became_paid = self._recompute_locked(invoice)

        logger.info(
            "Invoice %s created (%s, %d line items, total %s)",
            invoice.id, invoice.invoice_number, len(created_items), invoice.total
        )

        self._publish(InvoiceCreated.create(invoice=invoice))
        if became_paid:
            self._publish(InvoicePaid.create(invoice=invoice))

        return invoice, created_items

    def get_detail(self, owner_id: UUID, invoice_id: UUID) -> InvoiceDetail:
        """
        Invoice with freshly recomputed totals, its line items and payments.

        Raises:
            NotFoundError: Invoice doesn't exist
            ForbiddenError: Caller doesn't own it
        """
        with self.repository.transaction():
            self.repository.lock_invoice(invoice_id)
            invoice = load_owned_invoice(self.repository, invoice_id, owner_id)
            invoice, _, became_paid = self._recompute_locked(invoice)
            detail = InvoiceDetail(
                invoice=invoice,
                line_items=self.repository.list_line_items(invoice_id),
                payments=self.repository.list_payments(invoice_id),
            )

        if became_paid:
            self._publish(InvoicePaid.create(invoice=invoice))

        return detail

    def list_invoices(self, owner_id: UUID, include_archived: bool = True) -> list[Invoice]:
        """
        The caller's invoices, newest first.

        Returns the stored snapshots; use get_detail for recomputed totals.
        """
        return self.repository.list_invoices(owner_id, include_archived=include_archived)

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def add_payment(
        self,
        owner_id: UUID,
        invoice_id: UUID,
        amount: Any,
        payment_date: datetime | None = None,
    ) -> tuple[Payment, Invoice]:
        """
        Admit a payment against an invoice.

        Checks, in order: positive amount, invoice exists, caller owns it,
        invoice not archived, amount within the freshly recomputed balance.
        The balance check, the insert and the recompute that follows all run
        under the invoice lock.

        Returns:
            (created payment, refreshed invoice)

        Raises:
            ValidationError: Amount missing, non-numeric or not positive
            NotFoundError: Invoice doesn't exist
            ForbiddenError: Caller doesn't own it
            InvalidStateError: Invoice is archived
            OverpaymentError: Amount exceeds balance due
            ConflictError: Lock not obtained in time
        """
        value = _parse_amount(amount)

        if payment_date is None:
            payment_date = now_utc()
        else:
            try:
                payment_date = to_utc(payment_date)
            except ValueError as e:
                raise ValidationError(str(e)) from e

        with self.repository.transaction():
            self.repository.lock_invoice(invoice_id)
            invoice = load_owned_invoice(self.repository, invoice_id, owner_id)
            require_active(invoice)

            invoice, totals, _ = self._recompute_locked(invoice)
            if value > totals.balance_due:
                logger.warning(
                    "Rejected overpayment of %s on invoice %s (balance due %s)",
                    value, invoice_id, totals.balance_due
                )
                raise OverpaymentError(invoice_id, value, totals.balance_due)

            payment = self.repository.insert_payment(invoice_id, value, payment_date)
            invoice, _, became_paid = self._recompute_locked(invoice)

        logger.info(
            "Payment %s of %s recorded on invoice %s (balance due %s)",
            payment.id, value, invoice_id, invoice.balance_due
        )

        self._publish(PaymentRecorded.create(payment=payment, invoice=invoice))
        if became_paid:
            self._publish(InvoicePaid.create(invoice=invoice))

        return payment, invoice

    # -------------------------------------------------------------------------
    # Archive / restore / delete
    # -------------------------------------------------------------------------

    def _set_archived(self, owner_id: UUID, invoice_id: UUID, archived: bool) -> tuple[Invoice, bool]:
        with self.repository.transaction():
            self.repository.lock_invoice(invoice_id)
            invoice = load_owned_invoice(self.repository, invoice_id, owner_id)
            if invoice.is_archived == archived:
                return invoice, False

            invoice = self.repository.save_invoice(invoice.model_copy(update={
                "is_archived": archived,
                "updated_at": now_utc(),
            }))

        return invoice, True

    def archive(self, owner_id: UUID, invoice_id: UUID) -> Invoice:
        """
        Archive an invoice. Totals and status are untouched.

        Archived invoices reject payments until restored.
        """
        invoice, changed = self._set_archived(owner_id, invoice_id, True)
        if changed:
            logger.info("Invoice %s archived", invoice_id)
            self._publish(InvoiceArchived.create(invoice=invoice))
        return invoice

    def restore(self, owner_id: UUID, invoice_id: UUID) -> Invoice:
        """Restore an archived invoice."""
        invoice, changed = self._set_archived(owner_id, invoice_id, False)
        if changed:
            logger.info("Invoice %s restored", invoice_id)
            self._publish(InvoiceRestored.create(invoice=invoice))
        return invoice

    def delete_invoice(self, owner_id: UUID, invoice_id: UUID) -> None:
        """
        Delete an invoice with all of its line items and payments.

        The three deletes share one transaction; if any fails the invoice is
        left fully intact and the error propagates.

        Raises:
            NotFoundError: Invoice doesn't exist
            ForbiddenError: Caller doesn't own it
            StorageError: A cascade step failed
        """
        with self.repository.transaction():
            self.repository.lock_invoice(invoice_id)
            invoice = load_owned_invoice(self.repository, invoice_id, owner_id)
            line_items = self.repository.delete_line_items(invoice_id)
            payments = self.repository.delete_payments(invoice_id)
            self.repository.delete_invoice(invoice_id)

        logger.info(
            "Invoice %s deleted with %d line items and %d payments",
            invoice_id, line_items, payments
        )
        self._publish(InvoiceDeleted.create(invoice=invoice))

    def sweep_orphans(self) -> dict[str, int]:
        """
        Delete line items and payments left behind by an interrupted cascade.

        Only needed on storage that cannot run the delete cascade in one
        transaction. Safe to retry.
        """
        counts = self.repository.sweep_orphans()
        if any(counts.values()):
            logger.info(
                "Swept %d orphaned line items and %d orphaned payments",
                counts["line_items"], counts["payments"]
            )
        return counts

    def _publish(self, event: LedgerEvent) -> None:
        self.event_bus.publish(event)
