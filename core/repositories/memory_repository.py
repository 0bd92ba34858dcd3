"""
In-process invoice repository.

Keeps everything in dicts. Transactions record the prior value of every
key they touch and restore those values if the body raises. Per-invoice
locks are real threading locks held until the outermost transaction on the
thread ends, so concurrent payment admissions on one invoice serialize.
A lock entry lives only while some transaction holds or waits for it.

Writes are visible to other threads before commit. Every ledger mutation
on an existing invoice takes its lock first, so no other writer can observe
or clobber them.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from core.exceptions import ConflictError
from core.models import Invoice, LineItem, LineItemCreate, Payment
from core.repository import InvoiceRepository
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_MISSING = object()


class InMemoryInvoiceRepository(InvoiceRepository):
    """Dict-backed repository with undo-log transactions and per-invoice locks."""

    def __init__(self, lock_timeout_seconds: float = 5.0):
        self._lock_timeout_seconds = lock_timeout_seconds
        self._data_lock = threading.RLock()
        self._invoices: dict[UUID, Invoice] = {}
        self._line_items: dict[UUID, list[LineItem]] = {}
        self._payments: dict[UUID, list[Payment]] = {}
        # invoice_id -> [lock, holders and waiters]
        self._invoice_locks: dict[UUID, list] = {}
        self._local = threading.local()

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _tx(self):
        """Per-thread transaction state, or None outside a transaction."""
        return getattr(self._local, "tx", None)

    @contextmanager
    def transaction(self):
        if self._tx() is not None:
            yield
            return

        tx = {"undo": {}, "locks": []}
        self._local.tx = tx
        try:
            yield
        except BaseException:
            self._rollback(tx["undo"])
            raise
        finally:
            self._local.tx = None
            for invoice_id in reversed(tx["locks"]):
                self._invoice_locks[invoice_id][0].release()
                self._drop_lock_ref(invoice_id)

    def _rollback(self, undo: dict) -> None:
        with self._data_lock:
            for (table_name, key), previous in undo.items():
                table = getattr(self, table_name)
                if previous is _MISSING:
                    table.pop(key, None)
                else:
                    table[key] = previous
        logger.debug("Rolled back %d keys", len(undo))

    def _remember(self, table_name: str, key: UUID) -> None:
        """Record the value a key had before this transaction first touched it."""
        tx = self._tx()
        if tx is None or (table_name, key) in tx["undo"]:
            return
        previous = getattr(self, table_name).get(key, _MISSING)
        if isinstance(previous, list):
            previous = list(previous)
        tx["undo"][(table_name, key)] = previous

    def lock_invoice(self, invoice_id: UUID) -> None:
        tx = self._tx()
        if tx is None:
            raise RuntimeError("lock_invoice() must be called inside transaction()")

        if invoice_id in tx["locks"]:
            return

        with self._data_lock:
            entry = self._invoice_locks.setdefault(invoice_id, [threading.Lock(), 0])
            entry[1] += 1

        if not entry[0].acquire(timeout=self._lock_timeout_seconds):
            self._drop_lock_ref(invoice_id)
            raise ConflictError(f"Timed out waiting for lock on invoice {invoice_id}")
        tx["locks"].append(invoice_id)

    def _drop_lock_ref(self, invoice_id: UUID) -> None:
        with self._data_lock:
            entry = self._invoice_locks[invoice_id]
            entry[1] -= 1
            if entry[1] == 0:
                del self._invoice_locks[invoice_id]

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    def find_invoice(self, invoice_id: UUID) -> Invoice | None:
        with self._data_lock:
            return self._invoices.get(invoice_id)

    def list_invoices(self, owner_id: UUID, include_archived: bool = True) -> list[Invoice]:
        with self._data_lock:
            invoices = [
                inv for inv in self._invoices.values()
                if inv.owner_id == owner_id and (include_archived or not inv.is_archived)
            ]
        # Stable ascending sort then reverse, so equal timestamps keep insertion order, newest first
        return list(reversed(sorted(invoices, key=lambda inv: inv.created_at)))

    def insert_invoice(self, invoice: Invoice) -> Invoice:
        with self._data_lock:
            if invoice.id in self._invoices:
                raise ValueError(f"Invoice {invoice.id} already exists")
            self._remember("_invoices", invoice.id)
            self._invoices[invoice.id] = invoice
        return invoice

    def save_invoice(self, invoice: Invoice) -> Invoice:
        with self._data_lock:
            if invoice.id not in self._invoices:
                raise ValueError(f"Invoice {invoice.id} does not exist")
            self._remember("_invoices", invoice.id)
            self._invoices[invoice.id] = invoice
        return invoice

    def delete_invoice(self, invoice_id: UUID) -> None:
        with self._data_lock:
            self._remember("_invoices", invoice_id)
            self._invoices.pop(invoice_id, None)

    # -------------------------------------------------------------------------
    # Line items
    # -------------------------------------------------------------------------

    def list_line_items(self, invoice_id: UUID) -> list[LineItem]:
        with self._data_lock:
            return list(self._line_items.get(invoice_id, []))

    def insert_line_items(self, invoice_id: UUID, items: list[LineItemCreate]) -> list[LineItem]:
        now = now_utc()
        created = [
            LineItem(
                id=uuid4(),
                invoice_id=invoice_id,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
                created_at=now,
            )
            for item in items
        ]
        with self._data_lock:
            self._remember("_line_items", invoice_id)
            self._line_items.setdefault(invoice_id, []).extend(created)
        return created

    def delete_line_items(self, invoice_id: UUID) -> int:
        with self._data_lock:
            self._remember("_line_items", invoice_id)
            return len(self._line_items.pop(invoice_id, []))

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def list_payments(self, invoice_id: UUID) -> list[Payment]:
        with self._data_lock:
            return list(self._payments.get(invoice_id, []))

    def insert_payment(self, invoice_id: UUID, amount: Decimal, payment_date: datetime) -> Payment:
        payment = Payment(
            id=uuid4(),
            invoice_id=invoice_id,
            amount=amount,
            payment_date=payment_date,
            created_at=now_utc(),
        )
        with self._data_lock:
            self._remember("_payments", invoice_id)
            self._payments.setdefault(invoice_id, []).append(payment)
        return payment

    def delete_payments(self, invoice_id: UUID) -> int:
        with self._data_lock:
            self._remember("_payments", invoice_id)
            return len(self._payments.pop(invoice_id, []))

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def sweep_orphans(self) -> dict[str, int]:
        counts = {"line_items": 0, "payments": 0}
        with self._data_lock:
            for table_name, label in (("_line_items", "line_items"), ("_payments", "payments")):
                table = getattr(self, table_name)
                for invoice_id in [key for key in table if key not in self._invoices]:
                    self._remember(table_name, invoice_id)
                    counts[label] += len(table.pop(invoice_id))
        return counts
