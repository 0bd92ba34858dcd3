"""
PostgreSQL invoice repository.

Money columns are NUMERIC with no scale so Decimals round-trip exactly.
Line items and payments reference their invoice with ON DELETE CASCADE;
the ledger still deletes them explicitly so the cascade order is the same
on every backend.

Payment admission locks the invoice row with SELECT ... FOR UPDATE under a
transaction-local lock_timeout. A lock timeout, serialization failure or
deadlock is reported as ConflictError; any other driver error becomes
StorageError.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

import psycopg2
import psycopg2.errors

from clients.postgres_client import PostgresClient
from core.exceptions import ConflictError, StorageError
from core.models import Invoice, LineItem, LineItemCreate, Payment
from core.repository import InvoiceRepository
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS invoices (
    id              UUID PRIMARY KEY,
    owner_id        UUID NOT NULL,
    invoice_number  TEXT NOT NULL,
    customer_name   TEXT NOT NULL,
    issue_date      DATE NOT NULL,
    due_date        DATE NOT NULL,
    currency        TEXT NOT NULL CHECK (currency IN ('USD', 'INR', 'EUR')),
    tax_percent     NUMERIC NOT NULL DEFAULT 0 CHECK (tax_percent >= 0),
    subtotal        NUMERIC NOT NULL DEFAULT 0,
    tax_amount      NUMERIC NOT NULL DEFAULT 0,
    total           NUMERIC NOT NULL DEFAULT 0,
    amount_paid     NUMERIC NOT NULL DEFAULT 0,
    balance_due     NUMERIC NOT NULL DEFAULT 0,
    status          TEXT NOT NULL DEFAULT 'DRAFT' CHECK (status IN ('DRAFT', 'PAID')),
    is_archived     BOOLEAN NOT NULL DEFAULT false,
    created_at      TIMESTAMPTZ NOT NULL,
    updated_at      TIMESTAMPTZ NOT NULL
);

CREATE INDEX IF NOT EXISTS invoices_owner_idx ON invoices (owner_id, created_at DESC);

CREATE TABLE IF NOT EXISTS line_items (
    id          UUID PRIMARY KEY,
    invoice_id  UUID NOT NULL REFERENCES invoices (id) ON DELETE CASCADE,
    position    INTEGER NOT NULL,
    description TEXT NOT NULL CHECK (length(description) > 0),
    quantity    NUMERIC NOT NULL CHECK (quantity > 0),
    unit_price  NUMERIC NOT NULL CHECK (unit_price >= 0),
    line_total  NUMERIC NOT NULL,
    created_at  TIMESTAMPTZ NOT NULL
);

CREATE INDEX IF NOT EXISTS line_items_invoice_idx ON line_items (invoice_id, position);

CREATE TABLE IF NOT EXISTS payments (
    id           UUID PRIMARY KEY,
    invoice_id   UUID NOT NULL REFERENCES invoices (id) ON DELETE CASCADE,
    amount       NUMERIC NOT NULL CHECK (amount > 0),
    payment_date TIMESTAMPTZ NOT NULL,
    created_at   TIMESTAMPTZ NOT NULL
);

CREATE INDEX IF NOT EXISTS payments_invoice_idx ON payments (invoice_id, created_at);
"""

_CONFLICT_ERRORS = (
    psycopg2.errors.LockNotAvailable,
    psycopg2.errors.SerializationFailure,
    psycopg2.errors.DeadlockDetected,
)

_INVOICE_COLUMNS = (
    "id", "owner_id", "invoice_number", "customer_name", "issue_date", "due_date",
    "currency", "tax_percent", "subtotal", "tax_amount", "total", "amount_paid",
    "balance_due", "status", "is_archived", "created_at", "updated_at",
)

_SAVABLE_COLUMNS = (
    "subtotal", "tax_amount", "total", "amount_paid", "balance_due",
    "status", "is_archived", "updated_at",
)


@contextmanager
def _storage_errors():
    """Translate driver exceptions into ledger errors."""
    try:
        yield
    except _CONFLICT_ERRORS as e:
        logger.warning("Concurrent modification: %s", e)
        raise ConflictError(str(e).strip()) from e
    except psycopg2.Error as e:
        logger.error("Storage failure: %s", e)
        raise StorageError(str(e).strip() or e.__class__.__name__) from e


class PostgresInvoiceRepository(InvoiceRepository):
    """Invoice repository over PostgresClient."""

    def __init__(self, postgres: PostgresClient, lock_timeout_ms: int = 5000):
        self.postgres = postgres
        self.lock_timeout_ms = lock_timeout_ms

    def apply_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        with _storage_errors():
            self.postgres.execute(SCHEMA_SQL)
        logger.info("Ledger schema applied")

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @contextmanager
    def transaction(self):
        with _storage_errors():
            with self.postgres.transaction():
                yield

    def lock_invoice(self, invoice_id: UUID) -> None:
        with _storage_errors():
            self.postgres.execute_scalar(
                "SELECT set_config('lock_timeout', %s, true)",
                (f"{self.lock_timeout_ms}ms",)
            )
            self.postgres.execute_scalar(
                "SELECT id FROM invoices WHERE id = %s FOR UPDATE",
                (invoice_id,)
            )

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    def find_invoice(self, invoice_id: UUID) -> Invoice | None:
        with _storage_errors():
            row = self.postgres.execute_single(
                "SELECT * FROM invoices WHERE id = %s",
                (invoice_id,)
            )

        if row is None:
            return None

        return Invoice.model_validate(row)

    def list_invoices(self, owner_id: UUID, include_archived: bool = True) -> list[Invoice]:
        query = "SELECT * FROM invoices WHERE owner_id = %s"
        if not include_archived:
            query += " AND is_archived = false"
        query += " ORDER BY created_at DESC"

        with _storage_errors():
            rows = self.postgres.execute(query, (owner_id,))

        return [Invoice.model_validate(row) for row in rows]

    def insert_invoice(self, invoice: Invoice) -> Invoice:
        values = invoice.model_dump()
        placeholders = ", ".join(["%s"] * len(_INVOICE_COLUMNS))

        with _storage_errors():
            row = self.postgres.execute(
                f"""
                INSERT INTO invoices ({', '.join(_INVOICE_COLUMNS)})
                VALUES ({placeholders})
                RETURNING *
                """,
                tuple(self._column_value(values[col]) for col in _INVOICE_COLUMNS)
            )[0]

        return Invoice.model_validate(row)

    def save_invoice(self, invoice: Invoice) -> Invoice:
        values = invoice.model_dump()
        set_parts = [f"{col} = %s" for col in _SAVABLE_COLUMNS]
        params = [self._column_value(values[col]) for col in _SAVABLE_COLUMNS]
        params.append(invoice.id)

        with _storage_errors():
            rows = self.postgres.execute(
                f"""
                UPDATE invoices
                SET {', '.join(set_parts)}
                WHERE id = %s
                RETURNING *
                """,
                tuple(params)
            )

        if not rows:
            raise StorageError(f"Invoice {invoice.id} disappeared during save")

        return Invoice.model_validate(rows[0])

    def delete_invoice(self, invoice_id: UUID) -> None:
        with _storage_errors():
            self.postgres.execute_rowcount("DELETE FROM invoices WHERE id = %s", (invoice_id,))

    # -------------------------------------------------------------------------
    # Line items
    # -------------------------------------------------------------------------

    def list_line_items(self, invoice_id: UUID) -> list[LineItem]:
        with _storage_errors():
            rows = self.postgres.execute(
                """
                SELECT id, invoice_id, description, quantity, unit_price, line_total, created_at
                FROM line_items
                WHERE invoice_id = %s
                ORDER BY position ASC
                """,
                (invoice_id,)
            )

        return [LineItem.model_validate(row) for row in rows]

    def insert_line_items(self, invoice_id: UUID, items: list[LineItemCreate]) -> list[LineItem]:
        now = now_utc()
        created = []

        with self.transaction():
            for position, item in enumerate(items):
                row = self.postgres.execute(
                    """
                    INSERT INTO line_items (
                        id, invoice_id, position, description,
                        quantity, unit_price, line_total, created_at
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING id, invoice_id, description, quantity, unit_price, line_total, created_at
                    """,
                    (
                        uuid4(), invoice_id, position, item.description,
                        item.quantity, item.unit_price, item.line_total, now
                    )
                )[0]
                created.append(LineItem.model_validate(row))

        return created

    def delete_line_items(self, invoice_id: UUID) -> int:
        with _storage_errors():
            return self.postgres.execute_rowcount(
                "DELETE FROM line_items WHERE invoice_id = %s",
                (invoice_id,)
            )

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def list_payments(self, invoice_id: UUID) -> list[Payment]:
        with _storage_errors():
            rows = self.postgres.execute(
                """
                SELECT * FROM payments
                WHERE invoice_id = %s
                ORDER BY created_at ASC, id ASC
                """,
                (invoice_id,)
            )

        return [Payment.model_validate(row) for row in rows]

    def insert_payment(self, invoice_id: UUID, amount: Decimal, payment_date: datetime) -> Payment:
        with _storage_errors():
            row = self.postgres.execute(
                """
                INSERT INTO payments (id, invoice_id, amount, payment_date, created_at)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING *
                """,
                (uuid4(), invoice_id, amount, payment_date, now_utc())
            )[0]

        return Payment.model_validate(row)

    def delete_payments(self, invoice_id: UUID) -> int:
        with _storage_errors():
            return self.postgres.execute_rowcount(
                "DELETE FROM payments WHERE invoice_id = %s",
                (invoice_id,)
            )

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def sweep_orphans(self) -> dict[str, int]:
        with self.transaction():
            line_items = self.postgres.execute_rowcount(
                """
                DELETE FROM line_items li
                WHERE NOT EXISTS (SELECT 1 FROM invoices i WHERE i.id = li.invoice_id)
                """
            )
            payments = self.postgres.execute_rowcount(
                """
                DELETE FROM payments p
                WHERE NOT EXISTS (SELECT 1 FROM invoices i WHERE i.id = p.invoice_id)
                """
            )

        return {"line_items": line_items, "payments": payments}

    @staticmethod
    def _column_value(value):
        """Enums are stored by value."""
        return getattr(value, "value", value)
