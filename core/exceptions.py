"""Typed exceptions for ledger failures.

Every failure mode of a ledger operation has its own class so callers can
tell them apart without parsing messages.
"""


class LedgerError(Exception):
    """Base class for all ledger errors."""


class ValidationError(LedgerError):
    """Malformed or missing input. User-correctable; retrying unchanged will fail again."""


class NotFoundError(LedgerError):
    """Referenced invoice does not exist."""

    def __init__(self, invoice_id):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} not found")


class ForbiddenError(LedgerError):
    """Caller is not the owner of the invoice."""

    def __init__(self, invoice_id):
        self.invoice_id = invoice_id
        super().__init__(f"Access denied to invoice {invoice_id}")


class InvalidStateError(LedgerError):
    """Operation not permitted given the invoice's lifecycle flags."""


class OverpaymentError(LedgerError):
    """Payment amount exceeds the invoice's current balance due."""

    def __init__(self, invoice_id, amount, balance_due):
        self.invoice_id = invoice_id
        self.amount = amount
        self.balance_due = balance_due
        super().__init__(
            f"Payment of {amount} exceeds balance due {balance_due} on invoice {invoice_id}"
        )


class ConflictError(LedgerError):
    """
    Concurrent modification detected by the storage layer.

    The caller should retry with a fresh balance read.
    """


class StorageError(LedgerError):
    """Unexpected storage failure. Never raised for business-rule violations."""
