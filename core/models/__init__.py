"""Core domain models."""

from core.models.line_item import LineItem, LineItemCreate
from core.models.payment import Payment
from core.models.invoice import (
    Currency,
    Invoice,
    InvoiceCreate,
    InvoiceDetail,
    InvoiceStatus,
    RecomputedTotals,
)

__all__ = [
    # Invoice
    "Invoice", "InvoiceCreate", "InvoiceDetail", "InvoiceStatus", "Currency", "RecomputedTotals",
    # LineItem
    "LineItem", "LineItemCreate",
    # Payment
    "Payment",
]
