"""
Totals arithmetic for invoices.

Pure functions with no I/O. Everything is Decimal; nothing is rounded here.
Rounding belongs to presentation (see core.presentation).
"""

from decimal import Decimal
from typing import Iterable

from core.models import LineItem, Payment, RecomputedTotals

HUNDRED = Decimal("100")


def compute_totals(
    tax_percent: Decimal,
    line_items: Iterable[LineItem],
    payments: Iterable[Payment],
) -> RecomputedTotals:
    """
    Derive invoice totals from its children.

    subtotal    = sum of line totals
    tax_amount  = subtotal * tax_percent / 100
    total       = subtotal + tax_amount
    amount_paid = sum of payment amounts
    balance_due = total - amount_paid
    """
    subtotal = sum((item.line_total for item in line_items), Decimal("0"))
    tax_amount = subtotal * (tax_percent or Decimal("0")) / HUNDRED
    total = subtotal + tax_amount
    amount_paid = sum((payment.amount for payment in payments), Decimal("0"))

    return RecomputedTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        total=total,
        amount_paid=amount_paid,
        balance_due=total - amount_paid,
    )
