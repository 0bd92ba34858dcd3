"""
Presentation-time formatting of ledger amounts.

This is the only place money is rounded. Stored derived fields keep full
precision so comparisons (the overpayment check, the PAID transition)
never disagree with what was stored.
"""

from decimal import Decimal, ROUND_HALF_UP

from core.models import Currency, Invoice

CURRENCY_SYMBOLS = {
    Currency.USD: "$",
    Currency.INR: "₹",
    Currency.EUR: "€",
}


def round_money(amount: Decimal, places: int = 2) -> Decimal:
    """Round half-up to a fixed number of places."""
    return amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def format_money(amount: Decimal, currency: Currency, places: int = 2) -> str:
    """Symbol-prefixed amount with thousands separators, e.g. '$1,234.50'."""
    rounded = round_money(amount, places)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{CURRENCY_SYMBOLS[currency]}{abs(rounded):,.{places}f}"


def invoice_display(invoice: Invoice, places: int = 2) -> dict[str, str]:
    """
    Rounded, formatted totals for rendering (documents, UI).

    Keys match the derived fields of the invoice.
    """
    fields = ("subtotal", "tax_amount", "total", "amount_paid", "balance_due")
    return {
        name: format_money(getattr(invoice, name), invoice.currency, places)
        for name in fields
    } | {"currency_symbol": CURRENCY_SYMBOLS[invoice.currency]}
