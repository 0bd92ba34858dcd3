"""Invoice domain models.

All money is held as Decimal and never rounded in storage. Tax percent is
in percentage points (10 = 10%). Derived fields are a projection of the
invoice's line items and payments; they have no place on the create model.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from core.models.line_item import LineItem
from core.models.payment import Payment

ZERO = Decimal("0")


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status. DRAFT is the only initial state."""

    DRAFT = "DRAFT"
    PAID = "PAID"


class Currency(str, Enum):
    """Supported invoice currencies. No conversion between them."""

    USD = "USD"
    INR = "INR"
    EUR = "EUR"


class InvoiceCreate(BaseModel):
    """Header fields supplied by the caller when creating an invoice."""

    invoice_number: str = Field(..., max_length=100)
    customer_name: str = Field(..., max_length=500)
    issue_date: date
    due_date: date
    currency: Currency | None = None
    tax_percent: Decimal | None = Field(None, ge=0)

    @field_validator("invoice_number", "customer_name")
    @classmethod
    def reject_blank(cls, value: str) -> str:
        """Required text fields must contain something besides whitespace."""
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class RecomputedTotals(BaseModel):
    """The five derived money fields of an invoice."""

    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO
    amount_paid: Decimal = ZERO
    balance_due: Decimal = ZERO

    model_config = {"frozen": True}

    @property
    def is_settled(self) -> bool:
        """Exact comparison; money is Decimal so no epsilon is needed."""
        return self.balance_due == ZERO


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: UUID
    owner_id: UUID
    invoice_number: str
    customer_name: str
    issue_date: date
    due_date: date
    currency: Currency
    tax_percent: Decimal
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO
    amount_paid: Decimal = ZERO
    balance_due: Decimal = ZERO
    status: InvoiceStatus = InvoiceStatus.DRAFT
    is_archived: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def totals(self) -> RecomputedTotals:
        """Cached derived fields as a value object."""
        return RecomputedTotals(
            subtotal=self.subtotal,
            tax_amount=self.tax_amount,
            total=self.total,
            amount_paid=self.amount_paid,
            balance_due=self.balance_due,
        )

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID


class InvoiceDetail(BaseModel):
    """An invoice with its children, as returned by a detail read."""

    invoice: Invoice
    line_items: list[LineItem]
    payments: list[Payment]
