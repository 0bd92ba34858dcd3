"""Line item domain models.

Line items are created once, in a batch with their invoice, and never
edited. line_total is fixed at creation and is the only input the invoice
subtotal reads.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class LineItemCreate(BaseModel):
    """Data required to create a line item."""

    description: str = Field(..., max_length=500)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)

    @field_validator("description")
    @classmethod
    def reject_blank_description(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("description must not be empty")
        return value

    @property
    def line_total(self) -> Decimal:
        """quantity * unit_price, unrounded."""
        return self.quantity * self.unit_price


class LineItem(BaseModel):
    """Full line item entity as stored."""

    id: UUID
    invoice_id: UUID
    description: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    created_at: datetime

    model_config = {"from_attributes": True, "frozen": True}
