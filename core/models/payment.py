"""Payment domain models.

Payments are append-only. There is no update model and no delete path for a
single payment; they disappear only with their invoice.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class Payment(BaseModel):
    """Full payment entity as stored."""

    id: UUID
    invoice_id: UUID
    amount: Decimal
    payment_date: datetime
    created_at: datetime

    model_config = {"from_attributes": True, "frozen": True}
