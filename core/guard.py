"""
Authorization guard for invoice operations.

Existence is checked before ownership so that an absent invoice always
reports NotFound, whoever asks.
"""

import logging
from uuid import UUID

from core.exceptions import ForbiddenError, InvalidStateError, NotFoundError
from core.models import Invoice
from core.repository import InvoiceRepository

logger = logging.getLogger(__name__)


def load_owned_invoice(repository: InvoiceRepository, invoice_id: UUID, owner_id: UUID) -> Invoice:
    """
    Load an invoice the caller owns.

    Raises:
        NotFoundError: No invoice with that id
        ForbiddenError: Invoice belongs to someone else
    """
    invoice = repository.find_invoice(invoice_id)
    if invoice is None:
        raise NotFoundError(invoice_id)

    if invoice.owner_id != owner_id:
        raise ForbiddenError(invoice_id)

    return invoice


def require_active(invoice: Invoice) -> None:
    """Archived invoices reject payments."""
    if invoice.is_archived:
        logger.warning("Rejected payment on archived invoice %s", invoice.id)
        raise InvalidStateError(f"Invoice {invoice.id} is archived and rejects payments")
