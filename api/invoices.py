"""Invoice ledger routes under /invoices."""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Query, Request
from pydantic import BaseModel

from api.base import success_response
from core.presentation import invoice_display
from core.services.ledger_service import LedgerService
from utils.caller_context import get_current_caller_id


class PaymentRequest(BaseModel):
    # Left untyped so the ledger, not the transport, decides what a valid amount is
    amount: Any = None
    payment_date: datetime | None = None


class InvoiceIdRequest(BaseModel):
    id: UUID


def create_invoices_router(ledger: LedgerService) -> APIRouter:
    router = APIRouter()
    places = ledger.config.display_places

    def respond(request: Request, data):
        return success_response(
            data, getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    @router.post("/invoices", status_code=201)
    def create_invoice(request: Request, body: dict = Body(...)):
        header = {key: value for key, value in body.items() if key != "line_items"}
        invoice, line_items = ledger.create_invoice(
            get_current_caller_id(), header, body.get("line_items")
        )
        return respond(request, {
            "invoice": invoice.model_dump(mode="json"),
            "line_items": [item.model_dump(mode="json") for item in line_items],
        })

    @router.get("/invoices")
    def list_invoices(request: Request, include_archived: bool = Query(True)):
        invoices = ledger.list_invoices(get_current_caller_id(), include_archived=include_archived)
        return respond(request, [inv.model_dump(mode="json") for inv in invoices])

    # Registered before /invoices/{invoice_id} routes so the literal paths win
    @router.post("/invoices/archive")
    def archive_invoice(request: Request, body: InvoiceIdRequest):
        invoice = ledger.archive(get_current_caller_id(), body.id)
        return respond(request, invoice.model_dump(mode="json"))

    @router.post("/invoices/restore")
    def restore_invoice(request: Request, body: InvoiceIdRequest):
        invoice = ledger.restore(get_current_caller_id(), body.id)
        return respond(request, invoice.model_dump(mode="json"))

    @router.get("/invoices/{invoice_id}")
    def get_invoice(request: Request, invoice_id: UUID):
        detail = ledger.get_detail(get_current_caller_id(), invoice_id)
        data = detail.model_dump(mode="json")
        data["display"] = invoice_display(detail.invoice, places)
        return respond(request, data)

    @router.post("/invoices/{invoice_id}/payments")
    def add_payment(request: Request, invoice_id: UUID, body: PaymentRequest):
        payment, invoice = ledger.add_payment(
            get_current_caller_id(), invoice_id, body.amount, body.payment_date
        )
        return respond(request, {
            "payment": payment.model_dump(mode="json"),
            "invoice": invoice.model_dump(mode="json"),
        })

    @router.delete("/invoices/{invoice_id}")
    def delete_invoice(request: Request, invoice_id: UUID):
        ledger.delete_invoice(get_current_caller_id(), invoice_id)
        return respond(request, {"deleted": True})

    return router
