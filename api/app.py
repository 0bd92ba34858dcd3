"""FastAPI application factory for the invoice ledger."""

import logging
from typing import Callable
from uuid import UUID

from dotenv import load_dotenv
from fastapi import FastAPI

from api.errors import register_error_handlers
from api.invoices import create_invoices_router
from api.middleware import CallerIdentityMiddleware, RequestIDMiddleware
from core.config import LedgerConfig
from core.event_bus import EventBus
from core.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


def create_app(ledger: LedgerService, resolve_caller: Callable[[str], UUID | None]) -> FastAPI:
    """
    Build the HTTP app around a ledger service.

    Args:
        ledger: Configured LedgerService
        resolve_caller: Maps a bearer token to the caller's UUID, or None
    """
    app = FastAPI(title="Invoice Ledger")
    # Added last = outermost, so the request ID exists before identity checks
    app.add_middleware(CallerIdentityMiddleware, resolve_caller=resolve_caller)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(create_invoices_router(ledger), prefix="/api")
    return app


def build_postgres_ledger(event_bus: EventBus | None = None) -> LedgerService:
    """
    LedgerService over PostgreSQL, configured from .env, LEDGER_* variables and Vault.

    Applies the schema on first use.
    """
    from clients.postgres_client import PostgresClient
    from clients.vault_client import get_database_url
    from core.repositories.postgres_repository import PostgresInvoiceRepository

    load_dotenv()
    config = LedgerConfig.from_env()
    repository = PostgresInvoiceRepository(
        PostgresClient(get_database_url()),
        lock_timeout_ms=config.lock_timeout_ms,
    )
    repository.apply_schema()
    logger.info("Ledger ready (default currency %s)", config.default_currency.value)
    return LedgerService(repository, event_bus, config)
