"""Ledger configuration."""

import os

from pydantic import BaseModel, Field

from core.models import Currency


class LedgerConfig(BaseModel):
    """
    Ledger configuration.

    Values come from LEDGER_* environment variables (see from_env); anything
    unset keeps its default.
    """

    default_currency: Currency = Field(
        default=Currency.USD,
        description="Currency used when an invoice is created without one",
    )
    lock_timeout_ms: int = Field(
        default=5000,
        description="How long payment admission waits for the invoice row lock",
        ge=100,
        le=60000,
    )
    display_places: int = Field(
        default=2,
        description="Decimal places money is rounded to for display",
        ge=0,
        le=6,
    )

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """Build config from LEDGER_* environment variables."""
        env_map = {
            "default_currency": "LEDGER_DEFAULT_CURRENCY",
            "lock_timeout_ms": "LEDGER_LOCK_TIMEOUT_MS",
            "display_places": "LEDGER_DISPLAY_PLACES",
        }
        values = {}
        for field, var in env_map.items():
            raw = os.getenv(var)
            if raw is not None and raw != "":
                values[field] = raw
        return cls(**values)
