"""Invoice repository implementations."""

from core.repositories.memory_repository import InMemoryInvoiceRepository
from core.repositories.postgres_repository import PostgresInvoiceRepository, SCHEMA_SQL
