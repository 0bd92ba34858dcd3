"""Propagate the authenticated caller's identity through the call stack."""

from contextlib import contextmanager
from contextvars import ContextVar
from uuid import UUID

_current_caller_id: ContextVar[UUID | None] = ContextVar("current_caller_id", default=None)


def get_current_caller_id() -> UUID:
    """
    Get the authenticated caller ID from context.

    Raises RuntimeError if no caller is set. Code that needs an owner id
    outside an authenticated request is a bug, not a fallback case.
    """
    caller_id = _current_caller_id.get()
    if caller_id is None:
        raise RuntimeError(
            "No caller context set. Owner-scoped ledger operations must run "
            "inside an authenticated request."
        )
    return caller_id


def set_current_caller_id(caller_id: UUID) -> None:
    """Set caller ID in context. Called by the identity middleware."""
    _current_caller_id.set(caller_id)


def clear_current_caller_id() -> None:
    """
    Clear caller context.

    Must be called in a finally block so identities never leak between requests.
    """
    _current_caller_id.set(None)


@contextmanager
def caller_context(caller_id: UUID):
    """
    Temporarily act as a caller.

    Example:
        with caller_context(owner_id):
            detail = ledger.get_detail(get_current_caller_id(), invoice_id)
    """
    previous = _current_caller_id.get()
    set_current_caller_id(caller_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_caller_id()
        else:
            set_current_caller_id(previous)
