"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc
from utils.caller_context import (
    get_current_caller_id,
    set_current_caller_id,
    clear_current_caller_id,
    caller_context,
)
