"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, from_timestamp
from utils.request_context import (
    get_current_user_id,
    peek_current_user_id,
    set_current_user_id,
    clear_current_user_id,
    user_context,
    get_request_id,
    set_request_id,
)
