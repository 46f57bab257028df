"""Per-request state carried through the call stack in context variables.

Two values live here: the authenticated user's ID (set by AuthMiddleware,
read by PostgresClient for row-level security) and the request ID (set by
RequestIDMiddleware, echoed in every response envelope).
"""

from contextlib import contextmanager
from contextvars import ContextVar
from uuid import UUID

_current_user_id: ContextVar[UUID | None] = ContextVar("current_user_id", default=None)
_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_current_user_id() -> UUID:
    """
    Get current user ID from context.

    Raises RuntimeError if no user context is set. Reaching owner-scoped
    code without an authenticated request is a bug, not a recoverable state.
    """
    user_id = _current_user_id.get()
    if user_id is None:
        raise RuntimeError(
            "No user context set. This usually means you're calling "
            "user-scoped code outside of an authenticated request."
        )
    return user_id


def peek_current_user_id() -> UUID | None:
    """Current user ID, or None outside an authenticated request."""
    return _current_user_id.get()


def set_current_user_id(user_id: UUID) -> None:
    _current_user_id.set(user_id)


def clear_current_user_id() -> None:
    """Must be called in a finally block so IDs never leak between requests."""
    _current_user_id.set(None)


@contextmanager
def user_context(user_id: UUID):
    """
    Run a block as user_id, restoring whatever was set before.

    Example:
        with user_context(owner_id):
            notes = note_store.list_for_owner(owner_id, NoteFilters())
    """
    token = _current_user_id.set(user_id)
    try:
        yield
    finally:
        _current_user_id.reset(token)


def get_request_id() -> str | None:
    """The current request's ID, or None outside a request."""
    return _request_id.get()


def set_request_id(request_id: str | None) -> None:
    _request_id.set(request_id)
