"""Propagate the acting user through the call stack using contextvars.

The actor is whoever is responsible for a mutation: the authenticated user of
an HTTP request, or nobody at all for scheduled jobs (recorded as NULL in the
audit trail).
"""

from contextvars import ContextVar
from uuid import UUID
from contextlib import contextmanager

_current_actor_id: ContextVar[UUID | None] = ContextVar("current_actor_id", default=None)


def get_current_actor_id() -> UUID:
    """
    Get current actor ID from context.

    Raises RuntimeError if no actor context is set. Use this in code paths
    that must always be attributable to a person.
    """
    actor_id = _current_actor_id.get()
    if actor_id is None:
        raise RuntimeError(
            "No actor context set. This usually means you're calling "
            "actor-attributed code outside of an authenticated request."
        )
    return actor_id


def peek_current_actor_id() -> UUID | None:
    """Current actor ID, or None when running outside a request (jobs, scripts)."""
    return _current_actor_id.get()


def set_current_actor_id(actor_id: UUID) -> None:
    """Set current actor ID. Called by the actor middleware per request."""
    _current_actor_id.set(actor_id)


def clear_current_actor_id() -> None:
    """
    Clear actor context.

    Must be called in a finally block to prevent context leakage between
    requests served by the same worker.
    """
    _current_actor_id.set(None)


@contextmanager
def actor_context(actor_id: UUID):
    """
    Temporarily act as the given actor.

    Example:
        with actor_context(admin_id):
            numbering_service.renumber(invoice_id, "INV-0042", "Typo fix")
    """
    previous = _current_actor_id.get()
    set_current_actor_id(actor_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_actor_id()
        else:
            set_current_actor_id(previous)
