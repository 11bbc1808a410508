"""Request context using contextvars.

Async-safe storage for request-scoped identifiers so log records can carry
them without passing them through every call.

Usage:
    set_request_id("c0ffee")
    set_current_user_id("6f1c...")
    get_request_id()
"""

from contextvars import ContextVar

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_current_user_id: ContextVar[str | None] = ContextVar("current_user_id", default=None)


def set_request_id(request_id: str | None) -> None:
    _request_id.set(request_id)


def get_request_id() -> str | None:
    return _request_id.get()


def set_current_user_id(user_id: str | None) -> None:
    """Record the authenticated user for this request (set after token verification)."""
    _current_user_id.set(user_id)


def get_current_user_id() -> str | None:
    return _current_user_id.get()
