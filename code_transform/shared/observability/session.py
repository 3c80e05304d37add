"""Transformation session ID context for cross-layer observability."""

from __future__ import annotations

import uuid
from contextvars import ContextVar, Token

SESSION_ID_HEADER = "x-transform-session-id"

_session_id_ctx: ContextVar[str] = ContextVar("transform_session_id", default="")


def new_session_id() -> str:
    """Generate a fresh session ID for a transformation run."""
    return str(uuid.uuid4())


def get_session_id() -> str:
    """Get the session ID of the run executing in the current context."""
    return _session_id_ctx.get()


def set_session_id(session_id: str) -> Token[str]:
    """Set the current session ID and return the reset token."""
    return _session_id_ctx.set(session_id)


def reset_session_id(token: Token[str]) -> None:
    """Reset the session ID context with the token from `set_session_id`."""
    _session_id_ctx.reset(token)
