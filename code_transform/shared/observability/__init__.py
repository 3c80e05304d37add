"""Observability helpers shared across layers."""

from code_transform.shared.observability.session import (
    SESSION_ID_HEADER,
    get_session_id,
    new_session_id,
    reset_session_id,
    set_session_id,
)

__all__ = [
    "SESSION_ID_HEADER",
    "get_session_id",
    "new_session_id",
    "set_session_id",
    "reset_session_id",
]
