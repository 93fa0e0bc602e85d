from contextvars import ContextVar
from typing import Optional

_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_session_id_ctx: ContextVar[Optional[str]] = ContextVar("proctoring_session_id", default=None)


def set_request_id(request_id: str):
    return _request_id_ctx.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()


def bind_session_id(session_id: Optional[str]):
    """Tag log records emitted in this context with a proctoring session id."""
    return _session_id_ctx.set(session_id)


def reset_session_id(token) -> None:
    _session_id_ctx.reset(token)


def get_session_id() -> Optional[str]:
    return _session_id_ctx.get()
