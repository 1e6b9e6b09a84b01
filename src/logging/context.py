# src/logging/context.py - v3
"""Contextual logging support: attach request_id, user_id and call to log records.

Context variables are copied into every asyncio task, so fan-out calls
spawned by one request inherit its request_id while tagging their own call.
"""

from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_user_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "user_id", default=None
)
_call: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "call", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    request_id: str | None = None
    user_id: str | None = None
    call: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        request_id=_request_id.get(),
        user_id=_user_id.get(),
        call=_call.get(),
    )


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


def set_request_context(user_id: str, request_id: str | None = None) -> str:
    """Set request-level context (called once per logical request).

    Returns:
        The request id in effect.
    """
    rid = request_id or new_request_id()
    _request_id.set(rid)
    _user_id.set(user_id)
    _call.set(None)
    return rid


@contextmanager
def request_context(user_id: str, request_id: str | None = None) -> Iterator[str]:
    """Scope request-level context to a with-block.

    The previous values are restored on exit, so a long-lived task that
    serves several requests never carries one request's ids into the next.

    Yields:
        The request id in effect.
    """
    rid = request_id or new_request_id()
    tokens = (_request_id.set(rid), _user_id.set(user_id), _call.set(None))
    try:
        yield rid
    finally:
        _call.reset(tokens[2])
        _user_id.reset(tokens[1])
        _request_id.reset(tokens[0])


def set_call_context(call: str) -> None:
    """Tag the current provider call (primary, fanout-N, refine)."""
    _call.set(call)


def clear_context() -> None:
    """Reset all context variables."""
    _request_id.set(None)
    _user_id.set(None)
    _call.set(None)
