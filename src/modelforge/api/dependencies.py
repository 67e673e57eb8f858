from __future__ import annotations

from typing import Any

from fastapi import Header, Request

from modelforge.emitters.dispatcher import Dispatcher
from modelforge.models import ValidationContext

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_schema_document(request: Request) -> dict[str, Any]:
    return request.app.state.schema_document


def get_validation_context(
    host: str = Header(default=""),
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
    x_extension: str | None = Header(default=None),
) -> ValidationContext:
    """Build the per-request validation context from request headers."""
    return ValidationContext(
        host=host,
        user_id=x_user_id or None,
        session_id=x_session_id or None,
        is_extension=(x_extension or "").strip().lower() in _TRUTHY,
    )
