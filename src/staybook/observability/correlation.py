"""Correlation ID management for request tracing."""

import uuid
from contextvars import ContextVar, Token

# Shared by the HTTP middleware, domain logging and task payloads
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Get current correlation ID from context."""
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    """Set correlation ID in context."""
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    """Reset correlation ID to previous value."""
    correlation_id_var.reset(token)


def current_or_new_correlation_id() -> str:
    """Return the active correlation ID, generating one outside a request."""
    return get_correlation_id() or generate_correlation_id()
