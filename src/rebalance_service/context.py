"""
Request context management using ContextVar for async-safe context propagation.
"""

from contextvars import ContextVar
from typing import Optional

# Wallet and request currently being served, visible across await points
current_owner_id: ContextVar[Optional[str]] = ContextVar('current_owner_id', default=None)
current_request_id: ContextVar[Optional[str]] = ContextVar('current_request_id', default=None)


def set_current_owner(owner_id: Optional[str]) -> None:
    """Set the current wallet in the context."""
    current_owner_id.set(owner_id)


def get_current_owner() -> Optional[str]:
    """Get the current wallet from the context."""
    return current_owner_id.get()


def set_current_request(request_id: Optional[str]) -> None:
    """Set the current request id in the context."""
    current_request_id.set(request_id)


def get_current_request() -> Optional[str]:
    """Get the current request id from the context."""
    return current_request_id.get()


def clear_context() -> None:
    """Clear wallet and request from the context."""
    current_owner_id.set(None)
    current_request_id.set(None)
