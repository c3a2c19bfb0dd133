"""
Domain errors for the paid-question escrow workflow.

Each error carries the HTTP-equivalent status the API layer surfaces it as.
All failures are raised before partial effects are committed; a caller that
sees `Conflict` or `Internal` may refetch and retry.
"""

from __future__ import annotations


class EscrowError(Exception):
    """Base class for all escrow workflow errors."""

    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(EscrowError):
    """Malformed input (non-positive price, empty content, bad resolution)."""

    status_code = 400


class NotFound(EscrowError):
    """Unknown question or user id."""

    status_code = 404


class Forbidden(EscrowError):
    """Caller is not the party authorized for the action."""

    status_code = 403


class Conflict(EscrowError):
    """Expected-status guard failed: the record was transitioned concurrently."""

    status_code = 409

    def __init__(self, message: str, current_status: str | None = None):
        self.current_status = current_status
        super().__init__(message)


class InsufficientFunds(EscrowError):
    """A debit would take the balance below zero."""

    status_code = 402

    def __init__(self, user_id, requested, available):
        self.user_id = user_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient funds for user {user_id}. "
            f"Requested: {requested}, Available: {available}"
        )


class Internal(EscrowError):
    """Storage or ledger backend unavailable; transient."""

    status_code = 500


__all__ = [
    "EscrowError",
    "ValidationError",
    "NotFound",
    "Forbidden",
    "Conflict",
    "InsufficientFunds",
    "Internal",
]
