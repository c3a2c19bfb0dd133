"""
Request dependencies shared by the routers.

- Caller identity: authentication happens upstream; the gateway forwards the
  verified user id in the `X-User-Id` header.
- The EscrowService instance built at startup (stored on app.state).
- Translation of domain errors to HTTP errors.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import Header, HTTPException, Request

from domain.errors import EscrowError
from services.escrow_service import EscrowService

logger = logging.getLogger(__name__)


def get_caller(x_user_id: str | None = Header(default=None)) -> UUID:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header")


def get_escrow_service(request: Request) -> EscrowService:
    return request.app.state.escrow_service


def to_http_error(error: Exception, action: str) -> HTTPException:
    """Map a service exception to the HTTPException the route should raise."""

    if isinstance(error, EscrowError):
        return HTTPException(status_code=error.status_code, detail=error.message)

    logger.exception(f"Unexpected error while trying to {action}")
    return HTTPException(status_code=500, detail=f"Failed to {action}")
