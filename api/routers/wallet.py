"""
Wallet API Endpoints.

Read-only view of the caller's balance and escrow totals.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from api.dependencies import get_caller, get_escrow_service, to_http_error
from api.models import EscrowSummaryResponse
from services.escrow_service import EscrowService

router = APIRouter()


@router.get(
    "/wallet/summary",
    response_model=EscrowSummaryResponse,
    summary="Wallet Summary",
    description="Balance plus amounts held, paid out, refunded and earned through paid questions."
)
def wallet_summary(
    caller: UUID = Depends(get_caller),
    service: EscrowService = Depends(get_escrow_service),
):
    try:
        balance = service.ledger.get_balance(caller)
        summary = service.escrow_summary(caller)
        return EscrowSummaryResponse.from_domain(summary, balance)
    except Exception as e:
        raise to_http_error(e, "load wallet summary")
