"""
Questions API Endpoints.

Endpoints for the paid-question lifecycle: ask, accept, reject, answer,
dispute, resolve, and the listings the chat screens use.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_caller, get_escrow_service, to_http_error
from api.models import (
    AnswerRequest,
    DisputeRequest,
    ErrorResponse,
    QuestionCreateRequest,
    QuestionListResponse,
    QuestionResponse,
    ResolveDisputeRequest,
)
from services.escrow_service import EscrowService

router = APIRouter()

_ERRORS = {
    400: {"model": ErrorResponse},
    402: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def _list_response(questions) -> QuestionListResponse:
    return QuestionListResponse(
        questions=[QuestionResponse.from_domain(q) for q in questions],
        total_count=len(questions),
    )


@router.post(
    "/questions",
    response_model=QuestionResponse,
    status_code=201,
    responses=_ERRORS,
    summary="Ask Paid Question",
    description="Debit the caller and send a paid question to another user."
)
def create_question(
    request: QuestionCreateRequest,
    caller: UUID = Depends(get_caller),
    service: EscrowService = Depends(get_escrow_service),
):
    """
    Ask a paid question.

    The price is debited from the caller immediately and held until the
    answerer rejects (refund) or the settlement window after acceptance
    elapses (payout). A message referencing the question is posted to the
    conversation between the two users.

    **Example request:**
    ```json
    {
      "answerer_id": "123e4567-e89b-12d3-a456-426614174001",
      "content": "Which neighbourhood has the best dumplings?",
      "price": "30.00"
    }
    ```
    """
    try:
        question = service.create_question(
            caller=caller,
            answerer_id=request.answerer_id,
            content=request.content,
            price=request.price,
        )
        return QuestionResponse.from_domain(question)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "create question")


@router.get(
    "/questions/asked",
    response_model=QuestionListResponse,
    summary="Questions I Asked"
)
def list_asked(
    caller: UUID = Depends(get_caller),
    service: EscrowService = Depends(get_escrow_service),
):
    """Questions asked by the caller, newest first."""
    try:
        return _list_response(service.list_by_asker(caller))
    except Exception as e:
        raise to_http_error(e, "list asked questions")


@router.get(
    "/questions/received",
    response_model=QuestionListResponse,
    summary="Questions I Received"
)
def list_received(
    caller: UUID = Depends(get_caller),
    service: EscrowService = Depends(get_escrow_service),
):
    """Questions addressed to the caller, newest first."""
    try:
        return _list_response(service.list_by_answerer(caller))
    except Exception as e:
        raise to_http_error(e, "list received questions")


@router.get(
    "/questions/conversation/{user_id}",
    response_model=QuestionListResponse,
    summary="Questions In Conversation"
)
def list_conversation(
    user_id: UUID,
    caller: UUID = Depends(get_caller),
    service: EscrowService = Depends(get_escrow_service),
):
    """All paid questions between the caller and `user_id`, in either direction, oldest first."""
    try:
        return _list_response(service.list_conversation(caller, user_id))
    except Exception as e:
        raise to_http_error(e, "list conversation questions")


@router.get(
    "/questions/{question_id}",
    response_model=QuestionResponse,
    responses=_ERRORS,
    summary="Get Question"
)
def get_question(
    question_id: UUID,
    caller: UUID = Depends(get_caller),
    service: EscrowService = Depends(get_escrow_service),
):
    """Question details. Only the asker and the answerer may view it."""
    try:
        return QuestionResponse.from_domain(service.get_question(caller, question_id))
    except Exception as e:
        raise to_http_error(e, "get question")


@router.post(
    "/questions/{question_id}/accept",
    response_model=QuestionResponse,
    responses=_ERRORS,
    summary="Accept Question"
)
def accept_question(
    question_id: UUID,
    caller: UUID = Depends(get_caller),
    service: EscrowService = Depends(get_escrow_service),
):
    """
    Accept a pending question (answerer only).

    Starts the settlement window. Calling it twice returns 409 the second time.
    """
    try:
        return QuestionResponse.from_domain(service.accept_question(caller, question_id))
    except Exception as e:
        raise to_http_error(e, "accept question")


@router.post(
    "/questions/{question_id}/reject",
    response_model=QuestionResponse,
    responses=_ERRORS,
    summary="Reject Question"
)
def reject_question(
    question_id: UUID,
    caller: UUID = Depends(get_caller),
    service: EscrowService = Depends(get_escrow_service),
):
    """Reject a pending question (answerer only); the asker is refunded in full."""
    try:
        return QuestionResponse.from_domain(service.reject_question(caller, question_id))
    except Exception as e:
        raise to_http_error(e, "reject question")


@router.post(
    "/questions/{question_id}/answer",
    response_model=QuestionResponse,
    responses=_ERRORS,
    summary="Answer Question"
)
def answer_question(
    question_id: UUID,
    request: AnswerRequest,
    caller: UUID = Depends(get_caller),
    service: EscrowService = Depends(get_escrow_service),
):
    """
    Answer an accepted question (answerer only).

    The answer is final. Payout still waits for the full settlement window
    after acceptance.
    """
    try:
        return QuestionResponse.from_domain(
            service.answer_question(caller, question_id, request.answer)
        )
    except Exception as e:
        raise to_http_error(e, "answer question")


@router.post(
    "/questions/{question_id}/dispute",
    response_model=QuestionResponse,
    responses=_ERRORS,
    summary="Dispute Question"
)
def dispute_question(
    question_id: UUID,
    request: DisputeRequest,
    caller: UUID = Depends(get_caller),
    service: EscrowService = Depends(get_escrow_service),
):
    """Dispute a completed question (asker only). An operator resolves it."""
    try:
        return QuestionResponse.from_domain(
            service.dispute_question(caller, question_id, request.reason)
        )
    except Exception as e:
        raise to_http_error(e, "dispute question")


@router.post(
    "/questions/{question_id}/resolve",
    response_model=QuestionResponse,
    responses=_ERRORS,
    summary="Resolve Dispute"
)
def resolve_dispute(
    question_id: UUID,
    request: ResolveDisputeRequest,
    caller: UUID = Depends(get_caller),
    service: EscrowService = Depends(get_escrow_service),
):
    """
    Resolve a disputed question (operators only).

    - `refund`: the payout is reversed to the asker; status becomes `refunded`
    - `pay`: the payout stands; status becomes `completed`
    - `partial`: `refund_amount` (default half the price) goes back to the
      asker; status becomes `completed`
    """
    try:
        return QuestionResponse.from_domain(
            service.resolve_dispute(
                caller,
                question_id,
                request.resolution,
                refund_amount=request.refund_amount,
            )
        )
    except Exception as e:
        raise to_http_error(e, "resolve dispute")
