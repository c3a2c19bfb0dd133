"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Money amounts travel as decimal strings.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.question import Question
from services.escrow_service import EscrowSummary


# ============================================================================
# Question Models
# ============================================================================

class QuestionCreateRequest(BaseModel):
    """Request to ask a paid question."""
    answerer_id: UUID = Field(..., description="User who will answer the question")
    content: str = Field(..., min_length=1, description="Question text")
    price: str = Field(..., description="Price as a decimal string, e.g. \"30.00\"")

    class Config:
        json_schema_extra = {
            "example": {
                "answerer_id": "123e4567-e89b-12d3-a456-426614174001",
                "content": "Which neighbourhood has the best dumplings?",
                "price": "30.00"
            }
        }


class AnswerRequest(BaseModel):
    """Answer text for an accepted question."""
    answer: str = Field(..., min_length=1)


class DisputeRequest(BaseModel):
    """Asker's reason for disputing a completed question."""
    reason: str = Field(..., min_length=1)


class ResolveDisputeRequest(BaseModel):
    """Operator decision on a disputed question."""
    resolution: str = Field(..., description="One of: refund, pay, partial")
    refund_amount: Optional[str] = Field(
        None,
        description="Amount returned to the asker for partial resolutions (default: half the price)"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "resolution": "partial",
                "refund_amount": "15.00"
            }
        }


class AnswerResponse(BaseModel):
    content: str
    answered_at: datetime


class DisputeResponse(BaseModel):
    reason: str
    created_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[UUID] = None
    resolution: Optional[str] = None
    refund_amount: Optional[Decimal] = None


class QuestionResponse(BaseModel):
    """Single paid question."""
    question_id: UUID
    asker_id: UUID
    answerer_id: UUID
    content: str
    price: Decimal
    status: str
    conversation_id: str
    created_at: datetime
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    answer: Optional[AnswerResponse] = None
    dispute: Optional[DisputeResponse] = None

    @classmethod
    def from_domain(cls, question: Question) -> "QuestionResponse":
        answer = None
        if question.answer is not None:
            answer = AnswerResponse(
                content=question.answer.content,
                answered_at=question.answer.answered_at,
            )

        dispute = None
        if question.dispute is not None:
            d = question.dispute
            dispute = DisputeResponse(
                reason=d.reason,
                created_at=d.created_at,
                resolved_at=d.resolved_at,
                resolved_by=d.resolved_by,
                resolution=d.resolution.value if d.resolution else None,
                refund_amount=d.refund_amount,
            )

        return cls(
            question_id=question.question_id,
            asker_id=question.asker_id,
            answerer_id=question.answerer_id,
            content=question.content,
            price=question.price,
            status=question.status.value,
            conversation_id=question.conversation_id,
            created_at=question.created_at,
            accepted_at=question.accepted_at,
            rejected_at=question.rejected_at,
            paid_at=question.paid_at,
            answer=answer,
            dispute=dispute,
        )


class QuestionListResponse(BaseModel):
    """List of questions."""
    questions: List[QuestionResponse]
    total_count: int


# ============================================================================
# Wallet Models
# ============================================================================

class EscrowSummaryResponse(BaseModel):
    """Caller's balance and money held in or released from escrow."""
    user_id: UUID
    balance: Decimal
    held: Decimal
    paid_out: Decimal
    refunded: Decimal
    earned: Decimal
    pending_payout: Decimal
    question_count: int

    @classmethod
    def from_domain(cls, summary: EscrowSummary, balance: Decimal) -> "EscrowSummaryResponse":
        return cls(
            user_id=summary.user_id,
            balance=balance,
            held=summary.held,
            paid_out=summary.paid_out,
            refunded=summary.refunded,
            earned=summary.earned,
            pending_payout=summary.pending_payout,
            question_count=summary.question_count,
        )


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str

    class Config:
        json_schema_extra = {
            "example": {
                "detail": "Question 123e4567-e89b-12d3-a456-426614174000 is accepted, expected pending"
            }
        }
