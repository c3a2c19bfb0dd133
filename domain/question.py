"""
Domain: paid Question entity and its escrow lifecycle.

Contract implemented here:
- A Question is created `pending` after the asker has been debited the price.
- Status is exactly one of the closed `QuestionStatus` values.
- Transitions are monotonic; the only revisits are `completed -> disputed` and
  `disputed -> refunded | completed` via operator resolution.
- created_at, accepted_at, rejected_at and paid_at are each set exactly once by
  the transition that causes them and never overwritten.
- The answer is recorded once and is immutable afterwards.

This module contains only pure domain entities: no I/O, no database, no
frameworks. Each transition returns a new instance; the original is unchanged.
All timestamps must be passed explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Optional
from uuid import UUID, uuid4

from .errors import Conflict, ValidationError
from .money import CENT, ZERO
from .time import require_utc_timestamp


class QuestionStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ANSWERED = "answered"
    COMPLETED = "completed"
    DISPUTED = "disputed"
    REFUNDED = "refunded"


# Statuses from which the settlement sweep may release funds.
SETTLEABLE_STATUSES: FrozenSet[QuestionStatus] = frozenset(
    {QuestionStatus.ACCEPTED, QuestionStatus.ANSWERED}
)

TERMINAL_STATUSES: FrozenSet[QuestionStatus] = frozenset(
    {QuestionStatus.REJECTED, QuestionStatus.COMPLETED, QuestionStatus.REFUNDED}
)


class DisputeResolution(str, Enum):
    REFUND = "refund"
    PAY = "pay"
    PARTIAL = "partial"


def conversation_id_for(user_a: UUID, user_b: UUID) -> str:
    """Thread id shared by two users regardless of who asks whom."""

    first, second = sorted([str(user_a), str(user_b)])
    return f"conv_{first}_{second}"


def _require_text(name: str, value: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{name} must not be empty")
    return text


@dataclass(frozen=True, slots=True)
class Answer:
    content: str
    answered_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("answered_at", self.answered_at)


@dataclass(frozen=True, slots=True)
class Dispute:
    """
    Asker's appeal against a completed question.

    resolution/resolved_at/resolved_by stay None until an operator resolves it.
    refund_amount is the amount returned to the asker by the resolution.
    """

    reason: str
    created_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[UUID] = None
    resolution: Optional[DisputeResolution] = None
    refund_amount: Optional[Decimal] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("dispute.created_at", self.created_at)
        if self.resolved_at is not None:
            require_utc_timestamp("dispute.resolved_at", self.resolved_at)

    @property
    def is_resolved(self) -> bool:
        return self.resolution is not None


@dataclass(frozen=True, slots=True)
class Question:
    """
    Immutable snapshot of one paid-question transaction.

    Notes:
    - `price` is a cent-quantized Decimal and is fixed at creation.
    - Party ids are always UUIDs; callers never see partially-loaded users.
    """

    question_id: UUID
    asker_id: UUID
    answerer_id: UUID
    content: str
    price: Decimal
    conversation_id: str
    created_at: datetime
    status: QuestionStatus = QuestionStatus.PENDING
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    answer: Optional[Answer] = None
    dispute: Optional[Dispute] = None

    def __post_init__(self) -> None:
        if self.asker_id == self.answerer_id:
            raise ValidationError("asker and answerer must be different users")
        if self.price <= ZERO or self.price != self.price.quantize(CENT):
            raise ValidationError("price must be a positive amount in cents")
        require_utc_timestamp("created_at", self.created_at)
        for name in ("accepted_at", "rejected_at", "paid_at"):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)

    @staticmethod
    def open(
        *,
        asker_id: UUID,
        answerer_id: UUID,
        content: str,
        price: Decimal,
        created_at: datetime,
        question_id: Optional[UUID] = None,
    ) -> "Question":
        """Build a new pending question (after the asker has been debited)."""

        return Question(
            question_id=question_id or uuid4(),
            asker_id=asker_id,
            answerer_id=answerer_id,
            content=_require_text("content", content),
            price=price,
            conversation_id=conversation_id_for(asker_id, answerer_id),
            created_at=created_at,
        )

    def is_party(self, user_id: UUID) -> bool:
        return user_id in (self.asker_id, self.answerer_id)

    @property
    def is_paid(self) -> bool:
        return self.paid_at is not None

    def settlement_due(self, now: datetime, window: timedelta) -> bool:
        """
        True once the settlement window has elapsed since acceptance.

        Measured from accepted_at; answering does not shorten the window.
        """

        require_utc_timestamp("now", now)
        if self.status not in SETTLEABLE_STATUSES or self.is_paid:
            return False
        if self.accepted_at is None:
            return False
        return now - self.accepted_at >= window

    def _require_status(self, *allowed: QuestionStatus) -> None:
        if self.status not in allowed:
            expected = ", ".join(s.value for s in allowed)
            raise Conflict(
                f"Question {self.question_id} is {self.status.value}; expected {expected}",
                current_status=self.status.value,
            )

    def accepted(self, at: datetime) -> "Question":
        require_utc_timestamp("accepted_at", at)
        self._require_status(QuestionStatus.PENDING)
        return replace(self, status=QuestionStatus.ACCEPTED, accepted_at=at)

    def rejected(self, at: datetime) -> "Question":
        require_utc_timestamp("rejected_at", at)
        self._require_status(QuestionStatus.PENDING)
        return replace(self, status=QuestionStatus.REJECTED, rejected_at=at)

    def answered(self, text: str, at: datetime) -> "Question":
        self._require_status(QuestionStatus.ACCEPTED)
        if self.answer is not None:
            raise Conflict(f"Question {self.question_id} already has an answer")
        answer = Answer(content=_require_text("answer", text), answered_at=at)
        return replace(self, status=QuestionStatus.ANSWERED, answer=answer)

    def settled(self, at: datetime) -> "Question":
        require_utc_timestamp("paid_at", at)
        self._require_status(*SETTLEABLE_STATUSES)
        if self.is_paid:
            raise Conflict(f"Question {self.question_id} is already paid")
        return replace(self, status=QuestionStatus.COMPLETED, paid_at=at)

    def disputed(self, reason: str, at: datetime) -> "Question":
        self._require_status(QuestionStatus.COMPLETED)
        if self.dispute is not None:
            raise Conflict(f"Question {self.question_id} has already been disputed")
        dispute = Dispute(reason=_require_text("reason", reason), created_at=at)
        return replace(self, status=QuestionStatus.DISPUTED, dispute=dispute)

    def resolved(
        self,
        *,
        resolution: DisputeResolution,
        resolved_by: UUID,
        at: datetime,
        refund_amount: Decimal,
    ) -> "Question":
        """
        Close the dispute.

        refund -> refunded; pay and partial -> completed. The refund amount is
        recorded on the dispute for audit.
        """

        self._require_status(QuestionStatus.DISPUTED)
        if self.dispute is None:
            raise Conflict(
                f"Question {self.question_id} has no open dispute",
                current_status=self.status.value,
            )
        if refund_amount < ZERO or refund_amount > self.price:
            raise ValidationError("refund_amount must be between 0 and the price")
        dispute = replace(
            self.dispute,
            resolved_at=at,
            resolved_by=resolved_by,
            resolution=resolution,
            refund_amount=refund_amount,
        )
        status = (
            QuestionStatus.REFUNDED
            if resolution is DisputeResolution.REFUND
            else QuestionStatus.COMPLETED
        )
        return replace(self, status=status, dispute=dispute)


__all__ = [
    "Answer",
    "Dispute",
    "DisputeResolution",
    "Question",
    "QuestionStatus",
    "SETTLEABLE_STATUSES",
    "TERMINAL_STATUSES",
    "conversation_id_for",
]
