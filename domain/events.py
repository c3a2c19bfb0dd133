"""
Domain: records announced to external collaborators after a transition.

- QuestionEvent goes to the pub/sub sink (push, realtime listeners).
- ConversationMessage goes into the chat thread between the two parties.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from .money import format_amount
from .time import require_utc_timestamp


class EventType(str, Enum):
    QUESTION_CREATED = "question_created"
    QUESTION_ACCEPTED = "question_accepted"
    QUESTION_REJECTED = "question_rejected"
    QUESTION_ANSWERED = "question_answered"
    QUESTION_PAID = "question_paid"
    QUESTION_DISPUTED = "question_disputed"
    DISPUTE_RESOLVED = "dispute_resolved"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    QUESTION = "question"


@dataclass(frozen=True, slots=True)
class QuestionEvent:
    question_id: UUID
    type: EventType
    occurred_at: datetime
    amount: Optional[Decimal] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("occurred_at", self.occurred_at)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "question_id": str(self.question_id),
            "type": self.type.value,
            "amount": format_amount(self.amount) if self.amount is not None else None,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class ConversationMessage:
    conversation_id: str
    sender_id: UUID
    receiver_id: UUID
    content: str
    type: MessageType = MessageType.TEXT
    question_id: Optional[UUID] = None
    created_at: Optional[datetime] = field(default=None)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "sender_id": str(self.sender_id),
            "receiver_id": str(self.receiver_id),
            "content": self.content,
            "type": self.type.value,
            "question_id": str(self.question_id) if self.question_id else None,
            "created_at_utc": self.created_at.isoformat() if self.created_at else None,
        }


__all__ = ["EventType", "MessageType", "QuestionEvent", "ConversationMessage"]
