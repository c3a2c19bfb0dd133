"""
Notification emitter for escrow transitions.

Runs after a transition has committed and tells the outside world about it:
- a QuestionEvent to the pub/sub publisher
- a ConversationMessage into the chat thread between the two parties

Delivery is best-effort. A failure here is logged and dropped; it never rolls
back or blocks the transition that triggered it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from domain.events import ConversationMessage, EventType, MessageType, QuestionEvent
from domain.money import format_amount
from domain.question import Question
from repositories.message_repository import EventPublisher, MessageRepository

logger = logging.getLogger(__name__)


class NotificationEmitter:
    def __init__(self, publisher: EventPublisher, messages: MessageRepository):
        self._publisher = publisher
        self._messages = messages

    def announce(
        self,
        question: Question,
        event_type: EventType,
        at: datetime,
        amount: Optional[Decimal] = None,
    ) -> None:
        event = QuestionEvent(
            question_id=question.question_id,
            type=event_type,
            occurred_at=at,
            amount=amount,
        )
        try:
            self._publisher.publish(event)
        except Exception as e:
            logger.warning(
                "Failed to publish question event",
                extra={
                    "question_id": str(question.question_id),
                    "event_type": event_type.value,
                    "error": str(e),
                },
            )

    def post_message(self, message: ConversationMessage) -> None:
        try:
            self._messages.save_message(message)
        except Exception as e:
            logger.warning(
                "Failed to post conversation message",
                extra={
                    "conversation_id": message.conversation_id,
                    "question_id": str(message.question_id) if message.question_id else None,
                    "error": str(e),
                },
            )

    # Messages the two parties see in their chat thread

    def question_created(self, question: Question, at: datetime) -> None:
        self.post_message(
            ConversationMessage(
                conversation_id=question.conversation_id,
                sender_id=question.asker_id,
                receiver_id=question.answerer_id,
                content=f"Paid question ({format_amount(question.price)}): {question.content}",
                type=MessageType.QUESTION,
                question_id=question.question_id,
                created_at=at,
            )
        )
        self.announce(question, EventType.QUESTION_CREATED, at, question.price)

    def question_accepted(self, question: Question, at: datetime) -> None:
        self.post_message(
            ConversationMessage(
                conversation_id=question.conversation_id,
                sender_id=question.answerer_id,
                receiver_id=question.asker_id,
                content="Accepted your paid question",
                question_id=question.question_id,
                created_at=at,
            )
        )
        self.announce(question, EventType.QUESTION_ACCEPTED, at)

    def question_rejected(self, question: Question, at: datetime) -> None:
        self.post_message(
            ConversationMessage(
                conversation_id=question.conversation_id,
                sender_id=question.answerer_id,
                receiver_id=question.asker_id,
                content="Declined your paid question; the fee has been refunded",
                question_id=question.question_id,
                created_at=at,
            )
        )
        self.announce(question, EventType.QUESTION_REJECTED, at, question.price)

    def question_answered(self, question: Question, at: datetime) -> None:
        if question.answer is None:
            logger.warning(
                "Answered question has no answer; nothing to post",
                extra={"question_id": str(question.question_id)},
            )
            return
        self.post_message(
            ConversationMessage(
                conversation_id=question.conversation_id,
                sender_id=question.answerer_id,
                receiver_id=question.asker_id,
                content=question.answer.content,
                question_id=question.question_id,
                created_at=at,
            )
        )
        self.announce(question, EventType.QUESTION_ANSWERED, at)


__all__ = ["NotificationEmitter"]
