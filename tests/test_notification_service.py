"""
Tests for `services/notification_service.py`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from domain.events import EventType, MessageType
from domain.question import Question
from repositories.message_repository import InMemoryEventPublisher, InMemoryMessageRepository
from services.notification_service import NotificationEmitter

ASKER = UUID("00000000-0000-0000-0000-000000000301")
ANSWERER = UUID("00000000-0000-0000-0000-000000000302")
T0 = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


def _question() -> Question:
    return Question.open(
        asker_id=ASKER,
        answerer_id=ANSWERER,
        content="Which lens for portraits?",
        price=Decimal("12.50"),
        created_at=T0,
    )


def test_question_created_posts_question_message_and_event() -> None:
    publisher = InMemoryEventPublisher()
    messages = InMemoryMessageRepository()
    question = _question()

    NotificationEmitter(publisher, messages).question_created(question, T0)

    [message] = messages.messages
    assert message.type is MessageType.QUESTION
    assert message.conversation_id == question.conversation_id
    assert "12.50" in message.content
    [event] = publisher.events
    assert event.type is EventType.QUESTION_CREATED
    assert event.amount == Decimal("12.50")
    assert messages.for_conversation(question.conversation_id) == [message]


def test_answer_is_posted_from_answerer_to_asker() -> None:
    messages = InMemoryMessageRepository()
    question = _question().accepted(T0).answered("An 85mm prime", T0)

    NotificationEmitter(InMemoryEventPublisher(), messages).question_answered(question, T0)

    [message] = messages.messages
    assert message.sender_id == ANSWERER
    assert message.receiver_id == ASKER
    assert message.type is MessageType.TEXT
    assert message.content == "An 85mm prime"


def test_delivery_failures_are_logged_not_raised(caplog) -> None:
    class Broken:
        def publish(self, event):
            raise ConnectionError("pub/sub down")

        def save_message(self, message):
            raise ConnectionError("chat down")

    emitter = NotificationEmitter(Broken(), Broken())

    with caplog.at_level(logging.WARNING, logger="services.notification_service"):
        emitter.question_created(_question(), T0)

    logged = [r.getMessage() for r in caplog.records]
    assert "Failed to post conversation message" in logged
    assert "Failed to publish question event" in logged


def test_answered_without_answer_posts_nothing(caplog) -> None:
    publisher = InMemoryEventPublisher()
    messages = InMemoryMessageRepository()

    with caplog.at_level(logging.WARNING, logger="services.notification_service"):
        NotificationEmitter(publisher, messages).question_answered(_question().accepted(T0), T0)

    assert messages.messages == []
    assert publisher.events == []
    assert "Answered question has no answer; nothing to post" in [r.getMessage() for r in caplog.records]
