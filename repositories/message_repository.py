"""
Message and event sinks (persistence).

The escrow workflow writes two kinds of records outside its own tables:
- ConversationMessage rows in the chat thread (`messages`).
- QuestionEvent rows (`question_events`); Supabase Realtime broadcasts inserts
  on this table to subscribed clients, which is how push/pub-sub listeners
  learn about transitions.

Both are write-only from the workflow's point of view.
"""

from __future__ import annotations

import threading
from typing import List, Protocol

from domain.events import ConversationMessage, QuestionEvent
from repositories.client import get_supabase

_MESSAGES_TABLE: str = "messages"
_EVENTS_TABLE: str = "question_events"


class MessageRepository(Protocol):
    def save_message(self, message: ConversationMessage) -> None: ...


class EventPublisher(Protocol):
    def publish(self, event: QuestionEvent) -> None: ...


class InMemoryMessageRepository:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.messages: List[ConversationMessage] = []

    def save_message(self, message: ConversationMessage) -> None:
        with self._lock:
            self.messages.append(message)

    def for_conversation(self, conversation_id: str) -> List[ConversationMessage]:
        with self._lock:
            return [m for m in self.messages if m.conversation_id == conversation_id]


class InMemoryEventPublisher:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: List[QuestionEvent] = []

    def publish(self, event: QuestionEvent) -> None:
        with self._lock:
            self.events.append(event)


class SupabaseMessageRepository:
    def save_message(self, message: ConversationMessage) -> None:
        response = get_supabase().table(_MESSAGES_TABLE).insert(message.to_payload()).execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to save message: {error}")


class SupabaseEventPublisher:
    def publish(self, event: QuestionEvent) -> None:
        response = get_supabase().table(_EVENTS_TABLE).insert(event.to_payload()).execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to publish event: {error}")


__all__ = [
    "MessageRepository",
    "EventPublisher",
    "InMemoryMessageRepository",
    "InMemoryEventPublisher",
    "SupabaseMessageRepository",
    "SupabaseEventPublisher",
]
