"""
Wiring for the escrow service.

Picks the ledger, question store and notification sinks for the configured
storage backend and assembles an EscrowService and its SettlementScheduler.
"""

from __future__ import annotations

from repositories.ledger_repository import InMemoryLedger, SupabaseLedger
from repositories.message_repository import (
    InMemoryEventPublisher,
    InMemoryMessageRepository,
    SupabaseEventPublisher,
    SupabaseMessageRepository,
)
from repositories.question_repository import InMemoryQuestionStore, SupabaseQuestionStore
from services.config import Settings
from services.escrow_service import EscrowService
from services.notification_service import NotificationEmitter
from services.settlement_scheduler import SettlementScheduler


def build_escrow_service(settings: Settings) -> EscrowService:
    if settings.storage_backend == "supabase":
        ledger = SupabaseLedger()
        store = SupabaseQuestionStore()
        notifier = NotificationEmitter(SupabaseEventPublisher(), SupabaseMessageRepository())
    else:
        ledger = InMemoryLedger()
        store = InMemoryQuestionStore()
        notifier = NotificationEmitter(InMemoryEventPublisher(), InMemoryMessageRepository())

    return EscrowService(
        ledger=ledger,
        store=store,
        notifier=notifier,
        operator_ids=settings.operator_ids,
        settlement_window=settings.settlement_window,
    )


def build_scheduler(service: EscrowService, settings: Settings) -> SettlementScheduler:
    return SettlementScheduler(service, interval_seconds=settings.settlement_interval_seconds)


__all__ = ["build_escrow_service", "build_scheduler"]
