"""
Pytest configuration and shared fixtures.

This file adds the project root to the Python path so that tests can import
the domain, repositories, services and api packages, and wires an escrow
service over the in-memory backends with a controllable clock.
"""

import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from uuid import UUID

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from repositories.ledger_repository import InMemoryLedger  # noqa: E402
from repositories.message_repository import (  # noqa: E402
    InMemoryEventPublisher,
    InMemoryMessageRepository,
)
from repositories.question_repository import InMemoryQuestionStore  # noqa: E402
from services.escrow_service import EscrowService  # noqa: E402
from services.notification_service import NotificationEmitter  # noqa: E402

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock that only moves when a test moves it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def asker_id() -> UUID:
    return UUID("00000000-0000-0000-0000-0000000000a1")


@pytest.fixture
def answerer_id() -> UUID:
    return UUID("00000000-0000-0000-0000-0000000000b2")


@pytest.fixture
def outsider_id() -> UUID:
    return UUID("00000000-0000-0000-0000-0000000000c3")


@pytest.fixture
def operator_id() -> UUID:
    return UUID("00000000-0000-0000-0000-0000000000d4")


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0)


@pytest.fixture
def ledger(asker_id, answerer_id, outsider_id) -> InMemoryLedger:
    return InMemoryLedger(
        {
            asker_id: Decimal("100.00"),
            answerer_id: Decimal("0.00"),
            outsider_id: Decimal("100.00"),
        }
    )


@pytest.fixture
def store() -> InMemoryQuestionStore:
    return InMemoryQuestionStore()


@pytest.fixture
def publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def messages() -> InMemoryMessageRepository:
    return InMemoryMessageRepository()


@pytest.fixture
def service(ledger, store, publisher, messages, clock, operator_id) -> EscrowService:
    return EscrowService(
        ledger=ledger,
        store=store,
        notifier=NotificationEmitter(publisher, messages),
        operator_ids=frozenset({operator_id}),
        settlement_window=timedelta(hours=24),
        clock=clock,
    )
