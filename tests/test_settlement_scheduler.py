"""
Tests for `services/settlement_scheduler.py`.

Covers:
- A sweep settles only questions whose window has elapsed.
- Re-running a sweep never pays twice.
- One failing question does not stop the others.
- A store outage aborts the tick without raising.
- run_forever ticks until the stop event is set.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from domain.errors import Internal
from domain.question import QuestionStatus
from repositories.ledger_repository import InMemoryLedger
from repositories.question_repository import InMemoryQuestionStore
from services.escrow_service import EscrowService
from services.notification_service import NotificationEmitter
from services.settlement_scheduler import SettlementScheduler


def _build(ledger, store, publisher, messages, clock) -> EscrowService:
    return EscrowService(
        ledger=ledger,
        store=store,
        notifier=NotificationEmitter(publisher, messages),
        clock=clock,
    )


def test_interval_must_be_positive(service):
    with pytest.raises(ValueError):
        SettlementScheduler(service, interval_seconds=0)


def test_sweep_settles_only_due_questions(service, ledger, clock, asker_id, answerer_id):
    early = service.create_question(asker_id, answerer_id, "early", "10")
    late = service.create_question(asker_id, answerer_id, "late", "20")
    pending = service.create_question(asker_id, answerer_id, "pending", "5")
    service.accept_question(answerer_id, early.question_id)
    clock.advance(hours=12)
    service.accept_question(answerer_id, late.question_id)
    service.answer_question(answerer_id, late.question_id, "answer")
    clock.advance(hours=13)

    result = SettlementScheduler(service).run_once()

    assert result.scanned == 2
    assert result.settled == [early.question_id]
    assert result.not_due == 1
    assert result.failed == []
    assert result.aborted is False
    assert ledger.get_balance(answerer_id) == Decimal("10.00")
    assert service.store.get(late.question_id).status is QuestionStatus.ANSWERED
    assert service.store.get(pending.question_id).status is QuestionStatus.PENDING


def test_sweep_uses_explicit_now(service, clock, asker_id, answerer_id):
    question = service.create_question(asker_id, answerer_id, "question", "10")
    service.accept_question(answerer_id, question.question_id)

    result = SettlementScheduler(service).run_once(now=clock.now + timedelta(hours=24))

    assert result.settled == [question.question_id]
    assert service.store.get(question.question_id).paid_at == clock.now + timedelta(hours=24)


def test_rerunning_a_sweep_does_not_pay_twice(service, ledger, clock, asker_id, answerer_id):
    question = service.create_question(asker_id, answerer_id, "question", "10")
    service.accept_question(answerer_id, question.question_id)
    clock.advance(hours=30)
    scheduler = SettlementScheduler(service)

    first = scheduler.run_once()
    second = scheduler.run_once()

    assert first.settled == [question.question_id]
    assert second.scanned == 0
    assert second.settled == []
    assert ledger.get_balance(answerer_id) == Decimal("10.00")


def test_failing_question_does_not_block_others(store, publisher, messages, clock, asker_id, answerer_id, outsider_id):
    class FlakyLedger(InMemoryLedger):
        broken_user = outsider_id

        def credit(self, user_id, amount):
            if user_id == self.broken_user:
                raise Internal("ledger unavailable")
            return super().credit(user_id, amount)

    ledger = FlakyLedger(
        {asker_id: Decimal("100"), answerer_id: Decimal("0"), outsider_id: Decimal("0")}
    )
    service = _build(ledger, store, publisher, messages, clock)
    good = service.create_question(asker_id, answerer_id, "good", "10")
    bad = service.create_question(asker_id, outsider_id, "bad", "15")
    service.accept_question(answerer_id, good.question_id)
    service.accept_question(outsider_id, bad.question_id)
    clock.advance(hours=24)
    scheduler = SettlementScheduler(service)

    result = scheduler.run_once()

    assert result.settled == [good.question_id]
    assert result.failed == [bad.question_id]
    assert store.get(bad.question_id).status is QuestionStatus.ACCEPTED
    assert ledger.get_balance(answerer_id) == Decimal("10.00")

    ledger.broken_user = None
    retry = scheduler.run_once()

    assert retry.settled == [bad.question_id]
    assert ledger.get_balance(outsider_id) == Decimal("15.00")


def test_store_outage_aborts_tick(ledger, publisher, messages, clock):
    class UnavailableStore(InMemoryQuestionStore):
        def list_unsettled(self):
            raise Internal("database unavailable")

    service = _build(ledger, UnavailableStore(), publisher, messages, clock)

    result = SettlementScheduler(service).run_once()

    assert result.aborted is True
    assert result.scanned == 0


def test_run_forever_stops_on_event(service, ledger, clock, asker_id, answerer_id):
    question = service.create_question(asker_id, answerer_id, "question", "10")
    service.accept_question(answerer_id, question.question_id)
    clock.advance(hours=24)
    scheduler = SettlementScheduler(service, interval_seconds=0.01)

    async def run() -> None:
        stop = asyncio.Event()
        task = asyncio.create_task(scheduler.run_forever(stop))
        await asyncio.sleep(0.1)
        stop.set()
        await asyncio.wait_for(task, timeout=2)

    asyncio.run(run())

    assert service.store.get(question.question_id).status is QuestionStatus.COMPLETED
    assert ledger.get_balance(answerer_id) == Decimal("10.00")


def test_run_forever_survives_crashing_tick(service, monkeypatch):
    scheduler = SettlementScheduler(service, interval_seconds=0.01)
    calls = []

    def crash(now=None):
        calls.append(now)
        raise RuntimeError("boom")

    monkeypatch.setattr(scheduler, "run_once", crash)

    async def run() -> None:
        stop = asyncio.Event()
        task = asyncio.create_task(scheduler.run_forever(stop))
        await asyncio.sleep(0.1)
        stop.set()
        await asyncio.wait_for(task, timeout=2)

    asyncio.run(run())

    assert len(calls) >= 2
