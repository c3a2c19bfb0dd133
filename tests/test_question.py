"""
Tests for `domain/question.py`.

Covers contract rules:
- Timestamps must be UTC.
- Question is immutable; each transition returns a new instance.
- Transitions are only legal from their source status.
- Settlement is due a full window after acceptance, regardless of answering.
- The conversation id is the same whichever party asks.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from domain.errors import Conflict, ValidationError
from domain.question import (
    DisputeResolution,
    Question,
    QuestionStatus,
    conversation_id_for,
)

ASKER = UUID("00000000-0000-0000-0000-000000000001")
ANSWERER = UUID("00000000-0000-0000-0000-000000000002")
OPERATOR = UUID("00000000-0000-0000-0000-000000000003")
T0 = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
WINDOW = timedelta(hours=24)


def _question(**overrides) -> Question:
    fields = dict(
        asker_id=ASKER,
        answerer_id=ANSWERER,
        content="Where is the best coffee?",
        price=Decimal("30.00"),
        created_at=T0,
    )
    fields.update(overrides)
    return Question.open(**fields)


def test_open_question_is_pending_with_conversation_id() -> None:
    question = _question()

    assert question.status is QuestionStatus.PENDING
    assert question.conversation_id == conversation_id_for(ASKER, ANSWERER)
    assert question.accepted_at is None
    assert question.paid_at is None


def test_conversation_id_is_symmetric() -> None:
    assert conversation_id_for(ASKER, ANSWERER) == conversation_id_for(ANSWERER, ASKER)
    assert conversation_id_for(ASKER, ANSWERER).startswith("conv_")


def test_question_requires_distinct_parties() -> None:
    with pytest.raises(ValidationError):
        _question(answerer_id=ASKER)


def test_question_requires_content_and_positive_price() -> None:
    with pytest.raises(ValidationError):
        _question(content="   ")

    with pytest.raises(ValidationError):
        _question(price=Decimal("0.00"))


def test_question_created_at_must_be_utc() -> None:
    with pytest.raises(ValueError):
        _question(created_at=datetime(2025, 1, 1, 0, 0, 0))

    with pytest.raises(ValueError):
        _question(created_at=datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone(timedelta(hours=8))))


def test_question_is_immutable() -> None:
    question = _question()

    with pytest.raises(FrozenInstanceError):
        question.status = QuestionStatus.ACCEPTED  # type: ignore[misc]


def test_accept_returns_new_instance_and_keeps_original_unchanged() -> None:
    question = _question()
    accepted = question.accepted(T0 + timedelta(minutes=5))

    assert accepted is not question
    assert question.status is QuestionStatus.PENDING
    assert question.accepted_at is None
    assert accepted.status is QuestionStatus.ACCEPTED
    assert accepted.accepted_at == T0 + timedelta(minutes=5)
    assert accepted.content == question.content


def test_accept_and_reject_only_from_pending() -> None:
    accepted = _question().accepted(T0)

    with pytest.raises(Conflict):
        accepted.accepted(T0)

    with pytest.raises(Conflict):
        accepted.rejected(T0)


def test_answer_is_recorded_once() -> None:
    answered = _question().accepted(T0).answered("Blue Bottle", T0 + timedelta(hours=1))

    assert answered.status is QuestionStatus.ANSWERED
    assert answered.answer is not None
    assert answered.answer.content == "Blue Bottle"

    with pytest.raises(Conflict):
        answered.answered("Changed my mind", T0 + timedelta(hours=2))


def test_answer_requires_acceptance_and_text() -> None:
    with pytest.raises(Conflict):
        _question().answered("too early", T0)

    with pytest.raises(ValidationError):
        _question().accepted(T0).answered("  ", T0)


def test_settlement_due_measured_from_acceptance_not_answer() -> None:
    accepted = _question().accepted(T0)
    answered = accepted.answered("answer", T0 + timedelta(hours=1))

    just_before = T0 + WINDOW - timedelta(seconds=1)
    assert accepted.settlement_due(just_before, WINDOW) is False
    assert answered.settlement_due(just_before, WINDOW) is False

    assert accepted.settlement_due(T0 + WINDOW, WINDOW) is True
    assert answered.settlement_due(T0 + WINDOW, WINDOW) is True


def test_settlement_never_due_for_pending_or_paid() -> None:
    pending = _question()
    assert pending.settlement_due(T0 + timedelta(days=30), WINDOW) is False

    settled = pending.accepted(T0).settled(T0 + WINDOW)
    assert settled.status is QuestionStatus.COMPLETED
    assert settled.settlement_due(T0 + timedelta(days=30), WINDOW) is False

    with pytest.raises(Conflict):
        settled.settled(T0 + timedelta(days=2))


def test_dispute_only_once_and_only_when_completed() -> None:
    accepted = _question().accepted(T0)
    with pytest.raises(Conflict):
        accepted.disputed("not paid yet", T0)

    disputed = accepted.settled(T0 + WINDOW).disputed("Wrong answer", T0 + timedelta(days=2))
    assert disputed.status is QuestionStatus.DISPUTED
    assert disputed.dispute is not None
    assert disputed.dispute.is_resolved is False

    resolved = disputed.resolved(
        resolution=DisputeResolution.PAY,
        resolved_by=OPERATOR,
        at=T0 + timedelta(days=3),
        refund_amount=Decimal("0.00"),
    )
    assert resolved.status is QuestionStatus.COMPLETED
    with pytest.raises(Conflict):
        resolved.disputed("again", T0 + timedelta(days=4))


def test_refund_resolution_moves_to_refunded_and_keeps_paid_at() -> None:
    disputed = (
        _question()
        .accepted(T0)
        .settled(T0 + WINDOW)
        .disputed("No answer given", T0 + timedelta(days=2))
    )

    resolved = disputed.resolved(
        resolution=DisputeResolution.REFUND,
        resolved_by=OPERATOR,
        at=T0 + timedelta(days=3),
        refund_amount=Decimal("30.00"),
    )

    assert resolved.status is QuestionStatus.REFUNDED
    assert resolved.paid_at == T0 + WINDOW
    assert resolved.dispute.resolution is DisputeResolution.REFUND
    assert resolved.dispute.resolved_by == OPERATOR
    assert resolved.dispute.refund_amount == Decimal("30.00")


def test_resolving_without_a_recorded_dispute_is_a_conflict() -> None:
    # Status says disputed but no dispute row was ever loaded
    inconsistent = replace(_question().accepted(T0).settled(T0 + WINDOW), status=QuestionStatus.DISPUTED)

    with pytest.raises(Conflict) as exc_info:
        inconsistent.resolved(
            resolution=DisputeResolution.PAY,
            resolved_by=OPERATOR,
            at=T0 + timedelta(days=3),
            refund_amount=Decimal("0.00"),
        )

    assert exc_info.value.current_status == "disputed"
