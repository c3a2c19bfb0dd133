"""
Question store (persistence).

This module provides persistence for the Question domain entity plus the one
concurrency primitive the escrow workflow relies on: `transition`, an atomic
"compare expected status, then write" update. It does not decide which
transitions are legal; the domain entity and the escrow service do.

Two implementations share the `QuestionStore` protocol:
- InMemoryQuestionStore: dict behind a lock (tests, demo mode).
- SupabaseQuestionStore: conditional UPDATE filtered on the expected status and
  on the dispute that was read; zero rows updated means another writer got
  there first.
"""

from __future__ import annotations

import logging
import threading
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol
from uuid import UUID

from domain.errors import Conflict, Internal, NotFound
from domain.question import (
    SETTLEABLE_STATUSES,
    Answer,
    Dispute,
    DisputeResolution,
    Question,
    QuestionStatus,
)
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.client import get_supabase

logger = logging.getLogger(__name__)

# Supabase table name for question records.
_QUESTIONS_TABLE: str = "questions"

Mutator = Callable[[Question], Question]


class QuestionStore(Protocol):
    def create(self, question: Question) -> UUID: ...

    def get(self, question_id: UUID) -> Question: ...

    def transition(
        self, question_id: UUID, expected_status: QuestionStatus, mutator: Mutator
    ) -> Question: ...

    def list_by_asker(self, asker_id: UUID) -> List[Question]: ...

    def list_by_answerer(self, answerer_id: UUID) -> List[Question]: ...

    def list_unsettled(self) -> List[Question]: ...

    def list_by_conversation(self, conversation_id: str) -> List[Question]: ...

    def list_between(self, user_a: UUID, user_b: UUID) -> List[Question]: ...


def _apply(current: Question, expected_status: QuestionStatus, mutator: Mutator) -> Question:
    if current.status is not expected_status:
        raise Conflict(
            f"Question {current.question_id} is {current.status.value}, "
            f"expected {expected_status.value}",
            current_status=current.status.value,
        )
    updated = mutator(current)
    if updated.question_id != current.question_id:
        raise ValueError("mutator must not change question_id")
    return updated


class InMemoryQuestionStore:
    """Thread-safe in-process question store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._questions: Dict[UUID, Question] = {}

    def create(self, question: Question) -> UUID:
        with self._lock:
            if question.question_id in self._questions:
                raise Conflict(f"Question already exists: {question.question_id}")
            if question.status is not QuestionStatus.PENDING:
                raise ValueError("new questions must be pending")
            self._questions[question.question_id] = question
        return question.question_id

    def get(self, question_id: UUID) -> Question:
        with self._lock:
            question = self._questions.get(question_id)
        if question is None:
            raise NotFound(f"Question not found: {question_id}")
        return question

    def transition(
        self, question_id: UUID, expected_status: QuestionStatus, mutator: Mutator
    ) -> Question:
        with self._lock:
            current = self._questions.get(question_id)
            if current is None:
                raise NotFound(f"Question not found: {question_id}")
            updated = _apply(current, expected_status, mutator)
            self._questions[question_id] = updated
        return updated

    def _select(self, predicate: Callable[[Question], bool]) -> List[Question]:
        with self._lock:
            return [q for q in self._questions.values() if predicate(q)]

    def list_by_asker(self, asker_id: UUID) -> List[Question]:
        rows = self._select(lambda q: q.asker_id == asker_id)
        return sorted(rows, key=lambda q: q.created_at, reverse=True)

    def list_by_answerer(self, answerer_id: UUID) -> List[Question]:
        rows = self._select(lambda q: q.answerer_id == answerer_id)
        return sorted(rows, key=lambda q: q.created_at, reverse=True)

    def list_unsettled(self) -> List[Question]:
        rows = self._select(
            lambda q: q.status in SETTLEABLE_STATUSES
            and q.paid_at is None
            and q.accepted_at is not None
        )
        return sorted(rows, key=lambda q: q.accepted_at)

    def list_by_conversation(self, conversation_id: str) -> List[Question]:
        rows = self._select(lambda q: q.conversation_id == conversation_id)
        return sorted(rows, key=lambda q: q.created_at)

    def list_between(self, user_a: UUID, user_b: UUID) -> List[Question]:
        pair = {user_a, user_b}
        rows = self._select(lambda q: {q.asker_id, q.answerer_id} == pair)
        return sorted(rows, key=lambda q: q.created_at)


def _optional_time(row: Mapping[str, Any], column: str):
    value = row.get(column)
    return parse_utc_datetime(value) if value else None


def _row_to_question(row: Mapping[str, Any]) -> Question:
    """Convert a Supabase row into a Question."""

    answer = None
    if row.get("answer_content"):
        answer = Answer(
            content=str(row["answer_content"]),
            answered_at=parse_utc_datetime(row["answered_at_utc"]),
        )

    dispute = None
    if row.get("dispute_reason"):
        resolution = row.get("dispute_resolution")
        refund_amount = row.get("dispute_refund_amount")
        resolved_by = row.get("dispute_resolved_by")
        dispute = Dispute(
            reason=str(row["dispute_reason"]),
            created_at=parse_utc_datetime(row["dispute_created_at_utc"]),
            resolved_at=_optional_time(row, "dispute_resolved_at_utc"),
            resolved_by=UUID(str(resolved_by)) if resolved_by else None,
            resolution=DisputeResolution(resolution) if resolution else None,
            refund_amount=Decimal(str(refund_amount)) if refund_amount is not None else None,
        )

    return Question(
        question_id=UUID(str(row["question_id"])),
        asker_id=UUID(str(row["asker_id"])),
        answerer_id=UUID(str(row["answerer_id"])),
        content=str(row["content"]),
        price=Decimal(str(row["price"])),
        conversation_id=str(row["conversation_id"]),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        status=QuestionStatus(str(row["status"])),
        accepted_at=_optional_time(row, "accepted_at_utc"),
        rejected_at=_optional_time(row, "rejected_at_utc"),
        paid_at=_optional_time(row, "paid_at_utc"),
        answer=answer,
        dispute=dispute,
    )


def _iso_or_none(value, name: str) -> Optional[str]:
    return to_iso_utc(value, name=name) if value is not None else None


def _question_to_row(question: Question) -> Dict[str, Any]:
    """Convert a Question into a Supabase row payload (flat columns)."""

    answer = question.answer
    dispute = question.dispute
    return {
        "question_id": str(question.question_id),
        "asker_id": str(question.asker_id),
        "answerer_id": str(question.answerer_id),
        "content": question.content,
        "price": str(question.price),
        "conversation_id": question.conversation_id,
        "status": question.status.value,
        "created_at_utc": to_iso_utc(question.created_at, name="created_at"),
        "accepted_at_utc": _iso_or_none(question.accepted_at, "accepted_at"),
        "rejected_at_utc": _iso_or_none(question.rejected_at, "rejected_at"),
        "paid_at_utc": _iso_or_none(question.paid_at, "paid_at"),
        "answer_content": answer.content if answer else None,
        "answered_at_utc": _iso_or_none(answer.answered_at, "answered_at") if answer else None,
        "dispute_reason": dispute.reason if dispute else None,
        "dispute_created_at_utc": _iso_or_none(dispute.created_at, "dispute.created_at") if dispute else None,
        "dispute_resolved_at_utc": _iso_or_none(dispute.resolved_at, "dispute.resolved_at") if dispute else None,
        "dispute_resolved_by": str(dispute.resolved_by) if dispute and dispute.resolved_by else None,
        "dispute_resolution": dispute.resolution.value if dispute and dispute.resolution else None,
        "dispute_refund_amount": (
            str(dispute.refund_amount) if dispute and dispute.refund_amount is not None else None
        ),
    }


class SupabaseQuestionStore:
    """Question store backed by the Supabase `questions` table."""

    def _execute(self, query, action: str):
        try:
            response = query.execute()
        except Exception as e:
            logger.error("Question store request failed", extra={"action": action, "error": str(e)})
            raise Internal(f"Failed to {action}: {e}") from e

        error = getattr(response, "error", None)
        if error:
            raise Internal(f"Failed to {action}: {error}")
        return getattr(response, "data", None) or []

    def create(self, question: Question) -> UUID:
        if question.status is not QuestionStatus.PENDING:
            raise ValueError("new questions must be pending")
        table = get_supabase().table(_QUESTIONS_TABLE)
        self._execute(table.insert(_question_to_row(question)), "create question")
        return question.question_id

    def _find(self, question_id: UUID) -> Optional[Question]:
        rows = self._execute(
            get_supabase()
            .table(_QUESTIONS_TABLE)
            .select("*")
            .eq("question_id", str(question_id))
            .limit(1),
            "get question",
        )
        return _row_to_question(rows[0]) if rows else None

    def get(self, question_id: UUID) -> Question:
        question = self._find(question_id)
        if question is None:
            raise NotFound(f"Question not found: {question_id}")
        return question

    def transition(
        self, question_id: UUID, expected_status: QuestionStatus, mutator: Mutator
    ) -> Question:
        current = self.get(question_id)
        updated = _apply(current, expected_status, mutator)

        payload = _question_to_row(updated)
        del payload["question_id"]

        query = (
            get_supabase()
            .table(_QUESTIONS_TABLE)
            .update(payload)
            .eq("question_id", str(question_id))
            .eq("status", expected_status.value)
        )
        # completed -> disputed -> completed revisits a status, so the dispute
        # we read must also be the one still stored
        if current.dispute is None:
            query = query.is_("dispute_created_at_utc", "null")
        else:
            query = query.eq(
                "dispute_created_at_utc",
                to_iso_utc(current.dispute.created_at, name="dispute.created_at"),
            )

        rows = self._execute(query, "transition question")

        if not rows:
            # Lost the race: someone else wrote the record after we read it
            latest = self.get(question_id)
            raise Conflict(
                f"Question {question_id} changed concurrently (now {latest.status.value}, "
                f"expected {expected_status.value})",
                current_status=latest.status.value,
            )

        return _row_to_question(rows[0])

    def _list(self, query, action: str) -> List[Question]:
        return [_row_to_question(row) for row in self._execute(query, action)]

    def list_by_asker(self, asker_id: UUID) -> List[Question]:
        return self._list(
            get_supabase()
            .table(_QUESTIONS_TABLE)
            .select("*")
            .eq("asker_id", str(asker_id))
            .order("created_at_utc", desc=True),
            "list questions by asker",
        )

    def list_by_answerer(self, answerer_id: UUID) -> List[Question]:
        return self._list(
            get_supabase()
            .table(_QUESTIONS_TABLE)
            .select("*")
            .eq("answerer_id", str(answerer_id))
            .order("created_at_utc", desc=True),
            "list questions by answerer",
        )

    def list_unsettled(self) -> List[Question]:
        return self._list(
            get_supabase()
            .table(_QUESTIONS_TABLE)
            .select("*")
            .in_("status", [s.value for s in SETTLEABLE_STATUSES])
            .is_("paid_at_utc", "null")
            .not_.is_("accepted_at_utc", "null")
            .order("accepted_at_utc"),
            "list unsettled questions",
        )

    def list_by_conversation(self, conversation_id: str) -> List[Question]:
        return self._list(
            get_supabase()
            .table(_QUESTIONS_TABLE)
            .select("*")
            .eq("conversation_id", conversation_id)
            .order("created_at_utc"),
            "list questions by conversation",
        )

    def list_between(self, user_a: UUID, user_b: UUID) -> List[Question]:
        a, b = str(user_a), str(user_b)
        return self._list(
            get_supabase()
            .table(_QUESTIONS_TABLE)
            .select("*")
            .or_(
                f"and(asker_id.eq.{a},answerer_id.eq.{b}),"
                f"and(asker_id.eq.{b},answerer_id.eq.{a})"
            )
            .order("created_at_utc"),
            "list questions between users",
        )


def revert_to(previous: Question) -> Mutator:
    """
    Build a mutator that restores `previous` (compensation after a failed
    ledger effect). Only the escrow service uses this.
    """

    def _mutate(current: Question) -> Question:
        if current.question_id != previous.question_id:
            raise ValueError("cannot revert a different question")
        return previous

    return _mutate


__all__ = [
    "QuestionStore",
    "InMemoryQuestionStore",
    "SupabaseQuestionStore",
    "revert_to",
]
