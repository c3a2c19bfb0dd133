"""
Escrow service: the paid-question state machine.

Handles:
- Creating a question by debiting the asker (the price is then held)
- Answerer accept / reject / answer
- Automatic payout once the settlement window has elapsed (used by the
  settlement scheduler; the same code path for every trigger)
- Asker disputes and operator resolutions

Every status change goes through `QuestionStore.transition` with the status the
caller observed, so concurrent or repeated actions on one question resolve to
exactly one winner; the others get `Conflict`. Ledger effects that follow a
committed transition are compensated (the transition is reverted) if they fail,
so the store and the ledger never disagree about where the money is.

Money movement per transition:
- create:            asker  -> escrow   (debit asker)
- reject:            escrow -> asker    (credit asker)
- auto-settle:       escrow -> answerer (credit answerer)
- resolve(refund):   answerer -> asker  (full price)
- resolve(partial):  answerer -> asker  (refund_amount)
- resolve(pay):      no movement
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, FrozenSet, List, Optional, Tuple, Union
from uuid import UUID

from domain.errors import Conflict, EscrowError, Forbidden, Internal, NotFound, ValidationError
from domain.events import EventType
from domain.money import ZERO, AmountLike, half_of, parse_amount
from domain.question import (
    SETTLEABLE_STATUSES,
    DisputeResolution,
    Question,
    QuestionStatus,
)
from domain.time import require_utc_timestamp, utc_now
from repositories.ledger_repository import Ledger
from repositories.question_repository import QuestionStore, revert_to
from services.notification_service import NotificationEmitter

logger = logging.getLogger(__name__)

DEFAULT_SETTLEMENT_WINDOW = timedelta(hours=24)


@dataclass(frozen=True, slots=True)
class EscrowSummary:
    """
    Per-user view of money flowing through paid questions.

    As asker: held + paid_out + refunded equals everything the user has spent
    on questions. As answerer: earned is net of dispute clawbacks.
    """

    user_id: UUID
    held: Decimal
    paid_out: Decimal
    refunded: Decimal
    earned: Decimal
    pending_payout: Decimal
    question_count: int


class EscrowService:
    def __init__(
        self,
        *,
        ledger: Ledger,
        store: QuestionStore,
        notifier: NotificationEmitter,
        operator_ids: FrozenSet[UUID] = frozenset(),
        settlement_window: timedelta = DEFAULT_SETTLEMENT_WINDOW,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ledger = ledger
        self.store = store
        self.notifier = notifier
        self.operator_ids = frozenset(operator_ids)
        self.settlement_window = settlement_window
        self._clock = clock

    def now(self) -> datetime:
        now = self._clock()
        require_utc_timestamp("now", now)
        return now

    def _transition(
        self,
        question_id: UUID,
        expected_status: QuestionStatus,
        step: Callable[[Question], Question],
    ) -> Tuple[Question, Question]:
        """Run a guarded transition; return (record it replaced, new record)."""

        replaced: List[Question] = []

        def mutator(current: Question) -> Question:
            replaced.append(current)
            return step(current)

        updated = self.store.transition(question_id, expected_status, mutator)
        return replaced[-1], updated

    def _revert(self, current: Question, previous: Question, reason: Exception) -> None:
        """Undo a committed transition whose ledger effect failed."""

        logger.warning(
            "Reverting transition after ledger failure",
            extra={
                "question_id": str(current.question_id),
                "from_status": previous.status.value,
                "to_status": current.status.value,
                "error": str(reason),
            },
        )
        try:
            self.store.transition(current.question_id, current.status, revert_to(previous))
        except EscrowError as e:
            # The ledger and the question record now disagree; log enough to
            # reconcile by hand
            logger.error(
                "Failed to revert transition; manual reconciliation required",
                extra={
                    "question_id": str(current.question_id),
                    "asker_id": str(current.asker_id),
                    "answerer_id": str(current.answerer_id),
                    "price": str(current.price),
                    "from_status": previous.status.value,
                    "to_status": current.status.value,
                    "stored_status": getattr(e, "current_status", None),
                    "ledger_error": str(reason),
                    "error": str(e),
                },
            )
            raise Internal(
                f"Question {current.question_id} left in {current.status.value} "
                f"after ledger failure: {reason}"
            ) from e

    # ------------------------------------------------------------------
    # Asker actions
    # ------------------------------------------------------------------

    def create_question(
        self,
        caller: UUID,
        answerer_id: UUID,
        content: str,
        price: AmountLike,
    ) -> Question:
        """
        Create a paid question and hold its price in escrow.

        Validation (price, content, distinct parties, answerer exists) happens
        before the debit. If the debit fails nothing is created; if the insert
        fails after the debit, the asker is credited back.
        """

        amount = parse_amount(price, name="price")
        if caller == answerer_id:
            raise ValidationError("You cannot ask yourself a paid question")

        now = self.now()
        question = Question.open(
            asker_id=caller,
            answerer_id=answerer_id,
            content=content,
            price=amount,
            created_at=now,
        )

        if not self.ledger.has_account(answerer_id):
            raise NotFound(f"Answerer not found: {answerer_id}")

        self.ledger.debit(caller, amount)

        try:
            self.store.create(question)
        except Exception as e:
            logger.error(
                "Question insert failed after debit; refunding asker",
                extra={"asker_id": str(caller), "price": str(amount), "error": str(e)},
            )
            self.ledger.credit(caller, amount)
            if isinstance(e, EscrowError):
                raise
            raise Internal(f"Failed to create question: {e}") from e

        logger.info(
            "Question created",
            extra={
                "question_id": str(question.question_id),
                "asker_id": str(caller),
                "answerer_id": str(answerer_id),
                "price": str(amount),
            },
        )
        self.notifier.question_created(question, now)
        return question

    def dispute_question(self, caller: UUID, question_id: UUID, reason: str) -> Question:
        question = self.store.get(question_id)
        if caller != question.asker_id:
            raise Forbidden("Only the asker can dispute a question")

        now = self.now()
        updated = self.store.transition(
            question_id,
            QuestionStatus.COMPLETED,
            lambda q: q.disputed(reason, now),
        )

        logger.info("Question disputed", extra={"question_id": str(question_id)})
        self.notifier.announce(updated, EventType.QUESTION_DISPUTED, now)
        return updated

    # ------------------------------------------------------------------
    # Answerer actions
    # ------------------------------------------------------------------

    def _answerer_question(self, caller: UUID, question_id: UUID) -> Question:
        question = self.store.get(question_id)
        if caller != question.answerer_id:
            raise Forbidden("Only the answerer can act on this question")
        return question

    def accept_question(self, caller: UUID, question_id: UUID) -> Question:
        self._answerer_question(caller, question_id)

        now = self.now()
        updated = self.store.transition(
            question_id,
            QuestionStatus.PENDING,
            lambda q: q.accepted(now),
        )

        logger.info("Question accepted", extra={"question_id": str(question_id)})
        self.notifier.question_accepted(updated, now)
        return updated

    def reject_question(self, caller: UUID, question_id: UUID) -> Question:
        """Reject a pending question and refund the asker in full."""

        self._answerer_question(caller, question_id)

        now = self.now()
        previous, updated = self._transition(
            question_id,
            QuestionStatus.PENDING,
            lambda q: q.rejected(now),
        )

        try:
            self.ledger.credit(updated.asker_id, updated.price)
        except Exception as e:
            self._revert(updated, previous, e)
            raise

        logger.info(
            "Question rejected; asker refunded",
            extra={"question_id": str(question_id), "amount": str(updated.price)},
        )
        self.notifier.question_rejected(updated, now)
        return updated

    def answer_question(self, caller: UUID, question_id: UUID, text: str) -> Question:
        self._answerer_question(caller, question_id)
        if not (text or "").strip():
            raise ValidationError("answer must not be empty")

        now = self.now()
        updated = self.store.transition(
            question_id,
            QuestionStatus.ACCEPTED,
            lambda q: q.answered(text, now),
        )

        logger.info("Question answered", extra={"question_id": str(question_id)})
        self.notifier.question_answered(updated, now)
        return updated

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def auto_settle(self, question_id: UUID, now: Optional[datetime] = None) -> Optional[Question]:
        """
        Pay the answerer once the settlement window has elapsed.

        Returns the settled question, or None when nothing is due (not yet
        accepted, window still open, or already paid). Calling it again after
        a successful settlement is a no-op. A concurrent settlement of the same
        question surfaces as Conflict.

        The record is committed before the answerer is credited. If the credit
        fails after the asker has already disputed the completed question, the
        revert is refused; the question stays disputed with no payout and an
        error is logged for manual reconciliation.
        """

        now = now or self.now()
        require_utc_timestamp("now", now)

        question = self.store.get(question_id)
        if not question.settlement_due(now, self.settlement_window):
            return None

        previous, updated = self._transition(
            question_id,
            question.status,
            lambda q: q.settled(now),
        )

        try:
            self.ledger.credit(updated.answerer_id, updated.price)
        except Exception as e:
            self._revert(updated, previous, e)
            raise

        logger.info(
            "Question settled; answerer paid",
            extra={
                "question_id": str(question_id),
                "answerer_id": str(updated.answerer_id),
                "amount": str(updated.price),
            },
        )
        self.notifier.announce(updated, EventType.QUESTION_PAID, now, updated.price)
        return updated

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    def _refund_amount(
        self,
        question: Question,
        resolution: DisputeResolution,
        refund_amount: Optional[AmountLike],
    ) -> Decimal:
        if resolution is not DisputeResolution.PARTIAL:
            if refund_amount is not None:
                raise ValidationError("refund_amount is only accepted for partial resolutions")
            return question.price if resolution is DisputeResolution.REFUND else ZERO

        amount = (
            half_of(question.price)
            if refund_amount is None
            else parse_amount(refund_amount, name="refund_amount")
        )
        if not ZERO < amount < question.price:
            raise ValidationError(
                f"partial refund must be greater than 0 and less than the price ({question.price})"
            )
        return amount

    def resolve_dispute(
        self,
        operator: UUID,
        question_id: UUID,
        resolution: Union[str, DisputeResolution],
        refund_amount: Optional[AmountLike] = None,
    ) -> Question:
        """
        Close a dispute.

        - refund:  the answerer's payout is reversed to the asker; status refunded
        - pay:     the payout stands; status completed
        - partial: refund_amount (default half the price) goes back to the
                   asker; status completed

        If the answerer cannot cover a clawback, InsufficientFunds is raised
        and the dispute stays open.
        """

        if operator not in self.operator_ids:
            raise Forbidden("Only operators can resolve disputes")

        try:
            kind = DisputeResolution(resolution)
        except ValueError:
            raise ValidationError(
                f"Invalid resolution {resolution!r}; expected one of "
                f"{', '.join(r.value for r in DisputeResolution)}"
            )

        question = self.store.get(question_id)
        if question.is_party(operator):
            raise Forbidden("Operators cannot resolve disputes they are party to")
        if question.status is not QuestionStatus.DISPUTED:
            raise Conflict(
                f"Question {question_id} is {question.status.value}, expected disputed",
                current_status=question.status.value,
            )

        amount = self._refund_amount(question, kind, refund_amount)

        now = self.now()
        previous, updated = self._transition(
            question_id,
            QuestionStatus.DISPUTED,
            lambda q: q.resolved(resolution=kind, resolved_by=operator, at=now, refund_amount=amount),
        )

        if amount > ZERO:
            try:
                self.ledger.debit(updated.answerer_id, amount)
            except Exception as e:
                self._revert(updated, previous, e)
                raise
            try:
                self.ledger.credit(updated.asker_id, amount)
            except Exception as e:
                self.ledger.credit(updated.answerer_id, amount)
                self._revert(updated, previous, e)
                raise

        logger.info(
            "Dispute resolved",
            extra={
                "question_id": str(question_id),
                "resolution": kind.value,
                "refund_amount": str(amount),
                "operator_id": str(operator),
            },
        )
        self.notifier.announce(updated, EventType.DISPUTE_RESOLVED, now, amount)
        return updated

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_question(self, caller: UUID, question_id: UUID) -> Question:
        question = self.store.get(question_id)
        if not question.is_party(caller) and caller not in self.operator_ids:
            raise Forbidden("Only the asker and answerer can view this question")
        return question

    def list_by_asker(self, user_id: UUID) -> List[Question]:
        return self.store.list_by_asker(user_id)

    def list_by_answerer(self, user_id: UUID) -> List[Question]:
        return self.store.list_by_answerer(user_id)

    def list_conversation(self, caller: UUID, other_user_id: UUID) -> List[Question]:
        """All paid questions between the caller and another user, oldest first."""

        return self.store.list_between(caller, other_user_id)

    def escrow_summary(self, user_id: UUID) -> EscrowSummary:
        held = paid_out = refunded = earned = pending_payout = ZERO
        asked = self.store.list_by_asker(user_id)
        received = self.store.list_by_answerer(user_id)

        for q in asked:
            refund = q.dispute.refund_amount if q.dispute and q.dispute.refund_amount else ZERO
            if q.status in (QuestionStatus.PENDING, *SETTLEABLE_STATUSES):
                held += q.price
            elif q.status is QuestionStatus.REJECTED:
                refunded += q.price
            else:
                paid_out += q.price - refund
                refunded += refund

        for q in received:
            refund = q.dispute.refund_amount if q.dispute and q.dispute.refund_amount else ZERO
            if q.status in SETTLEABLE_STATUSES:
                pending_payout += q.price
            elif q.is_paid:
                earned += q.price - refund

        return EscrowSummary(
            user_id=user_id,
            held=held,
            paid_out=paid_out,
            refunded=refunded,
            earned=earned,
            pending_payout=pending_payout,
            question_count=len(asked) + len(received),
        )


__all__ = ["EscrowService", "EscrowSummary", "DEFAULT_SETTLEMENT_WINDOW"]
