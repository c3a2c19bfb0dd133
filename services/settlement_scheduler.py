"""
Settlement scheduler: periodic sweep that releases escrowed funds.

Each tick:
1. Lists accepted/answered questions that have not been paid.
2. Settles every question whose settlement window (measured from acceptance)
   has elapsed, through `EscrowService.auto_settle`, the same transition the
   rest of the workflow uses.
3. Logs and skips per-question failures; they are retried on the next tick.

A failure to list candidates (store unavailable) aborts the tick only. The
loop itself never dies from a tick error.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from domain.time import require_utc_timestamp
from services.escrow_service import EscrowService

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 600.0


@dataclass(frozen=True, slots=True)
class SweepResult:
    """Outcome of one settlement tick."""

    scanned: int = 0
    settled: List[UUID] = field(default_factory=list)
    not_due: int = 0
    failed: List[UUID] = field(default_factory=list)
    aborted: bool = False


class SettlementScheduler:
    def __init__(
        self,
        service: EscrowService,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than 0")
        self.service = service
        self.interval_seconds = interval_seconds

    def run_once(self, now: Optional[datetime] = None) -> SweepResult:
        now = now or self.service.now()
        require_utc_timestamp("now", now)

        try:
            candidates = self.service.store.list_unsettled()
        except Exception:
            logger.exception("Settlement sweep aborted: could not list unsettled questions")
            return SweepResult(aborted=True)

        settled: List[UUID] = []
        failed: List[UUID] = []
        not_due = 0

        for question in candidates:
            if not question.settlement_due(now, self.service.settlement_window):
                not_due += 1
                continue

            try:
                result = self.service.auto_settle(question.question_id, now)
            except Exception as e:
                logger.warning(
                    "Auto-settle failed; will retry next tick",
                    extra={"question_id": str(question.question_id), "error": str(e)},
                )
                failed.append(question.question_id)
                continue

            if result is None:
                not_due += 1
            else:
                settled.append(question.question_id)

        result = SweepResult(
            scanned=len(candidates),
            settled=settled,
            not_due=not_due,
            failed=failed,
        )
        logger.info(
            "Settlement sweep finished",
            extra={
                "scanned": result.scanned,
                "settled": len(result.settled),
                "not_due": result.not_due,
                "failed": len(result.failed),
            },
        )
        return result

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        """Tick every interval until stop_event is set."""

        logger.info("Settlement scheduler started", extra={"interval_seconds": self.interval_seconds})
        while not stop_event.is_set():
            try:
                await asyncio.to_thread(self.run_once)
            except Exception:
                logger.exception("Settlement tick crashed; continuing")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Settlement scheduler stopped")


__all__ = ["SettlementScheduler", "SweepResult", "DEFAULT_INTERVAL_SECONDS"]
