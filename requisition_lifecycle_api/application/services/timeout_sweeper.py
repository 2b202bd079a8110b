"""HR Approval Timeout Sweeper."""
import asyncio
from dataclasses import dataclass
from typing import Optional

from shared.config.settings import settings
from shared.models.requisition import HistoryEntry, RequisitionRecord, RequisitionStatus
from shared.utils.constants import (
    DEFAULT_HR_REJECTION_REASON,
    HR_AUTO_REJECTION_ACTOR,
    HR_AUTO_REJECTION_DETAILS,
    HR_REJECTED_BY,
)
from shared.utils.convert import now_ms, parse_timestamp_ms
from shared.utils.logging_config import get_logger
from requisition_lifecycle_api.infrastructure.repositories.requisition_repository import RequisitionRepository

logger = get_logger(__name__)


@dataclass
class SweepSummary:
    scanned: int
    rejected: int
    timeout_hours: float

    def to_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "rejected": self.rejected,
            "timeout_hours": self.timeout_hours,
        }


def is_expired(record: RequisitionRecord, cutoff_ms: float) -> bool:
    """True when an approved requisition has waited past the cutoff without HR authorization."""
    if record.is_authorized:
        return False
    approved_at_ms = parse_timestamp_ms(record.approved_at)
    if approved_at_ms is None:
        return False
    return approved_at_ms <= cutoff_ms


def awaits_hr_authorization(record: RequisitionRecord, cutoff_ms: float) -> bool:
    """True while a requisition is still approved and expired when re-read before the write."""
    return record.normalized_status == RequisitionStatus.APPROVED and is_expired(record, cutoff_ms)


class HrTimeoutSweeper:
    """
    Auto-rejects requisitions left in "approved" for longer than the HR timeout.

    Each rejection is a normal store write, so the requester rejection
    notification follows through the transition reactor.
    """

    def __init__(self, requisition_repository: RequisitionRepository, timeout_ms: Optional[int] = None):
        self.requisition_repository = requisition_repository
        self.timeout_ms = timeout_ms if timeout_ms is not None else settings.get_hr_timeout_ms()

    @property
    def timeout_hours(self) -> float:
        return self.timeout_ms / (60 * 60 * 1000)

    async def run(self, now: Optional[int] = None) -> SweepSummary:
        """
        Run one sweep.

        Args:
            now: Current time in epoch milliseconds, defaults to the wall clock

        Returns:
            Counters for the run
        """
        now = now if now is not None else now_ms()
        cutoff_ms = now - self.timeout_ms

        approved = await self.requisition_repository.list_by_status(RequisitionStatus.APPROVED)
        expired = [
            requisition_id
            for requisition_id, record in approved.items()
            if is_expired(record, cutoff_ms)
        ]

        outcomes = await asyncio.gather(
            *(self._reject(requisition_id, now, cutoff_ms) for requisition_id in expired),
            return_exceptions=True,
        )
        rejected = 0
        for requisition_id, outcome in zip(expired, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Failed to auto-reject requisition: {outcome}",
                             extra={"requisition_id": requisition_id})
            elif outcome:
                rejected += 1

        summary = SweepSummary(scanned=len(approved), rejected=rejected, timeout_hours=self.timeout_hours)
        logger.info("HR approval timeout check completed", extra=summary.to_dict())
        return summary

    async def _reject(self, requisition_id: str, now: int, cutoff_ms: float) -> bool:
        changes = {
            "status": RequisitionStatus.REJECTED,
            "rejectedBy": HR_REJECTED_BY,
            "rejectedAt": now,
            "rejectionReason": DEFAULT_HR_REJECTION_REASON,
            "hrAutoRejected": True,
            "hrAutoRejectedAt": now,
        }
        history_entry = HistoryEntry(
            action="Rejected",
            actor=HR_AUTO_REJECTION_ACTOR,
            timestamp=now,
            details=HR_AUTO_REJECTION_DETAILS,
        )
        after = await self.requisition_repository.update(
            requisition_id, changes, history_entry,
            precondition=lambda current: awaits_hr_authorization(current, cutoff_ms),
        )
        if after is None:
            return False
        logger.info("Requisition auto-rejected after HR approval timeout",
                    extra={"requisition_id": requisition_id})
        return True
