"""
Notification kinds and delivery outcomes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class NotificationKind(str, Enum):
    """Every notification the engine can emit for a requisition."""
    NEW_REQUISITION_SMS = "new_requisition_sms"
    HR_APPROVAL_EMAIL = "hr_approval_email"
    REQUESTER_APPROVED_EMAIL = "requester_approved_email"
    REQUESTER_REJECTED_SMS = "requester_rejected_sms"
    REQUESTER_REJECTED_EMAIL = "requester_rejected_email"
    REQUESTER_AUTHORIZED_SMS = "requester_authorized_sms"
    FINANCE_AUTHORIZED_EMAIL = "finance_authorized_email"
    REQUESTER_COMPLETED_SMS = "requester_completed_sms"


class DeliveryOutcome(str, Enum):
    """Result of one delivery attempt on a channel."""
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class EmailContent:
    subject: str
    text: str
    html: str


@dataclass
class SmsContent:
    message: str


@dataclass
class NotificationResult:
    """Outcome of one notification kind fired by the transition reactor."""
    kind: NotificationKind
    outcome: DeliveryOutcome
    recipients: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "outcome": self.outcome.value,
            "recipients": len(self.recipients),
        }
