"""Transition Reactor Service."""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Set, Tuple

from pydantic import ValidationError

from shared.models.notification import DeliveryOutcome, NotificationKind, NotificationResult
from shared.models.requisition import RequisitionRecord, RequisitionStatus, normalize_value
from shared.models.roles import RoleTag
from shared.utils.exceptions import InvalidRequisitionEventException
from shared.utils.logging_config import get_logger
from requisition_lifecycle_api.application.services import message_composer
from requisition_lifecycle_api.application.services.notification_dispatcher import NotificationDispatcher
from requisition_lifecycle_api.application.services.recipient_resolver import ContactChannel, RecipientResolver

logger = get_logger(__name__)


class TransitionTrigger(str, Enum):
    """Changes detected between two versions of a requisition."""
    CREATED = "created"
    STATUS_APPROVED = "status_approved"
    STATUS_REJECTED = "status_rejected"
    STATUS_COMPLETE = "status_complete"
    AUTHORIZED = "authorized"


@dataclass(frozen=True)
class TransitionRule:
    trigger: TransitionTrigger
    notifications: Tuple[NotificationKind, ...]
    concurrent: bool = False
    stop_after: bool = False


@dataclass(frozen=True)
class LifecyclePolicy:
    """Ordered rules; evaluation stops at the first matching rule marked stop_after."""
    name: str
    rules: Tuple[TransitionRule, ...]


HR_GATED_LIFECYCLE = LifecyclePolicy(
    name="hr_gated",
    rules=(
        TransitionRule(TransitionTrigger.CREATED, (NotificationKind.NEW_REQUISITION_SMS,), stop_after=True),
        TransitionRule(TransitionTrigger.STATUS_APPROVED, (NotificationKind.HR_APPROVAL_EMAIL,)),
        TransitionRule(TransitionTrigger.STATUS_REJECTED, (NotificationKind.REQUESTER_REJECTED_SMS,)),
        TransitionRule(TransitionTrigger.STATUS_COMPLETE, (NotificationKind.REQUESTER_COMPLETED_SMS,), stop_after=True),
        TransitionRule(
            TransitionTrigger.AUTHORIZED,
            (NotificationKind.REQUESTER_AUTHORIZED_SMS, NotificationKind.FINANCE_AUTHORIZED_EMAIL),
            concurrent=True,
            stop_after=True,
        ),
    ),
)

APPROVE_REJECT_LIFECYCLE = LifecyclePolicy(
    name="approve_reject",
    rules=(
        TransitionRule(TransitionTrigger.CREATED, (NotificationKind.NEW_REQUISITION_SMS,), stop_after=True),
        TransitionRule(
            TransitionTrigger.STATUS_APPROVED,
            (NotificationKind.HR_APPROVAL_EMAIL, NotificationKind.REQUESTER_APPROVED_EMAIL),
        ),
        TransitionRule(TransitionTrigger.STATUS_REJECTED, (NotificationKind.REQUESTER_REJECTED_EMAIL,)),
    ),
)

LIFECYCLE_POLICIES = {policy.name: policy for policy in (HR_GATED_LIFECYCLE, APPROVE_REJECT_LIFECYCLE)}


def get_lifecycle_policy(name: Optional[str]) -> LifecyclePolicy:
    policy = LIFECYCLE_POLICIES.get(normalize_value(name))
    if policy is None:
        logger.warning(f"Unknown notification lifecycle '{name}', using {HR_GATED_LIFECYCLE.name}")
        return HR_GATED_LIFECYCLE
    return policy


def detect_transitions(before: Optional[RequisitionRecord],
                       after: Optional[RequisitionRecord]) -> Set[TransitionTrigger]:
    """
    Triggers satisfied by one write.

    Deletions satisfy nothing and creation satisfies only CREATED.
    """
    if after is None:
        return set()
    if before is None:
        return {TransitionTrigger.CREATED}

    triggers = set()
    previous_status = before.normalized_status
    next_status = after.normalized_status
    if next_status != previous_status:
        if next_status == RequisitionStatus.APPROVED:
            triggers.add(TransitionTrigger.STATUS_APPROVED)
        elif next_status == RequisitionStatus.REJECTED:
            triggers.add(TransitionTrigger.STATUS_REJECTED)
        elif next_status == RequisitionStatus.COMPLETE:
            triggers.add(TransitionTrigger.STATUS_COMPLETE)
    if not before.is_authorized and after.is_authorized:
        triggers.add(TransitionTrigger.AUTHORIZED)
    return triggers


def _parse_record(value: Any, label: str) -> Optional[RequisitionRecord]:
    if value is None:
        return None
    if isinstance(value, RequisitionRecord):
        return value
    if not isinstance(value, dict):
        raise InvalidRequisitionEventException(f"'{label}' must be an object or null")
    try:
        return RequisitionRecord.from_dict(value)
    except ValidationError as e:
        raise InvalidRequisitionEventException(f"'{label}' is not a valid requisition: {e}") from e


class TransitionReactor:
    """
    Reacts to one requisition write by firing the notifications its lifecycle
    policy attaches to the detected transitions.
    """

    def __init__(self,
                 recipient_resolver: RecipientResolver,
                 dispatcher: NotificationDispatcher,
                 policy: LifecyclePolicy = HR_GATED_LIFECYCLE,
                 fallback_hr_emails: Optional[List[str]] = None):
        self.recipient_resolver = recipient_resolver
        self.dispatcher = dispatcher
        self.policy = policy
        self.fallback_hr_emails = fallback_hr_emails or []
        self._senders = {
            NotificationKind.NEW_REQUISITION_SMS: self._send_new_requisition_sms,
            NotificationKind.HR_APPROVAL_EMAIL: self._send_hr_approval_email,
            NotificationKind.REQUESTER_APPROVED_EMAIL: self._send_requester_approved_email,
            NotificationKind.REQUESTER_REJECTED_SMS: self._send_requester_rejected_sms,
            NotificationKind.REQUESTER_REJECTED_EMAIL: self._send_requester_rejected_email,
            NotificationKind.REQUESTER_AUTHORIZED_SMS: self._send_requester_authorized_sms,
            NotificationKind.FINANCE_AUTHORIZED_EMAIL: self._send_finance_authorized_email,
            NotificationKind.REQUESTER_COMPLETED_SMS: self._send_requester_completed_sms,
        }

    async def handle_write(self, requisition_id: str, before: Any, after: Any) -> List[NotificationResult]:
        """
        Handle one write to requisitions/{requisition_id}.

        Args:
            requisition_id: Key of the written requisition
            before: Stored value before the write, None on creation
            after: Stored value after the write, None on deletion

        Returns:
            One result per notification kind that fired
        """
        before_record = _parse_record(before, "before")
        after_record = _parse_record(after, "after")
        if after_record is None:
            logger.debug("Requisition deleted, nothing to notify", extra={"requisition_id": requisition_id})
            return []

        triggers = detect_transitions(before_record, after_record)
        results: List[NotificationResult] = []
        for rule in self.policy.rules:
            if rule.trigger not in triggers:
                continue
            logger.info(
                f"Requisition transition detected: {rule.trigger.value}",
                extra={"requisition_id": requisition_id, "lifecycle": self.policy.name},
            )
            if rule.concurrent:
                results.extend(await self._fire_concurrently(rule.notifications, requisition_id, after_record))
            else:
                for kind in rule.notifications:
                    results.append(await self._fire(kind, requisition_id, after_record))
            if rule.stop_after:
                break
        return results

    async def handle_event(self, body: Any) -> List[NotificationResult]:
        """Handle a requisition.written event body {requisition_id, before, after}."""
        if not isinstance(body, dict):
            raise InvalidRequisitionEventException("Requisition event body must be an object")
        requisition_id = body.get("requisition_id")
        if not isinstance(requisition_id, str) or not requisition_id.strip():
            raise InvalidRequisitionEventException("Requisition event is missing requisition_id")
        return await self.handle_write(requisition_id.strip(), body.get("before"), body.get("after"))

    async def _fire_concurrently(self,
                                 kinds: Tuple[NotificationKind, ...],
                                 requisition_id: str,
                                 record: RequisitionRecord) -> List[NotificationResult]:
        outcomes = await asyncio.gather(
            *(self._fire(kind, requisition_id, record) for kind in kinds),
            return_exceptions=True,
        )
        results = []
        for kind, outcome in zip(kinds, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Notification {kind.value} failed: {outcome}",
                             extra={"requisition_id": requisition_id})
                results.append(NotificationResult(kind=kind, outcome=DeliveryOutcome.FAILED))
            else:
                results.append(outcome)
        return results

    async def _fire(self, kind: NotificationKind, requisition_id: str, record: RequisitionRecord) -> NotificationResult:
        return await self._senders[kind](kind, requisition_id, record)

    def _skipped(self, kind: NotificationKind, reason: str, requisition_id: str, record: RequisitionRecord) -> NotificationResult:
        logger.warning(reason, extra={"requisition_id": requisition_id, "programme": record.programme or "N/A"})
        return NotificationResult(kind=kind, outcome=DeliveryOutcome.SKIPPED)

    async def _requester_contact(self, record: RequisitionRecord, channel: ContactChannel) -> Optional[str]:
        return await self.recipient_resolver.resolve_requester_contact(record, channel)

    async def _send_new_requisition_sms(self, kind, requisition_id, record):
        recipients = await self.recipient_resolver.get_recipients_by_role({RoleTag.PROJECT_MANAGER}, record.programme)
        if not recipients.phones:
            return self._skipped(kind, "Project Manager phone recipients missing for new requisition", requisition_id, record)
        content = message_composer.compose_new_requisition_sms(requisition_id, record)
        return await self.dispatcher.deliver_sms(kind, recipients.phones, content)

    async def _send_hr_approval_email(self, kind, requisition_id, record):
        recipients = await self.recipient_resolver.get_recipients_by_role({RoleTag.HR}, record.programme)
        emails = recipients.emails or self.fallback_hr_emails
        if not emails:
            return self._skipped(kind, "No HR recipients found for approved requisition", requisition_id, record)
        content = message_composer.compose_hr_approval_email(requisition_id, record)
        return await self.dispatcher.deliver_email(kind, emails, content)

    async def _send_requester_approved_email(self, kind, requisition_id, record):
        email = await self._requester_contact(record, ContactChannel.EMAIL)
        if not email:
            return self._skipped(kind, "Requester email missing for approved requisition email", requisition_id, record)
        content = message_composer.compose_requester_approved_email(requisition_id, record)
        return await self.dispatcher.deliver_email(kind, [email], content)

    async def _send_requester_rejected_sms(self, kind, requisition_id, record):
        phone = await self._requester_contact(record, ContactChannel.PHONE)
        if not phone:
            return self._skipped(kind, "Requester phone missing for rejected requisition SMS", requisition_id, record)
        content = message_composer.compose_requester_rejected_sms(requisition_id, record)
        return await self.dispatcher.deliver_sms(kind, [phone], content)

    async def _send_requester_rejected_email(self, kind, requisition_id, record):
        email = await self._requester_contact(record, ContactChannel.EMAIL)
        if not email:
            return self._skipped(kind, "Requester email missing for rejected requisition email", requisition_id, record)
        content = message_composer.compose_requester_rejected_email(requisition_id, record)
        return await self.dispatcher.deliver_email(kind, [email], content)

    async def _send_requester_authorized_sms(self, kind, requisition_id, record):
        phone = await self._requester_contact(record, ContactChannel.PHONE)
        if not phone:
            return self._skipped(kind, "Requester phone missing for authorized requisition SMS", requisition_id, record)
        content = message_composer.compose_requester_authorized_sms(requisition_id, record)
        return await self.dispatcher.deliver_sms(kind, [phone], content)

    async def _send_finance_authorized_email(self, kind, requisition_id, record):
        recipients = await self.recipient_resolver.get_recipients_by_role({RoleTag.FINANCE}, record.programme)
        if not recipients.emails:
            return self._skipped(kind, "No Finance recipients found for authorized requisition", requisition_id, record)
        content = message_composer.compose_finance_authorized_email(requisition_id, record)
        return await self.dispatcher.deliver_email(kind, recipients.emails, content)

    async def _send_requester_completed_sms(self, kind, requisition_id, record):
        phone = await self._requester_contact(record, ContactChannel.PHONE)
        if not phone:
            return self._skipped(kind, "Requester phone missing for completed requisition SMS", requisition_id, record)
        content = message_composer.compose_requester_completed_sms(requisition_id, record)
        return await self.dispatcher.deliver_sms(kind, [phone], content)
