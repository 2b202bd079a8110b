"""Notification Dispatcher Service."""
from typing import List

from shared.models.notification import DeliveryOutcome, EmailContent, NotificationKind, NotificationResult, SmsContent
from shared.utils.logging_config import get_logger
from requisition_lifecycle_api.application.interfaces.service_interfaces import EmailSenderInterface, SmsSenderInterface

logger = get_logger(__name__)


class NotificationDispatcher:
    """
    Holds the two delivery channels for the lifetime of the process.

    Channels already swallow their own failures; the dispatcher still guards
    each call so a misbehaving channel can never abort a transition or a sweep.
    """

    def __init__(self, email_sender: EmailSenderInterface, sms_sender: SmsSenderInterface):
        self.email_sender = email_sender
        self.sms_sender = sms_sender

    async def deliver_email(self,
                            kind: NotificationKind,
                            recipients: List[str],
                            content: EmailContent) -> NotificationResult:
        try:
            outcome = await self.email_sender.send_email(recipients, content.subject, content.text, content.html)
        except Exception as e:
            logger.error(f"Email channel raised for {kind.value}: {e}", exc_info=True)
            outcome = DeliveryOutcome.FAILED
        return NotificationResult(kind=kind, outcome=outcome, recipients=list(recipients))

    async def deliver_sms(self,
                          kind: NotificationKind,
                          phone_numbers: List[str],
                          content: SmsContent) -> NotificationResult:
        try:
            outcome = await self.sms_sender.send_sms(phone_numbers, content.message)
        except Exception as e:
            logger.error(f"SMS channel raised for {kind.value}: {e}", exc_info=True)
            outcome = DeliveryOutcome.FAILED
        return NotificationResult(kind=kind, outcome=outcome, recipients=list(phone_numbers))
