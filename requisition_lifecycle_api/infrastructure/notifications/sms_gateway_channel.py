"""
SMS delivery through the Roamtech HTTP gateway.
"""
from typing import List

import aiohttp

from shared.config.settings import Settings, settings
from shared.models.notification import DeliveryOutcome
from shared.utils.contacts import unique_phones
from shared.utils.logging_config import get_logger
from requisition_lifecycle_api.application.interfaces.service_interfaces import SmsSenderInterface

logger = get_logger(__name__)


class SmsGatewayChannel(SmsSenderInterface):
    """Best-effort SMS channel; a missing API key, partner ID or shortcode skips the send."""

    def __init__(self, config: Settings = None):
        self.config = config or settings

    async def send_sms(self, phone_numbers: List[str], message: str) -> DeliveryOutcome:
        recipients = unique_phones(phone_numbers)
        if not message.strip() or not recipients:
            return DeliveryOutcome.SKIPPED

        api_key = self.config.roamtech_api_key.strip()
        partner_id = self.config.roamtech_partner_id.strip()
        shortcode = self.config.shortcode.strip()
        if not api_key or not partner_id or not shortcode:
            logger.warning("SMS skipped. Missing ROAMTECH_API_KEY, ROAMTECH_PARTNER_ID or SHORTCODE env vars.")
            return DeliveryOutcome.SKIPPED

        payload = {
            "apikey": api_key,
            "partnerID": partner_id,
            "mobile": ",".join(recipients),
            "message": message,
            "shortcode": shortcode,
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(self.config.get_sms_url(), json=payload) as response:
                    if not 200 <= response.status < 300:
                        body = await response.text()
                        logger.error(
                            "Failed to send SMS",
                            extra={"status": response.status, "body": body, "recipients": len(recipients)},
                        )
                        return DeliveryOutcome.FAILED
        except Exception as e:
            logger.error(f"Failed to send SMS: {e}", extra={"recipients": len(recipients)}, exc_info=True)
            return DeliveryOutcome.FAILED

        logger.info("SMS sent", extra={"recipients": len(recipients)})
        return DeliveryOutcome.SENT
