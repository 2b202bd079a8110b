import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from requisition_lifecycle_api.infrastructure.notifications.sms_gateway_channel import SmsGatewayChannel
from requisition_lifecycle_api.infrastructure.notifications.smtp_email_channel import SmtpEmailChannel, SmtpMailer
from shared.config.settings import DEFAULT_SMS_URL, Settings, settings
from shared.models.notification import DeliveryOutcome
from shared.utils.logging_config import get_logger, setup_logging

setup_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        log_to_console=settings.log_to_console
    )
logger = get_logger(__name__)

SMTP_CONFIG = dict(smtp_host="smtp.example.com", smtp_user="mailer@example.com", smtp_pass="secret", smtp_port="587")
SMS_CONFIG = dict(roamtech_api_key="key", roamtech_partner_id="partner", shortcode="ACME", roamtech_sms_url="")


def async_context(value) -> MagicMock:
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=value)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


class TestSmtpEmailChannel:

    @pytest.mark.asyncio
    async def test_missing_config_skips(self):
        channel = SmtpEmailChannel(Settings(**{**SMTP_CONFIG, "smtp_pass": ""}))

        with patch.object(SmtpMailer, "send") as send:
            outcome = await channel.send_email(["hr@example.com"], "Subject", "text", "<p>html</p>")

        assert outcome == DeliveryOutcome.SKIPPED
        send.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_valid_recipients_skips(self):
        channel = SmtpEmailChannel(Settings(**SMTP_CONFIG))

        with patch.object(SmtpMailer, "send") as send:
            outcome = await channel.send_email(["not-an-email", ""], "Subject", "text", "<p>html</p>")

        assert outcome == DeliveryOutcome.SKIPPED
        send.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_uses_from_address_and_deduplicates(self):
        channel = SmtpEmailChannel(Settings(**SMTP_CONFIG, smtp_from="noreply@example.com"))

        with patch.object(SmtpMailer, "send") as send:
            outcome = await channel.send_email(
                ["hr@example.com", " hr@example.com", "bad"], "Subject", "text", "<p>html</p>",
            )

        assert outcome == DeliveryOutcome.SENT
        send.assert_called_once_with("noreply@example.com", ["hr@example.com"], "Subject", "text", "<p>html</p>")

    @pytest.mark.asyncio
    async def test_invalid_from_falls_back_to_user(self):
        channel = SmtpEmailChannel(Settings(**SMTP_CONFIG, smtp_from="Requisitions Desk"))

        with patch.object(SmtpMailer, "send") as send:
            await channel.send_email(["hr@example.com"], "Subject", "text", "<p>html</p>")

        assert send.call_args.args[0] == "mailer@example.com"

    @pytest.mark.asyncio
    async def test_relay_error_is_reported_not_raised(self):
        channel = SmtpEmailChannel(Settings(**SMTP_CONFIG))

        with patch.object(SmtpMailer, "send", side_effect=OSError("connection refused")):
            outcome = await channel.send_email(["hr@example.com"], "Subject", "text", "<p>html</p>")

        assert outcome == DeliveryOutcome.FAILED

    def test_mailer_is_built_once(self):
        channel = SmtpEmailChannel(Settings(**{**SMTP_CONFIG, "smtp_port": "465"}))

        mailer = channel._get_mailer()

        assert mailer is channel._get_mailer()
        assert mailer.port == 465
        assert mailer.secure is True


class TestSmsGatewayChannel:

    @pytest.mark.asyncio
    async def test_missing_credentials_skip(self):
        channel = SmsGatewayChannel(Settings(**{**SMS_CONFIG, "shortcode": ""}))

        with patch("requisition_lifecycle_api.infrastructure.notifications.sms_gateway_channel.aiohttp.ClientSession") as client:
            outcome = await channel.send_sms(["0712345678"], "Hello")

        assert outcome == DeliveryOutcome.SKIPPED
        client.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("phone_numbers, message", [([], "Hello"), (["123"], "Hello"), (["0712345678"], "   ")])
    async def test_nothing_to_send_skips(self, phone_numbers, message):
        channel = SmsGatewayChannel(Settings(**SMS_CONFIG))

        with patch("requisition_lifecycle_api.infrastructure.notifications.sms_gateway_channel.aiohttp.ClientSession") as client:
            outcome = await channel.send_sms(phone_numbers, message)

        assert outcome == DeliveryOutcome.SKIPPED
        client.assert_not_called()

    @pytest.mark.asyncio
    async def test_posts_gateway_payload(self):
        response = MagicMock(status=200)
        response.text = AsyncMock(return_value="ok")
        session = MagicMock()
        session.post = MagicMock(return_value=async_context(response))
        channel = SmsGatewayChannel(Settings(**SMS_CONFIG))

        with patch("requisition_lifecycle_api.infrastructure.notifications.sms_gateway_channel.aiohttp.ClientSession",
                   return_value=async_context(session)):
            outcome = await channel.send_sms(["0712345678", "712345678", "+254722000000"], "Hello")

        assert outcome == DeliveryOutcome.SENT
        url = session.post.call_args.args[0]
        assert url == DEFAULT_SMS_URL
        assert session.post.call_args.kwargs["json"] == {
            "apikey": "key",
            "partnerID": "partner",
            "mobile": "254712345678,+254722000000",
            "message": "Hello",
            "shortcode": "ACME",
        }

    @pytest.mark.asyncio
    async def test_non_success_status_fails(self):
        response = MagicMock(status=401)
        response.text = AsyncMock(return_value="invalid api key")
        session = MagicMock()
        session.post = MagicMock(return_value=async_context(response))
        channel = SmsGatewayChannel(Settings(**SMS_CONFIG))

        with patch("requisition_lifecycle_api.infrastructure.notifications.sms_gateway_channel.aiohttp.ClientSession",
                   return_value=async_context(session)):
            outcome = await channel.send_sms(["0712345678"], "Hello")

        assert outcome == DeliveryOutcome.FAILED
        response.text.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connection_error_fails(self):
        channel = SmsGatewayChannel(Settings(**SMS_CONFIG))

        with patch("requisition_lifecycle_api.infrastructure.notifications.sms_gateway_channel.aiohttp.ClientSession",
                   side_effect=OSError("dns failure")):
            outcome = await channel.send_sms(["0712345678"], "Hello")

        assert outcome == DeliveryOutcome.FAILED
