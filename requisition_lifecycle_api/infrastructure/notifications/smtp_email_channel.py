"""
Email delivery through an SMTP relay.
"""
import asyncio
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional

from shared.config.settings import Settings, settings
from shared.models.notification import DeliveryOutcome
from shared.utils.contacts import is_valid_email, unique_emails
from shared.utils.logging_config import get_logger
from requisition_lifecycle_api.application.interfaces.service_interfaces import EmailSenderInterface

logger = get_logger(__name__)


class SmtpMailer:
    """Connection details for one SMTP relay; sends one message per call."""

    def __init__(self, host: str, port: int, secure: bool, user: str, password: str):
        self.host = host
        self.port = port
        self.secure = secure
        self.user = user
        self.password = password

    def send(self, sender: str, recipients: List[str], subject: str, text: str, html: str) -> None:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = sender
        message["To"] = ", ".join(recipients)
        message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))

        context = ssl.create_default_context()
        if self.secure:
            with smtplib.SMTP_SSL(self.host, self.port, context=context) as server:
                server.login(self.user, self.password)
                server.sendmail(sender, recipients, message.as_string())
            return

        with smtplib.SMTP(self.host, self.port) as server:
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls(context=context)
                server.ehlo()
            server.login(self.user, self.password)
            server.sendmail(sender, recipients, message.as_string())


class SmtpEmailChannel(EmailSenderInterface):
    """
    Best-effort email channel.

    The mailer is built on first use from the SMTP settings and reused for the
    lifetime of the channel. Missing host, user or password turns every send
    into a logged no-op.
    """

    def __init__(self, config: Settings = None):
        self.config = config or settings
        self._mailer: Optional[SmtpMailer] = None

    def _get_mailer(self) -> Optional[SmtpMailer]:
        if self._mailer is not None:
            return self._mailer

        host = self.config.smtp_host.strip()
        user = self.config.smtp_user.strip()
        password = self.config.smtp_pass.strip()
        if not host or not user or not password:
            logger.warning("Email skipped. Missing SMTP config. Set SMTP_HOST, SMTP_USER, SMTP_PASS.")
            return None

        self._mailer = SmtpMailer(
            host=host,
            port=self.config.get_smtp_port(),
            secure=self.config.is_smtp_secure(),
            user=user,
            password=password,
        )
        return self._mailer

    def _sender_address(self) -> str:
        sender = self.config.smtp_from.strip()
        if sender and is_valid_email(sender):
            return sender
        return self.config.smtp_user.strip()

    async def send_email(self, recipients: List[str], subject: str, text: str, html: str) -> DeliveryOutcome:
        valid_recipients = unique_emails(recipients)
        if not valid_recipients:
            return DeliveryOutcome.SKIPPED

        sender = self._sender_address()
        if not is_valid_email(sender):
            logger.warning("Email skipped. SMTP_FROM/SMTP_USER is missing or invalid.")
            return DeliveryOutcome.SKIPPED

        mailer = self._get_mailer()
        if mailer is None:
            return DeliveryOutcome.SKIPPED

        try:
            await asyncio.to_thread(mailer.send, sender, valid_recipients, subject, text, html)
        except Exception as e:
            logger.error(f"Failed to send email: {e}", extra={"subject": subject}, exc_info=True)
            return DeliveryOutcome.FAILED

        logger.info("Email sent", extra={"subject": subject, "recipients": len(valid_recipients)})
        return DeliveryOutcome.SENT
