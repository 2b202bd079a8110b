"""
Application settings and configuration.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings
from dotenv import find_dotenv
from pydantic import ConfigDict

# Find .env file automatically
ENV_FILE = find_dotenv(usecwd=True) or ".env"

DEFAULT_SMTP_PORT = 587
DEFAULT_HR_TIMEOUT_HOURS = 24
DEFAULT_SMS_URL = "https://sms.roamtech.co.ke/api/services/sendsms/"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    api_title: str = "Requisition Lifecycle Notifications"
    api_description: str = "Requisition status notifications and HR approval timeout jobs"
    api_version: str = "1.0"
    environment: str = "development"
    debug: bool = False

    #Logging Configuration
    log_level: str = "INFO"
    log_file: str = "logs/requisition-lifecycle.log"
    log_to_console: bool = True

    repository_type: str = "azure_table_storage"  # Options: in_memory, azure_table_storage

    # Azure Service Bus
    service_bus_host_name: str = "<your-service-bus-host-name>.servicebus.windows.net"
    service_bus_topic_name: str = "requisition-events"

    # Azure Storage (Tables)
    table_storage_account_url: str = ""
    requisitions_table_name: str = "requisitions"
    users_table_name: str = "users"

    # SMTP relay (email channel)
    smtp_host: str = ""
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_port: str = ""
    smtp_secure: str = ""
    smtp_from: str = ""

    # Roamtech SMS gateway (sms channel)
    roamtech_sms_url: str = ""
    roamtech_api_key: str = ""
    roamtech_partner_id: str = ""
    shortcode: str = ""

    # Business Rules
    hr_approval_timeout_hours: Optional[str] = None
    hr_notification_emails: str = ""  # comma separated fallback list
    notification_lifecycle: str = "hr_gated"  # Options: hr_gated, approve_reject

    # Scheduler
    hr_timeout_sweep_interval_minutes: int = 60
    scheduler_timezone: str = "Africa/Nairobi"

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = True

    model_config = ConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
        )

    def get_smtp_port(self) -> int:
        """SMTP port, falling back to 587 when unset or not an integer."""
        try:
            return int((self.smtp_port or "").strip() or DEFAULT_SMTP_PORT)
        except ValueError:
            return DEFAULT_SMTP_PORT

    def is_smtp_secure(self) -> bool:
        return self.smtp_secure.strip().lower() == "true" or self.get_smtp_port() == 465

    def get_sms_url(self) -> str:
        return self.roamtech_sms_url.strip() or DEFAULT_SMS_URL

    def get_hr_timeout_hours(self) -> float:
        """
        HR approval timeout in hours.

        Non-numeric, non-finite or non-positive values fall back to the 24 hour default.
        """
        try:
            hours = float((self.hr_approval_timeout_hours or "").strip())
        except ValueError:
            return float(DEFAULT_HR_TIMEOUT_HOURS)
        if hours != hours or hours in (float("inf"), float("-inf")) or hours <= 0:
            return float(DEFAULT_HR_TIMEOUT_HOURS)
        return hours

    def get_hr_timeout_ms(self) -> int:
        return int(self.get_hr_timeout_hours() * 60 * 60 * 1000)

    def get_hr_notification_emails(self) -> List[str]:
        return [email.strip() for email in self.hr_notification_emails.split(",") if email.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings instance
    """
    return Settings()

settings = get_settings()
