"""
Service interfaces for dependency injection.
"""
from abc import ABC, abstractmethod
import asyncio
from typing import List, Optional, Tuple

from shared.models.notification import DeliveryOutcome
from requisition_lifecycle_api.infrastructure.messaging.subscription_receiver_wrapper import SubscriptionReceiverWrapper

# (field name, value) pairs joined with AND
EqualityFilters = List[Tuple[str, object]]


class TableServiceInterface(ABC):
    """Abstract base class for key-value / document table implementations."""

    @abstractmethod
    async def upsert_entity(self, entity: dict, partition_key: str, row_key: str) -> str:
        """Insert or replace an entity in the table storage."""
        pass

    @abstractmethod
    async def get_entity(self, partition_key: str, row_key: str) -> dict | None:
        """Retrieve entity by key, None when it does not exist."""
        pass

    @abstractmethod
    async def update_entity(self, changes: dict, partition_key: str, row_key: str) -> None:
        """Merge the given fields into an existing entity."""
        pass

    @abstractmethod
    async def query_entities(self, filters: EqualityFilters, limit: Optional[int] = None) -> list[dict]:
        """Entities whose fields equal all the given values."""
        pass

    @abstractmethod
    async def list_entities(self) -> list[dict]:
        """Every entity in the table."""
        pass

    @abstractmethod
    async def delete_entity(self, partition_key: str, row_key: str) -> None:
        """Delete entity by key."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any resources held by the service."""
        pass


class MessagingServiceInterface(ABC):
    """Abstract base class for messaging service implementations."""

    @abstractmethod
    async def publish_message(self, topic: str, message_data: dict) -> None:
        """Send a message to the specified topic."""
        pass

    def get_subscription_receiver(self, subscription: str, shutdown_event: asyncio.Event) -> SubscriptionReceiverWrapper:
        """
        Get a receiver for the specified subscription.

        Only broker-backed services support pull receivers; process-local
        services deliver to subscribed handlers instead.
        """
        raise NotImplementedError(f"{type(self).__name__} does not support subscription receivers")

    @abstractmethod
    async def close(self) -> None:
        """Close any resources held by the service."""
        pass


class EmailSenderInterface(ABC):
    """Best-effort email delivery channel."""

    @abstractmethod
    async def send_email(self, recipients: List[str], subject: str, text: str, html: str) -> DeliveryOutcome:
        """Send one message to all valid recipients. Never raises."""
        pass


class SmsSenderInterface(ABC):
    """Best-effort SMS delivery channel."""

    @abstractmethod
    async def send_sms(self, phone_numbers: List[str], message: str) -> DeliveryOutcome:
        """Send one message to all valid phone numbers. Never raises."""
        pass
