from typing import Awaitable, Callable

from shared.utils.logging_config import get_logger
from requisition_lifecycle_api.application.interfaces.service_interfaces import MessagingServiceInterface

logger = get_logger(__name__)

MessageHandler = Callable[[dict], Awaitable[object]]


class InMemoryMessagingService(MessagingServiceInterface):
    """
    Process-local messaging used with the in_memory repository type.

    Published messages are kept for inspection and handed straight to the
    handlers subscribed to their subject, in the publisher's task.
    """

    def __init__(self):
        self.published: list[tuple[str, dict]] = []
        self._handlers: dict[str, list[MessageHandler]] = {}

    def subscribe(self, subject: str, handler: MessageHandler) -> None:
        self._handlers.setdefault(subject, []).append(handler)

    async def publish_message(self, topic: str, message_data: dict) -> None:
        subject = message_data["subject"]
        self.published.append((topic, message_data))
        for handler in self._handlers.get(subject, []):
            try:
                await handler(message_data["body"])
            except Exception as e:
                logger.error(f"In-memory handler failed for {subject}: {e}", exc_info=True)

    async def close(self) -> None:
        self._handlers.clear()
