import asyncio
from azure.servicebus.aio import ServiceBusClient, ServiceBusReceiver
from azure.servicebus import ServiceBusReceivedMessage
from shared.utils.logging_config import get_logger
logger = get_logger(__name__)


class SubscriptionReceiverWrapper:
    """Async iterator over a topic subscription that stops when the shutdown event is set."""

    def __init__(self, servicebus_client: ServiceBusClient, topic: str, subscription: str,
                 shutdown_event: asyncio.Event, max_wait_time: int = 5):
        self.servicebus_client = servicebus_client
        self.topic = topic
        self.subscription = subscription
        self.receiver: ServiceBusReceiver | None = None
        self.shutdown_event = shutdown_event
        self.max_wait_time = max_wait_time

    async def __aenter__(self):
        self.receiver = self.servicebus_client.get_subscription_receiver(
            topic_name=self.topic,
            subscription_name=self.subscription
        )
        await self.receiver.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.receiver:
            try:
                await self.receiver.__aexit__(exc_type, exc_val, exc_tb)
            except Exception as e:
                logger.warning(f"Error closing receiver: {e}")
            finally:
                self.receiver = None
                logger.info(f"Receiver for '{self.topic}/{self.subscription}' exited.")

    def __aiter__(self):
        return self

    async def __anext__(self) -> ServiceBusReceivedMessage:
        """Wait for the next message, polling until shutdown is requested."""
        if not self.receiver:
            raise StopAsyncIteration

        while not self.shutdown_event.is_set():
            try:
                messages = await self.receiver.receive_messages(
                    max_message_count=1,
                    max_wait_time=self.max_wait_time
                )
            except Exception as e:
                logger.error(f"Error receiving message: {e}", exc_info=True)
                raise StopAsyncIteration
            if messages:
                return messages[0]
            await asyncio.sleep(0.1)

        logger.info(f"Shutdown requested, stopping '{self.subscription}' iteration.")
        raise StopAsyncIteration

    def _require_receiver(self) -> ServiceBusReceiver:
        if not self.receiver:
            raise RuntimeError("Receiver not initialized. Use async with context manager.")
        return self.receiver

    async def complete_message(self, message: ServiceBusReceivedMessage) -> None:
        """Complete (acknowledge) the received message."""
        await self._require_receiver().complete_message(message)

    async def dead_letter_message(self, message: ServiceBusReceivedMessage, reason: str = "", description: str = "") -> None:
        await self._require_receiver().dead_letter_message(
            message,
            reason=reason,
            error_description=description
        )

    async def close(self) -> None:
        """Close the subscription receiver."""
        if self.receiver:
            try:
                await self.receiver.close()
                logger.info(f"Subscription receiver for '{self.topic}/{self.subscription}' closed.")
            except Exception as e:
                logger.warning(f"Error closing subscription receiver: {e}")
            finally:
                self.receiver = None
