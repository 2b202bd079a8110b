"""
Base agent class for requisition event consumers.
"""
import asyncio
import json
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from azure.servicebus import ServiceBusReceivedMessage
from requisition_lifecycle_api.application.interfaces.di_container import get_messaging_service
from requisition_lifecycle_api.application.interfaces.service_interfaces import MessagingServiceInterface
from shared.utils.logging_config import get_logger, setup_logging
from shared.config.settings import settings

setup_logging(log_level=settings.log_level,
                log_file=settings.log_file,
                log_to_console=settings.log_to_console)

class BaseAgent(ABC):
    """
    Abstract base class for Service Bus subscription agents.

    Provides common functionality for:
    - Service Bus message handling
    - Logging
    - Error handling (complete on success, dead-letter on failure)
    """

    def __init__(
        self,
        agent_name: str,
        subscription_name: str,
        shutdown_event: asyncio.Event = None,
        messaging_service: Optional[MessagingServiceInterface] = None
    ):
        """
        Initialize the base agent.

        Args:
            agent_name: Name of the agent (for logging)
            subscription_name: Service Bus subscription name
            shutdown_event: Event that stops the receive loop
            messaging_service: Messaging client, the shared container's one by default
        """
        self.logger = get_logger(agent_name)

        self.shutdown_event = shutdown_event or asyncio.Event()
        self.agent_name = agent_name
        self.subscription_name = subscription_name
        self.topic_name = settings.service_bus_topic_name

        self.messaging_service = messaging_service or get_messaging_service()
        self.logger.info(f"{self.agent_name} initialized on {self.topic_name}/{self.subscription_name}")

    async def close(self) -> None:
        """Release agent resources. Shared services are closed by their owner."""
        self.logger.info(f"{self.agent_name} closed")

    async def run(self) -> None:
        """
        Main agent run loop.
        Continuously polls for messages and processes them.
        """
        self.logger.info(f"Starting {self.agent_name}...")
        try:
            async with self.messaging_service.get_subscription_receiver(
                subscription=self.subscription_name,
                shutdown_event=self.shutdown_event
            ) as receiver:
                self.logger.info(f"{self.agent_name} listening for messages...")
                async for message in receiver:

                    if self.shutdown_event.is_set():
                        self.logger.info(f"Shutdown event set, stopping {self.agent_name}...")
                        break

                    try:
                        completed = await self._process_message(message)
                        if completed:
                            await receiver.complete_message(message)
                        else:
                            self.logger.warning(f"Message processing not completed, dead-lettering message: [{message}]")
                            await receiver.dead_letter_message(message
                                , reason="ProcessingIncomplete"
                                , description="Message processing did not complete successfully."
                            )

                    except Exception as e:
                        self.logger.error(f"Error processing message: {e}", exc_info=True)
                        self.logger.error(f"Sending to dead-letter Message data: [{message}]")

                        await receiver.dead_letter_message(
                            message,
                            reason="ProcessingError",
                            description=str(e)
                        )
            self.logger.info(f"{self.agent_name} shut down gracefully")
        except asyncio.CancelledError:
            self.logger.info(f"{self.agent_name} cancelled")
        except Exception as e:
            self.logger.error(f"Fatal error in {self.agent_name}: {e}", exc_info=True)
            raise
        finally:
            await self.close()
            self.logger.info(f"{self.agent_name} stopped")

    async def _process_message(self, message: ServiceBusReceivedMessage) -> bool:
        """
        Process a Service Bus message.

        Args:
            message: Service Bus message

        Returns:
            True when the message can be completed
        """
        body = json.loads(str(message))
        self.logger.info(
            f"Processing message: subject={message.subject}",
            extra={"correlation_id": message.correlation_id}
        )
        await self.process_event(body)
        return True

    @abstractmethod
    async def process_event(self, body: Dict[str, Any]) -> Any:
        """
        Process one event body. Must be implemented by subclasses.

        Raising dead-letters the message.
        """
        pass
