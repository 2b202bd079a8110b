"""Dependency Injection Container."""
from typing import Optional

from requisition_lifecycle_api.application.interfaces.service_interfaces import (
    EmailSenderInterface,
    MessagingServiceInterface,
    SmsSenderInterface,
)
from requisition_lifecycle_api.application.services.notification_dispatcher import NotificationDispatcher
from requisition_lifecycle_api.application.services.recipient_resolver import RecipientResolver
from requisition_lifecycle_api.application.services.timeout_sweeper import HrTimeoutSweeper
from requisition_lifecycle_api.application.services.transition_reactor import TransitionReactor, get_lifecycle_policy
from requisition_lifecycle_api.infrastructure.azure_credential_manager import AzureCredentialManager, get_credential_manager
from requisition_lifecycle_api.infrastructure.messaging.in_memory_messaging_service import InMemoryMessagingService
from requisition_lifecycle_api.infrastructure.messaging.servicebus_messaging_service import ServiceBusMessagingService
from requisition_lifecycle_api.infrastructure.notifications.sms_gateway_channel import SmsGatewayChannel
from requisition_lifecycle_api.infrastructure.notifications.smtp_email_channel import SmtpEmailChannel
from requisition_lifecycle_api.infrastructure.repositories.in_memory_table_repository_service import InMemoryTableRepositoryService
from requisition_lifecycle_api.infrastructure.repositories.requisition_repository import RequisitionRepository
from requisition_lifecycle_api.infrastructure.repositories.table_storage_service import TableStorageService
from requisition_lifecycle_api.infrastructure.repositories.user_directory import UserDirectory
from shared.config.settings import settings
from shared.utils.constants import PartitionKeys, RequisitionSubjects
from shared.utils.logging_config import get_logger

logger = get_logger(__name__)

REQUISITIONS_TABLE = "requisitions_table"
USERS_TABLE = "users_table"


class DIContainer:
    """Simple dependency injection container."""

    def __init__(self, repository_type: str = None):
        self.repository_type = repository_type or settings.repository_type
        self._singletons = {}
        self._setup_services()

    def _setup_services(self):
        logger.info(f"Setting up DI container services ({self.repository_type})")

        if self.repository_type == "in_memory":
            self._singletons[REQUISITIONS_TABLE] = InMemoryTableRepositoryService(settings.requisitions_table_name)
            self._singletons[USERS_TABLE] = InMemoryTableRepositoryService(settings.users_table_name)
            self._singletons[MessagingServiceInterface] = InMemoryMessagingService()
        else:
            self._singletons[AzureCredentialManager] = get_credential_manager()
            self._singletons[REQUISITIONS_TABLE] = TableStorageService(
                table_name=settings.requisitions_table_name, partition_key=PartitionKeys.REQUISITION)
            self._singletons[USERS_TABLE] = TableStorageService(
                table_name=settings.users_table_name, partition_key=PartitionKeys.USER)
            self._singletons[MessagingServiceInterface] = ServiceBusMessagingService()

        self._singletons[EmailSenderInterface] = SmtpEmailChannel()
        self._singletons[SmsSenderInterface] = SmsGatewayChannel()

        self._singletons[RequisitionRepository] = RequisitionRepository(
            self._singletons[REQUISITIONS_TABLE],
            self._singletons[MessagingServiceInterface],
        )
        self._singletons[UserDirectory] = UserDirectory(self._singletons[USERS_TABLE])
        self._singletons[TransitionReactor] = TransitionReactor(
            RecipientResolver(self._singletons[UserDirectory]),
            NotificationDispatcher(self._singletons[EmailSenderInterface], self._singletons[SmsSenderInterface]),
            policy=get_lifecycle_policy(settings.notification_lifecycle),
            fallback_hr_emails=settings.get_hr_notification_emails(),
        )
        self._singletons[HrTimeoutSweeper] = HrTimeoutSweeper(self._singletons[RequisitionRepository])
        self._singletons[RequisitionRepository].undelivered_write_handler = self._singletons[TransitionReactor].handle_event

        messaging_service = self._singletons[MessagingServiceInterface]
        if isinstance(messaging_service, InMemoryMessagingService):
            # no bus consumer in this mode, so store writes drive the reactor directly
            messaging_service.subscribe(RequisitionSubjects.WRITTEN, self._singletons[TransitionReactor].handle_event)

    def get_service(self, service_type):
        """Get a service instance by type."""
        if service_type in self._singletons:
            return self._singletons[service_type]
        raise ValueError(f"Service {service_type} not registered")

    async def close(self) -> None:
        """Close all services that require cleanup."""
        for service in reversed(list(self._singletons.values())):
            if hasattr(service, "close") and callable(service.close):
                await service.close()


# Global container instance, built on first use
_container: Optional[DIContainer] = None


def get_container() -> DIContainer:
    global _container
    if _container is None:
        _container = DIContainer()
    return _container


async def close_all_services() -> None:
    """Close all services that require cleanup."""
    global _container
    if _container is not None:
        await _container.close()
        _container = None


def get_messaging_service() -> MessagingServiceInterface:
    return get_container().get_service(MessagingServiceInterface)


def get_transition_reactor() -> TransitionReactor:
    """Dependency injection function for the transition reactor."""
    return get_container().get_service(TransitionReactor)


def get_timeout_sweeper() -> HrTimeoutSweeper:
    """Dependency injection function for the HR timeout sweeper."""
    return get_container().get_service(HrTimeoutSweeper)
