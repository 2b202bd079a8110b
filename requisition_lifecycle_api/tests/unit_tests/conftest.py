import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from requisition_lifecycle_api.application.interfaces.service_interfaces import EmailSenderInterface, SmsSenderInterface
from requisition_lifecycle_api.infrastructure.repositories.in_memory_table_repository_service import InMemoryTableRepositoryService
from requisition_lifecycle_api.infrastructure.repositories.user_directory import UserDirectory
from shared.models.notification import DeliveryOutcome
from shared.utils.constants import PartitionKeys

USERS = {
    "pm-kpmd": {
        "name": "Peter PM",
        "role": "Project Manager",
        "email": "pm.kpmd@example.com",
        "phoneNumber": "0711000001",
        "allowedProgrammes": {"KPMD": True},
    },
    "pm-range": {
        "name": "Rita PM",
        "role": "project  manager",
        "email": "pm.range@example.com",
        "phoneNumber": "0711000002",
        "allowedProgrammes": {"RANGE": True},
    },
    "pm-inactive": {
        "name": "Ian PM",
        "role": "Project Manager",
        "status": "inactive",
        "phoneNumber": "0711000003",
    },
    "hr-1": {
        "name": "Hannah HR",
        "role": "Humman Resource Manager",
        "email": "hr@example.com",
        "phone": "0733000001",
    },
    "finance-1": {
        "name": "Fiona Finance",
        "role": "Officer",
        "accessControl": {"customAttribute": "Finance"},
        "email": "finance@example.com",
    },
    "u-req": {
        "uid": "u-req",
        "name": "Alice Requester",
        "role": "Offtake Officer",
        "email": "alice@example.com",
        "phoneNumber": "0722000000",
    },
}


async def seed_users(table: InMemoryTableRepositoryService, users: dict = None) -> InMemoryTableRepositoryService:
    for key, data in (users if users is not None else USERS).items():
        await table.upsert_entity(data, PartitionKeys.USER, key)
    return table


@pytest_asyncio.fixture
async def users_table():
    """In-memory users table seeded with one user per role."""
    return await seed_users(InMemoryTableRepositoryService("users"))


@pytest_asyncio.fixture
async def user_directory(users_table):
    return UserDirectory(users_table)


@pytest.fixture
def email_sender():
    sender = AsyncMock(spec=EmailSenderInterface)
    sender.send_email.return_value = DeliveryOutcome.SENT
    return sender


@pytest.fixture
def sms_sender():
    sender = AsyncMock(spec=SmsSenderInterface)
    sender.send_sms.return_value = DeliveryOutcome.SENT
    return sender
