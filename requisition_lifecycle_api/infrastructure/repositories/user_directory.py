from typing import Optional

from shared.models.user import UserRecord
from shared.utils.constants import PartitionKeys
from requisition_lifecycle_api.application.interfaces.service_interfaces import TableServiceInterface
from requisition_lifecycle_api.infrastructure.repositories.requisition_repository import strip_keys


class UserDirectory:
    """Read-only view of the users table. Store errors propagate to the caller."""

    def __init__(self, table_repository: TableServiceInterface):
        self.table_repository = table_repository

    async def get_by_key(self, user_key: str) -> Optional[UserRecord]:
        key = user_key.strip()
        if not key:
            return None
        entity = await self.table_repository.get_entity(PartitionKeys.USER, key)
        return UserRecord.from_dict(strip_keys(entity)) if entity is not None else None

    async def first_by_field(self, field_name: str, value: str) -> Optional[UserRecord]:
        trimmed = value.strip()
        if not trimmed:
            return None
        entities = await self.table_repository.query_entities([(field_name, trimmed)], limit=1)
        return UserRecord.from_dict(strip_keys(entities[0])) if entities else None

    async def list_all(self) -> list[UserRecord]:
        return [UserRecord.from_dict(strip_keys(entity)) for entity in await self.table_repository.list_entities()]
