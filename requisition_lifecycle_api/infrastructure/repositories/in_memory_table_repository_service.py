import copy
from typing import Optional

from shared.utils.exceptions import EntityNotFoundException
from shared.utils.logging_config import get_logger
from requisition_lifecycle_api.application.interfaces.service_interfaces import EqualityFilters, TableServiceInterface

logger = get_logger(__name__)


class InMemoryTableRepositoryService(TableServiceInterface):
    """Dict-backed table with the same semantics as TableStorageService."""

    def __init__(self, table_name: str = "in_memory"):
        self.table_name = table_name
        self._entities: dict[tuple[str, str], dict] = {}

    async def upsert_entity(self, entity: dict, partition_key: str, row_key: str) -> str:
        stored = copy.deepcopy(entity)
        stored["PartitionKey"] = partition_key
        stored["RowKey"] = row_key
        self._entities[(partition_key, row_key)] = stored
        return row_key

    async def get_entity(self, partition_key: str, row_key: str) -> dict | None:
        entity = self._entities.get((partition_key, row_key))
        return copy.deepcopy(entity) if entity is not None else None

    async def update_entity(self, changes: dict, partition_key: str, row_key: str) -> None:
        entity = self._entities.get((partition_key, row_key))
        if entity is None:
            raise EntityNotFoundException(f"Entity {partition_key}/{row_key} does not exist")
        entity.update(copy.deepcopy(changes))

    async def query_entities(self, filters: EqualityFilters, limit: Optional[int] = None) -> list[dict]:
        results = []
        for entity in self._entities.values():
            if all(entity.get(field_name) == value for field_name, value in filters):
                results.append(copy.deepcopy(entity))
                if limit is not None and len(results) >= limit:
                    break
        return results

    async def list_entities(self) -> list[dict]:
        return [copy.deepcopy(entity) for entity in self._entities.values()]

    async def delete_entity(self, partition_key: str, row_key: str) -> None:
        self._entities.pop((partition_key, row_key), None)

    async def close(self) -> None:
        logger.info(f"In-memory table '{self.table_name}' released ({len(self._entities)} entities).")
