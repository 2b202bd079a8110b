from typing import Optional

from azure.core.exceptions import ResourceNotFoundError
from azure.data.tables import UpdateMode
from azure.data.tables.aio import TableClient

from shared.config.settings import settings
from shared.utils.convert import convert_from_table_entity, convert_to_table_entity
from shared.utils.exceptions import EntityDeleteException, EntityNotFoundException, EntityQueryException, EntityUpsertException
from shared.utils.logging_config import get_logger
from requisition_lifecycle_api.infrastructure.azure_credential_manager import get_credential_manager
from requisition_lifecycle_api.application.interfaces.service_interfaces import EqualityFilters, TableServiceInterface


logger = get_logger(__name__)

# PartitionKey and RowKey are kept so callers can recover entity keys from queries
AZURE_TABLE_METADATA_FIELDS = {'Timestamp', 'etag', 'odata.etag', 'odata.metadata'}


class TableStorageService(TableServiceInterface):

    def __init__(self, storage_account_url: str = None, table_name: str = None, partition_key: str = None):

        self.account_url = storage_account_url or settings.table_storage_account_url
        self.table_name = table_name or settings.requisitions_table_name
        self.partition_key = partition_key

        credential_manager = get_credential_manager()
        self.table_client = TableClient(
            endpoint=self.account_url,
            table_name=self.table_name,
            credential=credential_manager.get_credential()
        )

    async def upsert_entity(self, entity: dict, partition_key: str, row_key: str) -> str:
        """Save an entity to the Azure Table Storage."""
        try:
            payload = self._to_payload(entity, partition_key, row_key)
            _ = await self.table_client.upsert_entity(entity=payload, mode=UpdateMode.REPLACE)
            logger.info(f"Entity saved successfully. Row Key: {row_key}", extra={"table": self.table_name})
            return row_key
        except Exception as e:
            logger.error(f"Error saving entity to Table Storage: {e}", extra={"table": self.table_name})
            raise EntityUpsertException(f"Failed to upsert {partition_key}/{row_key}: {e}") from e

    async def get_entity(self, partition_key: str, row_key: str) -> dict | None:
        """Retrieve entity data from Azure Table Storage by entity ID."""
        try:
            entity = await self.table_client.get_entity(partition_key=partition_key, row_key=row_key)
            return self._strip_metadata(dict(entity))
        except ResourceNotFoundError:
            logger.debug(f"Entity not found: {partition_key}/{row_key}")
            return None
        except Exception as e:
            logger.error(f"Error retrieving entity from Table Storage: {e}", extra={"table": self.table_name})
            raise EntityQueryException(f"Failed to get {partition_key}/{row_key}: {e}") from e

    async def update_entity(self, changes: dict, partition_key: str, row_key: str) -> None:
        """Merge changed fields into an existing entity."""
        try:
            payload = self._to_payload(changes, partition_key, row_key)
            await self.table_client.update_entity(entity=payload, mode=UpdateMode.MERGE)
            logger.info(f"Entity merged successfully. Row Key: {row_key}", extra={"table": self.table_name})
        except ResourceNotFoundError as e:
            raise EntityNotFoundException(f"Entity {partition_key}/{row_key} does not exist") from e
        except Exception as e:
            logger.error(f"Error merging entity in Table Storage: {e}", extra={"table": self.table_name})
            raise EntityUpsertException(f"Failed to update {partition_key}/{row_key}: {e}") from e

    async def query_entities(self, filters: EqualityFilters, limit: Optional[int] = None) -> list[dict]:
        """Query entities with parameterised equality filters joined by AND."""
        clauses = []
        parameters = {}
        if self.partition_key:
            clauses.append("PartitionKey eq @pk")
            parameters["pk"] = self.partition_key
        for index, (field_name, value) in enumerate(filters):
            clauses.append(f"{field_name} eq @p{index}")
            parameters[f"p{index}"] = value
        query_filter = " and ".join(clauses)

        try:
            results = []
            async for entity in self.table_client.query_entities(query_filter, parameters=parameters):
                results.append(self._strip_metadata(dict(entity)))
                if limit is not None and len(results) >= limit:
                    break
            return results
        except Exception as e:
            logger.error(f"Error querying Table Storage: {e}", extra={"table": self.table_name, "filter": query_filter})
            raise EntityQueryException(f"Failed to query {self.table_name}: {e}") from e

    async def list_entities(self) -> list[dict]:
        """List every entity of the table (partition scoped when configured)."""
        if self.partition_key:
            return await self.query_entities([])
        try:
            return [self._strip_metadata(dict(entity)) async for entity in self.table_client.list_entities()]
        except Exception as e:
            logger.error(f"Error listing Table Storage: {e}", extra={"table": self.table_name})
            raise EntityQueryException(f"Failed to list {self.table_name}: {e}") from e

    async def delete_entity(self, partition_key: str, row_key: str) -> None:
        """Delete entity data from Azure Table Storage by entity ID."""
        try:
            await self.table_client.delete_entity(partition_key=partition_key, row_key=row_key)
            logger.info(f"Entity deleted successfully. Row Key: {row_key}")
        except Exception as e:
            logger.error(f"Error deleting entity from Table Storage: {e}")
            raise EntityDeleteException(f"Failed to delete {partition_key}/{row_key}: {e}") from e

    async def close(self) -> None:
        """Close the Table Storage client."""
        if self.table_client:
            await self.table_client.close()
            logger.info("Table Storage client closed.")

    def _to_payload(self, entity: dict, partition_key: str, row_key: str) -> dict:
        # tables cannot hold nulls, nested maps or lists
        payload = {k: v for k, v in convert_to_table_entity(entity).items() if v is not None}
        payload["PartitionKey"] = partition_key
        payload["RowKey"] = row_key
        return payload

    def _strip_metadata(self, entity: dict) -> dict:
        """Remove Azure Table Storage metadata fields and unwrap typed values."""
        return convert_from_table_entity(
            {k: v for k, v in entity.items() if k not in AZURE_TABLE_METADATA_FIELDS})
