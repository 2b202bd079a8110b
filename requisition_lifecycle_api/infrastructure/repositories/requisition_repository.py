"""
Requisition store access.

Every write publishes a requisition.written event carrying the record before
and after the write, which is what drives the transition reactor.
"""
import uuid
from typing import Awaitable, Callable, Optional

from shared.config.settings import settings
from shared.models.requisition import HistoryEntry, RequisitionRecord
from shared.utils.constants import PartitionKeys, RequisitionSubjects
from shared.utils.exceptions import MessagingException, RequisitionNotFoundException
from shared.utils.logging_config import get_logger
from requisition_lifecycle_api.application.interfaces.service_interfaces import MessagingServiceInterface, TableServiceInterface

logger = get_logger(__name__)

KEY_FIELDS = ("PartitionKey", "RowKey")

WriteEventHandler = Callable[[dict], Awaitable[object]]


def strip_keys(entity: dict) -> dict:
    return {k: v for k, v in entity.items() if k not in KEY_FIELDS}


class RequisitionRepository:

    def __init__(self,
                 table_repository: TableServiceInterface,
                 messaging_service: Optional[MessagingServiceInterface] = None,
                 topic_name: str = None,
                 undelivered_write_handler: Optional[WriteEventHandler] = None):
        self.table_repository = table_repository
        self.messaging_service = messaging_service
        self.topic_name = topic_name or settings.service_bus_topic_name
        # receives the event body when publishing fails
        self.undelivered_write_handler = undelivered_write_handler

    async def get(self, requisition_id: str) -> Optional[RequisitionRecord]:
        entity = await self.table_repository.get_entity(PartitionKeys.REQUISITION, requisition_id)
        if entity is None:
            return None
        return RequisitionRecord.from_dict(strip_keys(entity))

    async def list_by_status(self, status: str) -> dict[str, RequisitionRecord]:
        """Requisitions whose stored status equals `status` exactly, keyed by ID."""
        entities = await self.table_repository.query_entities([("status", status)])
        return {
            entity["RowKey"]: RequisitionRecord.from_dict(strip_keys(entity))
            for entity in entities
            if entity.get("RowKey")
        }

    async def create(self, record: RequisitionRecord, requisition_id: str = None) -> str:
        requisition_id = requisition_id or uuid.uuid4().hex[:12]
        await self.table_repository.upsert_entity(record.to_dict(), PartitionKeys.REQUISITION, requisition_id)
        logger.info("Requisition created", extra={"requisition_id": requisition_id})
        await self._publish_write(requisition_id, None, record)
        return requisition_id

    async def update(self,
                     requisition_id: str,
                     changes: dict,
                     history_entry: Optional[HistoryEntry] = None,
                     precondition: Optional[Callable[[RequisitionRecord], bool]] = None) -> Optional[RequisitionRecord]:
        """
        Merge `changes` (stored field names) into a requisition in a single write.

        A history entry, when given, is appended to the audit trail as part of
        the same write. When `precondition` rejects the freshly read record the
        write is skipped and None is returned.
        """
        before = await self.get(requisition_id)
        if before is None:
            raise RequisitionNotFoundException(f"Requisition not found: {requisition_id}")
        if precondition is not None and not precondition(before):
            logger.info("Requisition changed since it was read, write skipped",
                        extra={"requisition_id": requisition_id})
            return None

        payload = dict(changes)
        if history_entry is not None:
            history = [entry.model_dump(exclude_none=True) for entry in before.history]
            history.append(history_entry.model_dump(exclude_none=True))
            payload["history"] = history

        await self.table_repository.update_entity(payload, PartitionKeys.REQUISITION, requisition_id)
        after = RequisitionRecord.from_dict({**before.to_dict(), **payload})
        await self._publish_write(requisition_id, before, after)
        return after

    async def _publish_write(self,
                             requisition_id: str,
                             before: Optional[RequisitionRecord],
                             after: Optional[RequisitionRecord]) -> None:
        """
        Publish the write event. The write is already committed, so a failed
        publish is logged and the event goes to `undelivered_write_handler`.
        """
        if self.messaging_service is None:
            return
        body = {
            "requisition_id": requisition_id,
            "before": before.to_dict() if before else None,
            "after": after.to_dict() if after else None,
        }
        data = {
            "subject": RequisitionSubjects.WRITTEN,
            "correlation_id": requisition_id,
            "body": body,
        }
        try:
            await self.messaging_service.publish_message(self.topic_name, data)
            return
        except MessagingException as e:
            logger.error(f"Failed to publish requisition write: {e}",
                         extra={"requisition_id": requisition_id})

        if self.undelivered_write_handler is None:
            return
        try:
            await self.undelivered_write_handler(body)
        except Exception as e:
            logger.error(f"Direct handling of unpublished write failed: {e}", exc_info=True,
                         extra={"requisition_id": requisition_id})
