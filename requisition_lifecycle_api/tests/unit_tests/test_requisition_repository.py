import asyncio
import json

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from requisition_lifecycle_api.application.interfaces.service_interfaces import MessagingServiceInterface
from requisition_lifecycle_api.infrastructure.messaging.in_memory_messaging_service import InMemoryMessagingService
from requisition_lifecycle_api.infrastructure.repositories.in_memory_table_repository_service import InMemoryTableRepositoryService
from requisition_lifecycle_api.infrastructure.repositories.requisition_repository import RequisitionRepository
from shared.config.settings import settings
from shared.models.requisition import HistoryEntry, RequisitionRecord
from shared.utils.constants import PartitionKeys, RequisitionSubjects
from shared.utils.exceptions import EntityNotFoundException, MessagePublishException, RequisitionNotFoundException
from shared.utils.logging_config import get_logger, setup_logging

setup_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        log_to_console=settings.log_to_console
    )
logger = get_logger(__name__)


class TestRequisitionRecord:

    def test_camel_case_fields_and_extras_round_trip(self):
        data = {
            "status": "pending",
            "userName": "bob",
            "fuelAmount": "300",
            "approvedAt": 1700000000000,
            "dashboardOnlyField": {"x": 1},
        }
        record = RequisitionRecord.from_dict(data)

        assert record.user_name == "bob"
        assert record.fuel_amount == "300"
        assert record.to_dict() == {**data, "history": []}

    def test_wrong_types_are_treated_as_absent(self):
        record = RequisitionRecord.from_dict({"name": 42, "authorizedBy": True, "total": {"v": 1}, "hrAutoRejected": "yes"})

        assert record.name is None
        assert record.authorized_by is None
        assert record.total is None
        assert record.hr_auto_rejected is None
        assert record.requester_name == "Requester"

    @pytest.mark.parametrize("history", [
        json.dumps([{"action": "Submitted", "actor": "bob"}]),
        {"-Nabc": {"action": "Submitted", "actor": "bob"}},
        [{"action": "Submitted", "actor": "bob"}, "garbage"],
    ])
    def test_history_accepts_stored_shapes(self, history):
        record = RequisitionRecord.from_dict({"history": history})

        assert record.history == [HistoryEntry(action="Submitted", actor="bob")]

    def test_unreadable_history_is_empty(self):
        assert RequisitionRecord.from_dict({"history": "[broken"}).history == []

    def test_requester_name_fallback_order(self):
        assert RequisitionRecord.from_dict({"name": "A", "userName": "B", "username": "C"}).requester_name == "A"
        assert RequisitionRecord.from_dict({"userName": "B", "username": "C"}).requester_name == "B"
        assert RequisitionRecord.from_dict({"username": "C"}).requester_name == "C"


class TestRequisitionRepository:

    @pytest.fixture
    def table(self):
        return InMemoryTableRepositoryService("requisitions")

    @pytest.fixture
    def messaging_service(self):
        return AsyncMock(spec=MessagingServiceInterface)

    @pytest_asyncio.fixture
    async def repository(self, table, messaging_service):
        return RequisitionRepository(table, messaging_service, topic_name="requisition-events")

    @pytest.mark.asyncio
    async def test_create_publishes_creation_event(self, repository, messaging_service):
        requisition_id = await repository.create(RequisitionRecord.from_dict({"status": "pending", "programme": "KPMD"}))

        stored = await repository.get(requisition_id)
        assert stored.programme == "KPMD"
        messaging_service.publish_message.assert_awaited_once_with("requisition-events", {
            "subject": RequisitionSubjects.WRITTEN,
            "correlation_id": requisition_id,
            "body": {
                "requisition_id": requisition_id,
                "before": None,
                "after": {"status": "pending", "programme": "KPMD", "history": []},
            },
        })

    @pytest.mark.asyncio
    async def test_update_merges_and_appends_history(self, repository, table, messaging_service):
        await table.upsert_entity(
            {"status": "pending", "name": "Alice", "history": [{"action": "Submitted", "actor": "Alice"}]},
            PartitionKeys.REQUISITION, "REQ-1",
        )

        after = await repository.update(
            "REQ-1", {"status": "approved", "approvedBy": "Paul"}, HistoryEntry(action="Approved", actor="Paul"),
        )

        assert after.status == "approved"
        assert after.name == "Alice"
        assert [entry.action for entry in after.history] == ["Submitted", "Approved"]
        body = messaging_service.publish_message.await_args.args[1]["body"]
        assert body["before"]["status"] == "pending"
        assert body["after"]["approvedBy"] == "Paul"
        stored = await table.get_entity(PartitionKeys.REQUISITION, "REQ-1")
        assert len(stored["history"]) == 2

    @pytest.mark.asyncio
    async def test_update_missing_requisition(self, repository, messaging_service):
        with pytest.raises(RequisitionNotFoundException):
            await repository.update("REQ-404", {"status": "rejected"})
        messaging_service.publish_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_by_status_keys_by_row_key(self, repository, table):
        await table.upsert_entity({"status": "approved"}, PartitionKeys.REQUISITION, "REQ-A")
        await table.upsert_entity({"status": "pending"}, PartitionKeys.REQUISITION, "REQ-B")

        approved = await repository.list_by_status("approved")

        assert list(approved) == ["REQ-A"]
        assert "RowKey" not in approved["REQ-A"].to_dict()

    @pytest.mark.asyncio
    async def test_writes_without_messaging_do_not_publish(self, table):
        repository = RequisitionRepository(table)
        requisition_id = await repository.create(RequisitionRecord.from_dict({"status": "pending"}), "REQ-X")

        assert requisition_id == "REQ-X"
        assert (await repository.update("REQ-X", {"status": "approved"})).status == "approved"

    @pytest.mark.asyncio
    async def test_failed_publish_keeps_write_and_hands_event_over(self, table, messaging_service):
        messaging_service.publish_message.side_effect = MessagePublishException("bus unavailable")
        handler = AsyncMock()
        repository = RequisitionRepository(table, messaging_service, undelivered_write_handler=handler)
        await table.upsert_entity({"status": "approved"}, PartitionKeys.REQUISITION, "REQ-1")

        after = await repository.update("REQ-1", {"status": "rejected"})

        assert after.status == "rejected"
        handler.assert_awaited_once_with({
            "requisition_id": "REQ-1",
            "before": {"status": "approved", "history": []},
            "after": {"status": "rejected", "history": []},
        })

    @pytest.mark.asyncio
    async def test_failed_publish_without_handler_is_logged(self, repository, table, messaging_service):
        messaging_service.publish_message.side_effect = MessagePublishException("bus unavailable")
        await table.upsert_entity({"status": "approved"}, PartitionKeys.REQUISITION, "REQ-1")

        after = await repository.update("REQ-1", {"status": "rejected"})

        assert after.status == "rejected"
        stored = await table.get_entity(PartitionKeys.REQUISITION, "REQ-1")
        assert stored["status"] == "rejected"

    @pytest.mark.asyncio
    async def test_precondition_failure_skips_write(self, repository, table, messaging_service):
        await table.upsert_entity({"status": "approved", "authorizedBy": "Jane"}, PartitionKeys.REQUISITION, "REQ-1")

        after = await repository.update(
            "REQ-1", {"status": "rejected"}, precondition=lambda current: not current.is_authorized,
        )

        assert after is None
        assert (await table.get_entity(PartitionKeys.REQUISITION, "REQ-1"))["status"] == "approved"
        messaging_service.publish_message.assert_not_called()


class TestInMemoryMessagingService:

    @pytest.mark.asyncio
    async def test_publish_delivers_to_subject_handlers(self):
        bus = InMemoryMessagingService()
        handler = AsyncMock()
        bus.subscribe(RequisitionSubjects.WRITTEN, handler)

        await bus.publish_message("requisition-events", {"subject": RequisitionSubjects.WRITTEN, "body": {"requisition_id": "REQ-1"}})

        handler.assert_awaited_once_with({"requisition_id": "REQ-1"})
        assert len(bus.published) == 1

    def test_subscription_receivers_are_unsupported(self):
        with pytest.raises(NotImplementedError):
            InMemoryMessagingService().get_subscription_receiver("requisition-notification-subscription", asyncio.Event())


class TestInMemoryTable:

    @pytest.mark.asyncio
    async def test_query_limit_update_and_delete(self):
        table = InMemoryTableRepositoryService("users")
        for key in ("u-1", "u-2", "u-3"):
            await table.upsert_entity({"role": "Finance"}, PartitionKeys.USER, key)

        assert len(await table.query_entities([("role", "Finance")], limit=2)) == 2
        await table.update_entity({"status": "inactive"}, PartitionKeys.USER, "u-2")
        assert (await table.get_entity(PartitionKeys.USER, "u-2"))["status"] == "inactive"

        await table.delete_entity(PartitionKeys.USER, "u-3")
        assert await table.get_entity(PartitionKeys.USER, "u-3") is None
        assert [entity["RowKey"] for entity in await table.list_entities()] == ["u-1", "u-2"]

    @pytest.mark.asyncio
    async def test_update_missing_entity(self):
        with pytest.raises(EntityNotFoundException):
            await InMemoryTableRepositoryService("users").update_entity({"status": "x"}, PartitionKeys.USER, "nobody")
