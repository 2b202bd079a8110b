from datetime import datetime, timezone

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, patch

from requisition_lifecycle_api.application.interfaces.service_interfaces import MessagingServiceInterface
from requisition_lifecycle_api.application.services.notification_dispatcher import NotificationDispatcher
from requisition_lifecycle_api.application.services.recipient_resolver import RecipientResolver
from requisition_lifecycle_api.application.services.timeout_sweeper import HrTimeoutSweeper, SweepSummary, is_expired
from requisition_lifecycle_api.application.services.transition_reactor import TransitionReactor
from requisition_lifecycle_api.infrastructure.messaging.in_memory_messaging_service import InMemoryMessagingService
from requisition_lifecycle_api.infrastructure.repositories.in_memory_table_repository_service import InMemoryTableRepositoryService
from requisition_lifecycle_api.infrastructure.repositories.requisition_repository import RequisitionRepository
from shared.config.settings import settings
from shared.models.requisition import RequisitionRecord
from shared.utils.constants import DEFAULT_HR_REJECTION_REASON, PartitionKeys, RequisitionSubjects
from shared.utils.exceptions import EntityUpsertException, MessagePublishException
from shared.utils.logging_config import get_logger, setup_logging

setup_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        log_to_console=settings.log_to_console
    )
logger = get_logger(__name__)

HOUR_MS = 60 * 60 * 1000
TIMEOUT_MS = 24 * HOUR_MS
NOW_MS = 1_760_000_000_000


def hours_ago(hours: float) -> int:
    return int(NOW_MS - hours * HOUR_MS)


def iso_hours_ago(hours: float) -> str:
    return datetime.fromtimestamp(hours_ago(hours) / 1000, tz=timezone.utc).isoformat().replace("+00:00", "Z")


REQUISITIONS = {
    "REQ-25H": {"status": "approved", "approvedAt": hours_ago(25), "name": "Alice", "phoneNumber": "0722000000"},
    "REQ-23H": {"status": "approved", "approvedAt": hours_ago(23)},
    "REQ-AUTH": {"status": "approved", "approvedAt": hours_ago(100), "authorizedBy": "Jane"},
    "REQ-BAD-DATE": {"status": "approved", "approvedAt": "sometime last week"},
    "REQ-ISO": {"status": "approved", "approvedAt": iso_hours_ago(30)},
    "REQ-PENDING": {"status": "pending", "approvedAt": hours_ago(100)},
}


class TestExpiry:

    @pytest.mark.parametrize("fields, expired", [
        ({"approvedAt": hours_ago(25)}, True),
        ({"approvedAt": hours_ago(23)}, False),
        ({"approvedAt": hours_ago(24)}, True),
        ({"approvedAt": str(hours_ago(25))}, True),
        ({"approvedAt": iso_hours_ago(48)}, True),
        ({"approvedAt": "2000-01-01T00:00:00"}, True),
        ({"approvedAt": hours_ago(500), "authorizedBy": "Jane"}, False),
        ({"approvedAt": "not a date"}, False),
        ({}, False),
    ])
    def test_is_expired(self, fields, expired):
        record = RequisitionRecord.from_dict({"status": "approved", **fields})

        assert is_expired(record, NOW_MS - TIMEOUT_MS) is expired


class TestHrTimeoutSweeper:

    @pytest_asyncio.fixture
    async def requisitions_table(self):
        table = InMemoryTableRepositoryService("requisitions")
        for requisition_id, data in REQUISITIONS.items():
            await table.upsert_entity(data, PartitionKeys.REQUISITION, requisition_id)
        return table

    @pytest.fixture
    def messaging_service(self):
        return InMemoryMessagingService()

    @pytest_asyncio.fixture
    async def sweeper(self, requisitions_table, messaging_service):
        repository = RequisitionRepository(requisitions_table, messaging_service, topic_name="requisition-events")
        return HrTimeoutSweeper(repository, timeout_ms=TIMEOUT_MS)

    @pytest.mark.asyncio
    async def test_rejects_only_expired_unauthorized(self, sweeper, requisitions_table):
        summary = await sweeper.run(now=NOW_MS)

        assert summary == SweepSummary(scanned=5, rejected=2, timeout_hours=24.0)
        statuses = {
            requisition_id: (await requisitions_table.get_entity(PartitionKeys.REQUISITION, requisition_id))["status"]
            for requisition_id in REQUISITIONS
        }
        assert statuses == {
            "REQ-25H": "rejected",
            "REQ-23H": "approved",
            "REQ-AUTH": "approved",
            "REQ-BAD-DATE": "approved",
            "REQ-ISO": "rejected",
            "REQ-PENDING": "pending",
        }

    @pytest.mark.asyncio
    async def test_rejection_fields_and_history(self, sweeper, requisitions_table):
        await sweeper.run(now=NOW_MS)

        stored = await requisitions_table.get_entity(PartitionKeys.REQUISITION, "REQ-25H")
        assert stored["rejectedBy"] == "HR"
        assert stored["rejectedAt"] == NOW_MS
        assert stored["rejectionReason"] == DEFAULT_HR_REJECTION_REASON
        assert stored["hrAutoRejected"] is True
        assert stored["hrAutoRejectedAt"] == NOW_MS
        assert stored["history"] == [{
            "action": "Rejected",
            "actor": "HR System",
            "timestamp": NOW_MS,
            "details": "Automatically rejected after HR approval timeout.",
        }]

    @pytest.mark.asyncio
    async def test_second_run_rejects_nothing(self, sweeper, messaging_service):
        first = await sweeper.run(now=NOW_MS)
        second = await sweeper.run(now=NOW_MS)

        assert first.rejected == 2
        assert second.scanned == 3
        assert second.rejected == 0
        assert len(messaging_service.published) == 2

    @pytest.mark.asyncio
    async def test_each_rejection_publishes_a_write_event(self, sweeper, messaging_service):
        await sweeper.run(now=NOW_MS)

        events = {message["body"]["requisition_id"]: message for _, message in messaging_service.published}
        assert set(events) == {"REQ-25H", "REQ-ISO"}
        event = events["REQ-25H"]
        assert event["subject"] == RequisitionSubjects.WRITTEN
        assert event["correlation_id"] == "REQ-25H"
        assert event["body"]["before"]["status"] == "approved"
        assert event["body"]["after"]["status"] == "rejected"

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(self):
        repository = AsyncMock(spec=RequisitionRepository)
        repository.list_by_status.return_value = {
            requisition_id: RequisitionRecord.from_dict(REQUISITIONS[requisition_id])
            for requisition_id in ("REQ-25H", "REQ-ISO")
        }

        async def update(requisition_id, changes, history_entry=None, precondition=None):
            if requisition_id == "REQ-25H":
                raise EntityUpsertException("write conflict")
            return RequisitionRecord.from_dict({**REQUISITIONS[requisition_id], **changes})

        repository.update.side_effect = update

        summary = await HrTimeoutSweeper(repository, timeout_ms=TIMEOUT_MS).run(now=NOW_MS)

        assert summary.scanned == 2
        assert summary.rejected == 1
        assert repository.update.await_count == 2

    @pytest.mark.asyncio
    async def test_rejection_notifies_requester_through_reactor(self, sweeper, messaging_service, user_directory,
                                                                 email_sender, sms_sender):
        reactor = TransitionReactor(RecipientResolver(user_directory), NotificationDispatcher(email_sender, sms_sender))
        messaging_service.subscribe(RequisitionSubjects.WRITTEN, reactor.handle_event)

        await sweeper.run(now=NOW_MS)

        # only REQ-25H carries a requester contact
        sms_sender.send_sms.assert_awaited_once()
        phone_numbers, message = sms_sender.send_sms.await_args.args
        assert phone_numbers == ["254722000000"]
        assert message == (
            "Hello Alice. Your requisition REQ-25H was rejected by Human Resource Manager. "
            f"Reason: {DEFAULT_HR_REJECTION_REASON}"
        )
        email_sender.send_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_publish_still_counts_and_notifies(self, requisitions_table, user_directory,
                                                            email_sender, sms_sender):
        reactor = TransitionReactor(RecipientResolver(user_directory), NotificationDispatcher(email_sender, sms_sender))
        messaging_service = AsyncMock(spec=MessagingServiceInterface)
        messaging_service.publish_message.side_effect = MessagePublishException("bus unavailable")
        repository = RequisitionRepository(requisitions_table, messaging_service,
                                           undelivered_write_handler=reactor.handle_event)

        first = await HrTimeoutSweeper(repository, timeout_ms=TIMEOUT_MS).run(now=NOW_MS)

        assert first.rejected == 2
        sms_sender.send_sms.assert_awaited_once()
        assert sms_sender.send_sms.await_args.args[0] == ["254722000000"]

        messaging_service.publish_message.side_effect = None
        second = await HrTimeoutSweeper(repository, timeout_ms=TIMEOUT_MS).run(now=NOW_MS)
        assert second.rejected == 0

    @pytest.mark.asyncio
    async def test_authorization_after_scan_is_not_overwritten(self, sweeper, requisitions_table, messaging_service):
        stale = {"REQ-25H": RequisitionRecord.from_dict(REQUISITIONS["REQ-25H"])}
        await requisitions_table.update_entity({"authorizedBy": "Jane"}, PartitionKeys.REQUISITION, "REQ-25H")

        with patch.object(sweeper.requisition_repository, "list_by_status", AsyncMock(return_value=stale)):
            summary = await sweeper.run(now=NOW_MS)

        assert summary.scanned == 1
        assert summary.rejected == 0
        stored = await requisitions_table.get_entity(PartitionKeys.REQUISITION, "REQ-25H")
        assert stored["status"] == "approved"
        assert messaging_service.published == []

    def test_timeout_defaults_to_settings(self):
        sweeper = HrTimeoutSweeper(AsyncMock(spec=RequisitionRepository))

        assert sweeper.timeout_ms == settings.get_hr_timeout_ms()
