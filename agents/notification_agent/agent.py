"""
Requisition Notification Agent - Fires lifecycle notifications for requisition writes.
"""

import asyncio
from typing import Any, Dict, List, Optional

from agents.base_agent import BaseAgent
from requisition_lifecycle_api.application.interfaces.di_container import get_transition_reactor
from requisition_lifecycle_api.application.interfaces.service_interfaces import MessagingServiceInterface
from requisition_lifecycle_api.application.services.transition_reactor import TransitionReactor
from shared.models.notification import NotificationResult
from shared.utils.constants import SubscriptionNames


class RequisitionNotificationAgent(BaseAgent):
    """
    Consumes requisition.written events and hands them to the transition reactor.

    Delivery failures are handled inside the reactor; only malformed events
    and unexpected errors reach the dead-letter queue.
    """

    def __init__(self,
                 shutdown_event: asyncio.Event = None,
                 messaging_service: Optional[MessagingServiceInterface] = None,
                 reactor: Optional[TransitionReactor] = None):
        super().__init__(
            agent_name="RequisitionNotificationAgent",
            subscription_name=SubscriptionNames.NOTIFICATION_AGENT,
            shutdown_event=shutdown_event,
            messaging_service=messaging_service
        )
        self.reactor = reactor or get_transition_reactor()

    async def process_event(self, body: Dict[str, Any]) -> List[NotificationResult]:
        results = await self.reactor.handle_event(body)
        self.logger.info(
            f"Requisition write handled, {len(results)} notification(s) fired",
            extra={"requisition_id": body.get("requisition_id")}
        )
        return results
