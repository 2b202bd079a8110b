"""
Constants for the requisition lifecycle.
"""


class RequisitionSubjects:
    """Service Bus message subjects for requisition store writes."""
    WRITTEN = "requisition.written"


class PartitionKeys:
    """Azure Table Storage partition keys (single partition per table)."""
    REQUISITION = "REQUISITION"
    USER = "USER"


# Subscription names for each agent
class SubscriptionNames:
    """Azure Service Bus subscription names."""
    NOTIFICATION_AGENT = "requisition-notification-subscription"


DEFAULT_HR_REJECTION_REASON = "Rejected by HR because no approval was provided in time."
HR_AUTO_REJECTION_ACTOR = "HR System"
HR_AUTO_REJECTION_DETAILS = "Automatically rejected after HR approval timeout."
HR_REJECTED_BY = "HR"

FUEL_REQUISITION_TYPE = "fuel and Service"
NOT_AVAILABLE = "N/A"
DEFAULT_REQUESTER_NAME = "Requester"
CURRENCY_CODE = "KES"
