"""
Message content for every requisition notification.

All functions are pure: they only read the requisition record and its ID.
"""
from html import escape

from shared.models.notification import EmailContent, SmsContent
from shared.models.requisition import RequisitionRecord
from shared.utils.constants import CURRENCY_CODE, DEFAULT_HR_REJECTION_REASON, FUEL_REQUISITION_TYPE, NOT_AVAILABLE
from shared.utils.convert import parse_number


def format_amount(record: RequisitionRecord) -> str:
    """Total (or fuel amount) as Kenyan Shillings, 'N/A' when neither is numeric."""
    amount = parse_number(record.total)
    if amount is None:
        amount = parse_number(record.fuel_amount)
    if amount is None:
        return NOT_AVAILABLE
    sign = "-" if amount < 0 else ""
    return f"{sign}{CURRENCY_CODE} {abs(amount):,.2f}"


def purpose_text(record: RequisitionRecord) -> str:
    purpose = record.fuel_purpose if record.type == FUEL_REQUISITION_TYPE else record.trip_purpose
    return purpose or NOT_AVAILABLE


def rejection_reason(record: RequisitionRecord) -> str:
    reason = (record.rejection_reason or "").strip()
    return reason or DEFAULT_HR_REJECTION_REASON


def _or_na(value) -> str:
    return value or NOT_AVAILABLE


def build_details_text(requisition_id: str, record: RequisitionRecord) -> str:
    return "\n".join([
        f"Requisition ID: {requisition_id}",
        f"Requester: {record.requester_name}",
        f"Type: {_or_na(record.type)}",
        f"Programme: {_or_na(record.programme)}",
        f"County: {_or_na(record.county)}",
        f"Subcounty: {_or_na(record.subcounty)}",
        f"Purpose: {purpose_text(record)}",
        f"Amount: {format_amount(record)}",
    ])


def _html_rows(rows) -> str:
    lines = [f"<strong>{escape(label)}:</strong> {escape(str(value))}" for label, value in rows]
    return "<p>" + "<br/>".join(lines) + "</p>"


def compose_new_requisition_sms(requisition_id: str, record: RequisitionRecord) -> SmsContent:
    return SmsContent(message=" ".join([
        "New requisition submitted.",
        f"ID: {requisition_id}",
        f"Requester: {record.requester_name}",
        f"Programme: {_or_na(record.programme)}",
        f"Amount: {format_amount(record)}",
    ]))


def compose_hr_approval_email(requisition_id: str, record: RequisitionRecord) -> EmailContent:
    approved_by = record.approved_by or "System"
    intro = "A requisition has been approved and now requires HR authorization."
    text = "\n".join([
        intro,
        "",
        build_details_text(requisition_id, record),
        "",
        f"Approved by: {approved_by}",
    ])
    html = f"<p>{intro}</p>" + _html_rows([
        ("Requisition ID", requisition_id),
        ("Requester", record.requester_name),
        ("Type", _or_na(record.type)),
        ("Programme", _or_na(record.programme)),
        ("Amount", format_amount(record)),
        ("Approved by", approved_by),
    ])
    return EmailContent(
        subject=f"HR action required: approved requisition {requisition_id}",
        text=text,
        html=html,
    )


def compose_requester_approved_email(requisition_id: str, record: RequisitionRecord) -> EmailContent:
    approved_by = record.approved_by or "System"
    greeting = f"Hello {record.requester_name},"
    intro = f"Your requisition {requisition_id} has been approved."
    text = "\n".join([
        greeting,
        "",
        intro,
        "",
        build_details_text(requisition_id, record),
        "",
        f"Approved by: {approved_by}",
    ])
    html = f"<p>{escape(greeting)}</p><p>{escape(intro)}</p>" + _html_rows([
        ("Type", _or_na(record.type)),
        ("Programme", _or_na(record.programme)),
        ("Purpose", purpose_text(record)),
        ("Amount", format_amount(record)),
        ("Approved by", approved_by),
    ])
    return EmailContent(subject=f"Requisition {requisition_id} approved", text=text, html=html)


def compose_requester_rejected_sms(requisition_id: str, record: RequisitionRecord) -> SmsContent:
    """A custom rejection SMS text written by the rejecting officer replaces the template."""
    custom_text = (record.rejection_sms_text or "").strip()
    if custom_text:
        return SmsContent(message=custom_text)
    return SmsContent(message=" ".join([
        f"Hello {record.requester_name}.",
        f"Your requisition {requisition_id} was rejected by Human Resource Manager.",
        f"Reason: {rejection_reason(record)}",
    ]))


def compose_requester_rejected_email(requisition_id: str, record: RequisitionRecord) -> EmailContent:
    reason = (record.rejection_sms_text or "").strip() or rejection_reason(record)
    rejected_by = record.rejected_by or "Approver"
    greeting = f"Hello {record.requester_name},"
    intro = f"Your requisition {requisition_id} has been rejected."
    text = "\n".join([
        greeting,
        "",
        intro,
        f"Reason: {reason}",
        "",
        build_details_text(requisition_id, record),
        "",
        f"Rejected by: {rejected_by}",
    ])
    html = f"<p>{escape(greeting)}</p><p>{escape(intro)}</p>" + _html_rows([
        ("Reason", reason),
        ("Programme", _or_na(record.programme)),
        ("Amount", format_amount(record)),
        ("Rejected by", rejected_by),
    ])
    return EmailContent(subject=f"Requisition {requisition_id} rejected", text=text, html=html)


def compose_requester_authorized_sms(requisition_id: str, record: RequisitionRecord) -> SmsContent:
    return SmsContent(message=" ".join([
        f"Hello {record.requester_name}.",
        f"Your requisition {requisition_id} has been authorized and is now being processed.",
        "Finance has been notified.",
    ]))


def compose_finance_authorized_email(requisition_id: str, record: RequisitionRecord) -> EmailContent:
    authorized_by = record.authorized_by or "HR"
    text = "\n".join([
        "A requisition has been authorized by HR.",
        "Please process the transaction.",
        "",
        build_details_text(requisition_id, record),
        "",
        f"Authorized by: {authorized_by}",
    ])
    html = (
        "<p>A requisition has been authorized by HR.</p>"
        "<p><strong>Please process the transaction.</strong></p>"
    ) + _html_rows([
        ("Requisition ID", requisition_id),
        ("Requester", record.requester_name),
        ("Programme", _or_na(record.programme)),
        ("Amount", format_amount(record)),
        ("Authorized by", authorized_by),
    ])
    return EmailContent(
        subject=f"Finance action required: authorized requisition {requisition_id}",
        text=text,
        html=html,
    )


def compose_requester_completed_sms(requisition_id: str, record: RequisitionRecord) -> SmsContent:
    return SmsContent(message=" ".join([
        f"Hello {record.requester_name}.",
        f"Your requisition {requisition_id} transaction has been made successfully.",
        f"Amount: {format_amount(record)}.",
    ]))
