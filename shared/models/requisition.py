"""
Requisition domain model.

Records are documents written by the dashboard; only the fields the
notification engine reads are declared, everything else is kept as extra data.
"""

from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from shared.utils.constants import DEFAULT_REQUESTER_NAME
from shared.utils.convert import parse_json_container


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _optional_scalar(value: Any) -> Any:
    if isinstance(value, bool):
        return None
    return value if isinstance(value, (str, int, float)) else None


def _optional_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _optional_mapping(value: Any) -> Optional[Dict[str, Any]]:
    value = parse_json_container(value)
    return value if isinstance(value, dict) else None


LooseStr = Annotated[Optional[str], BeforeValidator(_optional_str)]
LooseScalar = Annotated[Any, BeforeValidator(_optional_scalar)]
LooseBool = Annotated[Optional[bool], BeforeValidator(_optional_bool)]
LooseMapping = Annotated[Optional[Dict[str, Any]], BeforeValidator(_optional_mapping)]


class RequisitionStatus:
    """Status values written by the dashboard (compared case-insensitively)."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETE = "complete"


def normalize_value(value: Any) -> str:
    """Trimmed lowercase text for strings, empty string for anything else."""
    return value.strip().lower() if isinstance(value, str) else ""


class HistoryEntry(BaseModel):
    """Audit trail entry appended to a requisition."""
    action: LooseStr = None
    actor: LooseStr = None
    timestamp: LooseScalar = None
    details: LooseStr = None

    model_config = ConfigDict(extra="allow")


class RequisitionRecord(BaseModel):
    """Requisition document as stored under the requisitions table."""

    # ========== WORKFLOW ==========
    status: LooseStr = None
    type: LooseStr = None
    programme: LooseStr = None

    # ========== REQUESTER IDENTITY ==========
    uid: LooseStr = None
    name: LooseStr = None
    user_name: LooseStr = None
    username: LooseStr = None
    email: LooseStr = None
    requester_email: LooseStr = None
    user_email: LooseStr = None
    phone: LooseStr = None
    phone_number: LooseStr = None
    mobile: LooseStr = None
    telephone: LooseStr = None
    contact: LooseStr = None

    # ========== DETAILS ==========
    county: LooseStr = None
    subcounty: LooseStr = None
    trip_purpose: LooseStr = None
    fuel_purpose: LooseStr = None
    total: LooseScalar = None
    fuel_amount: LooseScalar = None

    # ========== ACTORS & TIMESTAMPS ==========
    submitted_at: LooseScalar = None
    approved_by: LooseStr = None
    approved_at: LooseScalar = None
    authorized_by: LooseStr = None
    completed_by: LooseStr = None
    completed_at: LooseScalar = None
    rejected_by: LooseStr = None
    rejected_at: LooseScalar = None
    rejection_reason: LooseStr = None
    rejection_sms_text: LooseStr = None
    hr_auto_rejected: LooseBool = None
    hr_auto_rejected_at: LooseScalar = None

    history: List[HistoryEntry] = Field(default_factory=list)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    @field_validator("history", mode="before")
    @classmethod
    def _coerce_history(cls, value: Any) -> List[Any]:
        value = parse_json_container(value)
        # realtime-database style pushes arrive as a keyed map
        if isinstance(value, dict):
            value = list(value.values())
        if not isinstance(value, list):
            return []
        return [entry for entry in value if isinstance(entry, (dict, HistoryEntry))]

    @property
    def normalized_status(self) -> str:
        return normalize_value(self.status)

    @property
    def is_authorized(self) -> bool:
        return bool(normalize_value(self.authorized_by))

    @property
    def requester_name(self) -> str:
        return self.name or self.user_name or self.username or DEFAULT_REQUESTER_NAME

    def phone_candidates(self) -> List[Optional[str]]:
        return [self.phone_number, self.phone, self.mobile, self.telephone, self.contact]

    def email_candidates(self) -> List[Optional[str]]:
        return [self.email, self.requester_email, self.user_email]

    def user_key_candidates(self) -> List[str]:
        """Direct user-store keys: uid first, then legacy username keys."""
        keys = [self.uid, self.username, self.user_name]
        return [key.strip() for key in keys if isinstance(key, str) and key.strip()]

    def to_dict(self) -> dict:
        """Document form with the stored (camelCase) field names."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional['RequisitionRecord']:
        if data is None:
            return None
        return cls.model_validate(data)
