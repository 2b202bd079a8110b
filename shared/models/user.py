"""
User directory model (read-only for the notification engine).
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from shared.models.requisition import LooseMapping, LooseStr, normalize_value
from shared.utils.convert import parse_json_container


class AccessControl(BaseModel):
    """Alternate role attributes assigned by administrators."""
    custom_attribute: LooseStr = None
    custom_attributes: LooseMapping = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class UserRecord(BaseModel):
    """User document keyed by the identity provider UID (legacy rows may use other keys)."""
    uid: LooseStr = None
    name: LooseStr = None
    email: LooseStr = None
    role: LooseStr = None
    status: LooseStr = None
    phone: LooseStr = None
    phone_number: LooseStr = None
    mobile: LooseStr = None
    telephone: LooseStr = None
    contact: LooseStr = None
    allowed_programmes: LooseMapping = None
    access_control: Optional[AccessControl] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    @field_validator("access_control", mode="before")
    @classmethod
    def _coerce_access_control(cls, value: Any) -> Optional[Any]:
        value = parse_json_container(value)
        return value if isinstance(value, (dict, AccessControl)) else None

    @property
    def is_inactive(self) -> bool:
        return normalize_value(self.status) == "inactive"

    def phone_candidates(self) -> List[Optional[str]]:
        return [self.phone_number, self.phone, self.mobile, self.telephone, self.contact]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserRecord':
        return cls.model_validate(data)
