"""
Role identification and programme scoping for user records.

Roles are free-form strings typed by administrators, so each tag is matched
against the set of spellings seen in production, typos included.
"""

import re
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Set

from shared.models.user import UserRecord

_WHITESPACE = re.compile(r"\s+")


class RoleTag(str, Enum):
    """Functional roles recognised by the notification engine."""
    HR = "hr"
    PROJECT_MANAGER = "project_manager"
    FINANCE = "finance"
    OFFTAKE = "offtake"
    MONITORING_AND_EVALUATION = "monitoring_and_evaluation"
    OTHER = "other"


ROLE_IDENTIFIERS: Dict[RoleTag, FrozenSet[str]] = {
    RoleTag.HR: frozenset({
        "hr",
        "human resource manager",
        "humman resource manager",
        "human resource manger",
        "humman resource manger",
    }),
    RoleTag.PROJECT_MANAGER: frozenset({"project manager"}),
    RoleTag.FINANCE: frozenset({"finance"}),
    RoleTag.OFFTAKE: frozenset({"offtake officer"}),
    RoleTag.MONITORING_AND_EVALUATION: frozenset({
        "m&e officer",
        "mne officer",
        "me officer",
        "monitoring and evaluation officer",
        "monitoring & evaluation officer",
    }),
}


def normalize_token(value: Optional[str]) -> str:
    if not isinstance(value, str):
        return ""
    return _WHITESPACE.sub(" ", value.strip().lower())


def classify_role(raw: Optional[str]) -> RoleTag:
    """Map a raw role string to its tag, OTHER when no known spelling matches."""
    token = normalize_token(raw)
    for tag, identifiers in ROLE_IDENTIFIERS.items():
        if token in identifiers:
            return tag
    return RoleTag.OTHER


def role_tokens(user: UserRecord) -> Set[str]:
    """All normalised role tokens of a user: role, custom attribute and legacy attribute keys."""
    tokens = set()
    role = normalize_token(user.role)
    if role:
        tokens.add(role)

    access_control = user.access_control
    if access_control is not None:
        attribute = normalize_token(access_control.custom_attribute)
        if attribute:
            tokens.add(attribute)
        for key in (access_control.custom_attributes or {}):
            token = normalize_token(key)
            if token:
                tokens.add(token)
    return tokens


def role_matches_any(user: UserRecord, tags: Iterable[RoleTag]) -> bool:
    wanted = set(tags)
    return any(classify_role(token) in wanted for token in role_tokens(user))


def user_can_handle_programme(user: UserRecord, programme: Optional[str]) -> bool:
    """
    Programme scoping check.

    A requisition without a programme, a user without an allowedProgrammes map,
    and a user with an empty map all grant access. Otherwise the programme must
    be present (case-insensitive) with a truthy flag.
    """
    if not programme:
        return True
    allowed = user.allowed_programmes
    if not allowed:
        return True

    target = programme.strip().lower()
    return any(flag and str(key).strip().lower() == target for key, flag in allowed.items())
