"""
Contact normalisation shared by the recipient resolver and the delivery channels.
"""

import re
from typing import Any, Iterable, List, Optional

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NON_DIGITS = re.compile(r"\D+")
KENYA_COUNTRY_CODE = "254"


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and EMAIL_REGEX.match(value.strip()) is not None


def normalize_phone(value: Any) -> Optional[str]:
    """
    Normalise a Kenyan phone number.

    Local forms are rewritten to the 254 country code: ten digits starting
    with 0 drop the 0, nine digits starting with 7 get the prefix. Fewer than
    nine digits is rejected. A leading '+' on the input is kept.
    """
    if not isinstance(value, str):
        return None
    raw = value.strip()
    if not raw:
        return None

    has_plus = raw.startswith("+")
    digits = NON_DIGITS.sub("", raw)
    if not digits:
        return None

    if digits.startswith("0") and len(digits) == 10:
        digits = f"{KENYA_COUNTRY_CODE}{digits[1:]}"
    elif digits.startswith("7") and len(digits) == 9:
        digits = f"{KENYA_COUNTRY_CODE}{digits}"

    if len(digits) < 9:
        return None
    return f"+{digits}" if has_plus else digits


def first_phone(candidates: Iterable[Any]) -> Optional[str]:
    for candidate in candidates:
        phone = normalize_phone(candidate)
        if phone:
            return phone
    return None


def first_email(candidates: Iterable[Any]) -> Optional[str]:
    for candidate in candidates:
        if is_valid_email(candidate):
            return candidate.strip()
    return None


def unique_emails(recipients: Iterable[Any]) -> List[str]:
    """Trimmed, syntactically valid, de-duplicated addresses in first-seen order."""
    seen = []
    for recipient in recipients:
        if is_valid_email(recipient):
            email = recipient.strip()
            if email not in seen:
                seen.append(email)
    return seen


def unique_phones(recipients: Iterable[Any]) -> List[str]:
    seen = []
    for recipient in recipients:
        phone = normalize_phone(recipient)
        if phone and phone not in seen:
            seen.append(phone)
    return seen
