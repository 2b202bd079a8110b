"""Recipient Resolver Service."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Iterable, List, Optional

from shared.models.requisition import RequisitionRecord
from shared.models.roles import RoleTag, role_matches_any, user_can_handle_programme
from shared.models.user import UserRecord
from shared.utils.contacts import first_email, first_phone, is_valid_email
from shared.utils.logging_config import get_logger
from requisition_lifecycle_api.infrastructure.repositories.user_directory import UserDirectory

logger = get_logger(__name__)


class ContactChannel(str, Enum):
    EMAIL = "email"
    PHONE = "phone"


@dataclass
class RoleRecipients:
    emails: List[str] = field(default_factory=list)
    phones: List[str] = field(default_factory=list)


def user_contact(user: UserRecord, channel: ContactChannel) -> Optional[str]:
    if channel == ContactChannel.PHONE:
        return first_phone(user.phone_candidates())
    return first_email([user.email])


def record_contact(record: RequisitionRecord, channel: ContactChannel) -> Optional[str]:
    if channel == ContactChannel.PHONE:
        return first_phone(record.phone_candidates())
    return first_email(record.email_candidates())


class RecipientResolver:
    """
    Finds who to notify about a requisition.

    Requester lookups walk a fallback chain against the user directory; a
    failing step is logged and the chain moves on to the next one.
    """

    def __init__(self, user_directory: UserDirectory):
        self.user_directory = user_directory

    async def resolve_requester_contact(self,
                                        record: RequisitionRecord,
                                        channel: ContactChannel) -> Optional[str]:
        """
        Best-effort requester email or phone.

        Order: contact fields on the requisition, user keyed by uid, user keyed
        by username/userName, user whose `uid` field equals the uid, user whose
        `email` equals one of the requisition's email fields (as written, then
        lowercased).
        """
        direct = record_contact(record, channel)
        if direct:
            return direct

        for key in record.user_key_candidates():
            contact = await self._lookup(channel, "key", key,
                                         lambda key=key: self.user_directory.get_by_key(key))
            if contact:
                return contact

        uid = (record.uid or "").strip()
        if uid:
            contact = await self._lookup(channel, "uid", uid,
                                         lambda: self.user_directory.first_by_field("uid", uid))
            if contact:
                return contact

        for email in self._email_lookups(record.email_candidates()):
            contact = await self._lookup(channel, "email", email,
                                         lambda email=email: self.user_directory.first_by_field("email", email))
            if contact:
                return contact

        return None

    async def get_recipients_by_role(self, tags: Iterable[RoleTag], programme: Optional[str]) -> RoleRecipients:
        """
        Contacts of every active user holding one of `tags` who may act on `programme`.

        Users without a valid address or number are left out; a failed directory
        scan yields no recipients.
        """
        wanted = set(tags)
        recipients = RoleRecipients()
        try:
            users = await self.user_directory.list_all()
        except Exception as e:
            logger.error(f"Failed to load role-based recipients from users: {e}",
                         extra={"roles": sorted(tag.value for tag in wanted)}, exc_info=True)
            return recipients

        for user in users:
            if not role_matches_any(user, wanted):
                continue
            if user.is_inactive:
                continue
            if not user_can_handle_programme(user, programme):
                continue

            email = (user.email or "").strip()
            if is_valid_email(email) and email not in recipients.emails:
                recipients.emails.append(email)
            phone = user_contact(user, ContactChannel.PHONE)
            if phone and phone not in recipients.phones:
                recipients.phones.append(phone)
        return recipients

    async def _lookup(self,
                      channel: ContactChannel,
                      step: str,
                      value: str,
                      fetch: Callable[[], Awaitable[Optional[UserRecord]]]) -> Optional[str]:
        try:
            user = await fetch()
        except Exception as e:
            logger.error(f"Requester lookup by {step} failed: {e}", extra={"lookup": step, "value": value})
            return None
        return user_contact(user, channel) if user else None

    def _email_lookups(self, candidates: Iterable[Optional[str]]) -> List[str]:
        lookups = []
        for candidate in candidates:
            if not isinstance(candidate, str) or not candidate.strip():
                continue
            email = candidate.strip()
            lookups.append(email)
            if email.lower() != email:
                lookups.append(email.lower())
        return lookups
