# core/roles.py

"""
Staff admin classification.

Staff admins are configured outside the database (STAFF_ADMIN_EMAILS) and
have system-wide privileges: creating neighborhoods, approving and removing
members anywhere, demoting neighborhood admins, and impersonating regular
users. They never hold memberships of their own.
"""

from typing import Iterable, Optional

from core.config import settings


class StaffAllowList:
    """Immutable set of staff admin emails, loaded once at startup."""

    __slots__ = ("_emails",)

    def __init__(self, emails: Iterable[str] = ()):
        self._emails = frozenset(emails)

    @classmethod
    def from_settings(cls, config=settings) -> "StaffAllowList":
        return cls(config.staff_admin_emails)

    def __contains__(self, email: object) -> bool:
        # Exact, case-sensitive match only
        return isinstance(email, str) and email in self._emails

    def __len__(self) -> int:
        return len(self._emails)

    def __repr__(self) -> str:
        return f"StaffAllowList({len(self._emails)} emails)"


staff_allow_list = StaffAllowList.from_settings()


def is_staff_admin(email: Optional[str], allow_list: Optional[StaffAllowList] = None) -> bool:
    if not email:
        return False
    return email in (allow_list if allow_list is not None else staff_allow_list)


def can_have_memberships(email: Optional[str], allow_list: Optional[StaffAllowList] = None) -> bool:
    """Staff admins act through impersonation instead of their own memberships."""
    return not is_staff_admin(email, allow_list)
