from __future__ import annotations

from typing import Optional

from badgeauth.core.errors import NoSupervisorError, NotFoundError
from badgeauth.core.store import Employee, EmployeeStore


def normalize_badge(badge_number: str) -> str:
    return str(badge_number or "").strip()


def mask_email(email: str) -> str:
    """john.doe@corp.com -> j***@corp.com"""
    local, sep, domain = str(email or "").partition("@")
    if not sep or not local or not domain:
        return "***"
    return f"{local[0]}***@{domain}"


class CredentialStore:
    """Read-only view of badge holders."""

    def __init__(self, store: EmployeeStore):
        self.store = store

    def lookup(self, badge_number: str) -> Employee:
        badge = normalize_badge(badge_number)
        emp = self.store.get_by_badge(badge) if badge else None
        if emp is None:
            raise NotFoundError(badge_number=badge)
        return emp

    @staticmethod
    def has_account(employee: Employee) -> bool:
        return employee.has_account

    def supervisor_email(self, employee: Employee) -> Optional[str]:
        if not employee.supervisor_id:
            return None
        sup = self.store.get_by_id(employee.supervisor_id)
        if sup is None or not (sup.email or "").strip():
            return None
        return sup.email.strip()

    def resolve_supervisor_contact(self, employee: Employee) -> str:
        """Masked delivery address of the direct supervisor (one hop only)."""
        email = self.supervisor_email(employee)
        if email is None:
            raise NoSupervisorError(badge_number=employee.badge_number)
        return mask_email(email)
