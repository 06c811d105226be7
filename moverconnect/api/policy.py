from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional

from .models import Role, VerificationStatus
from .settings import settings


# Post-login landing page per role.
REDIRECTS = {
    Role.ADMIN: "/admin",
    Role.MOVER: "/mover",
    Role.CLIENT: "/dashboardclient",
}


def _split_emails(raw: str) -> FrozenSet[str]:
    return frozenset(e.strip() for e in (raw or "").split(",") if e.strip())


@dataclass(frozen=True)
class AccessPolicy:
    """Static authorization policy shared by every router.

    The admin allow-list lives here and nowhere else. Emails are matched
    exactly (case-sensitive), the same way the portal always has.
    """

    admin_emails: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_settings(cls) -> "AccessPolicy":
        return cls(admin_emails=_split_emails(settings.ADMIN_EMAILS))

    @classmethod
    def with_admins(cls, emails: Iterable[str]) -> "AccessPolicy":
        return cls(admin_emails=frozenset(emails))

    def is_admin(self, email: Optional[str]) -> bool:
        return bool(email) and email in self.admin_emails

    def redirect_for(self, role: Role) -> str:
        return REDIRECTS[Role(role)]

    def can_transition_booking(self, *, uid: str, booking: Dict[str, Any]) -> bool:
        return bool(uid) and uid == str(booking.get("mover_id") or "")

    def is_booking_party(self, *, uid: str, role: str, booking: Dict[str, Any]) -> bool:
        if role == Role.ADMIN.value:
            return True
        return bool(uid) and uid in {str(booking.get("client_id") or ""), str(booking.get("mover_id") or "")}

    def can_quote(self, mover_profile: Optional[Dict[str, Any]]) -> bool:
        if not mover_profile:
            return False
        return str(mover_profile.get("verification_status") or "") == VerificationStatus.APPROVED.value


policy = AccessPolicy.from_settings()


def get_policy() -> AccessPolicy:
    return policy
