# claimdesk/services/identity.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from claimdesk.errors import Unauthenticated
from claimdesk.models import ROLE_ADMIN, ROLE_SERVICE_CENTER, ROLES


@dataclass(frozen=True)
class IdentityContext:
    """Who is calling: passed explicitly into every claim service call."""

    user_id: int
    role: str
    branch_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_service_center(self) -> bool:
        return self.role == ROLE_SERVICE_CENTER

    def to_dict(self) -> dict:
        return {"user_id": self.user_id, "role": self.role, "branch_id": self.branch_id}


def resolve_identity(user) -> IdentityContext:
    """
    Build an IdentityContext from a logged-in user (Flask-Login current_user
    or a User row). Role and branch are read from the user row each time so a
    branch reassignment takes effect without a new login.
    """
    if user is None or not getattr(user, "is_authenticated", False):
        raise Unauthenticated()

    if getattr(user, "is_active", True) is False:
        raise Unauthenticated("This account is inactive. Contact an admin.")

    role = (getattr(user, "role_code", None) or "").strip().upper()
    if role not in ROLES:
        raise Unauthenticated("Account has no recognised role.")

    return IdentityContext(user_id=user.id, role=role, branch_id=user.branch_id)
