from __future__ import annotations

from typing import List
from typing import Optional

from smarttask.services.interfaces import ICurrentUserService


class CurrentUserService(ICurrentUserService):
    """Wrap the request principal (``None`` or an anonymous user allowed)."""

    def __init__(self, principal=None):
        self._principal = principal

    @property
    def is_authenticated(self) -> bool:
        return bool(getattr(self._principal, "is_authenticated", False))

    @property
    def user_id(self) -> Optional[int]:
        return getattr(self._principal, "user_id", None) if self.is_authenticated else None

    @property
    def username(self) -> Optional[str]:
        return getattr(self._principal, "username", None) if self.is_authenticated else None

    @property
    def email(self) -> Optional[str]:
        return getattr(self._principal, "email", None) if self.is_authenticated else None

    @property
    def roles(self) -> List[str]:
        return list(getattr(self._principal, "roles", [])) if self.is_authenticated else []

    def is_in_role(self, role: str) -> bool:
        return role in self.roles
