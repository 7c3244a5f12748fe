"""FastAPI dependencies exposing the *current principal* and role guards.

Token parsing happens once per request in
:class:`smarttask.auth.backend.JWTAuthBackend`; the dependencies below only
read ``request.user``.
"""

from __future__ import annotations

from fastapi import Depends
from fastapi import HTTPException
from fastapi import Request
from fastapi import status

from smarttask.auth.backend import Principal


def get_current_principal(request: Request) -> Principal:
    """Return the authenticated :class:`Principal` or raise **401**."""

    user = request.scope.get("user")
    if not getattr(user, "is_authenticated", False):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_role(role: str):
    """Dependency factory: the principal must carry *role* (case-sensitive)."""

    def _guard(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.is_in_role(role):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Role '{role}' required")
        return principal

    return _guard


__all__ = ["get_current_principal", "require_role"]
