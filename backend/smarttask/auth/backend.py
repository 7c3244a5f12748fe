"""Starlette authentication backend for JWT bearer tokens.

The token is read from the ``accessToken`` cookie first (set by the
``/api/auth`` router) and from the ``Authorization: Bearer`` header second.
An invalid token is not an error here: the request simply continues as
anonymous so that public operations keep working.
"""

from __future__ import annotations

import logging
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from starlette.authentication import AuthCredentials
from starlette.authentication import AuthenticationBackend
from starlette.authentication import BaseUser
from starlette.requests import HTTPConnection

from smarttask.services.interfaces import IJwtTokenService

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "accessToken"
BEARER_PREFIX = "bearer "


class Principal(BaseUser):
    """Authenticated caller built from verified JWT claims."""

    def __init__(self, user_id: Optional[int], username: str, email: str, roles: List[str], claims: Dict[str, Any]):
        self.user_id = user_id
        self.username = username
        self.email = email
        self.roles = roles
        self.claims = claims

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "Principal":
        try:
            user_id: Optional[int] = int(claims.get("sub"))
        except (TypeError, ValueError):
            user_id = None

        role_claim = claims.get("role") or []
        roles = [role_claim] if isinstance(role_claim, str) else [str(r) for r in role_claim]
        return cls(
            user_id=user_id,
            username=claims.get("unique_name") or "",
            email=claims.get("email") or "",
            roles=roles,
            claims=claims,
        )

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def display_name(self) -> str:
        return self.username

    @property
    def identity(self) -> str:
        return str(self.user_id)

    def is_in_role(self, role: str) -> bool:
        # Case-sensitive, like the role claim itself.
        return role in self.roles


def extract_token(conn: HTTPConnection) -> Optional[str]:
    token = conn.cookies.get(ACCESS_TOKEN_COOKIE)
    if token:
        return token

    header = conn.headers.get("Authorization", "")
    if header.lower().startswith(BEARER_PREFIX):
        return header[len(BEARER_PREFIX) :].strip() or None
    return None


class JWTAuthBackend(AuthenticationBackend):
    def __init__(self, token_service: IJwtTokenService):
        self.token_service = token_service

    async def authenticate(self, conn: HTTPConnection):
        token = extract_token(conn)
        if token is None:
            return None

        claims = self.token_service.get_claims_from_token(token)
        if claims is None:
            logger.debug("Ignoring invalid access token on %s", conn.url.path)
            return None

        principal = Principal.from_claims(claims)
        return AuthCredentials(["authenticated", *principal.roles]), principal


__all__ = ["ACCESS_TOKEN_COOKIE", "JWTAuthBackend", "Principal", "extract_token"]
