"""HS256 access tokens (python-jose) and opaque refresh tokens."""

from __future__ import annotations

import base64
import logging
import secrets
import uuid
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Any
from typing import Dict
from typing import Optional

from jose import JWTError
from jose import jwt

from smarttask.config import Settings
from smarttask.services.interfaces import IJwtTokenService

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
REFRESH_TOKEN_BYTES = 64


class JwtTokenService(IJwtTokenService):
    def __init__(self, settings: Settings):
        self._settings = settings

    def generate_access_token(self, user: Any) -> str:
        """Return a signed access token for *user* (a ``User`` row)."""

        expiry = datetime.now(timezone.utc) + timedelta(minutes=self._settings.access_token_expiration_minutes)
        # ``exp`` must be an integer UNIX timestamp.
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "unique_name": user.username,
            "name": user.full_name or "",
            "role": user.role or "User",
            "jti": str(uuid.uuid4()),
            "iss": self._settings.jwt_issuer,
            "aud": self._settings.jwt_audience,
            "exp": int(expiry.timestamp()),
        }
        return jwt.encode(payload, self._settings.jwt_secret, algorithm=ALGORITHM)

    def generate_refresh_token(self) -> str:
        return base64.b64encode(secrets.token_bytes(REFRESH_TOKEN_BYTES)).decode("ascii")

    def get_claims_from_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Return the verified claims or ``None`` (bad signature, expired, wrong audience...)."""

        if not token:
            return None
        try:
            return jwt.decode(
                token,
                self._settings.jwt_secret,
                algorithms=[ALGORITHM],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
            )
        except JWTError as exc:
            logger.debug("Token validation failed: %s", exc)
            return None

    def validate_token(self, token: str) -> bool:
        return self.get_claims_from_token(token) is not None


__all__ = ["JwtTokenService"]
