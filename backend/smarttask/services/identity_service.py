"""Username/password identity: login, registration and refresh-token rotation.

Refresh tokens are opaque random strings stored in ``refresh_tokens``; a
refresh revokes the presented token and issues a new pair.  Access tokens are
JWTs produced by :class:`~smarttask.services.interfaces.IJwtTokenService`.
"""

from __future__ import annotations

import logging
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Optional

from smarttask.config import Settings
from smarttask.crud import crud
from smarttask.database import db_session
from smarttask.dispatch.registry import operation
from smarttask.models.enums import UserRole
from smarttask.models.models import User
from smarttask.schemas.schemas import AuthResponse
from smarttask.schemas.schemas import ChangePasswordRequest
from smarttask.schemas.schemas import LoginRequest
from smarttask.schemas.schemas import RegisterRequest
from smarttask.schemas.schemas import UserInfo
from smarttask.services.interfaces import ICurrentUserService
from smarttask.services.interfaces import IIdentityService
from smarttask.services.interfaces import IJwtTokenService
from smarttask.utils.security import hash_password
from smarttask.utils.security import verify_password

logger = logging.getLogger(__name__)

LOGOUT_REVOKER = "logout"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_user_info(user: User) -> UserInfo:
    return UserInfo(
        user_id=user.id or 0,
        username=user.username,
        email=user.email,
        full_name=user.full_name or "",
        role=user.role or UserRole.USER.value,
        is_active=bool(user.is_active) if user.is_active is not None else True,
    )


class IdentityService(IIdentityService):
    def __init__(
        self,
        session_factory,
        token_service: IJwtTokenService,
        settings: Settings,
        current_user: Optional[ICurrentUserService] = None,
    ):
        self.session_factory = session_factory
        self.token_service = token_service
        self.settings = settings
        self.current_user = current_user

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _issue(self, user: User, ip_address: str) -> AuthResponse:
        access_token = self.token_service.generate_access_token(user)
        refresh_token = self.token_service.generate_refresh_token()
        self._save_refresh_token(user.id, refresh_token, ip_address)

        return AuthResponse(
            token=access_token,
            refresh_token=refresh_token,
            expires=_utcnow() + timedelta(minutes=self.settings.access_token_expiration_minutes),
            user=to_user_info(user),
        )

    def _save_refresh_token(self, user_id: Optional[int], token: str, ip_address: str) -> None:
        with db_session(self.session_factory) as db:
            crud.save_refresh_token(
                db,
                token=token,
                # A registration whose insert failed carries id 0; store no owner.
                user_id=user_id or None,
                expires_at=_utcnow() + timedelta(days=self.settings.refresh_token_expiration_days),
                created_by_ip=ip_address,
            )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @operation(name="LoginAsync")
    def login(self, request: LoginRequest, ip_address: str) -> Optional[AuthResponse]:
        """Return tokens for valid credentials, ``None`` otherwise."""

        with db_session(self.session_factory) as db:
            user = crud.get_user_by_email(db, request.email, active_only=True)

        if user is None or not verify_password(request.password, user.password_hash):
            logger.warning("Failed login attempt for email: %s", request.email)
            return None

        response = self._issue(user, ip_address)
        logger.info("User %s successfully logged in", user.id)
        return response

    @operation(name="RegisterAsync")
    def register(self, request: RegisterRequest, ip_address: str) -> Optional[AuthResponse]:
        """Create an account and log it in; ``None`` when email or username is taken."""

        with db_session(self.session_factory) as db:
            existing = crud.get_user_by_email_or_username(db, request.email, request.username)
        if existing is not None:
            logger.warning(
                "Registration attempt with existing email or username: %s, %s", request.email, request.username
            )
            return None

        user = User(
            id=0,
            username=request.username,
            email=request.email,
            password_hash=hash_password(request.password),
            full_name=request.full_name,
            phone_number=request.phone_number,
            role=UserRole.USER.value,
            is_active=True,
        )

        # A failed insert is logged and registration continues with id 0.
        try:
            with db_session(self.session_factory) as db:
                created = crud.create_user(
                    db,
                    username=user.username,
                    email=user.email,
                    password_hash=user.password_hash,
                    full_name=user.full_name,
                    phone_number=user.phone_number,
                    role=user.role,
                )
                user = created
        except Exception:
            logger.exception("Failed to persist new user %s; continuing with user id 0", request.username)

        response = self._issue(user, ip_address)
        logger.info("User %s successfully registered", user.id)
        return response

    @operation(name="RefreshTokenAsync")
    def refresh_token(self, refresh_token: str, ip_address: str) -> Optional[AuthResponse]:
        """Rotate *refresh_token*: revoke it and issue a fresh pair."""

        with db_session(self.session_factory) as db:
            token = crud.get_active_refresh_token(db, refresh_token)
            if token is None or not token.is_active:
                logger.warning("Invalid or expired refresh token used")
                return None

            user = crud.get_user(db, token.user_id, active_only=True) if token.user_id else None

        if user is None:
            logger.warning("User not found for refresh token")
            return None

        self.revoke_token(refresh_token, ip_address)
        response = self._issue(user, ip_address)
        logger.info("Tokens refreshed for user %s", user.id)
        return response

    @operation(name="RevokeTokenAsync")
    def revoke_token(self, refresh_token: str, ip_address: str) -> bool:
        with db_session(self.session_factory) as db:
            revoked = crud.revoke_refresh_token(db, refresh_token, revoked_at=_utcnow(), revoked_by=ip_address)
        return revoked > 0

    @operation(name="ChangePasswordAsync")
    def change_password(self, user_id: int, request: ChangePasswordRequest) -> bool:
        """Change the password of *user_id* after verifying the current one.

        Callers may only change their own password unless they are admins.
        """

        if self.current_user is not None and self.current_user.is_authenticated:
            if self.current_user.user_id != user_id and not self.current_user.is_in_role(UserRole.ADMIN.value):
                raise PermissionError("You can only change your own password")

        with db_session(self.session_factory) as db:
            user = crud.get_user(db, user_id)
            if user is None or not verify_password(request.current_password, user.password_hash):
                logger.warning("Invalid current password for user %s", user_id)
                return False

            changed = crud.update_user_password(db, user_id, hash_password(request.new_password))

        logger.info("Password changed successfully for user %s", user_id)
        return changed

    @operation(name="GetUserByIdAsync")
    def get_user_by_id(self, user_id: int) -> Optional[UserInfo]:
        with db_session(self.session_factory) as db:
            user = crud.get_user(db, user_id, active_only=True)
            return to_user_info(user) if user is not None else None

    @operation(name="ValidateTokenAsync")
    def validate_token(self, token: str) -> bool:
        return self.token_service.validate_token(token)

    @operation(name="GetUserIdFromTokenAsync")
    def get_user_id_from_token(self, token: str) -> Optional[int]:
        claims = self.token_service.get_claims_from_token(token)
        if claims is None:
            return None
        try:
            return int(claims.get("sub"))
        except (TypeError, ValueError):
            return None

    @operation(name="LogoutAsync")
    def logout(self, refresh_token: str) -> bool:
        return self.revoke_token(refresh_token, LOGOUT_REVOKER)


__all__ = ["IdentityService", "to_user_info"]
