from __future__ import annotations

import logging
from typing import List
from typing import Optional

from smarttask.crud import crud
from smarttask.database import db_session
from smarttask.dispatch.registry import operation
from smarttask.models.enums import UserRole
from smarttask.schemas.schemas import UpdateProfileRequest
from smarttask.schemas.schemas import UserInfo
from smarttask.schemas.schemas import UserProfile
from smarttask.services.identity_service import to_user_info
from smarttask.services.interfaces import ICurrentUserService

logger = logging.getLogger(__name__)


class UserService:
    """Account lookups (public, for sign-up forms) and profile management."""

    def __init__(self, session_factory, current_user: ICurrentUserService):
        self.session_factory = session_factory
        self.current_user = current_user

    @operation(name="GetUserByUsernameAsync")
    def get_user_by_username(self, username: str) -> Optional[UserInfo]:
        with db_session(self.session_factory) as db:
            user = crud.get_user_by_username(db, username)
            return to_user_info(user) if user is not None else None

    @operation(name="GetUserByEmailAsync")
    def get_user_by_email(self, email: str) -> Optional[UserInfo]:
        with db_session(self.session_factory) as db:
            user = crud.get_user_by_email(db, email)
            return to_user_info(user) if user is not None else None

    @operation(name="CheckUsernameExistsAsync")
    def check_username_exists(self, username: str) -> bool:
        with db_session(self.session_factory) as db:
            return crud.get_user_by_username(db, username) is not None

    @operation(name="CheckEmailExistsAsync")
    def check_email_exists(self, email: str) -> bool:
        with db_session(self.session_factory) as db:
            return crud.get_user_by_email(db, email) is not None

    @operation(name="GetCurrentUserAsync")
    def get_current_user(self, current_user: ICurrentUserService) -> UserProfile:
        user_id = current_user.user_id
        if user_id is None:
            raise PermissionError("You must be logged in to view your profile")

        with db_session(self.session_factory) as db:
            user = crud.get_user(db, user_id, active_only=True)
            if user is None:
                raise ValueError(f"User {user_id} not found")
            return UserProfile.model_validate(user)

    @operation(name="UpdateProfileAsync")
    def update_profile(self, request: UpdateProfileRequest) -> UserProfile:
        """Apply the non-null fields of *request* to the caller's own profile."""

        user_id = self.current_user.user_id
        if user_id is None:
            raise PermissionError("You must be logged in to update your profile")

        with db_session(self.session_factory) as db:
            user = crud.update_user(db, user_id, **request.model_dump(exclude_unset=True))
            if user is None:
                raise ValueError(f"User {user_id} not found")
            logger.info("Profile updated for user %s", user_id)
            return UserProfile.model_validate(user)

    @operation(name="GetAllUsersAsync")
    def get_all_users(self, skip: int = 0, limit: int = 100) -> List[UserInfo]:
        if not self.current_user.is_in_role(UserRole.ADMIN.value):
            raise PermissionError("Admin role required to list users")
        if skip < 0 or limit <= 0:
            raise ValueError("skip must be >= 0 and limit must be > 0")

        with db_session(self.session_factory) as db:
            return [to_user_info(u) for u in crud.get_users(db, skip=skip, limit=limit)]


__all__ = ["UserService"]
