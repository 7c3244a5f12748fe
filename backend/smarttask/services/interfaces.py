"""Capability interfaces resolved by the dynamic service dispatcher.

A component named ``Foo`` is looked up as ``IFoo`` first, so every service
that should be reachable by its capability name implements one of these.
"""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from smarttask.schemas.schemas import AiAnswer
from smarttask.schemas.schemas import AuthResponse
from smarttask.schemas.schemas import ChangePasswordRequest
from smarttask.schemas.schemas import LoginRequest
from smarttask.schemas.schemas import RegisterRequest
from smarttask.schemas.schemas import TaskSuggestions
from smarttask.schemas.schemas import UserInfo


class IJwtTokenService(ABC):
    @abstractmethod
    def generate_access_token(self, user: Any) -> str: ...

    @abstractmethod
    def generate_refresh_token(self) -> str: ...

    @abstractmethod
    def validate_token(self, token: str) -> bool: ...

    @abstractmethod
    def get_claims_from_token(self, token: str) -> Optional[Dict[str, Any]]: ...


class ICurrentUserService(ABC):
    """Read-only view of the caller for the current request."""

    @property
    @abstractmethod
    def is_authenticated(self) -> bool: ...

    @property
    @abstractmethod
    def user_id(self) -> Optional[int]: ...

    @property
    @abstractmethod
    def username(self) -> Optional[str]: ...

    @property
    @abstractmethod
    def email(self) -> Optional[str]: ...

    @property
    @abstractmethod
    def roles(self) -> List[str]: ...

    @abstractmethod
    def is_in_role(self, role: str) -> bool: ...


class IIdentityService(ABC):
    @abstractmethod
    def login(self, request: LoginRequest, ip_address: str) -> Optional[AuthResponse]: ...

    @abstractmethod
    def register(self, request: RegisterRequest, ip_address: str) -> Optional[AuthResponse]: ...

    @abstractmethod
    def refresh_token(self, refresh_token: str, ip_address: str) -> Optional[AuthResponse]: ...

    @abstractmethod
    def revoke_token(self, refresh_token: str, ip_address: str) -> bool: ...

    @abstractmethod
    def change_password(self, user_id: int, request: ChangePasswordRequest) -> bool: ...

    @abstractmethod
    def get_user_by_id(self, user_id: int) -> Optional[UserInfo]: ...

    @abstractmethod
    def validate_token(self, token: str) -> bool: ...

    @abstractmethod
    def get_user_id_from_token(self, token: str) -> Optional[int]: ...

    @abstractmethod
    def logout(self, refresh_token: str) -> bool: ...


class IOpenAiService(ABC):
    @abstractmethod
    async def ask_async(self, prompt: str, system_prompt: Optional[str] = None, model: Optional[str] = None) -> AiAnswer:
        ...

    @abstractmethod
    async def suggest_tasks_async(self, goal: str, count: int = 3) -> TaskSuggestions: ...


__all__ = [
    "ICurrentUserService",
    "IIdentityService",
    "IJwtTokenService",
    "IOpenAiService",
]
