"""Composition root: every component reachable through ``/api/services``.

A service that is not registered here cannot be dispatched to, no matter
which ``@operation`` methods it declares.
"""

from __future__ import annotations

from typing import Optional

from openai import AsyncOpenAI

from smarttask.auth.jwt_tokens import JwtTokenService
from smarttask.config import Settings
from smarttask.dispatch.registry import ServiceRegistry
from smarttask.services.current_user_service import CurrentUserService
from smarttask.services.health_service import HealthService
from smarttask.services.identity_service import IdentityService
from smarttask.services.interfaces import ICurrentUserService
from smarttask.services.interfaces import IIdentityService
from smarttask.services.interfaces import IJwtTokenService
from smarttask.services.interfaces import IOpenAiService
from smarttask.services.openai_service import OpenAiService
from smarttask.services.task_service import TaskService
from smarttask.services.user_service import UserService


def build_registry(
    settings: Settings,
    session_factory,
    *,
    token_service: Optional[IJwtTokenService] = None,
    openai_client: Optional[AsyncOpenAI] = None,
) -> ServiceRegistry:
    token_service = token_service or JwtTokenService(settings)
    registry = ServiceRegistry()

    registry.register(JwtTokenService, lambda scope: token_service, capability=IJwtTokenService)
    registry.register(
        CurrentUserService,
        lambda scope: CurrentUserService(scope.principal),
        capability=ICurrentUserService,
    )
    registry.register(
        IdentityService,
        lambda scope: IdentityService(
            session_factory,
            scope.get(IJwtTokenService),
            settings,
            scope.get(ICurrentUserService),
        ),
        capability=IIdentityService,
    )
    registry.register(UserService, lambda scope: UserService(session_factory, scope.get(ICurrentUserService)))
    registry.register(TaskService, lambda scope: TaskService(session_factory, scope.get(ICurrentUserService)))
    registry.register(HealthService, lambda scope: HealthService(session_factory, settings))
    registry.register(
        OpenAiService,
        lambda scope: OpenAiService(settings, client=openai_client),
        capability=IOpenAiService,
    )
    return registry


__all__ = ["build_registry"]
