"""Centralised allow-list of operations and paths that need no authentication.

The registry is a static allow-list, not a policy language: an entry matches
exactly one ``"{component}.{operation}"`` pair (or one fixed path), compared
case-insensitively.  It is built once at startup and read on every request;
:meth:`AccessPolicyRegistry.add_public_entry` and
:meth:`AccessPolicyRegistry.remove_public_entry` exist for the admin API only.
"""

from __future__ import annotations

import logging
import threading
from typing import FrozenSet
from typing import Iterable
from typing import Optional

from smarttask.dispatch.routing import parse_service_path

logger = logging.getLogger(__name__)

PUBLIC_ACCESS_DESCRIPTION = "Public Service (No authentication required)"
PROTECTED_ACCESS_DESCRIPTION = "Protected Service (Authentication required)"

DEFAULT_PUBLIC_SERVICES: tuple[str, ...] = (
    # Authentication (available without login)
    "IdentityService.LoginAsync",
    "IdentityService.RegisterAsync",
    "IdentityService.RefreshTokenAsync",
    "IdentityService.ForgotPasswordAsync",
    "IdentityService.ResetPasswordAsync",
    "IdentityService.VerifyEmailAsync",
    "IdentityService.ResendVerificationAsync",
    # Registration / login validation
    "UserService.GetUserByUsernameAsync",
    "UserService.GetUserByEmailAsync",
    "UserService.CheckUsernameExistsAsync",
    "UserService.CheckEmailExistsAsync",
    "UserService.CreateUserAsync",
    "UserService.UpdatePasswordAsync",
    # Health
    "HealthService.GetHealthStatusAsync",
    "SystemService.GetPublicInfoAsync",
    "SystemService.GetVersionAsync",
    # Public information
    "InfoService.GetPublicSettingsAsync",
    "InfoService.GetTermsOfServiceAsync",
    "InfoService.GetPrivacyPolicyAsync",
)

DEFAULT_PUBLIC_PATHS: tuple[str, ...] = (
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/refresh-token",
    "/api/auth/forgot-password",
    "/api/auth/reset-password",
    "/api/auth/verify-email",
    "/api/auth/resend-verification",
    "/api/health",
    "/api/health/status",
    "/api/info/version",
    "/api/info/terms",
    "/api/info/privacy",
)


def _service_key(component: str, operation: str) -> str:
    return f"{component}.{operation}".casefold()


class AccessPolicyRegistry:
    """Thread-safe, case-insensitive public allow-list."""

    def __init__(self, public_services: Iterable[str] = (), public_paths: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._services: set[str] = {entry.casefold() for entry in public_services}
        self._paths: set[str] = {path.casefold() for path in public_paths}

    @classmethod
    def with_defaults(cls) -> "AccessPolicyRegistry":
        return cls(DEFAULT_PUBLIC_SERVICES, DEFAULT_PUBLIC_PATHS)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def is_public(self, component: str, operation: str) -> bool:
        key = _service_key(component, operation)
        with self._lock:
            return key in self._services

    def is_public_path(self, path: Optional[str]) -> bool:
        if not path:
            return False
        with self._lock:
            return path.casefold() in self._paths

    def is_public_call(self, request_path: Optional[str]) -> bool:
        """Classify a raw request path.

        Dynamic service paths are judged by their (component, operation)
        pair; every other path by exact fixed-path lookup.
        """

        route = parse_service_path(request_path)
        if route is not None:
            return self.is_public(route.component, route.operation)
        return self.is_public_path(request_path)

    def describe_access_level(self, component: str, operation: str) -> str:
        if self.is_public(component, operation):
            return PUBLIC_ACCESS_DESCRIPTION
        return PROTECTED_ACCESS_DESCRIPTION

    def public_services(self) -> FrozenSet[str]:
        """Snapshot of the (case-folded) public service keys."""
        with self._lock:
            return frozenset(self._services)

    def public_paths(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._paths)

    # ------------------------------------------------------------------
    # Administrative mutation
    # ------------------------------------------------------------------

    def add_public_entry(self, component: str, operation: str) -> None:
        key = _service_key(component, operation)
        with self._lock:
            self._services.add(key)
        logger.info("Service %s.%s is now public", component, operation)

    def remove_public_entry(self, component: str, operation: str) -> bool:
        """Make an operation protected again; returns False when it was not public."""
        key = _service_key(component, operation)
        with self._lock:
            if key not in self._services:
                return False
            self._services.discard(key)
        logger.info("Service %s.%s is now protected", component, operation)
        return True


# Process-wide default instance used by the application factory.
access_policy = AccessPolicyRegistry.with_defaults()


__all__ = [
    "AccessPolicyRegistry",
    "DEFAULT_PUBLIC_PATHS",
    "DEFAULT_PUBLIC_SERVICES",
    "PROTECTED_ACCESS_DESCRIPTION",
    "PUBLIC_ACCESS_DESCRIPTION",
    "access_policy",
]
