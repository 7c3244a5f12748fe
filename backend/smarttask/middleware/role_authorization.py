from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.base import RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.responses import Response
from starlette.types import ASGIApp

from smarttask.dispatch.access_policy import AccessPolicyRegistry

logger = logging.getLogger(__name__)


class RoleAuthorizationMiddleware(BaseHTTPMiddleware):
    """Require *required_role* for every non-public request under *path_prefix*.

    Responses are plain text: 401 ``Authentication required`` and 403
    ``Role '<role>' required``.
    """

    def __init__(self, app: ASGIApp, required_role: str, path_prefix: str, policy: AccessPolicyRegistry):
        super().__init__(app)
        self.required_role = required_role
        self.path_prefix = path_prefix.rstrip("/").casefold()
        self.policy = policy

    def _applies_to(self, path: str) -> bool:
        folded = path.casefold()
        return folded == self.path_prefix or folded.startswith(self.path_prefix + "/")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if not self._applies_to(path):
            return await call_next(request)

        if self.policy.is_public_call(path):
            logger.debug("Skipping role authorization for public service: %s", path)
            return await call_next(request)

        user = request.scope.get("user")
        if not getattr(user, "is_authenticated", False):
            logger.warning("Unauthenticated user attempted to access role-protected resource: %s", path)
            return PlainTextResponse("Authentication required", status_code=401)

        if not user.is_in_role(self.required_role):
            logger.warning(
                "User %s with roles [%s] attempted to access resource requiring role '%s': %s",
                getattr(user, "user_id", None),
                ", ".join(getattr(user, "roles", [])),
                self.required_role,
                path,
            )
            return PlainTextResponse(f"Role '{self.required_role}' required", status_code=403)

        logger.debug("Role authorization passed for user with role '%s': %s", self.required_role, path)
        return await call_next(request)


__all__ = ["RoleAuthorizationMiddleware"]
