"""``/api/services/{Component}/{Operation}`` → registered business operation.

The middleware owns the whole pipeline for matching paths (parse, policy,
authentication, resolve, bind, invoke, render) and never forwards such
requests downstream.  Every other path goes straight to ``call_next``.
"""

from __future__ import annotations

import logging
import time

from fastapi.encoders import jsonable_encoder
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.base import RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.responses import Response
from starlette.types import ASGIApp

from smarttask.dispatch.access_policy import AccessPolicyRegistry
from smarttask.dispatch.binder import bind_arguments
from smarttask.dispatch.binder import resolve_client_ip
from smarttask.dispatch.dispatcher import ServiceDispatcher
from smarttask.dispatch.errors import DispatchError
from smarttask.dispatch.errors import InvalidRequestBody
from smarttask.dispatch.errors import Unauthenticated
from smarttask.dispatch.registry import ServiceRegistry
from smarttask.dispatch.routing import parse_service_path
from smarttask.utils.log import log

logger = logging.getLogger(__name__)


def _principal(request: Request):
    # ``user`` is only present when AuthenticationMiddleware runs outside us.
    return request.scope.get("user")


def _is_authenticated(principal) -> bool:
    return bool(getattr(principal, "is_authenticated", False))


class DynamicServiceMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        registry: ServiceRegistry,
        policy: AccessPolicyRegistry,
        dispatcher: ServiceDispatcher | None = None,
    ):
        super().__init__(app)
        self.registry = registry
        self.policy = policy
        self.dispatcher = dispatcher or ServiceDispatcher(registry)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        route = parse_service_path(request.url.path)
        if route is None:
            return await call_next(request)

        started = time.perf_counter()
        service_key = route.key
        is_public = self.policy.is_public(route.component, route.operation)
        access_level = self.policy.describe_access_level(route.component, route.operation)
        principal = _principal(request)
        client_ip = resolve_client_ip(request)

        try:
            if not is_public and not _is_authenticated(principal):
                logger.warning("Unauthenticated access attempt to protected service: %s", service_key)
                raise Unauthenticated("Authentication required")

            scope = self.registry.create_scope(principal=principal, client_ip=client_ip)
            handle = self.dispatcher.resolve(scope, route.component, route.operation)
            body = await self._read_body(request)

            args = bind_arguments(handle.descriptor, body, client_ip=client_ip, service_key=service_key)
            result = await self.dispatcher.invoke(scope, handle, args)
        except DispatchError as exc:
            log.info(
                "dispatch",
                service=service_key,
                access_level=access_level,
                status=exc.status_code,
                outcome=type(exc).__name__,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            return JSONResponse(exc.payload(service_key, access_level), status_code=exc.status_code)

        log.info(
            "dispatch",
            service=service_key,
            access_level=access_level,
            user_id=getattr(principal, "user_id", None) if _is_authenticated(principal) else None,
            status=200,
            outcome="Success",
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return JSONResponse(jsonable_encoder(result, by_alias=True))

    @staticmethod
    async def _read_body(request: Request) -> str:
        raw = await request.body()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidRequestBody(str(exc)) from exc


__all__ = ["DynamicServiceMiddleware"]
