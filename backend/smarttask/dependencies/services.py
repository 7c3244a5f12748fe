"""Expose the application's service registry and access policy to routers."""

from __future__ import annotations

from fastapi import Request

from smarttask.dispatch.access_policy import AccessPolicyRegistry
from smarttask.dispatch.binder import resolve_client_ip
from smarttask.dispatch.registry import ServiceScope


def get_service_scope(request: Request) -> ServiceScope:
    """Per-request scope, same as the one the dynamic dispatcher builds."""

    return request.app.state.registry.create_scope(
        principal=request.scope.get("user"),
        client_ip=resolve_client_ip(request),
    )


def get_access_policy(request: Request) -> AccessPolicyRegistry:
    return request.app.state.access_policy


__all__ = ["get_access_policy", "get_service_scope"]
