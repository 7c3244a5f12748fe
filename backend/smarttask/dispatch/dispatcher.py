"""Resolve a named component/operation and invoke it with bound arguments."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any
from typing import List

from starlette.concurrency import run_in_threadpool

from smarttask.dispatch.binder import INJECTED
from smarttask.dispatch.errors import AccessDenied
from smarttask.dispatch.errors import ComponentNotFound
from smarttask.dispatch.errors import InvalidArguments
from smarttask.dispatch.errors import OperationNotFound
from smarttask.dispatch.errors import UnexpectedFailure
from smarttask.dispatch.registry import ComponentRegistration
from smarttask.dispatch.registry import OperationDescriptor
from smarttask.dispatch.registry import ServiceRegistry
from smarttask.dispatch.registry import ServiceScope

logger = logging.getLogger(__name__)

INTERFACES_NAMESPACE = "smarttask.services.interfaces"
SERVICES_NAMESPACE = "smarttask.services"


@dataclass(frozen=True)
class OperationHandle:
    registration: ComponentRegistration
    descriptor: OperationDescriptor
    instance: Any

    @property
    def component(self) -> str:
        return self.registration.name


class ServiceDispatcher:
    """In-process dispatcher over a :class:`ServiceRegistry`."""

    def __init__(self, registry: ServiceRegistry):
        self.registry = registry

    def resolve(self, scope: ServiceScope, component: str, operation: str) -> OperationHandle:
        """Find *operation* on *component*.

        Raises:
            ComponentNotFound: neither ``I{component}`` nor ``{component}`` is registered
            OperationNotFound: the component has no operation with that exact name
        """

        registration = self.registry.lookup(component)
        if registration is None:
            capability_name, concrete_name = self.registry.candidate_names(component)
            logger.warning(
                "Service not found in registry: %s. Tried capability %s, concrete %s",
                component,
                capability_name,
                concrete_name,
            )
            raise ComponentNotFound(
                component,
                [f"{INTERFACES_NAMESPACE}.{capability_name}", f"{SERVICES_NAMESPACE}.{concrete_name}"],
            )

        descriptor = registration.operations.get(operation)
        if descriptor is None:
            logger.warning("Method not found: %s.%s", component, operation)
            raise OperationNotFound(component, operation, registration.available_operations())

        return OperationHandle(registration=registration, descriptor=descriptor, instance=scope.instance(registration))

    async def invoke(self, scope: ServiceScope, handle: OperationHandle, args: List[Any]) -> Any:
        """Call the operation; business failures are reclassified, never leaked.

        ``PermissionError`` → :class:`AccessDenied`, ``ValueError`` →
        :class:`InvalidArguments`, anything else → :class:`UnexpectedFailure`
        (stack trace logged, only the message returned).
        """

        final_args = [
            scope.provide(param.annotation, owner=handle.component) if value is INJECTED else value
            for param, value in zip(handle.descriptor.parameters, args)
        ]
        method = getattr(handle.instance, handle.descriptor.attribute)
        service_key = f"{handle.component}.{handle.descriptor.name}"

        logger.debug("Invoking %s with %d arguments", service_key, sum(a is not None for a in final_args))

        try:
            if handle.descriptor.is_coroutine:
                result = await method(*final_args)
            else:
                result = await run_in_threadpool(method, *final_args)
                if inspect.isawaitable(result):
                    result = await result
        except PermissionError as exc:
            logger.warning("Service method denied access: %s: %s", service_key, exc)
            raise AccessDenied(str(exc) or "Access denied") from exc
        except ValueError as exc:
            logger.warning("Service method rejected arguments: %s: %s", service_key, exc)
            raise InvalidArguments(str(exc)) from exc
        except Exception as exc:
            logger.exception("Service method threw exception: %s", service_key)
            raise UnexpectedFailure(str(exc)) from exc

        return result


__all__ = ["OperationHandle", "ServiceDispatcher"]
