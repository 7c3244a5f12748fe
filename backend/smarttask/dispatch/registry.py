"""Explicit component registry for the dynamic service dispatcher.

Services opt in to remote invocation by decorating methods with
:func:`operation`; :meth:`ServiceRegistry.register` builds the operation
table (and every parameter descriptor) once, at startup.  Each request then
works against a :class:`ServiceScope` which instantiates components lazily
through their factory closures and caches them for the rest of the request.

Resolution by name follows the interface-first convention: component ``Foo``
is looked up as capability ``IFoo`` first and as concrete ``Foo`` second.
"""

from __future__ import annotations

import inspect
import logging
import typing
from dataclasses import dataclass
from dataclasses import field
from types import MappingProxyType
from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple

from smarttask.utils.log import get_logger

logger = logging.getLogger(__name__)

CAPABILITY_PREFIX = "I"
NO_DEFAULT = inspect.Parameter.empty

_OPERATION_ATTR = "__service_operation__"


# ---------------------------------------------------------------------------
# Naming helpers
# ---------------------------------------------------------------------------


def pascal_case(name: str) -> str:
    """``login_async`` → ``LoginAsync``."""
    return "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)


def camel_case(name: str) -> str:
    """``ip_address`` → ``ipAddress`` (the JSON field name of a parameter)."""
    pascal = pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


# ---------------------------------------------------------------------------
# Operation marker
# ---------------------------------------------------------------------------


def operation(func: Optional[Callable] = None, *, name: Optional[str] = None):
    """Mark a service method as invocable through ``/api/services``.

    The public name defaults to the PascalCase form of the method name::

        @operation
        async def login_async(self, request: LoginRequest, ip_address: str): ...

    is reachable as ``IdentityService/LoginAsync``.
    """

    def decorate(fn: Callable) -> Callable:
        setattr(fn, _OPERATION_ATTR, name or pascal_case(fn.__name__))
        return fn

    if func is not None:
        return decorate(func)
    return decorate


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


def _is_interface(cls: type) -> bool:
    return inspect.isabstract(cls) or bool(getattr(cls, "_is_protocol", False))


def is_injectable_type(annotation: Any) -> bool:
    """Return True for parameter types supplied by the container, not the body.

    * interfaces following the ``I`` naming convention (abstract classes or
      protocols), e.g. ``ICurrentUserService``;
    * any type whose name ends with ``Service``;
    * logger types (stdlib or structlog);
    * the registry / request scope itself.
    """

    if not isinstance(annotation, type):
        return False

    type_name = annotation.__name__
    if type_name.startswith(CAPABILITY_PREFIX) and _is_interface(annotation):
        return True
    if type_name.endswith("Service"):
        return True
    if issubclass(annotation, logging.Logger) or annotation.__module__.startswith("structlog"):
        return True
    return issubclass(annotation, (ServiceRegistry, ServiceScope))


def type_display_name(annotation: Any) -> str:
    if annotation is Any:
        return "Any"
    if isinstance(annotation, type):
        return annotation.__name__
    return str(annotation).replace("typing.", "")


@dataclass(frozen=True)
class ParameterDescriptor:
    name: str
    wire_name: str
    annotation: Any
    default: Any = NO_DEFAULT
    injected: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    @property
    def type_name(self) -> str:
        return type_display_name(self.annotation)

    def matches(self, key: str) -> bool:
        """Case-insensitive match of a JSON key against wire or Python name."""
        folded = key.casefold()
        return folded == self.wire_name.casefold() or folded == self.name.casefold()


@dataclass(frozen=True)
class OperationDescriptor:
    name: str
    attribute: str
    parameters: Tuple[ParameterDescriptor, ...]
    is_coroutine: bool

    def expected_parameters(self) -> List[Dict[str, Any]]:
        """Non-injected parameters in the shape reported to API callers."""
        return [
            {"name": p.wire_name, "type": p.type_name, "required": not p.has_default}
            for p in self.parameters
            if not p.injected
        ]


def describe_operation(func: Callable, name: str) -> OperationDescriptor:
    """Build the descriptor for *func* (an unbound method)."""

    signature = inspect.signature(func)
    hints = typing.get_type_hints(func)

    parameters: List[ParameterDescriptor] = []
    for index, param in enumerate(signature.parameters.values()):
        if index == 0 and param.name in ("self", "cls"):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise TypeError(f"Operation '{name}' cannot declare *args/**kwargs ({param.name})")

        annotation = hints.get(param.name, Any)
        parameters.append(
            ParameterDescriptor(
                name=param.name,
                wire_name=camel_case(param.name),
                annotation=annotation,
                default=param.default,
                injected=is_injectable_type(annotation),
            )
        )

    return OperationDescriptor(
        name=name,
        attribute=func.__name__,
        parameters=tuple(parameters),
        is_coroutine=inspect.iscoroutinefunction(func),
    )


def collect_operations(service_type: type) -> Dict[str, OperationDescriptor]:
    operations: Dict[str, OperationDescriptor] = {}
    # Walk base classes first so overrides in subclasses win.
    for klass in reversed(service_type.__mro__):
        for value in vars(klass).values():
            op_name = getattr(value, _OPERATION_ATTR, None)
            if op_name is None or not callable(value):
                continue
            operations[op_name] = describe_operation(value, op_name)
    return operations


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


Factory = Callable[["ServiceScope"], Any]


@dataclass(frozen=True)
class ComponentRegistration:
    name: str
    service_type: type
    factory: Factory
    capability: Optional[type] = None
    operations: Mapping[str, OperationDescriptor] = field(default_factory=dict)

    def available_operations(self) -> List[str]:
        return sorted(set(self.operations))


class ServiceRegistry:
    """Name → factory map populated once by the composition root."""

    def __init__(self) -> None:
        self._concrete: Dict[str, ComponentRegistration] = {}
        self._capabilities: Dict[str, ComponentRegistration] = {}
        self._by_type: Dict[type, ComponentRegistration] = {}

    def register(
        self,
        service_type: type,
        factory: Optional[Factory] = None,
        *,
        capability: Optional[type] = None,
        name: Optional[str] = None,
    ) -> ComponentRegistration:
        """Register *service_type* (optionally behind *capability*).

        Raises:
            ValueError: duplicate component or capability name
            TypeError: *service_type* does not implement *capability*
        """

        component_name = name or service_type.__name__
        if component_name in self._concrete:
            raise ValueError(f"Duplicate component name '{component_name}'")
        if capability is not None:
            if not issubclass(service_type, capability):
                raise TypeError(f"{service_type.__name__} does not implement {capability.__name__}")
            if capability.__name__ in self._capabilities:
                raise ValueError(f"Duplicate capability '{capability.__name__}'")

        registration = ComponentRegistration(
            name=component_name,
            service_type=service_type,
            factory=factory or (lambda scope: service_type()),
            capability=capability,
            operations=MappingProxyType(collect_operations(service_type)),
        )

        self._concrete[component_name] = registration
        self._by_type[service_type] = registration
        if capability is not None:
            self._capabilities[capability.__name__] = registration
            self._by_type[capability] = registration

        logger.debug(
            "Registered component %s (%d operations)%s",
            component_name,
            len(registration.operations),
            f" as {capability.__name__}" if capability is not None else "",
        )
        return registration

    # Lookups -----------------------------------------------------------

    @staticmethod
    def candidate_names(component: str) -> Tuple[str, str]:
        """Capability name first, concrete name second."""
        return f"{CAPABILITY_PREFIX}{component}", component

    def lookup(self, component: str) -> Optional[ComponentRegistration]:
        capability_name, concrete_name = self.candidate_names(component)
        registration = self._capabilities.get(capability_name)
        if registration is not None:
            logger.debug("Found component by capability: %s", capability_name)
            return registration
        registration = self._concrete.get(concrete_name)
        if registration is not None:
            logger.debug("Found component by concrete name: %s", concrete_name)
        return registration

    def registration_for_type(self, service_type: type) -> Optional[ComponentRegistration]:
        return self._by_type.get(service_type)

    def component_names(self) -> List[str]:
        return sorted(self._concrete)

    def create_scope(self, *, principal: Any = None, client_ip: Optional[str] = None) -> "ServiceScope":
        return ServiceScope(self, principal=principal, client_ip=client_ip)


class ServiceScope:
    """Per-request view of the registry; instances live for one request."""

    def __init__(self, registry: ServiceRegistry, *, principal: Any = None, client_ip: Optional[str] = None):
        self.registry = registry
        self.principal = principal
        self.client_ip = client_ip
        self._instances: Dict[str, Any] = {}

    def instance(self, registration: ComponentRegistration) -> Any:
        if registration.name not in self._instances:
            self._instances[registration.name] = registration.factory(self)
        return self._instances[registration.name]

    def get(self, service_type: type) -> Any:
        """Return the instance registered for *service_type* or raise LookupError."""
        registration = self.registry.registration_for_type(service_type)
        if registration is None:
            raise LookupError(f"No component registered for {service_type.__name__}")
        return self.instance(registration)

    def provide(self, annotation: Any, *, owner: str) -> Any:
        """Value for an injected operation parameter, ``None`` when unavailable."""

        if not isinstance(annotation, type):
            return None
        if issubclass(annotation, ServiceScope):
            return self
        if issubclass(annotation, ServiceRegistry):
            return self.registry
        if issubclass(annotation, logging.Logger):
            return logging.getLogger(f"smarttask.services.{owner}")
        if annotation.__module__.startswith("structlog"):
            return get_logger(service=owner)

        registration = self.registry.registration_for_type(annotation)
        if registration is None:
            logger.warning("No component registered for injected parameter type %s", annotation.__name__)
            return None
        return self.instance(registration)


__all__ = [
    "ComponentRegistration",
    "OperationDescriptor",
    "ParameterDescriptor",
    "ServiceRegistry",
    "ServiceScope",
    "camel_case",
    "describe_operation",
    "is_injectable_type",
    "operation",
    "pascal_case",
]
