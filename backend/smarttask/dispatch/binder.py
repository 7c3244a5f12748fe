"""Bind a JSON request body to an operation's declared parameters.

Rules, applied per parameter in declaration order (first failure wins):

1. injected collaborator types are skipped (the dispatcher fills them);
2. a textual ``ipAddress`` parameter always receives the caller's IP;
3. otherwise the value comes from the JSON object, matched case-insensitively
   by name, falling back to the declared default (a lone DTO parameter may
   also receive the whole object, see :func:`_flattened_dto`);
4. pydantic models go through two phases – :func:`decode_dto` (shape and key
   normalisation) then :func:`validate_dto` (declared constraints) – while
   every other type is converted with a pydantic ``TypeAdapter``.
"""

from __future__ import annotations

import json
import logging
import types
import typing
from functools import lru_cache
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple
from typing import Type

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import TypeAdapter
from pydantic import ValidationError
from starlette.requests import Request

from smarttask.dispatch.errors import DtoValidationFailed
from smarttask.dispatch.errors import InvalidParameterValue
from smarttask.dispatch.errors import InvalidRequestBody
from smarttask.dispatch.errors import MissingParameter
from smarttask.dispatch.registry import OperationDescriptor
from smarttask.dispatch.registry import ParameterDescriptor

logger = logging.getLogger(__name__)

CLIENT_IP_PARAMETER = "ipaddress"
EMPTY_OBJECT_LITERAL = "{}"
UNKNOWN_CLIENT_IP = "unknown"
LOOPBACK_IPV4 = "127.0.0.1"


class _Injected:
    """Placeholder for a parameter the dispatcher supplies from the scope."""

    _instance: Optional["_Injected"] = None

    def __new__(cls) -> "_Injected":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<INJECTED>"


INJECTED = _Injected()


# ---------------------------------------------------------------------------
# Client IP
# ---------------------------------------------------------------------------


def resolve_client_ip(request: Request) -> str:
    """Best-effort caller address, proxy headers first."""

    headers = request.headers
    if "x-forwarded-for" in headers:
        return headers["x-forwarded-for"].split(",")[0].strip()

    if "x-real-ip" in headers:
        return headers["x-real-ip"]

    remote_ip = request.client.host if request.client else None
    if remote_ip in ("::1", LOOPBACK_IPV4):
        return LOOPBACK_IPV4

    return remote_ip or UNKNOWN_CLIENT_IP


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------


def _is_textual(annotation: Any) -> bool:
    if annotation is str:
        return True
    if typing.get_origin(annotation) in (typing.Union, types.UnionType):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        return args == [str]
    return False


def is_dto_type(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


# JSON numbers bound to textual targets become their decimal text.
_SCALAR_CONFIG = ConfigDict(coerce_numbers_to_str=True)


@lru_cache(maxsize=256)
def _adapter(annotation: Any) -> TypeAdapter:
    if is_dto_type(annotation):
        return TypeAdapter(annotation)
    return TypeAdapter(annotation, config=_SCALAR_CONFIG)


def convert_value(value: Any, annotation: Any) -> Any:
    """Convert a JSON value to a non-DTO target type (lax pydantic rules)."""
    if annotation is Any:
        return value
    return _adapter(annotation).validate_python(value)


def _field_keys(model: Type[BaseModel]) -> Dict[str, str]:
    """Case-folded alias/name → canonical field name for *model*."""
    keys: Dict[str, str] = {}
    for field_name, info in model.model_fields.items():
        keys[field_name.casefold()] = field_name
        if info.alias:
            keys[info.alias.casefold()] = field_name
    return keys


def decode_dto(model: Type[BaseModel], value: Any) -> Dict[str, Any]:
    """Decode phase: require a JSON object and normalise its keys.

    Keys are matched case-insensitively against field names and aliases;
    unknown keys are dropped.  Constraint checking is left to
    :func:`validate_dto`.

    Raises:
        ValueError: *value* is not a JSON object
    """

    if not isinstance(value, dict):
        raise ValueError(f"Expected a JSON object for {model.__name__}, got {type(value).__name__}")

    keys = _field_keys(model)
    decoded: Dict[str, Any] = {}
    for key, item in value.items():
        field_name = keys.get(str(key).casefold())
        if field_name is not None:
            decoded[field_name] = item
    return decoded


def _format_error(model: Type[BaseModel], error: Dict[str, Any]) -> str:
    loc = [str(part) for part in error.get("loc", ())]
    message = error.get("msg", "Invalid value")
    if error.get("type") == "value_error":
        message = message.removeprefix("Value error, ")
    if not loc:
        return message

    field_info = model.model_fields.get(loc[0])
    if field_info is not None and field_info.alias:
        loc[0] = field_info.alias
    return f"{'.'.join(loc)}: {message}"


def validate_dto(model: Type[BaseModel], data: Dict[str, Any]) -> Tuple[Optional[BaseModel], List[str]]:
    """Validate phase: build *model* from decoded *data*.

    Returns ``(instance, [])`` on success and ``(None, messages)`` when any
    declared constraint is violated.
    """

    try:
        return model.model_validate(data), []
    except ValidationError as exc:
        return None, [_format_error(model, err) for err in exc.errors()]


# ---------------------------------------------------------------------------
# Binding
# ---------------------------------------------------------------------------


def _parse_body(body: str) -> Dict[str, Any]:
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, RecursionError) as exc:
        # Pathologically nested input exhausts the decoder stack.
        raise InvalidRequestBody(str(exc)) from exc
    if not isinstance(payload, dict):
        raise InvalidRequestBody(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def _lookup(payload: Dict[str, Any], param: ParameterDescriptor) -> Tuple[bool, Any]:
    for key, value in payload.items():
        if param.matches(key):
            return True, value
    return False, None


def _is_client_ip_parameter(param: ParameterDescriptor) -> bool:
    return param.name.replace("_", "").casefold() == CLIENT_IP_PARAMETER and _is_textual(param.annotation)


def _flattened_dto(payload: Dict[str, Any], param: ParameterDescriptor, body_params: int) -> bool:
    """True when the body *is* the lone DTO argument rather than wrapping it.

    ``{"email": ..., "password": ...}`` binds to ``request: LoginRequest``
    as long as the DTO is the only body-bound parameter and at least one key
    names one of its fields.
    """

    if body_params != 1 or not is_dto_type(param.annotation):
        return False
    keys = _field_keys(param.annotation)
    return any(str(key).casefold() in keys for key in payload)


def _bind_value(param: ParameterDescriptor, value: Any, service_key: str) -> Any:
    if is_dto_type(param.annotation):
        try:
            decoded = decode_dto(param.annotation, value)
        except ValueError as exc:
            logger.warning("Error decoding parameter %s for %s: %s", param.wire_name, service_key, exc)
            raise InvalidParameterValue(param.wire_name, str(exc)) from exc

        instance, messages = validate_dto(param.annotation, decoded)
        if messages:
            logger.warning("Validation failed for parameter %s in %s", param.wire_name, service_key)
            raise DtoValidationFailed(param.wire_name, messages)
        return instance

    try:
        return convert_value(value, param.annotation)
    except (ValidationError, TypeError, ValueError) as exc:
        logger.warning("Error converting parameter %s for %s: %s", param.wire_name, service_key, exc)
        raise InvalidParameterValue(param.wire_name, str(exc)) from exc


def bind_arguments(
    descriptor: OperationDescriptor,
    body: Optional[str],
    *,
    client_ip: str,
    service_key: str = "",
) -> List[Any]:
    """Return the positional argument list for *descriptor*.

    Injected positions hold :data:`INJECTED`.

    Raises:
        MissingParameter, InvalidParameterValue, InvalidRequestBody,
        DtoValidationFailed
    """

    raw = (body or "").strip()
    has_body = bool(raw) and raw != EMPTY_OBJECT_LITERAL
    payload: Optional[Dict[str, Any]] = None
    body_params = sum(1 for p in descriptor.parameters if not p.injected and not _is_client_ip_parameter(p))

    args: List[Any] = []
    for param in descriptor.parameters:
        if param.injected:
            args.append(INJECTED)
            continue

        if _is_client_ip_parameter(param):
            logger.debug("Auto-injected IP address %s for %s", client_ip, service_key)
            args.append(client_ip)
            continue

        if has_body:
            if payload is None:
                payload = _parse_body(raw)

            found, value = _lookup(payload, param)
            if not found and _flattened_dto(payload, param, body_params):
                found, value = True, payload
            if not found:
                if not param.has_default:
                    logger.warning("Missing required parameter %s for %s", param.wire_name, service_key)
                    raise MissingParameter(param.wire_name, descriptor.expected_parameters())
                args.append(param.default)
                continue

            args.append(_bind_value(param, value, service_key))
            continue

        if not param.has_default:
            logger.warning("No request body provided for required parameter %s in %s", param.wire_name, service_key)
            raise MissingParameter(param.wire_name, descriptor.expected_parameters(), body_missing=True)
        args.append(param.default)

    return args


__all__ = [
    "INJECTED",
    "bind_arguments",
    "convert_value",
    "decode_dto",
    "is_dto_type",
    "resolve_client_ip",
    "validate_dto",
]
