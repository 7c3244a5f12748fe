"""Tests for binding JSON bodies to operation parameters."""

import json
from typing import List
from typing import Optional

import pytest
from pydantic import Field

from smarttask.dispatch.binder import INJECTED
from smarttask.dispatch.binder import bind_arguments
from smarttask.dispatch.binder import convert_value
from smarttask.dispatch.binder import decode_dto
from smarttask.dispatch.binder import validate_dto
from smarttask.dispatch.errors import DtoValidationFailed
from smarttask.dispatch.errors import InvalidParameterValue
from smarttask.dispatch.errors import InvalidRequestBody
from smarttask.dispatch.errors import MissingParameter
from smarttask.dispatch.registry import ServiceRegistry
from smarttask.dispatch.registry import operation
from smarttask.models.enums import TaskStatus
from smarttask.schemas.schemas import CamelModel
from smarttask.schemas.schemas import LoginRequest
from smarttask.schemas.schemas import RegisterRequest
from smarttask.services.interfaces import ICurrentUserService

CLIENT_IP = "203.0.113.9"


class NoteRequest(CamelModel):
    title: str = Field(..., min_length=3, max_length=10)
    tags: List[str] = []


class Sample:
    @operation
    def defaults(self, page: int = 1, size: int = 20, query: Optional[str] = None): ...

    @operation
    def three(self, first: int, second: str, third: bool): ...

    @operation
    def with_ip(self, name: str, ip_address: str): ...

    @operation
    def note(self, request: NoteRequest, ip_address: str): ...

    @operation
    def note_and_count(self, request: NoteRequest, count: int): ...

    @operation
    def injected(self, current_user: ICurrentUserService, task_id: int): ...

    @operation
    def status(self, status: Optional[TaskStatus] = None): ...

    @operation
    def non_textual_ip(self, ip_address: int = 0): ...


@pytest.fixture(scope="module")
def ops():
    return ServiceRegistry().register(Sample).operations


def bind(ops, name, body):
    return bind_arguments(ops[name], body, client_ip=CLIENT_IP, service_key=f"Sample.{name}")


# ---------------------------------------------------------------------------
# Defaults and empty bodies
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("body", [None, "", "   ", "{}", " {} "])
def test_empty_body_binds_all_defaults(ops, body):
    assert bind(ops, "Defaults", body) == [1, 20, None]


def test_partial_body_uses_defaults_for_the_rest(ops):
    assert bind(ops, "Defaults", json.dumps({"size": 5})) == [1, 5, None]


def test_keys_match_case_insensitively(ops):
    assert bind(ops, "Defaults", json.dumps({"PAGE": 3, "Query": "x"})) == [3, 20, "x"]


# ---------------------------------------------------------------------------
# Missing parameters
# ---------------------------------------------------------------------------


def test_first_missing_parameter_wins(ops):
    with pytest.raises(MissingParameter) as exc_info:
        bind(ops, "Three", json.dumps({"third": True}))

    err = exc_info.value
    assert err.parameter == "first"
    assert err.status_code == 400
    payload = err.payload("Sample.Three", "Protected")
    assert payload["error"] == "Missing required parameter 'first' in request body"
    assert payload["expectedParameters"] == [
        {"name": "first", "type": "int", "required": True},
        {"name": "second", "type": "str", "required": True},
        {"name": "third", "type": "bool", "required": True},
    ]


def test_missing_parameter_in_middle_is_named(ops):
    with pytest.raises(MissingParameter) as exc_info:
        bind(ops, "Three", json.dumps({"first": 1, "third": False}))
    assert exc_info.value.parameter == "second"


@pytest.mark.parametrize("body", [None, "", "{}"])
def test_no_body_for_required_parameter(ops, body):
    with pytest.raises(MissingParameter) as exc_info:
        bind(ops, "Three", body)

    err = exc_info.value
    assert err.parameter == "first"
    assert err.body_missing is True
    payload = err.payload("Sample.Three", "Protected")
    assert payload["message"] == "Request body is required for this service method"
    assert "expectedParameters" not in payload


# ---------------------------------------------------------------------------
# Client IP
# ---------------------------------------------------------------------------


def test_ip_address_comes_from_context_even_when_body_supplies_it(ops):
    args = bind(ops, "WithIp", json.dumps({"name": "n", "ipAddress": "6.6.6.6"}))
    assert args == ["n", CLIENT_IP]


def test_ip_address_injected_without_body(ops):
    # ``name`` is required, so the missing body is still an error.
    with pytest.raises(MissingParameter):
        bind(ops, "WithIp", "")


def test_non_textual_ip_address_is_bound_from_body(ops):
    assert bind(ops, "NonTextualIp", json.dumps({"ipAddress": 7})) == [7]


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def test_primitive_conversion_is_lax(ops):
    assert bind(ops, "Three", json.dumps({"first": "12", "second": "s", "third": "true"})) == [12, "s", True]


def test_conversion_failure_is_invalid_parameter_value(ops):
    with pytest.raises(InvalidParameterValue) as exc_info:
        bind(ops, "Three", json.dumps({"first": "twelve", "second": "s", "third": True}))

    err = exc_info.value
    assert err.parameter == "first"
    assert set(err.payload("Sample.Three", "Protected")) == {"error", "details", "service"}


def test_enum_conversion(ops):
    assert bind(ops, "Status", json.dumps({"status": "Done"})) == [TaskStatus.DONE]
    with pytest.raises(InvalidParameterValue):
        bind(ops, "Status", json.dumps({"status": "Nope"}))


def test_convert_value_any_passthrough():
    from typing import Any

    marker = object()
    assert convert_value(marker, Any) is marker


@pytest.mark.parametrize("body", ["{not json", "[1, 2]", '"text"', "42"])
def test_malformed_or_non_object_body(ops, body):
    with pytest.raises(InvalidRequestBody):
        bind(ops, "Three", body)


# ---------------------------------------------------------------------------
# Injection
# ---------------------------------------------------------------------------


def test_injected_parameters_hold_placeholder(ops):
    assert bind(ops, "Injected", json.dumps({"taskId": 4})) == [INJECTED, 4]


def test_injected_parameter_is_never_read_from_body(ops):
    args = bind(ops, "Injected", json.dumps({"currentUser": {"id": 1}, "task_id": 4}))
    assert args[0] is INJECTED


# ---------------------------------------------------------------------------
# DTOs
# ---------------------------------------------------------------------------


def test_dto_bound_from_named_key(ops):
    args = bind(ops, "Note", json.dumps({"request": {"Title": "hello", "TAGS": ["a"]}}))
    assert args[0] == NoteRequest(title="hello", tags=["a"])
    assert args[1] == CLIENT_IP


def test_lone_dto_accepts_flattened_body(ops):
    args = bind(ops, "Note", json.dumps({"title": "hello"}))
    assert args[0].title == "hello"


def test_flattened_body_not_used_when_other_parameters_need_the_body(ops):
    with pytest.raises(MissingParameter) as exc_info:
        bind(ops, "NoteAndCount", json.dumps({"title": "hello", "count": 1}))
    assert exc_info.value.parameter == "request"


def test_flattened_body_requires_a_matching_field(ops):
    with pytest.raises(MissingParameter) as exc_info:
        bind(ops, "Note", json.dumps({"unrelated": 1}))
    assert exc_info.value.parameter == "request"


def test_dto_length_constraint_reports_messages(ops):
    with pytest.raises(DtoValidationFailed) as exc_info:
        bind(ops, "Note", json.dumps({"request": {"title": "ab"}}))

    err = exc_info.value
    assert err.parameter == "request"
    assert len(err.messages) == 1
    assert err.messages[0].startswith("title:")
    payload = err.payload("Sample.Note", "Protected")
    assert payload["error"] == "Validation failed for parameter 'request'"
    assert payload["details"] == err.messages
    assert payload["accessLevel"] == "Protected"


def test_dto_must_be_an_object(ops):
    with pytest.raises(InvalidParameterValue):
        bind(ops, "Note", json.dumps({"request": "not-an-object"}))


def test_decode_dto_normalises_keys_and_drops_unknown():
    decoded = decode_dto(RegisterRequest, {"USERNAME": "bob", "confirmPassword": "x", "bogus": 1})
    assert decoded == {"username": "bob", "confirm_password": "x"}


def test_decode_dto_rejects_non_objects():
    with pytest.raises(ValueError):
        decode_dto(LoginRequest, ["a"])


def test_validate_dto_success_and_failure():
    instance, messages = validate_dto(LoginRequest, {"email": "a@b.com", "password": "x"})
    assert messages == []
    assert instance.email == "a@b.com"

    instance, messages = validate_dto(LoginRequest, {"email": "nope", "password": ""})
    assert instance is None
    assert len(messages) == 2
    assert any(m.startswith("email:") for m in messages)
    assert any(m.startswith("password:") for m in messages)


def test_validate_dto_model_level_message():
    _, messages = validate_dto(
        RegisterRequest,
        {"username": "bob", "email": "bob@example.com", "password": "secret1", "confirm_password": "other"},
    )
    assert messages == ["The password and confirmation password do not match."]


def test_validate_dto_uses_wire_alias_in_messages():
    _, messages = validate_dto(RegisterRequest, {"username": "bob", "email": "bob@example.com", "password": "secret1"})
    assert messages == ["confirmPassword: Field required"]


def test_deeply_nested_body_is_invalid_request_body(ops):
    with pytest.raises(InvalidRequestBody):
        bind(ops, "Three", "[" * 100_000)


def test_numbers_convert_to_textual_parameters(ops):
    assert bind(ops, "WithIp", json.dumps({"name": 12345})) == ["12345", CLIENT_IP]
    assert bind(ops, "Defaults", json.dumps({"query": 2.5})) == [1, 20, "2.5"]
