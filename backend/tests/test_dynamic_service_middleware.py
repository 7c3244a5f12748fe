"""End-to-end tests for ``/api/services/{Component}/{Operation}``."""

from fastapi.testclient import TestClient

from smarttask.dispatch.access_policy import PROTECTED_ACCESS_DESCRIPTION
from smarttask.dispatch.access_policy import PUBLIC_ACCESS_DESCRIPTION


def test_non_service_paths_pass_through(client: TestClient):
    resp = client.get("/hello")
    assert resp.status_code == 200
    assert resp.text == "Hello from SmartTask API"

    # Too few segments: handled by the router table (404 from FastAPI, not us).
    resp = client.post("/api/services/TaskService")
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Not Found"}


def test_public_login_with_flat_body_returns_operation_result(client: TestClient):
    """Unknown credentials: the operation's ``None`` comes back unchanged."""

    resp = client.post(
        "/api/services/IdentityService/LoginAsync",
        json={"Email": "a@b.com", "Password": "x"},
    )
    assert resp.status_code == 200
    assert resp.json() is None


def test_public_login_succeeds_regardless_of_auth_state(client: TestClient, user, auth_headers):
    body = {"request": {"email": "alice@example.com", "password": "s3cret-pass"}}

    anonymous = client.post("/api/services/IdentityService/LoginAsync", json=body)
    assert anonymous.status_code == 200
    assert anonymous.json()["user"]["username"] == "alice"

    authenticated = client.post("/api/services/IdentityService/LoginAsync", json=body, headers=auth_headers(user))
    assert authenticated.status_code == 200
    assert authenticated.json()["token"]


def test_protected_operation_requires_authentication(client: TestClient):
    resp = client.post("/api/services/TaskService/DeleteAllTasksAsync")
    assert resp.status_code == 401
    data = resp.json()
    assert data == {
        "error": "Authentication required",
        "message": "You must be logged in to access this service",
        "service": "TaskService.DeleteAllTasksAsync",
        "accessLevel": PROTECTED_ACCESS_DESCRIPTION,
    }
    assert "Protected" in data["accessLevel"]


def test_invalid_token_degrades_to_anonymous(client: TestClient):
    headers = {"Authorization": "Bearer not-a-jwt"}

    resp = client.post("/api/services/TaskService/GetTasksAsync", headers=headers)
    assert resp.status_code == 401

    resp = client.post("/api/services/HealthService/GetHealthStatusAsync", headers=headers)
    assert resp.status_code == 200


def test_unknown_component_lists_tried_types(client: TestClient, user, auth_headers):
    resp = client.post("/api/services/Foo/Bar", headers=auth_headers(user))
    assert resp.status_code == 404
    data = resp.json()
    assert data["triedTypes"] == ["smarttask.services.interfaces.IFoo", "smarttask.services.Foo"]
    assert "error" in data and "details" in data


def test_unknown_operation_lists_available_methods(client: TestClient, user, auth_headers):
    resp = client.post("/api/services/TaskService/DeleteAllTasksAsync", headers=auth_headers(user))
    assert resp.status_code == 404
    data = resp.json()
    assert data["service"] == "TaskService.DeleteAllTasksAsync"
    assert "CreateTaskAsync" in data["availableMethods"]
    assert "GetTasksAsync" in data["availableMethods"]


def test_dto_validation_failure_never_invokes_operation(client: TestClient, user, auth_headers, db):
    from smarttask.crud import crud

    resp = client.post(
        "/api/services/TaskService/CreateTaskAsync",
        json={"request": {"title": "x" * 201}},
        headers=auth_headers(user),
    )
    assert resp.status_code == 400
    data = resp.json()
    assert data["error"] == "Validation failed for parameter 'request'"
    assert len(data["details"]) == 1
    assert data["details"][0].startswith("title:")
    assert data["service"] == "TaskService.CreateTaskAsync"
    assert data["accessLevel"] == PROTECTED_ACCESS_DESCRIPTION

    assert crud.get_tasks(db, owner_id=user.id) == []


def test_register_validation_reports_each_message(client: TestClient):
    resp = client.post(
        "/api/services/IdentityService/RegisterAsync",
        json={"request": {"username": "al", "email": "bad", "password": "123", "confirmPassword": "123"}},
    )
    assert resp.status_code == 400
    data = resp.json()
    assert data["accessLevel"] == PUBLIC_ACCESS_DESCRIPTION
    fields = sorted(message.split(":")[0] for message in data["details"])
    assert fields == ["email", "password", "username"]


def test_missing_parameter_lists_expected_parameters(client: TestClient, user, auth_headers):
    resp = client.post(
        "/api/services/TaskService/UpdateTaskAsync",
        json={"request": {"title": "new"}},
        headers=auth_headers(user),
    )
    assert resp.status_code == 400
    data = resp.json()
    assert data["error"] == "Missing required parameter 'taskId' in request body"
    assert data["expectedParameters"] == [
        {"name": "taskId", "type": "int", "required": True},
        {"name": "request", "type": "TaskUpdateRequest", "required": True},
    ]


def test_missing_body_for_required_parameter(client: TestClient, user, auth_headers):
    resp = client.post("/api/services/TaskService/GetTaskByIdAsync", headers=auth_headers(user))
    assert resp.status_code == 400
    data = resp.json()
    assert data["message"] == "Request body is required for this service method"
    assert data["error"] == "Missing required parameter 'taskId'"


def test_conversion_error(client: TestClient, user, auth_headers):
    resp = client.post(
        "/api/services/TaskService/GetTaskByIdAsync",
        json={"taskId": "seven"},
        headers=auth_headers(user),
    )
    assert resp.status_code == 400
    data = resp.json()
    assert data["error"] == "Invalid value for parameter 'taskId'"
    assert set(data) == {"error", "details", "service"}


def test_malformed_json_body(client: TestClient, user, auth_headers):
    resp = client.post(
        "/api/services/TaskService/GetTaskByIdAsync",
        content=b"{not json",
        headers={**auth_headers(user), "Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Request body must be a JSON object"


def test_business_permission_error_maps_to_403(client: TestClient, user, auth_headers):
    resp = client.post("/api/services/UserService/GetAllUsersAsync", headers=auth_headers(user))
    assert resp.status_code == 403
    data = resp.json()
    assert data["error"] == "Access denied"
    assert data["accessLevel"] == PROTECTED_ACCESS_DESCRIPTION


def test_business_value_error_maps_to_400(client: TestClient, user, auth_headers):
    resp = client.post(
        "/api/services/TaskService/GetTaskByIdAsync",
        json={"taskId": 999},
        headers=auth_headers(user),
    )
    assert resp.status_code == 400
    assert resp.json() == {
        "error": "Invalid arguments",
        "message": "Task 999 not found",
        "service": "TaskService.GetTaskByIdAsync",
    }


def test_unexpected_failure_maps_to_500(client: TestClient, openai_client, user, auth_headers):
    openai_client.chat.completions.create.side_effect = RuntimeError("upstream down")

    resp = client.post(
        "/api/services/OpenAiService/AskAsync",
        json={"prompt": "hi"},
        headers=auth_headers(user),
    )
    assert resp.status_code == 500
    data = resp.json()
    assert data["error"] == "An error occurred while processing your request"
    assert data["message"] == "upstream down"
    assert data["service"] == "OpenAiService.AskAsync"
    assert "Traceback" not in resp.text


def test_operation_lookup_is_case_sensitive_even_for_public_calls(client: TestClient):
    # Operation names are exact; the policy lookup is case-insensitive.
    resp = client.post("/api/services/HealthService/gethealthstatusasync")
    assert resp.status_code == 404
    assert "GetHealthStatusAsync" in resp.json()["availableMethods"]


def test_ip_address_from_forwarded_header_is_recorded(client: TestClient, user, db):
    from smarttask.models.models import RefreshToken

    resp = client.post(
        "/api/services/IdentityService/LoginAsync",
        json={"email": "alice@example.com", "password": "s3cret-pass", "ipAddress": "6.6.6.6"},
        headers={"X-Forwarded-For": "10.0.0.5, 10.0.0.1"},
    )
    assert resp.status_code == 200
    token = db.query(RefreshToken).filter(RefreshToken.token == resp.json()["refreshToken"]).one()
    assert token.created_by_ip == "10.0.0.5"


def test_admin_made_public_operation_skips_authentication(client: TestClient, policy):
    assert client.post("/api/services/TaskService/GetTasksAsync").status_code == 401

    policy.add_public_entry("taskservice", "gettasksasync")
    resp = client.post("/api/services/TaskService/GetTasksAsync")
    # Public now, but the operation itself still needs a caller.
    assert resp.status_code == 403
    assert resp.json()["accessLevel"] == PUBLIC_ACCESS_DESCRIPTION


def test_deeply_nested_body_returns_structured_400(app):
    client = TestClient(app, raise_server_exceptions=False)
    resp = client.post(
        "/api/services/IdentityService/LoginAsync",
        content=b"[" * 100_000,
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Request body must be a JSON object"


def test_numeric_value_binds_to_string_parameter(client: TestClient, user):
    resp = client.post("/api/services/UserService/CheckUsernameExistsAsync", json={"username": 12345})
    assert resp.status_code == 200
    assert resp.json() is False
