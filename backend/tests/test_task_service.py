"""Tests for the per-user task list."""

import pytest

from smarttask.auth.backend import Principal
from smarttask.models.enums import TaskPriority
from smarttask.models.enums import TaskStatus
from smarttask.schemas.schemas import TaskCreateRequest
from smarttask.schemas.schemas import TaskUpdateRequest
from smarttask.services.current_user_service import CurrentUserService
from smarttask.services.task_service import TaskService


@pytest.fixture
def tasks_for(session_factory):
    def _tasks_for(user=None) -> TaskService:
        principal = Principal(user.id, user.username, user.email, [user.role], {}) if user else None
        return TaskService(session_factory, CurrentUserService(principal))

    return _tasks_for


def test_create_and_list(tasks_for, user):
    service = tasks_for(user)
    created = service.create_task(TaskCreateRequest(title="Write report", priority=TaskPriority.HIGH))

    assert created.owner_id == user.id
    assert created.status == TaskStatus.TODO
    assert created.priority == TaskPriority.HIGH

    listed = service.get_tasks()
    assert [t.id for t in listed] == [created.id]


def test_status_filter(tasks_for, user):
    service = tasks_for(user)
    first = service.create_task(TaskCreateRequest(title="one"))
    service.create_task(TaskCreateRequest(title="two"))
    service.update_task(first.id, TaskUpdateRequest(status=TaskStatus.DONE))

    done = service.get_tasks(TaskStatus.DONE)
    assert [t.title for t in done] == ["one"]
    assert [t.title for t in service.get_tasks(TaskStatus.TODO)] == ["two"]


def test_update_applies_only_supplied_fields(tasks_for, user):
    service = tasks_for(user)
    task = service.create_task(TaskCreateRequest(title="draft", description="keep me"))

    updated = service.update_task(task.id, TaskUpdateRequest(title="final"))
    assert updated.title == "final"
    assert updated.description == "keep me"

    with pytest.raises(ValueError):
        service.update_task(task.id, TaskUpdateRequest(title=None))


def test_other_users_tasks_are_forbidden(tasks_for, user, make_user):
    other = make_user(username="carol", email="carol@example.com")
    task = tasks_for(other).create_task(TaskCreateRequest(title="private"))

    mine = tasks_for(user)
    assert mine.get_tasks() == []
    with pytest.raises(PermissionError):
        mine.get_task_by_id(task.id)
    with pytest.raises(PermissionError):
        mine.delete_task(task.id)


def test_unknown_task_is_a_value_error(tasks_for, user):
    with pytest.raises(ValueError, match="Task 5 not found"):
        tasks_for(user).delete_task(5)


def test_delete(tasks_for, user):
    service = tasks_for(user)
    task = service.create_task(TaskCreateRequest(title="temp"))
    assert service.delete_task(task.id) is True
    assert service.get_tasks() == []


def test_anonymous_caller_is_rejected(tasks_for):
    with pytest.raises(PermissionError):
        tasks_for(None).get_tasks()


def test_task_lifecycle_over_http(client, user, make_user, auth_headers):
    headers = auth_headers(user)

    resp = client.post(
        "/api/services/TaskService/CreateTaskAsync",
        json={"title": "Plan sprint", "dueDate": "2030-01-31"},
        headers=headers,
    )
    assert resp.status_code == 200
    task = resp.json()
    assert task["dueDate"] == "2030-01-31"
    assert task["ownerId"] == user.id

    resp = client.post(
        "/api/services/TaskService/UpdateTaskAsync",
        json={"taskId": task["id"], "request": {"status": "InProgress"}},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "InProgress"

    resp = client.post("/api/services/TaskService/GetTasksAsync", json={"status": "InProgress"}, headers=headers)
    assert [t["id"] for t in resp.json()] == [task["id"]]

    other = make_user(username="carol", email="carol@example.com")
    resp = client.post(
        "/api/services/TaskService/DeleteTaskAsync",
        json={"taskId": task["id"]},
        headers=auth_headers(other),
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "Access denied"

    resp = client.post("/api/services/TaskService/DeleteTaskAsync", json={"taskId": task["id"]}, headers=headers)
    assert resp.status_code == 200
    assert resp.json() is True
