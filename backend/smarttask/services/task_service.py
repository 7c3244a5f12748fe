"""Per-user task list.

Every operation is scoped to the calling user: tasks owned by someone else
are reported as ``PermissionError`` (403), unknown ids as ``ValueError`` (400).
"""

from __future__ import annotations

import logging
from typing import List
from typing import Optional

from smarttask.crud import crud
from smarttask.database import db_session
from smarttask.dispatch.registry import operation
from smarttask.models.enums import TaskStatus
from smarttask.schemas.schemas import TaskCreateRequest
from smarttask.schemas.schemas import TaskInfo
from smarttask.schemas.schemas import TaskUpdateRequest
from smarttask.services.interfaces import ICurrentUserService

logger = logging.getLogger(__name__)


class TaskService:
    def __init__(self, session_factory, current_user: ICurrentUserService):
        self.session_factory = session_factory
        self.current_user = current_user

    def _owner_id(self) -> int:
        user_id = self.current_user.user_id
        if user_id is None:
            raise PermissionError("You must be logged in to manage tasks")
        return user_id

    def _owned_task(self, db, task_id: int, owner_id: int):
        task = crud.get_task(db, task_id)
        if task is None:
            raise ValueError(f"Task {task_id} not found")
        if task.owner_id != owner_id:
            logger.warning("User %s attempted to access task %s owned by %s", owner_id, task_id, task.owner_id)
            raise PermissionError("You do not have access to this task")
        return task

    @operation(name="CreateTaskAsync")
    def create_task(self, request: TaskCreateRequest) -> TaskInfo:
        owner_id = self._owner_id()
        with db_session(self.session_factory) as db:
            task = crud.create_task(
                db,
                owner_id=owner_id,
                title=request.title,
                description=request.description,
                priority=request.priority.value,
                due_date=request.due_date,
            )
            logger.info("Task %s created for user %s", task.id, owner_id)
            return TaskInfo.model_validate(task)

    @operation(name="GetTasksAsync")
    def get_tasks(self, status: Optional[TaskStatus] = None) -> List[TaskInfo]:
        owner_id = self._owner_id()
        with db_session(self.session_factory) as db:
            rows = crud.get_tasks(db, owner_id=owner_id, status=status.value if status is not None else None)
            return [TaskInfo.model_validate(row) for row in rows]

    @operation(name="GetTaskByIdAsync")
    def get_task_by_id(self, task_id: int) -> TaskInfo:
        owner_id = self._owner_id()
        with db_session(self.session_factory) as db:
            return TaskInfo.model_validate(self._owned_task(db, task_id, owner_id))

    @operation(name="UpdateTaskAsync")
    def update_task(self, task_id: int, request: TaskUpdateRequest) -> TaskInfo:
        owner_id = self._owner_id()
        fields = request.model_dump(exclude_unset=True)
        for key in ("status", "priority"):
            if fields.get(key) is not None:
                fields[key] = fields[key].value
        if fields.get("title", "") is None:
            raise ValueError("title cannot be null")

        with db_session(self.session_factory) as db:
            self._owned_task(db, task_id, owner_id)
            task = crud.update_task(db, task_id, fields)
            return TaskInfo.model_validate(task)

    @operation(name="DeleteTaskAsync")
    def delete_task(self, task_id: int) -> bool:
        owner_id = self._owner_id()
        with db_session(self.session_factory) as db:
            self._owned_task(db, task_id, owner_id)
            deleted = crud.delete_task(db, task_id)
        logger.info("Task %s deleted by user %s", task_id, owner_id)
        return deleted


__all__ = ["TaskService"]
