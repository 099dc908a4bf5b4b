"""Task operations scoped to the requesting user.

Every public method takes the requester's user id (``None`` when the caller
is not signed in) and returns a plain result dict: ``{"success": True, ...}``
or ``{"error": ..., "code": ..., "details"?: ...}``.  Nothing raises past
this boundary.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from focusflow.core.errors import FocusFlowError, NotFound, Unauthorized, UpstreamFailure, ValidationError
from focusflow.core.models import Task
from focusflow.core.schemas import TaskCreate, TaskUpdate
from focusflow.persistence.store import FocusStore

logger = logging.getLogger(__name__)


class TaskService:
    """CRUD over tasks with ownership enforced on every lookup."""

    def __init__(self, store: FocusStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_task(self, user_id: Optional[str], data: dict[str, Any]) -> dict[str, Any]:
        try:
            owner = _require_user(user_id)
            payload = _validate(TaskCreate, data)
            task = self._persist(
                "create",
                lambda: self.store.add_task(
                    owner,
                    title=payload.title,
                    description=payload.description,
                    priority=payload.priority,
                    due_date=payload.due_date,
                ),
                UpstreamFailure("Failed to create task"),
            )
        except FocusFlowError as exc:
            return exc.to_result()
        logger.info("Created task %s for user %s", task.id, owner)
        return {"success": True, "task": task.to_dict()}

    def update_task(self, user_id: Optional[str], task_id: str, data: dict[str, Any]) -> dict[str, Any]:
        try:
            owner = _require_user(user_id)
            payload = _validate(TaskUpdate, data)
            self._find(owner, task_id)
            task = self._persist(
                "update",
                lambda: self.store.update_task(task_id, owner, payload.changes()),
                UpstreamFailure("Failed to update task"),
            )
            if task is None:
                raise NotFound("Task not found")
        except FocusFlowError as exc:
            return exc.to_result()
        return {"success": True, "task": task.to_dict()}

    def delete_task(self, user_id: Optional[str], task_id: str) -> dict[str, Any]:
        try:
            owner = _require_user(user_id)
            self._find(owner, task_id)
            deleted = self._persist(
                "delete",
                lambda: self.store.delete_task(task_id, owner),
                UpstreamFailure("Failed to delete task"),
            )
            if not deleted:
                raise NotFound("Task not found")
        except FocusFlowError as exc:
            logger.info("Delete of task %s refused: %s", task_id, exc.message)
            return exc.to_result()
        logger.info("Deleted task %s for user %s", task_id, owner)
        return {"success": True}

    def get_tasks(self, user_id: Optional[str]) -> list[Task]:
        """All of the user's tasks, newest first; ``[]`` on any failure."""
        if not user_id:
            return []
        try:
            return self.store.list_tasks(user_id)
        except Exception:
            logger.exception("Failed to list tasks for user %s", user_id)
            return []

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _find(self, owner: str, task_id: str) -> Task:
        task = self._persist(
            "lookup", lambda: self.store.get_task(task_id, owner), UpstreamFailure("Failed to load task")
        )
        if task is None:
            raise NotFound("Task not found")
        return task

    @staticmethod
    def _persist(action: str, fn, failure: FocusFlowError):
        try:
            return fn()
        except Exception as exc:
            logger.exception("Task %s failed", action)
            raise failure from exc


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise Unauthorized()
    return user_id


def _validate(model, data: Any):
    if not isinstance(data, dict):
        raise ValidationError(details=[{"field": "", "message": "Expected an object"}])
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc
