"""Input validation for task and account payloads."""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from focusflow.core.models import TaskPriority, TaskStatus


def _parse_due_date(value: Any) -> Optional[date]:
    """Accept ``YYYY-MM-DD`` or a full ISO timestamp; blank clears the date."""
    if isinstance(value, datetime):
        return value.date()
    if value is None or isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("dueDate must be an ISO 8601 string")
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError as exc:
        raise ValueError(f"Invalid dueDate: {value!r}") from exc


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = Field(default=None, alias="dueDate")

    model_config = {"populate_by_name": True}

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be blank")
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, value: Any) -> Any:
        return value or TaskPriority.MEDIUM

    @field_validator("due_date", mode="before")
    @classmethod
    def _due_date(cls, value: Any) -> Optional[date]:
        return _parse_due_date(value)


class TaskUpdate(BaseModel):
    """Partial update.  Only fields present in the payload are applied."""
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = Field(default=None, alias="dueDate")

    model_config = {"populate_by_name": True}

    @field_validator("status", "priority", mode="before")
    @classmethod
    def _blank_is_unset(cls, value: Any) -> Any:
        return value or None

    @field_validator("due_date", mode="before")
    @classmethod
    def _due_date(cls, value: Any) -> Optional[date]:
        return _parse_due_date(value)

    def changes(self) -> dict[str, Any]:
        """Column -> value mapping for the fields the caller actually sent.

        An empty title, status or priority leaves the stored value alone;
        description and due date may be cleared explicitly.
        """
        sent = self.model_fields_set
        result: dict[str, Any] = {}
        if self.title:
            result["title"] = self.title
        if "description" in sent:
            result["description"] = self.description
        if self.status is not None:
            result["status"] = self.status
        if self.priority is not None:
            result["priority"] = self.priority
        if "due_date" in sent:
            result["due_date"] = self.due_date
        return result


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: Optional[str] = None


class SigninRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
