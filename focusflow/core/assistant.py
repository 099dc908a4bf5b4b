"""Chat assistant that manages tasks from natural-language instructions.

Protocol for one request:

1. Check the caller, the message and the model credential.
2. Describe the caller's tasks (full ids, never positions) in a context turn.
3. Ask the model, offering the task functions.
4. If it picked a function: parse the arguments, run the task operation,
   feed the result back and ask the model again for a confirmation.
   Otherwise return its text as is.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Optional, Union

from focusflow.core.llm import Completion, LLMClient
from focusflow.core.models import Task, TaskPriority
from focusflow.core.tasks import TaskService

logger = logging.getLogger(__name__)

CONTEXT_TASK_LIMIT = 10

NOT_CONFIGURED_MESSAGE = "Please contact the administrator to set up the AI service."
CLARIFY_MESSAGE = "I had trouble understanding that request. Could you rephrase it?"
UNKNOWN_FUNCTION_MESSAGE = "I'm not sure how to help with that request."
FAILURE_MESSAGE = "Sorry, something went wrong. Please try again."
DEFAULT_CONFIRMATION = "Done!"

_DESCRIPTION_NOTE = (
    "IMPORTANT: Preserve all markdown formatting including bullet points (-), "
    "lists, headers (#), etc. Copy the description exactly as provided by the user."
)

TASK_FUNCTIONS: list[dict[str, Any]] = [
    {
        "name": "createTask",
        "description": "Create a new task with a title, optional description, priority level, and due date",
        "parameters": {
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "The title/name of the task"},
                "description": {
                    "type": "string",
                    "description": f"Optional detailed description of the task. {_DESCRIPTION_NOTE}",
                },
                "priority": {
                    "type": "string",
                    "enum": ["low", "medium", "high"],
                    "description": "Priority level of the task",
                },
                "dueDate": {"type": "string", "description": "Due date in ISO 8601 format (e.g., 2024-12-31)"},
            },
            "required": ["title"],
        },
    },
    {
        "name": "updateTask",
        "description": "Update an existing task's properties",
        "parameters": {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "The ID of the task to update"},
                "title": {"type": "string", "description": "New title for the task"},
                "description": {
                    "type": "string",
                    "description": f"New description for the task. {_DESCRIPTION_NOTE}",
                },
                "status": {
                    "type": "string",
                    "enum": ["todo", "in-progress", "completed"],
                    "description": "New status for the task",
                },
                "priority": {
                    "type": "string",
                    "enum": ["low", "medium", "high"],
                    "description": "New priority level for the task",
                },
                "dueDate": {"type": "string", "description": "New due date in ISO 8601 format"},
            },
            "required": ["id"],
        },
    },
    {
        "name": "deleteTask",
        "description": "Delete a task by its ID",
        "parameters": {
            "type": "object",
            "properties": {"id": {"type": "string", "description": "The ID of the task to delete"}},
            "required": ["id"],
        },
    },
    {
        "name": "listTasks",
        "description": "Get all tasks for the current user",
        "parameters": {"type": "object", "properties": {}},
    },
]

SYSTEM_PROMPT = """You are a helpful task management assistant for FocusFlow. You can help users:
- Create tasks with title, description, priority, and due dates
- Update existing tasks (change status, priority, title, description, due dates)
- Delete tasks
- List and organize tasks

When users ask for help, extract the task details and call the appropriate function.
Be conversational and friendly. For destructive operations like deleting, confirm the action by showing what will be deleted.

Task identification for updates and deletes:
- Users reference tasks by TITLE, not by ID.
- "change", "update", "modify", "set", "mark ... as", "for task X, add ..." mean UPDATE an existing task. Never use createTask for these.
- "create a new task", "add a task", "remind me to ..." (with no existing task mentioned) mean CREATE.
- Find the task whose title matches in the task list and pass its FULL ID to updateTask or deleteTask.
- If the user says "that task" and it is ambiguous, ask which task they mean.

Descriptions:
- Preserve markdown exactly (lists with "-", headers, emphasis). Do not reformat or add commentary inside the description.

Guidelines:
- Keep responses concise and helpful.
- When creating tasks, confirm what was created; when updating, mention what changed.
- When listing tasks, format them clearly with status and priority."""


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------

@dataclass
class ChatReply:
    """Outcome of one chat request.

    ``code`` is ``None`` on success, otherwise one of ``UNAUTHORIZED``,
    ``BAD_REQUEST``, ``SERVICE_UNAVAILABLE`` or ``INTERNAL_ERROR``.
    """
    message: str
    function_call: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    code: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.error:
            data["error"] = self.error
        if self.message:
            data["message"] = self.message
        if self.function_call is not None:
            data["functionCall"] = self.function_call
        return data


# ---------------------------------------------------------------------------
# Task operations the model may request
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CreateTaskCall:
    fields: dict[str, Any]


@dataclass(frozen=True)
class UpdateTaskCall:
    task_id: str
    fields: dict[str, Any]


@dataclass(frozen=True)
class DeleteTaskCall:
    task_id: str


@dataclass(frozen=True)
class ListTasksCall:
    pass


TaskOperation = Union[CreateTaskCall, UpdateTaskCall, DeleteTaskCall, ListTasksCall]

_CREATE_FIELDS = ("title", "description", "priority", "dueDate")
_UPDATE_FIELDS = ("title", "description", "status", "priority", "dueDate")


def _pick(args: dict[str, Any], names: tuple[str, ...]) -> dict[str, Any]:
    return {k: args[k] for k in names if k in args}


_PARSERS: dict[str, Callable[[dict[str, Any]], TaskOperation]] = {
    "createTask": lambda a: CreateTaskCall(_pick(a, _CREATE_FIELDS)),
    "updateTask": lambda a: UpdateTaskCall(str(a.get("id") or ""), _pick(a, _UPDATE_FIELDS)),
    "deleteTask": lambda a: DeleteTaskCall(str(a.get("id") or "")),
    "listTasks": lambda a: ListTasksCall(),
}


def parse_operation(name: str, args: dict[str, Any]) -> Optional[TaskOperation]:
    """Map a function name and its decoded arguments to an operation."""
    parser = _PARSERS.get(name)
    return parser(args) if parser is not None else None


def parse_arguments(raw: str) -> Optional[dict[str, Any]]:
    """Decode the model's argument payload; ``None`` when it is not a JSON object."""
    try:
        value = json.loads(raw or "{}")
    except (TypeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

class TaskAssistant:
    """Stateless per request; safe to share between requests."""

    def __init__(self, tasks: TaskService, llm: LLMClient, context_limit: int = CONTEXT_TASK_LIMIT) -> None:
        self.tasks = tasks
        self.llm = llm
        self.context_limit = context_limit
        self._handlers: dict[type, Callable[[str, Any], dict[str, Any]]] = {
            CreateTaskCall: self._run_create,
            UpdateTaskCall: self._run_update,
            DeleteTaskCall: self._run_delete,
            ListTasksCall: self._run_list,
        }

    def handle(self, user_id: Optional[str], message: Any, history: Any = None) -> ChatReply:
        if not user_id:
            return ChatReply(message="", error="Unauthorized", code="UNAUTHORIZED")
        if not message or not isinstance(message, str):
            return ChatReply(message="", error="Message is required", code="BAD_REQUEST")
        if not self.llm.configured:
            return ChatReply(
                message=NOT_CONFIGURED_MESSAGE, error="AI service not configured", code="SERVICE_UNAVAILABLE"
            )

        try:
            return self._converse(user_id, message, history)
        except Exception:
            logger.exception("Chat request failed for user %s", user_id)
            return ChatReply(
                message=FAILURE_MESSAGE, error="Failed to process chat message", code="INTERNAL_ERROR"
            )

    # ----- Conversation -----

    def _converse(self, user_id: str, message: str, history: Any) -> ChatReply:
        messages = self.build_messages(self.tasks.get_tasks(user_id), message, history)

        first = self.llm.complete(messages, functions=TASK_FUNCTIONS)
        call = first.function_call
        if call is None:
            return ChatReply(message=first.content)

        args = parse_arguments(call.arguments)
        if args is None:
            logger.info("Unparsable arguments for %s: %r", call.name, call.arguments)
            return ChatReply(message=CLARIFY_MESSAGE)

        operation = parse_operation(call.name, args)
        if operation is None:
            logger.info("Model requested unknown function %r", call.name)
            return ChatReply(message=UNKNOWN_FUNCTION_MESSAGE)

        result = self._handlers[type(operation)](user_id, operation)
        logger.info("Assistant ran %s for user %s", call.name, user_id)

        follow_up = messages + [
            first.as_assistant_message(),
            first.result_message(json.dumps(self._result_for_model(operation, result), default=str)),
        ]
        final = self.llm.complete(follow_up)
        return ChatReply(
            message=final.content or DEFAULT_CONFIRMATION,
            function_call={"name": call.name, "args": args, "result": result},
        )

    def build_messages(self, tasks: list[Task], message: str, history: Any) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "assistant", "content": f"Current user context:{self.task_context(tasks)}"},
        ]
        for turn in history if isinstance(history, list) else []:
            if not isinstance(turn, dict):
                continue
            role, content = turn.get("role"), turn.get("content")
            if role in ("user", "assistant") and isinstance(content, str):
                messages.append({"role": role, "content": content})
        messages.append({"role": "user", "content": message})
        return messages

    def task_context(self, tasks: list[Task]) -> str:
        if not tasks:
            return "\n\nUser has no tasks yet."
        lines = [
            f'• "{t.title}" (ID: {t.id}, Status: {t.status.value}, Priority: {t.priority.value})'
            for t in tasks[: self.context_limit]
        ]
        overflow = len(tasks) - self.context_limit
        if overflow > 0:
            lines.append(f"... and {overflow} more tasks")
        return (
            "\n\n===== USER'S EXISTING TASKS =====\n"
            + "\n".join(lines)
            + "\n\nIMPORTANT: When updating a task, find the task by its TITLE in the list above, "
            "then use its ID (the long string after \"ID:\")."
        )

    # ----- Operation handlers -----

    def _run_create(self, user_id: str, op: CreateTaskCall) -> dict[str, Any]:
        return self.tasks.create_task(user_id, op.fields)

    def _run_update(self, user_id: str, op: UpdateTaskCall) -> dict[str, Any]:
        return self.tasks.update_task(user_id, op.task_id, op.fields)

    def _run_delete(self, user_id: str, op: DeleteTaskCall) -> dict[str, Any]:
        return self.tasks.delete_task(user_id, op.task_id)

    def _run_list(self, user_id: str, op: ListTasksCall) -> dict[str, Any]:
        return {"success": True, "tasks": [t.to_dict() for t in self.tasks.get_tasks(user_id)]}

    @staticmethod
    def _result_for_model(op: TaskOperation, result: dict[str, Any]) -> dict[str, Any]:
        if "error" in result:
            return {"error": result["error"]}
        if isinstance(op, DeleteTaskCall):
            return {"success": True, "message": "Task deleted successfully"}
        if isinstance(op, ListTasksCall):
            return {"tasks": result["tasks"]}
        return {"success": True, "task": result.get("task")}


# ---------------------------------------------------------------------------
# Quick suggestions
# ---------------------------------------------------------------------------

def suggest_actions(tasks: list[Task], today: Optional[date] = None) -> list[str]:
    """Up to three prompts the chat widget can offer as one-click actions."""
    today = today or date.today()
    open_tasks = [t for t in tasks if t.is_open]
    suggestions: list[str] = []

    if any(t.priority == TaskPriority.HIGH for t in open_tasks):
        suggestions.append("Show my high priority tasks")

    overdue = sum(1 for t in open_tasks if t.due_date is not None and t.due_date < today)
    if overdue:
        suggestions.append(f"Show my {overdue} overdue task{'s' if overdue > 1 else ''}")

    if len(open_tasks) > 5:
        suggestions.append("Help me prioritize my tasks")

    if not tasks:
        suggestions.append("Create my first task")

    if not suggestions:
        suggestions.extend(["Show all my tasks", "Create a new task"])

    return suggestions[:3]
