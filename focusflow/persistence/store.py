"""SQLite-backed persistence for users, tasks and focus sessions."""

import sqlite3
import threading
import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from focusflow.core.models import (
    FocusSession,
    SessionStatus,
    Task,
    TaskPriority,
    TaskStatus,
    User,
)


def new_id() -> str:
    return str(uuid.uuid4())


def to_db_time(value: datetime) -> str:
    """Normalise to UTC ISO 8601 text so string order matches time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(text: Optional[str]) -> Optional[datetime]:
    if text is None:
        return None
    return datetime.fromisoformat(text)


class FocusStore:
    """Read/write interface to the local SQLite database.

    Ownership is part of every task and session lookup: rows are only
    returned when their ``user_id`` matches the requester.  Timestamps are
    persisted as UTC ISO 8601 text and dates as ``YYYY-MM-DD``.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Connection helpers
    # ------------------------------------------------------------------

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # ------------------------------------------------------------------
    # Schema initialisation
    # ------------------------------------------------------------------

    def init_db(self) -> None:
        """Create tables and indexes if they don't already exist."""
        with self._lock:
            conn = self._get_conn()
            conn.executescript(
                """\
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    name TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    status TEXT NOT NULL DEFAULT 'todo',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    due_date TEXT,
                    user_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS focus_sessions (
                    id TEXT PRIMARY KEY,
                    type TEXT NOT NULL,
                    duration INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT,
                    user_id TEXT NOT NULL,
                    task_id TEXT,
                    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE SET NULL
                );

                CREATE INDEX IF NOT EXISTS idx_task_user
                    ON tasks(user_id, created_at);

                CREATE INDEX IF NOT EXISTS idx_session_user_start
                    ON focus_sessions(user_id, start_time);
                """
            )
            conn.commit()

    # ------------------------------------------------------------------
    # User operations
    # ------------------------------------------------------------------

    def add_user(self, email: str, password_hash: str, name: Optional[str] = None) -> User:
        user = User(
            id=new_id(),
            email=email,
            password_hash=password_hash,
            name=name,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                "INSERT INTO users (id, email, password_hash, name, created_at) VALUES (?, ?, ?, ?, ?)",
                (user.id, user.email, user.password_hash, user.name, to_db_time(user.created_at)),
            )
            conn.commit()
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT * FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        return self._row_to_user(row) if row is not None else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT * FROM users WHERE email = ?", (email,)
            ).fetchone()
        return self._row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Task operations
    # ------------------------------------------------------------------

    def add_task(
        self,
        user_id: str,
        title: str,
        description: Optional[str] = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        due_date: Optional[date] = None,
        status: TaskStatus = TaskStatus.TODO,
    ) -> Task:
        task = Task(
            id=new_id(),
            title=title,
            user_id=user_id,
            created_at=datetime.now(timezone.utc),
            description=description,
            status=status,
            priority=priority,
            due_date=due_date,
        )
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                """\
                INSERT INTO tasks
                    (id, title, description, status, priority, due_date, user_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.id,
                    task.title,
                    task.description,
                    task.status.value,
                    task.priority.value,
                    task.due_date.isoformat() if task.due_date else None,
                    task.user_id,
                    to_db_time(task.created_at),
                ),
            )
            conn.commit()
        return task

    def get_task(self, task_id: str, user_id: str) -> Optional[Task]:
        """Return the task only when it belongs to *user_id*."""
        with self._lock:
            row = self._get_conn().execute(
                "SELECT * FROM tasks WHERE id = ? AND user_id = ?", (task_id, user_id)
            ).fetchone()
        return self._row_to_task(row) if row is not None else None

    def list_tasks(self, user_id: str, limit: Optional[int] = None) -> list[Task]:
        """Return the user's tasks, newest first."""
        sql = "SELECT * FROM tasks WHERE user_id = ? ORDER BY created_at DESC"
        params: tuple[Any, ...] = (user_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params += (limit,)
        with self._lock:
            rows = self._get_conn().execute(sql, params).fetchall()
        return [self._row_to_task(r) for r in rows]

    def update_task(self, task_id: str, user_id: str, changes: dict[str, Any]) -> Optional[Task]:
        """Apply *changes* (column -> value) to an owned task and return it."""
        allowed = {"title", "description", "status", "priority", "due_date"}
        columns = [c for c in changes if c in allowed]
        with self._lock:
            conn = self._get_conn()
            if columns:
                assignments = ", ".join(f"{c} = ?" for c in columns)
                values = [self._to_column(changes[c]) for c in columns]
                conn.execute(
                    f"UPDATE tasks SET {assignments} WHERE id = ? AND user_id = ?",
                    (*values, task_id, user_id),
                )
                conn.commit()
            return self.get_task(task_id, user_id)

    def delete_task(self, task_id: str, user_id: str) -> bool:
        with self._lock:
            conn = self._get_conn()
            cursor = conn.execute(
                "DELETE FROM tasks WHERE id = ? AND user_id = ?", (task_id, user_id)
            )
            conn.commit()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Focus session operations
    # ------------------------------------------------------------------

    def add_session(
        self,
        user_id: str,
        session_type: str,
        duration: int,
        start_time: datetime,
        task_id: Optional[str] = None,
        status: SessionStatus = SessionStatus.RUNNING,
        end_time: Optional[datetime] = None,
    ) -> FocusSession:
        session = FocusSession(
            id=new_id(),
            type=session_type,
            duration=duration,
            status=status,
            start_time=start_time,
            user_id=user_id,
            end_time=end_time,
            task_id=task_id,
        )
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                """\
                INSERT INTO focus_sessions
                    (id, type, duration, status, start_time, end_time, user_id, task_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.id,
                    session.type,
                    session.duration,
                    session.status.value,
                    to_db_time(session.start_time),
                    to_db_time(session.end_time) if session.end_time else None,
                    session.user_id,
                    session.task_id,
                ),
            )
            conn.commit()
        return self.get_session(session.id, user_id) or session

    def get_session(self, session_id: str, user_id: str) -> Optional[FocusSession]:
        """Return the session only when it belongs to *user_id*."""
        with self._lock:
            row = self._get_conn().execute(
                """\
                SELECT s.*, t.title AS task_title
                FROM focus_sessions s LEFT JOIN tasks t ON t.id = s.task_id
                WHERE s.id = ? AND s.user_id = ?
                """,
                (session_id, user_id),
            ).fetchone()
        return self._row_to_session(row) if row is not None else None

    def finish_session(
        self, session_id: str, user_id: str, status: SessionStatus, end_time: datetime
    ) -> Optional[FocusSession]:
        """Move a running session into a terminal *status*.

        The update only matches rows still ``running`` so a session is never
        transitioned twice.
        """
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                """\
                UPDATE focus_sessions SET status = ?, end_time = ?
                WHERE id = ? AND user_id = ? AND status = ?
                """,
                (status.value, to_db_time(end_time), session_id, user_id, SessionStatus.RUNNING.value),
            )
            conn.commit()
            return self.get_session(session_id, user_id)

    def list_sessions(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[FocusSession]:
        """Return the user's sessions newest first, optionally from *since* on."""
        sql = (
            "SELECT s.*, t.title AS task_title "
            "FROM focus_sessions s LEFT JOIN tasks t ON t.id = s.task_id "
            "WHERE s.user_id = ?"
        )
        params: tuple[Any, ...] = (user_id,)
        if since is not None:
            sql += " AND s.start_time >= ?"
            params += (to_db_time(since),)
        sql += " ORDER BY s.start_time DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params += (limit,)
        with self._lock:
            rows = self._get_conn().execute(sql, params).fetchall()
        return [self._row_to_session(r) for r in rows]

    # ------------------------------------------------------------------
    # Row mapping helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_column(value: Any) -> Any:
        if isinstance(value, (TaskStatus, TaskPriority)):
            return value.value
        if isinstance(value, date):
            return value.isoformat()
        return value

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"],
            name=row["name"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            title=row["title"],
            user_id=row["user_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            description=row["description"],
            status=TaskStatus(row["status"]),
            priority=TaskPriority(row["priority"]),
            due_date=date.fromisoformat(row["due_date"]) if row["due_date"] else None,
        )

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> FocusSession:
        return FocusSession(
            id=row["id"],
            type=row["type"],
            duration=row["duration"],
            status=SessionStatus(row["status"]),
            start_time=datetime.fromisoformat(row["start_time"]),
            user_id=row["user_id"],
            end_time=from_db_time(row["end_time"]),
            task_id=row["task_id"],
            task_title=row["task_title"] if "task_title" in row.keys() else None,
        )
