"""Focus-session lifecycle operations scoped to the requesting user.

Same contract as :mod:`focusflow.core.tasks`: the requester id comes first,
results are dicts, nothing raises past the boundary.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from focusflow.core.errors import FocusFlowError, NotFound, Unauthorized, UpstreamFailure, ValidationError
from focusflow.core.models import FocusSession, SessionStatus
from focusflow.persistence.store import FocusStore

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionService:
    """Start, complete, cancel and list focus sessions.

    Terminal transitions are guarded: repeating the same one (completing a
    completed session) is a no-op that returns the stored record, crossing
    to the other terminal state is rejected.
    """

    def __init__(self, store: FocusStore, clock: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self.clock = clock

    def start_session(
        self, user_id: Optional[str], task_id: Optional[str], session_type: str, duration: int
    ) -> dict[str, Any]:
        try:
            owner = _require_user(user_id)
            if not isinstance(session_type, str) or not session_type.strip():
                raise ValidationError(details=[{"field": "type", "message": "type is required"}])
            if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
                raise ValidationError(details=[{"field": "duration", "message": "duration must be a positive integer"}])
            if task_id is not None and self._call(lambda: self.store.get_task(task_id, owner)) is None:
                raise NotFound("Task not found")
            session = self._call(
                lambda: self.store.add_session(owner, session_type.strip(), duration, self.clock(), task_id=task_id),
                "Failed to start session",
            )
        except FocusFlowError as exc:
            return exc.to_result()
        logger.info("Started %s session %s for user %s", session.type, session.id, owner)
        return {"success": True, "session": session.to_dict()}

    def complete_session(
        self, user_id: Optional[str], session_id: str, end_time: Optional[datetime] = None
    ) -> dict[str, Any]:
        return self._finish(user_id, session_id, SessionStatus.COMPLETED, end_time or self.clock(),
                            "Failed to complete session")

    def cancel_session(self, user_id: Optional[str], session_id: str) -> dict[str, Any]:
        result = self._finish(user_id, session_id, SessionStatus.CANCELLED, self.clock(),
                              "Failed to cancel session")
        if "error" in result:
            return result
        return {"success": True}

    def get_user_sessions(self, user_id: Optional[str], days: int = 30) -> list[FocusSession]:
        """Sessions started in the last *days* days, newest first; ``[]`` on failure."""
        if not user_id:
            return []
        try:
            since = self.clock() - timedelta(days=days)
            return self.store.list_sessions(user_id, since=since)
        except Exception:
            logger.exception("Failed to list sessions for user %s", user_id)
            return []

    def recent_sessions(self, user_id: Optional[str], limit: int = 50) -> list[FocusSession]:
        if not user_id:
            return []
        try:
            return self.store.list_sessions(user_id, limit=limit)
        except Exception:
            logger.exception("Failed to list sessions for user %s", user_id)
            return []

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _finish(
        self, user_id: Optional[str], session_id: str, status: SessionStatus, end_time: datetime, failure: str
    ) -> dict[str, Any]:
        try:
            owner = _require_user(user_id)
            existing = self._call(lambda: self.store.get_session(session_id, owner), failure)
            if existing is None:
                raise NotFound("Session not found")
            if existing.status == status:
                logger.debug("Session %s already %s", session_id, status.value)
                return {"success": True, "session": existing.to_dict()}
            if existing.status.is_terminal:
                raise ValidationError(f"Session already {existing.status.value}")
            session = self._call(
                lambda: self.store.finish_session(session_id, owner, status, end_time), failure
            )
            if session is None:
                raise NotFound("Session not found")
            if session.status != status:
                raise ValidationError(f"Session already {session.status.value}")
        except FocusFlowError as exc:
            return exc.to_result()
        logger.info("Session %s %s", session_id, status.value)
        return {"success": True, "session": session.to_dict()}

    @staticmethod
    def _call(fn, failure: str = "Session storage failed"):
        try:
            return fn()
        except Exception as exc:
            logger.exception(failure)
            raise UpstreamFailure(failure) from exc


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise Unauthorized()
    return user_id
