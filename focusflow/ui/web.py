"""JSON API for FocusFlow.

A Flask app exposing:
- Accounts (sign-up, sign-in, sign-out)
- Task CRUD and task update events
- Focus-session lifecycle and the per-user focus timer
- Chat assistant, analytics and AI insights
"""

import logging
import os
from datetime import datetime, timedelta
from typing import Any, Optional

from flask import Flask, jsonify, request, session

from focusflow.core.assistant import suggest_actions
from focusflow.core.config import get_section
from focusflow.core.errors import status_for
from focusflow.core.events import publish_function_result
from focusflow.reporting.analytics import aggregate

logger = logging.getLogger(__name__)

# Will be set by run_server()
_app_ref = None  # type: Optional[Any]  # FocusFlowApp

CHAT_STATUS = {
    "UNAUTHORIZED": 401,
    "BAD_REQUEST": 400,
    "SERVICE_UNAVAILABLE": 500,
    "INTERNAL_ERROR": 500,
}

def current_user_id() -> Optional[str]:
    """The signed-in user's id, or ``None``."""
    return session.get("user_id")

def _unauthorized():
    return jsonify({"error": "Unauthorized"}), 401

def _result(result: dict[str, Any], success_status: int = 200):
    status = status_for(result)
    return jsonify(result), (success_status if status == 200 else status)

def _parse_days(raw: Optional[str], default: int) -> int:
    try:
        days = int(raw) if raw is not None else default
    except ValueError:
        return default
    return days if days > 0 else default

def create_flask_app() -> Flask:
    app = Flask(__name__)
    secret = _app_ref.config.get("secret_key") if _app_ref is not None else None
    app.config["SECRET_KEY"] = secret or os.urandom(24).hex()

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    @app.route("/api/auth/signup", methods=["POST"])
    def api_signup():
        result = _app_ref.auth.signup(request.get_json(silent=True))
        if "error" in result:
            return _result(result)
        return jsonify({"message": "User created successfully", "userId": result["user"]["id"]}), 201

    @app.route("/api/auth/signin", methods=["POST"])
    def api_signin():
        user = _app_ref.auth.authenticate(request.get_json(silent=True))
        if user is None:
            return jsonify({"error": "Invalid email or password"}), 401
        session.clear()
        session["user_id"] = user.id
        return jsonify({"user": user.to_dict()})

    @app.route("/api/auth/signout", methods=["POST"])
    def api_signout():
        session.clear()
        return jsonify({"ok": True})

    @app.route("/api/auth/session")
    def api_session():
        user_id = current_user_id()
        user = _app_ref.store.get_user(user_id) if user_id else None
        return jsonify({"user": user.to_dict() if user else None})

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    @app.route("/api/tasks")
    def api_tasks():
        user_id = current_user_id()
        if not user_id:
            return _unauthorized()
        return jsonify([t.to_dict() for t in _app_ref.tasks.get_tasks(user_id)])

    @app.route("/api/tasks", methods=["POST"])
    def api_create_task():
        result = _app_ref.tasks.create_task(current_user_id(), request.get_json(silent=True) or {})
        return _result(result, 201)

    @app.route("/api/tasks/<task_id>", methods=["PATCH"])
    def api_update_task(task_id):
        result = _app_ref.tasks.update_task(current_user_id(), task_id, request.get_json(silent=True) or {})
        return _result(result)

    @app.route("/api/tasks/<task_id>", methods=["DELETE"])
    def api_delete_task(task_id):
        return _result(_app_ref.tasks.delete_task(current_user_id(), task_id))

    @app.route("/api/tasks/events")
    def api_task_events():
        user_id = current_user_id()
        if not user_id:
            return _unauthorized()
        since = request.args.get("since", "0")
        try:
            since_ms = int(since)
        except ValueError:
            since_ms = 0
        events = _app_ref.recent_events(user_id).since(since_ms)
        return jsonify({"events": [e.to_dict() for e in events]})

    # ------------------------------------------------------------------
    # Focus sessions
    # ------------------------------------------------------------------

    @app.route("/api/sessions")
    def api_sessions():
        user_id = current_user_id()
        if not user_id:
            return _unauthorized()
        days = _parse_days(request.args.get("days"), 30)
        return jsonify([s.to_dict() for s in _app_ref.sessions.get_user_sessions(user_id, days)])

    @app.route("/api/sessions", methods=["POST"])
    def api_start_session():
        data = request.get_json(silent=True) or {}
        result = _app_ref.sessions.start_session(
            current_user_id(), data.get("taskId"), data.get("type"), data.get("duration")
        )
        return _result(result, 201)

    @app.route("/api/sessions/<session_id>/complete", methods=["POST"])
    def api_complete_session(session_id):
        data = request.get_json(silent=True) or {}
        end_time = None
        if data.get("endTime"):
            try:
                end_time = datetime.fromisoformat(str(data["endTime"]).replace("Z", "+00:00"))
            except ValueError:
                return jsonify({"error": "Invalid endTime"}), 400
        return _result(_app_ref.sessions.complete_session(current_user_id(), session_id, end_time))

    @app.route("/api/sessions/<session_id>/cancel", methods=["POST"])
    def api_cancel_session(session_id):
        return _result(_app_ref.sessions.cancel_session(current_user_id(), session_id))

    # ------------------------------------------------------------------
    # Focus timer
    # ------------------------------------------------------------------

    @app.route("/api/timer")
    def api_timer():
        user_id = current_user_id()
        if not user_id:
            return _unauthorized()
        return jsonify(_app_ref.timer_for(user_id).snapshot())

    @app.route("/api/timer/<action>", methods=["POST"])
    def api_timer_action(action):
        user_id = current_user_id()
        if not user_id:
            return _unauthorized()
        timer = _app_ref.timer_for(user_id)
        data = request.get_json(silent=True) or {}

        if action == "start":
            if not timer.start(data.get("taskId")):
                return jsonify({"error": "Failed to start session", "timer": timer.snapshot()}), 409
        elif action == "pause":
            timer.pause()
        elif action == "resume":
            timer.resume()
        elif action == "reset":
            timer.reset()
        elif action == "type":
            try:
                switched = timer.change_type(data.get("type"), confirm=lambda prompt: bool(data.get("confirm")))
            except ValueError as exc:
                return jsonify({"error": str(exc)}), 400
            if not switched:
                return jsonify({"error": "Confirmation required", "prompt": "Timer is running. Switch anyway?",
                                "timer": timer.snapshot()}), 409
        else:
            return jsonify({"error": f"Unknown timer action: {action}"}), 404
        return jsonify(timer.snapshot())

    # ------------------------------------------------------------------
    # Chat assistant
    # ------------------------------------------------------------------

    @app.route("/api/chat", methods=["POST"])
    def api_chat():
        user_id = current_user_id()
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        reply = _app_ref.assistant.handle(user_id, data.get("message"), data.get("history") or [])
        if reply.code is not None:
            return jsonify(reply.to_dict()), CHAT_STATUS.get(reply.code, 500)

        if reply.function_call is not None:
            publish_function_result(
                _app_ref.events_for(user_id),
                reply.function_call["name"],
                reply.function_call["args"],
                reply.function_call["result"],
            )
        return jsonify(reply.to_dict())

    @app.route("/api/chat/suggestions")
    def api_chat_suggestions():
        user_id = current_user_id()
        if not user_id:
            return _unauthorized()
        return jsonify({"suggestions": suggest_actions(_app_ref.tasks.get_tasks(user_id))})

    # ------------------------------------------------------------------
    # Analytics and insights
    # ------------------------------------------------------------------

    @app.route("/api/analytics")
    def api_analytics():
        user_id = current_user_id()
        if not user_id:
            return _unauthorized()
        default_days = int(get_section(_app_ref.config, "analytics")["default_days"])
        days = _parse_days(request.args.get("days"), default_days)
        try:
            sessions = _app_ref.store.list_sessions(user_id, since=_app_ref.sessions.clock() - timedelta(days=days))
            tasks = _app_ref.store.list_tasks(user_id)
            report = aggregate(sessions, tasks, days, now=_app_ref.sessions.clock())
        except Exception:
            logger.exception("Analytics failed for user %s", user_id)
            return jsonify({"error": "Failed to fetch analytics"}), 500
        return jsonify(report.to_dict())

    @app.route("/api/ai/insights")
    def api_insights():
        user_id = current_user_id()
        if not user_id:
            return _unauthorized()
        sample = int(get_section(_app_ref.config, "insights")["session_sample"])
        try:
            sessions = _app_ref.store.list_sessions(user_id, limit=sample)
            tasks = _app_ref.store.list_tasks(user_id)
            result = _app_ref.insights.generate(sessions, tasks)
        except Exception:
            logger.exception("AI insights failed for user %s", user_id)
            return jsonify({"error": "Failed to generate insights"}), 500
        return jsonify(result.to_dict())

    return app


def run_server(app_ref, host: str = "127.0.0.1", port: int = 5000) -> None:
    """Serve the API in the foreground until interrupted."""
    global _app_ref
    _app_ref = app_ref
    flask_app = create_flask_app()
    logger.info("FocusFlow API listening at http://%s:%d", host, port)
    flask_app.run(host=host, port=port, debug=False, use_reloader=False)
