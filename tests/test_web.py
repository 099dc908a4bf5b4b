"""Tests for the FocusFlow JSON API."""

import json
from unittest.mock import MagicMock

import pytest

import focusflow.ui.web as web_module
from focusflow.core.llm import Completion, FunctionCall
from focusflow.ui.app import FocusFlowApp
from focusflow.ui.web import create_flask_app


@pytest.fixture
def app_ref():
    config = {
        "secret_key": "test-secret",
        "database_path": ":memory:",
        "timer": {"pomodoro_seconds": 60, "short_break_seconds": 30, "long_break_seconds": 45},
        "chat": {"api_key": "", "api_key_env": "FOCUSFLOW_TEST_UNSET_CHAT_KEY"},
        "insights": {"api_key": "", "api_key_env": "FOCUSFLOW_TEST_UNSET_INSIGHTS_KEY"},
    }
    ref = FocusFlowApp(config=config)
    ref.init_components()
    ref.notifier = None
    yield ref
    ref.stop()


@pytest.fixture
def client(app_ref):
    old = web_module._app_ref
    web_module._app_ref = app_ref
    flask_app = create_flask_app()
    flask_app.config["TESTING"] = True
    with flask_app.test_client() as c:
        yield c
    web_module._app_ref = old


def _sign_up_and_in(client, email="ada@focusflow.dev", password="secret1"):
    resp = client.post("/api/auth/signup", json={"email": email, "password": password, "name": "Ada"})
    assert resp.status_code == 201
    resp = client.post("/api/auth/signin", json={"email": email, "password": password})
    assert resp.status_code == 200
    return resp.get_json()["user"]["id"]


@pytest.fixture
def user_id(client):
    return _sign_up_and_in(client)


def _chat_llm(app_ref, *completions):
    llm = MagicMock()
    llm.configured = True
    llm.complete.side_effect = list(completions)
    app_ref.assistant.llm = llm
    return llm


# ----------------------------------------------------------------------
# Accounts
# ----------------------------------------------------------------------

class TestAuth:
    def test_signup_response(self, client):
        resp = client.post("/api/auth/signup", json={"email": "bob@focusflow.dev", "password": "secret1"})
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["message"] == "User created successfully"
        assert data["userId"]

    def test_signup_duplicate(self, client):
        client.post("/api/auth/signup", json={"email": "bob@focusflow.dev", "password": "secret1"})
        resp = client.post("/api/auth/signup", json={"email": "bob@focusflow.dev", "password": "secret1"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "User already exists"

    def test_signup_invalid(self, client):
        resp = client.post("/api/auth/signup", json={"email": "bob", "password": "1"})
        assert resp.status_code == 400
        assert resp.get_json()["details"]

    def test_signin_wrong_password(self, client):
        client.post("/api/auth/signup", json={"email": "bob@focusflow.dev", "password": "secret1"})
        resp = client.post("/api/auth/signin", json={"email": "bob@focusflow.dev", "password": "nope-nope"})
        assert resp.status_code == 401

    def test_session_and_signout(self, client, user_id):
        assert client.get("/api/auth/session").get_json()["user"]["id"] == user_id
        client.post("/api/auth/signout")
        assert client.get("/api/auth/session").get_json()["user"] is None
        assert client.get("/api/tasks").status_code == 401


# ----------------------------------------------------------------------
# Tasks
# ----------------------------------------------------------------------

class TestTasks:
    def test_requires_sign_in(self, client):
        assert client.get("/api/tasks").status_code == 401
        resp = client.post("/api/tasks", json={"title": "x"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Unauthorized"

    def test_crud(self, client, user_id):
        resp = client.post("/api/tasks", json={"title": "Write", "priority": "high", "dueDate": "2025-05-01"})
        assert resp.status_code == 201
        task = resp.get_json()["task"]
        assert task["dueDate"] == "2025-05-01"

        resp = client.patch(f"/api/tasks/{task['id']}", json={"status": "completed"})
        assert resp.status_code == 200
        assert resp.get_json()["task"]["status"] == "completed"

        listed = client.get("/api/tasks").get_json()
        assert [t["id"] for t in listed] == [task["id"]]

        resp = client.delete(f"/api/tasks/{task['id']}")
        assert resp.status_code == 200
        assert resp.get_json() == {"success": True}
        assert client.get("/api/tasks").get_json() == []

    def test_validation_error(self, client, user_id):
        resp = client.post("/api/tasks", json={"title": ""})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Invalid input"

    def test_missing_task(self, client, user_id):
        assert client.patch("/api/tasks/nope", json={"title": "x"}).status_code == 404
        assert client.delete("/api/tasks/nope").status_code == 404

    def test_other_users_tasks_hidden(self, client, app_ref, user_id):
        task_id = client.post("/api/tasks", json={"title": "Mine"}).get_json()["task"]["id"]
        client.post("/api/auth/signout")
        _sign_up_and_in(client, "eve@focusflow.dev")
        assert client.get("/api/tasks").get_json() == []
        assert client.delete(f"/api/tasks/{task_id}").status_code == 404


# ----------------------------------------------------------------------
# Sessions and timer
# ----------------------------------------------------------------------

class TestSessions:
    def test_lifecycle(self, client, user_id):
        resp = client.post("/api/sessions", json={"type": "pomodoro", "duration": 1500})
        assert resp.status_code == 201
        session_id = resp.get_json()["session"]["id"]

        resp = client.post(f"/api/sessions/{session_id}/complete", json={"endTime": "2030-01-01T00:00:00Z"})
        assert resp.status_code == 200
        assert resp.get_json()["session"]["status"] == "completed"

        resp = client.post(f"/api/sessions/{session_id}/cancel")
        assert resp.status_code == 400

        listed = client.get("/api/sessions?days=7").get_json()
        assert [s["id"] for s in listed] == [session_id]

    def test_bad_duration(self, client, user_id):
        resp = client.post("/api/sessions", json={"type": "pomodoro", "duration": 0})
        assert resp.status_code == 400

    def test_bad_end_time(self, client, user_id):
        session_id = client.post("/api/sessions", json={"type": "pomodoro", "duration": 60}).get_json()["session"]["id"]
        resp = client.post(f"/api/sessions/{session_id}/complete", json={"endTime": "yesterday"})
        assert resp.status_code == 400

    def test_requires_sign_in(self, client):
        assert client.get("/api/sessions").status_code == 401
        assert client.post("/api/sessions", json={"type": "pomodoro", "duration": 60}).status_code == 401


class TestTimer:
    def test_idle_snapshot(self, client, user_id):
        snap = client.get("/api/timer").get_json()
        assert snap["status"] == "idle"
        assert snap["timeLeft"] == 60
        assert snap["display"] == "01:00"

    def test_start_pause_reset(self, client, app_ref, user_id):
        snap = client.post("/api/timer/start", json={}).get_json()
        assert snap["status"] == "running"
        session_id = snap["sessionId"]

        assert client.post("/api/timer/pause").get_json()["status"] == "paused"
        assert client.post("/api/timer/resume").get_json()["status"] == "running"

        snap = client.post("/api/timer/reset").get_json()
        assert snap["status"] == "idle"
        assert snap["timeLeft"] == 60
        assert app_ref.store.get_session(session_id, user_id).status.value == "cancelled"

    def test_switch_requires_confirmation(self, client, user_id):
        client.post("/api/timer/start", json={})
        resp = client.post("/api/timer/type", json={"type": "short-break"})
        assert resp.status_code == 409
        assert resp.get_json()["prompt"] == "Timer is running. Switch anyway?"

        resp = client.post("/api/timer/type", json={"type": "short-break", "confirm": True})
        assert resp.status_code == 200
        assert resp.get_json()["type"] == "short-break"
        assert resp.get_json()["timeLeft"] == 30

    def test_unknown_type_and_action(self, client, user_id):
        assert client.post("/api/timer/type", json={"type": "nap"}).status_code == 400
        assert client.post("/api/timer/explode").status_code == 404

    def test_requires_sign_in(self, client):
        assert client.get("/api/timer").status_code == 401


# ----------------------------------------------------------------------
# Chat
# ----------------------------------------------------------------------

class TestChat:
    def test_unauthorized(self, client):
        resp = client.post("/api/chat", json={"message": "hi"})
        assert resp.status_code == 401

    def test_message_required(self, client, user_id):
        resp = client.post("/api/chat", json={})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Message is required"

    def test_not_configured(self, client, user_id):
        resp = client.post("/api/chat", json={"message": "hi"})
        assert resp.status_code == 500
        assert resp.get_json()["error"] == "AI service not configured"

    def test_create_publishes_event(self, client, app_ref, user_id):
        _chat_llm(
            app_ref,
            Completion("", FunctionCall("createTask", json.dumps({"title": "Groceries"}), "c1")),
            Completion("Added Groceries."),
        )
        resp = client.post("/api/chat", json={"message": "add groceries", "history": []})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["message"] == "Added Groceries."
        assert data["functionCall"]["name"] == "createTask"

        events = client.get("/api/tasks/events?since=0").get_json()["events"]
        assert [e["type"] for e in events] == ["task-created"]
        assert events[0]["task"]["title"] == "Groceries"

    def test_model_failure(self, client, app_ref, user_id):
        llm = _chat_llm(app_ref)
        llm.complete.side_effect = RuntimeError("down")
        resp = client.post("/api/chat", json={"message": "hi"})
        assert resp.status_code == 500
        assert resp.get_json()["error"] == "Failed to process chat message"

    def test_suggestions(self, client, user_id):
        assert client.get("/api/chat/suggestions").get_json() == {"suggestions": ["Create my first task"]}


# ----------------------------------------------------------------------
# Analytics and insights
# ----------------------------------------------------------------------

class TestReports:
    def test_analytics_shape(self, client, user_id):
        client.post("/api/tasks", json={"title": "A", "priority": "high"})
        data = client.get("/api/analytics?days=abc").get_json()
        assert set(data) == {"dailyData", "taskStats", "sessionStats", "peakHours"}
        assert data["taskStats"]["highPriority"] == 1

    def test_analytics_requires_sign_in(self, client):
        assert client.get("/api/analytics").status_code == 401

    def test_insights_fallback(self, client, user_id):
        data = client.get("/api/ai/insights").get_json()
        assert data["error"] == "AI API key not configured"
        assert data["insights"]

    def test_insights_unexpected_failure(self, client, app_ref, user_id):
        app_ref.insights = MagicMock()
        app_ref.insights.generate.side_effect = RuntimeError("boom")
        resp = client.get("/api/ai/insights")
        assert resp.status_code == 500
