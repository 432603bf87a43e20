"""
Tests for FastAPI endpoints in main.py.
Uses the local SQLite store and the fake_llm client from conftest.
"""
import json
import pytest
import sys
import os
from datetime import datetime, timedelta

import anthropic
import httpx

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import create_task_db, get_all_tasks

NEW_TASK = {
    "name": "Write report",
    "description": "Quarterly numbers",
    "priority": "high",
    "estimated_completion_time": "2",
}

SCHEDULE_ITEM = {
    "taskName": "Write report",
    "startTime": "2025-03-10T09:00:00Z",
    "endTime": "2025-03-10T11:00:00Z",
    "reasoning": "High priority and due soon.",
}


class TestTaskEndpoints:
    """Tests for /tasks endpoints."""

    def test_health(self, app_client):
        assert app_client.get("/health").json() == {"status": "ok", "store": "local"}

    def test_get_tasks_empty(self, app_client):
        """GET /tasks returns empty list when no tasks."""
        response = app_client.get("/tasks")
        assert response.status_code == 200
        assert response.json() == []

    def test_create_task(self, app_client):
        """POST /tasks stores the task and returns the refreshed list."""
        response = app_client.post("/tasks", json=NEW_TASK)

        assert response.status_code == 201
        tasks = response.json()
        assert len(tasks) == 1
        assert tasks[0]["name"] == "Write report"
        assert tasks[0]["estimated_completion_time"] == 2.0
        assert tasks[0]["completed"] is False
        assert tasks[0]["due_date"] is None
        assert tasks[0]["id"]

    def test_create_task_defaults(self, app_client):
        response = app_client.post("/tasks", json={"name": "Stretch", "description": "Five minutes"})

        task = response.json()[0]
        assert task["priority"] == "medium"
        assert task["estimated_completion_time"] == 1.0

    @pytest.mark.parametrize("override", [
        {"name": ""},
        {"name": "   "},
        {"description": ""},
        {"priority": "urgent"},
        {"estimated_completion_time": "0"},
        {"estimated_completion_time": "-1"},
        {"estimated_completion_time": "a while"},
        {"estimated_completion_time": "inf"},
        {"estimated_completion_time": "nan"},
    ])
    def test_create_task_validation(self, test_db, app_client, override):
        """Invalid input is rejected before anything is stored."""
        response = app_client.post("/tasks", json=dict(NEW_TASK, **override))

        assert response.status_code == 422
        assert get_all_tasks() == []

    def test_update_task_completed(self, test_db, app_client):
        """PATCH /tasks/{id} marks task completed."""
        create_task_db("id-1", "Complete me", "Now")

        response = app_client.patch("/tasks/id-1", json={"completed": True})
        assert response.status_code == 200
        assert response.json()[0]["completed"] is True

    def test_update_task_not_found(self, app_client):
        """PATCH /tasks/{id} returns 404 for nonexistent task."""
        response = app_client.patch("/tasks/nonexistent", json={"completed": True})
        assert response.status_code == 404

    def test_toggle_task_twice(self, test_db, app_client):
        """Toggling twice returns the task to its original state."""
        create_task_db("id-1", "Toggle me", "Twice")

        assert app_client.post("/tasks/id-1/toggle").json()[0]["completed"] is True
        assert app_client.post("/tasks/id-1/toggle").json()[0]["completed"] is False

    def test_toggle_task_not_found(self, app_client):
        assert app_client.post("/tasks/nonexistent/toggle").status_code == 404

    def test_delete_task(self, test_db, app_client):
        """DELETE /tasks/{id} removes task."""
        create_task_db("id-1", "Delete me", "Soon")
        create_task_db("id-2", "Keep me", "Later")

        response = app_client.delete("/tasks/id-1")
        assert response.status_code == 200
        assert [task["id"] for task in response.json()] == ["id-2"]

    def test_delete_task_not_found(self, app_client):
        """DELETE /tasks/{id} returns 404 for nonexistent task."""
        response = app_client.delete("/tasks/nonexistent")
        assert response.status_code == 404


class TestBucketsEndpoint:
    """Tests for /tasks/buckets."""

    def test_buckets(self, test_db, app_client):
        now = datetime.now()
        create_task_db("today", "Today", "Due today", now.replace(hour=23, minute=59, second=0, microsecond=0))
        create_task_db("later", "Later", "Due next week", now + timedelta(days=7))
        create_task_db("late", "Late", "Due last week", now - timedelta(days=7))
        create_task_db("free", "Free", "No deadline")
        create_task_db("done", "Done", "Finished")
        app_client.patch("/tasks/done", json={"completed": True})

        buckets = app_client.get("/tasks/buckets").json()

        assert [task["id"] for task in buckets["today"]] == ["today"]
        assert [task["id"] for task in buckets["upcoming"]] == ["later", "free"]
        assert [task["id"] for task in buckets["overdue"]] == ["late"]
        assert [task["id"] for task in buckets["completed"]] == ["done"]


class TestScheduleEndpoint:
    """Tests for /schedule."""

    def test_initial_schedule_is_idle(self, app_client):
        assert app_client.get("/schedule").json()["status"] == "idle"

    def test_nothing_to_schedule_skips_engine(self, test_db, app_client, fake_llm):
        """With no active tasks the model is never called."""
        create_task_db("id-1", "Done", "Already")
        app_client.patch("/tasks/id-1", json={"completed": True})

        result = app_client.post("/schedule").json()

        assert result["status"] == "nothing_to_schedule"
        assert result["schedule"] == []
        assert result["error"] is None
        assert fake_llm.messages.calls == []

    def test_generated_schedule(self, test_db, app_client, fake_llm):
        create_task_db("id-1", "Write report", "Quarterly numbers", priority="high", estimated_completion_time=2)
        fake_llm.messages.reply = json.dumps({"schedule": [SCHEDULE_ITEM]})

        result = app_client.post("/schedule").json()

        assert result["status"] == "generated"
        assert result["error"] is None
        assert result["schedule"] == [SCHEDULE_ITEM]
        assert "Estimated Completion Time: 2 hours" in fake_llm.messages.calls[0]["messages"][0]["content"]
        # Held for the current view
        assert app_client.get("/schedule").json()["schedule"] == [SCHEDULE_ITEM]

    def test_empty_schedule_is_not_an_error(self, test_db, app_client, fake_llm):
        create_task_db("id-1", "Write report", "Quarterly numbers")
        fake_llm.messages.reply = '{"schedule": []}'

        result = app_client.post("/schedule").json()

        assert result["status"] == "generated"
        assert result["schedule"] == []
        assert result["error"] is None

    def test_engine_error_clears_previous_schedule(self, test_db, app_client, fake_llm):
        """A failed request replaces the old schedule with an opaque error."""
        create_task_db("id-1", "Write report", "Quarterly numbers")
        fake_llm.messages.reply = json.dumps({"schedule": [SCHEDULE_ITEM]})
        app_client.post("/schedule")

        fake_llm.messages.error = anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )
        result = app_client.post("/schedule").json()

        assert result["status"] == "error"
        assert result["error"] == "Failed to generate schedule. Please try again."
        assert result["schedule"] == []
        assert app_client.get("/schedule").json()["schedule"] == []

    def test_malformed_reply_is_opaque_error(self, test_db, app_client, fake_llm):
        create_task_db("id-1", "Write report", "Quarterly numbers")
        fake_llm.messages.reply = '{"schedule": [{"taskName": "Write report"}]}'

        result = app_client.post("/schedule").json()

        assert result["status"] == "error"
        assert result["error"] == "Failed to generate schedule. Please try again."

    def test_reply_without_text_block_clears_schedule(self, test_db, app_client, fake_llm):
        """A reply made only of non-text blocks is an opaque error, not a 500."""
        from types import SimpleNamespace
        create_task_db("id-1", "Write report", "Quarterly numbers")
        fake_llm.messages.reply = json.dumps({"schedule": [SCHEDULE_ITEM]})
        app_client.post("/schedule")

        fake_llm.messages.content = [SimpleNamespace(type="thinking", thinking="Let me plan...")]
        response = app_client.post("/schedule")

        assert response.status_code == 200
        assert response.json()["status"] == "error"
        assert response.json()["error"] == "Failed to generate schedule. Please try again."
        assert app_client.get("/schedule").json()["status"] == "error"
        assert app_client.get("/schedule").json()["schedule"] == []

    def test_database_error_clears_schedule(self, test_db, app_client, fake_llm):
        """A broken database ends the request with an error result and no stale schedule."""
        import sqlite3
        create_task_db("id-1", "Write report", "Quarterly numbers")
        fake_llm.messages.reply = json.dumps({"schedule": [SCHEDULE_ITEM]})
        app_client.post("/schedule")

        conn = sqlite3.connect(test_db)
        conn.execute("DROP TABLE tasks")
        conn.commit()
        conn.close()

        result = app_client.post("/schedule").json()

        assert result["status"] == "error"
        assert "Database error" in result["error"]
        assert result["schedule"] == []

    def test_missing_api_key(self, test_db, app_client, fake_llm, monkeypatch):
        import main
        monkeypatch.setattr(main, "ANTHROPIC_API_KEY", None)
        create_task_db("id-1", "Write report", "Quarterly numbers")

        result = app_client.post("/schedule").json()

        assert result["error"] == "API key not configured"
        assert fake_llm.messages.calls == []


class TestRemoteStoreThroughApi:
    """The API surfaces remote store failures as a single 502."""

    def test_create_task_connection_refused(self, app_client, monkeypatch, tmp_path):
        import main
        from remote_api import RemoteTaskApi
        from store import RemoteTaskStore

        requests = []

        def refuse(request):
            requests.append(request)
            raise httpx.ConnectError("Connection refused", request=request)

        store = RemoteTaskStore(
            RemoteTaskApi("https://tasks.example.com/api.php", transport=httpx.MockTransport(refuse)),
            tmp_path / "device_id",
        )
        monkeypatch.setattr(main, "task_store", store)

        response = app_client.post("/tasks", json=NEW_TASK)

        assert response.status_code == 502
        assert "Could not reach task server" in response.json()["detail"]
        assert len(requests) == 1
        store.close()

    def test_create_saved_but_reload_refused(self, app_client, monkeypatch, tmp_path):
        """The error says the task was saved so the user does not add it twice."""
        import main
        from remote_api import RemoteTaskApi
        from store import RemoteTaskStore

        def handler(request):
            if json.loads(request.content)["option"] == "insert":
                return httpx.Response(200, json={"status": "success", "message": "Task inserted"})
            raise httpx.ConnectError("Connection refused", request=request)

        store = RemoteTaskStore(
            RemoteTaskApi("https://tasks.example.com/api.php", transport=httpx.MockTransport(handler)),
            tmp_path / "device_id",
        )
        monkeypatch.setattr(main, "task_store", store)

        response = app_client.post("/tasks", json=NEW_TASK)

        assert response.status_code == 502
        assert response.json()["detail"].startswith("Change saved")
        store.close()

    def test_local_database_error_is_502(self, test_db, app_client):
        import sqlite3
        conn = sqlite3.connect(test_db)
        conn.execute("DROP TABLE tasks")
        conn.commit()
        conn.close()

        response = app_client.get("/tasks")

        assert response.status_code == 502
        assert "Database error" in response.json()["detail"]
