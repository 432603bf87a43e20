"""
Shared pytest fixtures for backend tests.
Uses a temp-file SQLite database per test for isolation.
"""
import json
import pytest
import sqlite3
import sys
import os
from types import SimpleNamespace

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE tasks (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT NOT NULL,
            due_date TEXT,
            priority TEXT NOT NULL DEFAULT 'medium',
            estimated_completion_time REAL NOT NULL,
            completed INTEGER DEFAULT 0,
            created_at TEXT NOT NULL
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


class FakeMessages:
    """Stands in for client.messages; replies with canned text and records calls."""

    def __init__(self):
        self.reply = json.dumps({"schedule": []})
        self.error = None
        self.content = None  # explicit content blocks, overrides reply
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if self.content is not None:
            return SimpleNamespace(content=self.content)
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.reply)])


@pytest.fixture
def fake_llm():
    """Fake AsyncAnthropic client: set .messages.reply or .messages.error per test."""
    return SimpleNamespace(messages=FakeMessages())


@pytest.fixture
def app_client(test_db, fake_llm, monkeypatch):
    """
    Create a test client for the FastAPI app.
    Uses the local store, a fake LLM client and skips alembic migrations.
    """
    from fastapi.testclient import TestClient
    from models import ScheduleResult
    from store import LocalTaskStore
    import main

    # Skip alembic in tests - tables already created by test_db fixture
    monkeypatch.setattr(main, "init_db", lambda: None)
    monkeypatch.setattr(main, "setup_logging", lambda level: None)
    monkeypatch.setattr(main, "task_store", LocalTaskStore())
    monkeypatch.setattr(main, "client", fake_llm)
    monkeypatch.setattr(main, "ANTHROPIC_API_KEY", "test-key")
    monkeypatch.setattr(main, "current_schedule", ScheduleResult())

    with TestClient(main.app) as client:
        yield client
