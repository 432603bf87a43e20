import logging
import sqlite3
from datetime import datetime
from typing import Optional
from contextlib import contextmanager

import config
from models import Task

logger = logging.getLogger(__name__)

DATABASE_PATH = config.DATABASE_PATH

@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()

def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess
    import os

    # Run alembic upgrade from the backend directory
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=backend_dir,
        check=True
    )

def _row_to_task(row) -> Task:
    """Convert a database row to a Task model."""
    due_date = row["due_date"]
    return Task(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        # Empty string and NULL both mean "no deadline"
        due_date=datetime.fromisoformat(due_date) if due_date else None,
        priority=row["priority"],
        estimated_completion_time=row["estimated_completion_time"],
        completed=bool(row["completed"]),
        created_at=row["created_at"],
    )


def get_all_tasks() -> list[Task]:
    """All tasks in creation order."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM tasks ORDER BY created_at, rowid"
        ).fetchall()
        return [_row_to_task(row) for row in rows]

def get_task_db(task_id: str) -> Optional[Task]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row:
            return _row_to_task(row)
    return None

def create_task_db(
    task_id: str,
    name: str,
    description: str,
    due_date: Optional[datetime] = None,
    priority: str = "medium",
    estimated_completion_time: float = 1.0,
) -> Task:
    """Insert a new, not yet completed task.
    due_date is stored as ISO text, with its offset when it carries one.
    """
    created_at = datetime.now().isoformat()
    due_text = due_date.isoformat() if due_date else None

    with get_db() as conn:
        conn.execute(
            """INSERT INTO tasks
               (id, name, description, due_date, priority, estimated_completion_time, completed, created_at)
               VALUES (?, ?, ?, ?, ?, ?, 0, ?)""",
            (task_id, name, description, due_text, priority, estimated_completion_time, created_at)
        )
        conn.commit()

    logger.debug("Created task %s (%r)", task_id, name)
    return Task(
        id=task_id,
        name=name,
        description=description,
        due_date=due_date,
        priority=priority,
        estimated_completion_time=estimated_completion_time,
        completed=False,
        created_at=created_at,
    )

def update_task_db(task_id: str, **updates) -> Optional[Task]:
    """
    Update a task with any fields provided.
    Only updates fields that differ from current values.

    Args:
        task_id: Task ID to update
        **updates: Field names and values to update (name, description, priority, completed, ...)
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if not row:
            return None

        keys = row.keys()

        # Filter updates: only include fields that differ from current values
        changes = {}
        for field, new_value in updates.items():
            if field not in keys or field in ("id", "created_at"):
                continue

            # SQLite stores bools as ints and datetimes as text
            if isinstance(new_value, bool):
                new_value = int(new_value)
            elif isinstance(new_value, datetime):
                new_value = new_value.isoformat()

            if new_value != row[field]:
                changes[field] = new_value

        # Execute UPDATE only if there are actual changes
        if changes:
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [task_id]
            conn.execute(f"UPDATE tasks SET {set_clause} WHERE id = ?", values)
            conn.commit()

        # Return updated task (re-fetch to get current state)
        updated_row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(updated_row)

def delete_task_db(task_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        conn.commit()
        return cursor.rowcount > 0
