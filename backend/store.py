import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Protocol, Union

import config
from database import (
    get_all_tasks,
    get_task_db,
    create_task_db,
    update_task_db,
    delete_task_db,
)
from device import get_or_create_device_id, load_device_id
from models import Task, TaskCreate
from remote_api import UNEXPECTED_FORMAT, ApiResult, RemoteTaskApi, task_from_api, task_to_api

logger = logging.getLogger(__name__)


class TaskStoreError(Exception):
    """The task store could not complete an operation. The collection is unchanged."""


class TaskNotFoundError(TaskStoreError):
    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class TaskRefreshError(Exception):
    """A mutation was saved but the task list could not be read back afterwards."""


class TaskStore(Protocol):
    """Where tasks live. Every mutation returns the collection as re-read afterwards."""

    name: str

    def list_tasks(self) -> list[Task]: ...

    def add_task(self, data: TaskCreate) -> list[Task]: ...

    def set_completed(self, task_id: str, completed: bool) -> list[Task]: ...

    def toggle_completed(self, task_id: str) -> list[Task]: ...

    def delete_task(self, task_id: str) -> list[Task]: ...

    def close(self) -> None: ...


@contextmanager
def _database_errors(error_class=TaskStoreError):
    """Re-raise sqlite3 errors as error_class."""
    try:
        yield
    except sqlite3.Error as e:
        logger.error("Database error: %s", e)
        raise error_class(f"Database error: {e}") from e


class LocalTaskStore:
    """Tasks in the local SQLite database; this process is the only writer."""

    name = "local"

    def _reload(self) -> list[Task]:
        with _database_errors(TaskRefreshError):
            return get_all_tasks()

    def list_tasks(self) -> list[Task]:
        with _database_errors():
            return get_all_tasks()

    def add_task(self, data: TaskCreate) -> list[Task]:
        with _database_errors():
            create_task_db(
                str(uuid.uuid4()),
                data.name,
                data.description,
                data.due_date,
                data.priority,
                data.estimated_completion_time,
            )
        return self._reload()

    def set_completed(self, task_id: str, completed: bool) -> list[Task]:
        with _database_errors():
            updated = update_task_db(task_id, completed=completed)
        if updated is None:
            raise TaskNotFoundError(task_id)
        return self._reload()

    def toggle_completed(self, task_id: str) -> list[Task]:
        with _database_errors():
            task = get_task_db(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return self.set_completed(task_id, not task.completed)

    def delete_task(self, task_id: str) -> list[Task]:
        with _database_errors():
            deleted = delete_task_db(task_id)
        if not deleted:
            raise TaskNotFoundError(task_id)
        return self._reload()

    def close(self) -> None:
        pass


class RemoteTaskStore:
    """
    Tasks on the remote task server, keyed by this installation's device id.

    Mutations are sent immediately and the full list is fetched again after
    each one succeeds. Nothing is cached locally.
    """

    name = "remote"

    def __init__(self, api: RemoteTaskApi, device_id_path: Union[str, Path]):
        self.api = api
        self.device_id_path = device_id_path

    def _tasks_from(self, result: ApiResult, device: Optional[str]) -> list[Task]:
        if not result.success:
            raise TaskStoreError(result.error or UNEXPECTED_FORMAT)

        tasks = []
        for item in result.data or []:
            if not isinstance(item, dict):
                logger.warning("Skipping non-object task record: %r", item)
                continue
            # "all" is not filtered server-side
            if device and item.get("device") not in (None, "", device):
                continue
            task = task_from_api(item)
            if task is not None:
                tasks.append(task)
        return tasks

    def _after_mutation(self, result: ApiResult) -> list[Task]:
        if not result.success:
            raise TaskStoreError(result.error or UNEXPECTED_FORMAT)
        try:
            return self.list_tasks()
        except TaskStoreError as e:
            raise TaskRefreshError(str(e)) from e

    def list_tasks(self) -> list[Task]:
        # Before a device id exists this fetches everything
        device = load_device_id(self.device_id_path)
        return self._tasks_from(self.api.fetch_all(device), device)

    def add_task(self, data: TaskCreate) -> list[Task]:
        device = get_or_create_device_id(self.device_id_path)
        return self._after_mutation(self.api.insert(task_to_api(data), device))

    def set_completed(self, task_id: str, completed: bool) -> list[Task]:
        return self._after_mutation(self.api.update_status(task_id, completed))

    def toggle_completed(self, task_id: str) -> list[Task]:
        current = next((task for task in self.list_tasks() if task.id == task_id), None)
        if current is None:
            raise TaskNotFoundError(task_id)
        return self.set_completed(task_id, not current.completed)

    def delete_task(self, task_id: str) -> list[Task]:
        return self._after_mutation(self.api.delete(task_id))

    def close(self) -> None:
        self.api.close()


def build_task_store(kind: Optional[str] = None) -> TaskStore:
    """Create the store selected by DAYWISE_TASK_STORE (or kind)."""
    kind = (kind or config.TASK_STORE).strip().lower()
    if kind == "local":
        return LocalTaskStore()
    if kind == "remote":
        if not config.REMOTE_API_URL:
            raise ValueError("DAYWISE_REMOTE_API_URL must be set when DAYWISE_TASK_STORE=remote")
        return RemoteTaskStore(
            RemoteTaskApi(config.REMOTE_API_URL, timeout=config.REMOTE_TIMEOUT),
            config.DEVICE_ID_PATH,
        )
    raise ValueError(f"Unknown task store {kind!r}, expected 'local' or 'remote'")
