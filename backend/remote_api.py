"""
Client for the remote task server.

The server exposes a single endpoint; every request is a JSON POST whose
"option" field selects the operation (insert, all, update, delete). Its
replies are not uniform, so each one is classified into a ResponseShape
before being turned into an ApiResult. Shapes are checked in this order,
first match wins:

1. TRANSPORT_ERROR  connection failure, timeout or non-2xx status
2. NOT_JSON         body does not decode as JSON
3. ERROR_FIELD      truthy "error", status "error"/"fail", or success: false
4. STATUS_MESSAGE   object with status "success" (or success: true)
5. DATA_ARRAY       object with a "data" list
6. BARE_ARRAY       top-level JSON list
7. UNEXPECTED       anything else

Only STATUS_MESSAGE, DATA_ARRAY and BARE_ARRAY count as success. No
request is ever retried.
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from models import Task, TaskCreate

logger = logging.getLogger(__name__)

UNEXPECTED_FORMAT = "Unexpected response format from server"

PRIORITY_TO_API = {"high": "High", "medium": "Medium", "low": "Low"}
STATUS_COMPLETED = "Completed"
STATUS_NOT_STARTED = "Not Started"


class ResponseShape(str, Enum):
    TRANSPORT_ERROR = "transport_error"
    NOT_JSON = "not_json"
    ERROR_FIELD = "error_field"
    STATUS_MESSAGE = "status_message"
    DATA_ARRAY = "data_array"
    BARE_ARRAY = "bare_array"
    UNEXPECTED = "unexpected"


class ApiResult(BaseModel):
    success: bool
    shape: ResponseShape
    data: Optional[list[Any]] = None
    message: Optional[str] = None
    error: Optional[str] = None


def _text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def interpret_payload(payload: Any) -> ApiResult:
    """Classify an already-decoded JSON body (shapes 3 to 7)."""
    if isinstance(payload, dict):
        status = str(payload.get("status", "")).strip().lower()

        error = payload.get("error")
        if error:
            return ApiResult(success=False, shape=ResponseShape.ERROR_FIELD, error=str(error))
        if status in ("error", "fail", "failed", "failure") or payload.get("success") is False:
            return ApiResult(
                success=False,
                shape=ResponseShape.ERROR_FIELD,
                error=_text(payload.get("message")) or "Server reported an error",
            )

        data = payload.get("data")
        if status == "success" or payload.get("success") is True:
            return ApiResult(
                success=True,
                shape=ResponseShape.STATUS_MESSAGE,
                data=data if isinstance(data, list) else None,
                message=_text(payload.get("message")),
            )
        if isinstance(data, list):
            return ApiResult(
                success=True,
                shape=ResponseShape.DATA_ARRAY,
                data=data,
                message=_text(payload.get("message")),
            )

    elif isinstance(payload, list):
        return ApiResult(success=True, shape=ResponseShape.BARE_ARRAY, data=payload)

    return ApiResult(success=False, shape=ResponseShape.UNEXPECTED, error=UNEXPECTED_FORMAT)


def interpret_response(response: httpx.Response) -> ApiResult:
    """Classify a received HTTP response (shapes 1 to 7, minus connection failures)."""
    if not response.is_success:
        return ApiResult(
            success=False,
            shape=ResponseShape.TRANSPORT_ERROR,
            error=f"Task server responded with HTTP {response.status_code}",
        )
    try:
        payload = response.json()
    except ValueError:
        return ApiResult(
            success=False,
            shape=ResponseShape.NOT_JSON,
            error=f"{UNEXPECTED_FORMAT} (not JSON)",
        )
    return interpret_payload(payload)


def _parse_due_date(raw: Any) -> Optional[datetime]:
    if not raw or not isinstance(raw, str):
        return None
    text = raw.strip()
    # MySQL-style "zero date" means unset
    if text.startswith("0000-00-00"):
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.warning("Ignoring unparseable due_date from task server: %r", raw)
        return None


def _parse_hours(raw: Any) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring unparseable estimated_hours from task server: %r", raw)
        return 0.0


def task_from_api(item: dict) -> Optional[Task]:
    """Map a task record from the server (task_name, estimated_hours, status...) to a Task."""
    if item.get("id") in (None, ""):
        logger.warning("Skipping task record without id: %r", item)
        return None

    priority = str(item.get("priority", "")).strip().lower()
    if priority not in PRIORITY_TO_API:
        priority = "medium"

    return Task(
        id=str(item["id"]),
        name=str(item.get("task_name") or ""),
        description=str(item.get("description") or ""),
        due_date=_parse_due_date(item.get("due_date")),
        priority=priority,
        estimated_completion_time=_parse_hours(item.get("estimated_hours")),
        completed=str(item.get("status", "")).strip() == STATUS_COMPLETED,
    )


def task_to_api(data: TaskCreate) -> dict:
    """Insert fields for a new task. The server takes date-only due dates."""
    return {
        "task_name": data.name,
        "description": data.description,
        "due_date": data.due_date.strftime("%Y-%m-%d") if data.due_date else "",
        "priority": PRIORITY_TO_API[data.priority],
        "estimated_hours": data.estimated_completion_time,
    }


class RemoteTaskApi:
    """Thin wrapper over the task server endpoint; every call returns an ApiResult."""

    def __init__(self, url: str, timeout: float = 10.0, transport: Optional[httpx.BaseTransport] = None):
        self.url = url
        self.http = httpx.Client(
            timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
            transport=transport,
        )

    def close(self) -> None:
        self.http.close()

    def _send(self, payload: dict) -> ApiResult:
        option = payload["option"]
        try:
            response = self.http.post(self.url, json=payload)
        except httpx.HTTPError as e:
            logger.warning("Task server %s request failed: %s: %s", option, e.__class__.__name__, e)
            return ApiResult(
                success=False,
                shape=ResponseShape.TRANSPORT_ERROR,
                error=f"Could not reach task server: {e}",
            )

        result = interpret_response(response)
        if result.success:
            logger.debug("Task server %s -> %s", option, result.shape.value)
        else:
            logger.warning("Task server %s -> %s: %s", option, result.shape.value, result.error)
        return result

    def fetch_all(self, device: Optional[str] = None) -> ApiResult:
        payload = {"option": "all"}
        if device:
            payload["device"] = device
        return self._send(payload)

    def insert(self, fields: dict, device: str) -> ApiResult:
        return self._send({"option": "insert", **fields, "device": device})

    def update_status(self, task_id: str, completed: bool) -> ApiResult:
        return self._send({
            "option": "update",
            "id": task_id,
            "status": STATUS_COMPLETED if completed else STATUS_NOT_STARTED,
        })

    def delete(self, task_id: str) -> ApiResult:
        return self._send({"option": "delete", "id": task_id})
