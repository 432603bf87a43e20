"""
Schedule suggestions: request building, the LLM call and reply parsing.

The request builder is pure. suggest_schedule makes exactly one
non-streaming Messages API call and raises SchedulingError for every
kind of failure so callers only deal with one error type.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

import anthropic
from pydantic import ValidationError

from models import ScheduleRequest, ScheduleRequestTask, ScheduledItem, Task
from prompts import SCHEDULE_PROMPT, TASK_LINE_TEMPLATE

logger = logging.getLogger(__name__)


class SchedulingError(Exception):
    """The scheduling engine did not produce a usable schedule."""


def format_hours(hours: float) -> str:
    """Hours as text: whole numbers without a decimal point (2 -> "2", 2.5 -> "2.5")."""
    value = float(hours)
    if value.is_integer():
        return str(int(value))
    return str(value)


def to_iso_utc(value: datetime) -> str:
    """ISO-8601 UTC instant with a Z suffix. Naive values are local time."""
    return value.astimezone(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def to_request_task(task: Task) -> ScheduleRequestTask:
    return ScheduleRequestTask(
        name=task.name,
        description=task.description,
        due_date=to_iso_utc(task.due_date) if task.due_date else None,
        priority=task.priority,
        estimated_completion_time=format_hours(task.estimated_completion_time),
    )


def build_schedule_request(tasks: Iterable[Task]) -> Optional[ScheduleRequest]:
    """
    Project the incomplete tasks into a schedule request.

    Returns None when there is nothing to schedule, so the engine is never
    asked about an empty list.
    """
    active = [task for task in tasks if not task.completed]
    if not active:
        return None
    return ScheduleRequest(tasks=[to_request_task(task) for task in active])


def render_task_list(request: ScheduleRequest) -> str:
    return "\n".join(
        TASK_LINE_TEMPLATE.format(
            name=item.name,
            description=item.description,
            due_date=item.due_date or "none",
            priority=item.priority,
            hours=item.estimated_completion_time,
        )
        for item in request.tasks
    )


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]  # Remove first line (```json)
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    return text


def parse_schedule(text: str) -> list[ScheduledItem]:
    """Parse the model's reply. Accepts {"schedule": [...]} or a bare list."""
    try:
        parsed = json.loads(_strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise SchedulingError("Failed to parse AI response") from e

    if isinstance(parsed, dict):
        items = parsed.get("schedule")
    else:
        items = parsed
    if not isinstance(items, list):
        raise SchedulingError("AI response does not contain a schedule list")

    try:
        return [ScheduledItem.model_validate(item) for item in items]
    except ValidationError as e:
        raise SchedulingError(f"Invalid schedule item in AI response: {e}") from e


async def suggest_schedule(
    client,
    request: ScheduleRequest,
    *,
    model: str,
    max_tokens: int = 2048,
    today: Optional[str] = None,
) -> list[ScheduledItem]:
    """Ask the model for a schedule covering request.tasks."""
    if today is None:
        today = datetime.now().strftime("%Y-%m-%d")
    system_prompt = SCHEDULE_PROMPT.format(today=today)

    try:
        response = await client.messages.create(
            model=model,
            max_tokens=max_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": "Tasks:\n" + render_task_list(request)}]
        )
    except anthropic.APIError as e:
        raise SchedulingError(f"API error: {e}") from e

    # Thinking or tool blocks may come before (or instead of) the text
    text_block = next(
        (block for block in response.content or [] if getattr(block, "type", None) == "text"),
        None,
    )
    if text_block is None:
        raise SchedulingError("AI response has no text content")
    ai_text = text_block.text
    logger.debug("Schedule response: %s", ai_text)

    schedule = parse_schedule(ai_text)
    logger.info("Scheduled %d item(s) for %d task(s)", len(schedule), len(request.tasks))
    return schedule
