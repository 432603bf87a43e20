from datetime import datetime
from typing import Iterable, Optional

from models import Task, TaskBuckets


def _align(due: datetime, now: datetime) -> datetime:
    """Express a due date in now's timezone so calendar days compare correctly.

    Naive due dates are wall-clock times in now's timezone.
    """
    if due.tzinfo is None:
        return due.replace(tzinfo=now.tzinfo)
    if now.tzinfo is None:
        # Aware due date against a naive (local) clock
        return due.astimezone().replace(tzinfo=None)
    return due.astimezone(now.tzinfo)


def classify_task(task: Task, now: datetime) -> str:
    """Return the bucket name for one task: today, upcoming, overdue or completed."""
    if task.completed:
        return "completed"
    if task.due_date is None:
        return "upcoming"

    due = _align(task.due_date, now)
    if due.date() == now.date():
        return "today"
    if due > now:
        return "upcoming"
    return "overdue"


def classify_tasks(tasks: Iterable[Task], now: Optional[datetime] = None) -> TaskBuckets:
    """
    Partition tasks into disjoint buckets relative to now.

    - today: incomplete, due on now's calendar day (earlier or later that day)
    - upcoming: incomplete, no due date or due on a later day
    - overdue: incomplete, due on an earlier day
    - completed: completed, whatever the due date

    Input order is preserved inside each bucket. Nothing is cached.
    """
    if now is None:
        now = datetime.now().astimezone()

    buckets = TaskBuckets()
    for task in tasks:
        getattr(buckets, classify_task(task, now)).append(task)
    return buckets
