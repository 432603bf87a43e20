from contextlib import asynccontextmanager
import logging
import anthropic
from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

import config
from classifier import classify_tasks
from database import init_db
from logging_setup import setup_logging
from models import Task, TaskBuckets, TaskCreate, TaskStatusUpdate, ScheduleResult
from scheduler import SchedulingError, build_schedule_request, suggest_schedule
from store import TaskNotFoundError, TaskRefreshError, TaskStoreError, build_task_store

logger = logging.getLogger(__name__)

SCHEDULE_FAILED_MESSAGE = "Failed to generate schedule. Please try again."

task_store = build_task_store()

# Last schedule shown to the user; replaced wholesale by every POST /schedule
current_schedule = ScheduleResult()

@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    setup_logging(config.LOG_LEVEL)
    if task_store.name == "local":
        init_db()
    logger.info("DayWise started with %s task store", task_store.name)
    yield
    # Shutdown
    task_store.close()

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ANTHROPIC_API_KEY = config.ANTHROPIC_API_KEY
client = anthropic.AsyncAnthropic(api_key=ANTHROPIC_API_KEY)


def _run_store(operation, *args) -> list[Task]:
    """Call a store operation, turning store errors into HTTP errors."""
    try:
        return operation(*args)
    except TaskNotFoundError:
        raise HTTPException(status_code=404, detail="Task not found")
    except TaskStoreError as e:
        logger.warning("Task store error: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    except TaskRefreshError as e:
        # Saved already; the client must not retry the change
        logger.warning("Task list reload failed after a saved change: %s", e)
        raise HTTPException(
            status_code=502,
            detail=f"Change saved, but the task list could not be reloaded: {e}",
        )


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "store": task_store.name}


@app.get("/tasks")
def get_tasks() -> list[Task]:
    return _run_store(task_store.list_tasks)


@app.get("/tasks/buckets")
def get_task_buckets() -> TaskBuckets:
    """Tasks grouped into today / upcoming / overdue / completed."""
    return classify_tasks(_run_store(task_store.list_tasks))


@app.post("/tasks", status_code=201)
def create_task(task_data: TaskCreate) -> list[Task]:
    return _run_store(task_store.add_task, task_data)


@app.patch("/tasks/{task_id}")
def update_task(task_id: str, task_data: TaskStatusUpdate) -> list[Task]:
    return _run_store(task_store.set_completed, task_id, task_data.completed)


@app.post("/tasks/{task_id}/toggle")
def toggle_task(task_id: str) -> list[Task]:
    return _run_store(task_store.toggle_completed, task_id)


@app.delete("/tasks/{task_id}")
def delete_task(task_id: str) -> list[Task]:
    return _run_store(task_store.delete_task, task_id)


@app.get("/schedule")
def get_schedule() -> ScheduleResult:
    """The most recent schedule result."""
    return current_schedule


@app.post("/schedule")
async def create_schedule() -> ScheduleResult:
    """Ask the model for a schedule of all incomplete tasks."""
    global current_schedule

    try:
        tasks = await run_in_threadpool(task_store.list_tasks)
    except TaskStoreError as e:
        current_schedule = ScheduleResult(status="error", error=str(e))
        return current_schedule

    request = build_schedule_request(tasks)
    if request is None:
        current_schedule = ScheduleResult(
            status="nothing_to_schedule",
            message="Add some tasks or uncomplete existing ones to generate a schedule.",
        )
        return current_schedule

    if not ANTHROPIC_API_KEY or ANTHROPIC_API_KEY == "your-api-key-here":
        current_schedule = ScheduleResult(status="error", error="API key not configured")
        return current_schedule

    try:
        schedule = await suggest_schedule(
            client,
            request,
            model=config.MODEL,
            max_tokens=config.SCHEDULE_MAX_TOKENS,
        )
    except SchedulingError as e:
        logger.error("Error generating schedule: %s", e)
        current_schedule = ScheduleResult(status="error", error=SCHEDULE_FAILED_MESSAGE)
        return current_schedule

    current_schedule = ScheduleResult(
        status="generated",
        schedule=schedule,
        message="AI has suggested a new schedule for your tasks.",
    )
    return current_schedule


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
