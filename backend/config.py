import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


DATABASE_PATH = os.getenv("DAYWISE_DATABASE_PATH", "daywise.db")

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
MODEL = os.getenv("DAYWISE_MODEL", "claude-sonnet-4-5")
SCHEDULE_MAX_TOKENS = _env_int("DAYWISE_SCHEDULE_MAX_TOKENS", 2048)

# "local" keeps tasks in SQLite, "remote" sends them to DAYWISE_REMOTE_API_URL
TASK_STORE = os.getenv("DAYWISE_TASK_STORE", "local").strip().lower()
REMOTE_API_URL = os.getenv("DAYWISE_REMOTE_API_URL", "")
REMOTE_TIMEOUT = _env_float("DAYWISE_REMOTE_TIMEOUT", 10.0)
DEVICE_ID_PATH = os.getenv("DAYWISE_DEVICE_ID_PATH", ".daywise/device_id")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("DAYWISE_CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("DAYWISE_LOG_LEVEL", "INFO").upper()
