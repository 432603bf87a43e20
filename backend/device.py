import logging
import uuid
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


def load_device_id(path: Union[str, Path]) -> Optional[str]:
    """Return the persisted device id, or None if none has been generated yet."""
    try:
        value = Path(path).read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    return value or None


def get_or_create_device_id(path: Union[str, Path]) -> str:
    """
    Return the device id stored at path, generating and persisting one first if needed.

    The id is an opaque token that keys this installation's tasks on the
    remote task server. It is not a credential.
    """
    existing = load_device_id(path)
    if existing:
        return existing

    path = Path(path)
    device_id = str(uuid.uuid4())
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(device_id + "\n", encoding="utf-8")
    logger.info("Generated device id, stored at %s", path)
    return device_id
