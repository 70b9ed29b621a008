import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

DEFAULT_LOG_PATH = "probe_builder.log"
_log_lock = threading.Lock()


def get_log_path() -> Optional[Path]:
    """Return the activity log path, or ``None`` when logging is disabled."""
    value = os.getenv("PROBE_BUILDER_LOG", DEFAULT_LOG_PATH)
    if not value.strip():
        return None
    return Path(value).expanduser()


def reset_activity_log() -> None:
    path = get_log_path()
    if path is None:
        return
    with _log_lock:
        path.write_text("", encoding="utf-8")


def log_event(status: str, action: str, detail: str | None = None) -> None:
    path = get_log_path()
    if path is None:
        return
    timestamp = datetime.now().isoformat(timespec="seconds")
    message = detail.strip() if detail else ""
    line = f"{timestamp}\t{status.upper()}\t{action}"
    if message:
        line = f"{line}\t{message}"
    with _log_lock:
        with path.open("a", encoding="utf-8") as log:
            log.write(line + "\n")
