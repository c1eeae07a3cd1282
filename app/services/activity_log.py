"""In-memory project activity feed.

Background scrape and processing jobs append human-readable entries here;
the status endpoint returns them so the dashboard can poll for progress.
Entries live only as long as the process does.
"""

import threading
from datetime import datetime, timezone
from typing import Optional

MAX_ENTRIES = 500

_lock = threading.Lock()
_logs: dict[str, list[dict]] = {}
_progress: dict[str, dict] = {}  # project_id -> {step, pct}


def add_log(
    project_id: str,
    step: str,
    message: str,
    detail: Optional[str] = None,
    emoji: str = "",
) -> None:
    entry = {
        "step": step,
        "emoji": emoji,
        "message": message,
        "detail": detail,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    with _lock:
        entries = _logs.setdefault(project_id, [])
        entries.append(entry)
        if len(entries) > MAX_ENTRIES:
            del entries[: len(entries) - MAX_ENTRIES]


def set_progress(project_id: str, step: str, pct: float) -> None:
    with _lock:
        _progress[project_id] = {"step": step, "pct": round(min(max(pct, 0), 100), 1)}


def get_progress(project_id: str) -> dict:
    with _lock:
        return dict(_progress.get(project_id, {"step": "", "pct": 0}))


def get_logs(project_id: str, after: int = 0) -> list[dict]:
    with _lock:
        return list(_logs.get(project_id, [])[after:])


def clear(project_id: str) -> None:
    with _lock:
        _logs.pop(project_id, None)
        _progress.pop(project_id, None)
