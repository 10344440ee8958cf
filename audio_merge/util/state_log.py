from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any

from audio_merge.util.config import default_config_dir


def events_log_path() -> Path:
    return default_config_dir() / "events.jsonl"


def log_event(event: dict[str, Any], path: Path | None = None) -> None:
    """Append a single JSON line event. Best-effort; OSError is handled by the caller."""
    p = path or events_log_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    payload = {"ts": time.time(), **event}
    with p.open("a", encoding="utf-8") as f:
        f.write(json.dumps(payload, sort_keys=True) + "\n")
