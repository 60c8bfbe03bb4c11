"""
Event logging utilities for NDJSON format.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


def emit_event(log_file: Union[str, Path], run_id: str, event_type: str, data: Dict[str, Any]) -> None:
    """
    Append an event to a build run's NDJSON log.

    Args:
        log_file: Path of the NDJSON log
        run_id: Build run ID
        event_type: Event type (e.g., "APP_START", "APP_FAILED")
        data: Event data
    """
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    event = {
        "ts": datetime.now().isoformat(),
        "run_id": run_id,
        "type": event_type,
        "data": data
    }

    with open(path, "a") as f:
        f.write(json.dumps(event, default=str) + "\n")
        f.flush()


def read_events(log_file: Union[str, Path], run_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Read events from an NDJSON log.

    Args:
        log_file: Path of the NDJSON log
        run_id: Only return events for this run, if given

    Returns:
        List of events
    """
    path = Path(log_file)
    if not path.exists():
        return []

    events = []
    with open(path, "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                continue  # Skip malformed lines
            if run_id is None or event.get("run_id") == run_id:
                events.append(event)

    return events


def get_last_event(log_file: Union[str, Path], run_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    events = read_events(log_file, run_id)
    return events[-1] if events else None


class EventTypes:
    BUILD_START = "BUILD_START"
    APPS_LOCATED = "APPS_LOCATED"
    APP_START = "APP_START"
    FLAVOR_SELECTED = "FLAVOR_SELECTED"
    APP_PUBLISHED = "APP_PUBLISHED"
    APP_DONE = "APP_DONE"
    APP_FAILED = "APP_FAILED"
    WARNING = "WARNING"
    BUILD_DONE = "BUILD_DONE"
