"""
Command output: one human-readable line or an indented JSON document.
"""

import json
from typing import Any, Dict, Optional, TextIO

from .models import DayChange
from .timecard import format_day_summary_human


def _to_jsonable(value: Any) -> Any:
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(payload: Any) -> str:
    """Serialize a payload, converting models through their to_dict()."""
    return json.dumps(payload, indent=2, default=_to_jsonable)


def write(stream: TextIO, as_json: bool, human: str, payload: Any):
    """
    Write a command result.

    Args:
        stream: Output stream
        as_json: Write the payload as JSON instead of the human text
        human: Human-readable text
        payload: Machine-readable payload
    """
    if as_json:
        stream.write(to_json(payload) + "\n")
    else:
        stream.write(human + "\n")


def error_payload(code: str, message: str, details: Optional[Any] = None) -> Dict[str, Any]:
    payload = {'ok': False, 'code': code, 'message': message}
    if details is not None:
        payload['details'] = details
    return payload


def format_day_change_human(change: DayChange) -> str:
    """Two lines: the day as it was and as it will be."""
    return (
        f"Existing: {format_day_summary_human(change.existing)}\n"
        f"Proposed: {format_day_summary_human(change.proposed)}"
    )
