from collections.abc import Mapping
from datetime import datetime
from typing import Any

from smartdo_voice.domain.errors import MalformedToolArguments
from smartdo_voice.domain.messages import ToolDeclaration
from smartdo_voice.domain.models import DetectedTask, Importance, TaskIntent
from smartdo_voice.services import scheduling


ADD_TASK_TOOL_NAME = "add_calendar_task"

ADD_TASK_TOOL = ToolDeclaration(
    name=ADD_TASK_TOOL_NAME,
    description="Add a task to the calendar with an optional day, time, and importance level.",
    parameters={
        "type": "OBJECT",
        "properties": {
            "title": {
                "type": "STRING",
                "description": "The description of the task.",
            },
            "day": {
                "type": "STRING",
                "description": "The day of the week (e.g., Monday, Tuesday, today, tomorrow).",
            },
            "time": {
                "type": "STRING",
                "description": "The time of day (e.g., 2 PM, 14:00, noon).",
            },
            "importance": {
                "type": "STRING",
                "description": 'Is it a "major" or "minor" task?',
                "enum": [Importance.MAJOR.value, Importance.MINOR.value],
            },
        },
        "required": ["title"],
    },
)

TASK_ADDED_RESULT = "Task successfully SmartDo-ed into the list!"


def parse_task_intent(args: Mapping[str, Any] | None) -> TaskIntent:
    """Validate raw tool-call arguments into a TaskIntent.

    Raises:
        MalformedToolArguments: If the title is missing, blank, or not text.
    """
    args = args or {}
    title = args.get("title")
    if not isinstance(title, str) or not title.strip():
        raise MalformedToolArguments(f"{ADD_TASK_TOOL_NAME} called without a title")

    importance_raw = args.get("importance")
    importance = Importance.MAJOR if _optional_text(importance_raw, lower=True) == "major" else Importance.MINOR

    return TaskIntent(
        title=title.strip(),
        day_phrase=_optional_text(args.get("day")),
        time_phrase=_optional_text(args.get("time")),
        importance=importance,
    )


def detect_task(intent: TaskIntent, reference: datetime, call_id: str | None = None) -> DetectedTask:
    """Resolve the intent's phrases against `reference` into the host-facing task."""
    schedule = scheduling.resolve(intent.day_phrase, intent.time_phrase, reference)
    timestamp = schedule.timestamp
    if timestamp.tzinfo is None:
        # Naive references are local wall-clock time
        timestamp = timestamp.astimezone()
    return DetectedTask(
        title=intent.title,
        due_date=timestamp.isoformat(),
        priority=intent.importance.priority,
        call_id=call_id,
    )


def _optional_text(value: Any, *, lower: bool = False) -> str | None:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    return text.lower() if lower else text
