from datetime import datetime

import pytest

from conftest import WEDNESDAY
from smartdo_voice.domain.errors import MalformedToolArguments
from smartdo_voice.domain.models import Importance, TaskIntent
from smartdo_voice.services.intents import (
    ADD_TASK_TOOL,
    ADD_TASK_TOOL_NAME,
    detect_task,
    parse_task_intent,
)


class TestToolDeclaration:

    def test_declaration_shape(self):
        decl = ADD_TASK_TOOL.to_function_declaration()
        assert decl["name"] == ADD_TASK_TOOL_NAME == "add_calendar_task"
        params = decl["parameters"]
        assert params["required"] == ["title"]
        assert set(params["properties"]) == {"title", "day", "time", "importance"}
        assert params["properties"]["importance"]["enum"] == ["major", "minor"]


class TestParseTaskIntent:

    def test_full_arguments(self):
        intent = parse_task_intent({"title": " Send report ", "day": "Monday", "time": "2 PM", "importance": "major"})
        assert intent == TaskIntent(
            title="Send report", day_phrase="Monday", time_phrase="2 PM", importance=Importance.MAJOR
        )

    def test_title_only_defaults_to_minor(self):
        intent = parse_task_intent({"title": "Call mom"})
        assert intent.day_phrase is None
        assert intent.time_phrase is None
        assert intent.importance is Importance.MINOR

    @pytest.mark.parametrize("importance", ["MAJOR", " Major "])
    def test_importance_is_case_insensitive(self, importance):
        assert parse_task_intent({"title": "x", "importance": importance}).importance is Importance.MAJOR

    @pytest.mark.parametrize("importance", ["minor", "urgent", 3, None])
    def test_anything_else_is_minor(self, importance):
        assert parse_task_intent({"title": "x", "importance": importance}).importance is Importance.MINOR

    @pytest.mark.parametrize("args", [None, {}, {"title": ""}, {"title": "   "}, {"title": 42}, {"day": "Monday"}])
    def test_missing_title_is_malformed(self, args):
        with pytest.raises(MalformedToolArguments):
            parse_task_intent(args)

    def test_blank_phrases_are_absent(self):
        intent = parse_task_intent({"title": "Water plants", "day": "  ", "time": ""})
        assert intent.day_phrase is None
        assert intent.time_phrase is None

    def test_intent_rejects_blank_title_directly(self):
        with pytest.raises(MalformedToolArguments):
            TaskIntent(title=" ")


class TestDetectTask:

    def test_major_task_with_day_and_time(self):
        intent = TaskIntent(title="Send report", day_phrase="Monday", time_phrase="2 PM", importance=Importance.MAJOR)
        detected = detect_task(intent, WEDNESDAY, call_id="call-1")
        assert detected.title == "Send report"
        assert detected.due_date == "2024-01-08T14:00:00+00:00"
        assert detected.priority == "high"
        assert detected.call_id == "call-1"

    def test_minor_task_without_phrases_is_today_at_nine(self):
        detected = detect_task(TaskIntent(title="Call mom"), WEDNESDAY)
        assert detected.due_date == "2024-01-03T09:00:00+00:00"
        assert detected.priority == "medium"

    def test_naive_reference_gets_local_offset(self):
        detected = detect_task(TaskIntent(title="Stretch"), datetime(2024, 1, 3, 10, 30))
        due = datetime.fromisoformat(detected.due_date)
        assert due.tzinfo is not None
        assert (due.hour, due.minute) == (9, 0)
