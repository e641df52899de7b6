from datetime import datetime, timedelta, timezone

import pytest

from smartdo_voice.adapters.storage.jsonstore import JsonTaskStore
from smartdo_voice.domain.errors import TaskNotFound
from smartdo_voice.domain.models import DetectedTask
from smartdo_voice.services.companion import (
    EMPTY_SUGGESTION_FALLBACK,
    REFLECTION_FALLBACK,
    SUGGESTION_FALLBACK,
    TIP_FALLBACK,
    CompanionService,
)
from smartdo_voice.services.tasks import TaskService

NOW = datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc)
NOW_MS = int(NOW.timestamp() * 1000)


class _Clock:
    def __init__(self, value: int) -> None:
        self.value = value

    def __call__(self) -> int:
        return self.value


@pytest.fixture
def clock():
    return _Clock(NOW_MS)


@pytest.fixture
def service(tmp_path, companion_adapter, clock):
    return TaskService(
        store=JsonTaskStore(tmp_path / "tasks.json"),
        companion=CompanionService(adapter=companion_adapter),
        now_ms=clock,
    )


class TestAddTask:

    def test_new_task_is_categorized_and_stored(self, service):
        task = service.add_task("  Write report ")

        assert task.title == "Write report"
        assert task.zone == "work"
        assert task.energy_level == "high"
        assert task.priority == "medium"
        assert task.completed is False
        assert task.created_at == NOW_MS
        assert task.due_date is None
        assert task.reminder_minutes is None
        assert service.get_task(task.id) == task

    def test_due_date_enables_reminder(self, service):
        task = service.add_task("Dentist", due_date="2024-01-05T10:00:00+00:00", priority="high")
        assert task.priority == "high"
        assert task.reminder_minutes == 15

    @pytest.mark.parametrize("title", ["", "   "])
    def test_blank_title_is_rejected(self, service, title):
        with pytest.raises(ValueError):
            service.add_task(title)

    def test_categorization_failure_uses_defaults(self, service, companion_adapter):
        companion_adapter.fail = True
        task = service.add_task("Mystery chore")
        assert (task.zone, task.energy_level) == ("other", "low")

    def test_detected_task_keeps_due_date_and_priority(self, service):
        detected = DetectedTask(title="Send report", due_date="2024-01-08T14:00:00+00:00", priority="high")
        task = service.add_detected_task(detected)
        assert task.due_date == detected.due_date
        assert task.priority == "high"
        assert task.reminder_minutes == 15

    def test_tasks_are_listed_newest_first(self, service, clock):
        first = service.add_task("First")
        clock.value += 1000
        second = service.add_task("Second")
        assert [t.id for t in service.list_tasks()] == [second.id, first.id]


class TestEditing:

    def test_update_changes_fields(self, service):
        task = service.add_task("Draft")
        updated = service.update_task(task.id, {"title": "Final", "zone": "home"})
        assert updated.title == "Final"
        assert updated.zone == "home"
        assert service.get_task(task.id).title == "Final"

    def test_update_rejects_unknown_or_protected_fields(self, service):
        task = service.add_task("Draft")
        with pytest.raises(ValueError):
            service.update_task(task.id, {"id": "other"})
        with pytest.raises(ValueError):
            service.update_task(task.id, {"colour": "blue"})

    def test_toggle_flips_completion(self, service):
        task = service.add_task("Laundry")
        assert service.toggle_task(task.id).completed is True
        assert service.toggle_task(task.id).completed is False

    def test_delete_removes_task(self, service):
        task = service.add_task("Laundry")
        service.delete_task(task.id)
        assert service.list_tasks() == []

    def test_missing_task_raises(self, service):
        with pytest.raises(TaskNotFound):
            service.get_task("nope")
        with pytest.raises(TaskNotFound):
            service.delete_task("nope")
        with pytest.raises(TaskNotFound):
            service.toggle_task("nope")


class TestBreakdown:

    def test_breakdown_attaches_subtasks(self, service, companion_adapter):
        companion_adapter.steps = ["Open the doc", "  ", "Write one line"]
        task = service.add_task("Write report")

        task = service.breakdown_task(task.id)

        assert [s.title for s in task.subtasks] == ["Open the doc", "Write one line"]
        assert all(not s.completed for s in task.subtasks)

    def test_breakdown_failure_adds_nothing(self, service, companion_adapter):
        task = service.add_task("Write report")
        companion_adapter.fail = True
        assert service.breakdown_task(task.id).subtasks == []

    def test_toggle_subtask(self, service):
        task = service.breakdown_task(service.add_task("Write report").id)
        sub_id = task.subtasks[0].id

        task = service.toggle_subtask(task.id, sub_id)

        assert task.subtasks[0].completed is True
        assert service.get_task(task.id).subtasks[0].completed is True

    def test_unknown_subtask_raises(self, service):
        task = service.add_task("Write report")
        with pytest.raises(TaskNotFound):
            service.toggle_subtask(task.id, "missing")


class TestReminders:

    def _due_in(self, service, minutes: float, title: str = "Dentist"):
        due = (NOW + timedelta(minutes=minutes)).isoformat()
        return service.add_task(title, due_date=due)

    def test_reminder_fires_inside_window_once(self, service):
        task = self._due_in(service, 10)

        reminders = service.collect_due_reminders(NOW)

        assert [r.task_id for r in reminders] == [task.id]
        assert reminders[0].body == "Reminder: Dentist is coming up!"
        assert service.get_task(task.id).notified is True
        assert service.collect_due_reminders(NOW) == []

    def test_window_opens_exactly_at_reminder_offset(self, service):
        self._due_in(service, 15)
        assert len(service.collect_due_reminders(NOW)) == 1

    @pytest.mark.parametrize("minutes", [30, 0, -5])
    def test_outside_window_is_quiet(self, service, minutes):
        self._due_in(service, minutes)
        assert service.collect_due_reminders(NOW) == []

    def test_zulu_due_dates_are_understood(self, service):
        service.add_task("Standup", due_date="2024-01-03T12:05:00Z")
        assert len(service.collect_due_reminders(NOW)) == 1

    def test_completed_tasks_are_skipped(self, service):
        task = self._due_in(service, 10)
        service.toggle_task(task.id)
        assert service.collect_due_reminders(NOW) == []

    def test_undated_task_is_nudged_after_two_hours(self, service, clock):
        clock.value = NOW_MS - int(3 * 3600 * 1000)
        old = service.add_task("Old idea")
        clock.value = NOW_MS - int(1 * 3600 * 1000)
        service.add_task("Fresh idea")

        reminders = service.collect_due_reminders(NOW)

        assert [r.task_id for r in reminders] == [old.id]
        assert reminders[0].body == 'SmartDo nudge: "Old idea" is still waiting.'

    def test_unparseable_due_date_is_ignored(self, service):
        service.add_task("Weird", due_date="next tuesday-ish")
        assert service.collect_due_reminders(NOW) == []


class TestCompanionText:

    def test_model_text_is_returned(self, service):
        task = service.add_task("Write report")
        assert service.suggest() == "You are doing great."
        assert service.reflect() == "You are doing great."
        assert service.watering_tip(task.id) == "You are doing great."

    def test_failures_fall_back(self, service, companion_adapter):
        task = service.add_task("Write report")
        companion_adapter.fail = True
        assert service.suggest() == SUGGESTION_FALLBACK
        assert service.reflect() == REFLECTION_FALLBACK
        assert service.watering_tip(task.id) == TIP_FALLBACK

    def test_empty_suggestion_falls_back(self, service, companion_adapter):
        companion_adapter.text = ""
        assert service.suggest() == EMPTY_SUGGESTION_FALLBACK

    def test_tip_for_missing_task_raises(self, service):
        with pytest.raises(TaskNotFound):
            service.watering_tip("nope")
