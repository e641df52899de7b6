import time
import uuid
from dataclasses import dataclass, fields, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from smartdo_voice.core.logger import get_logger
from smartdo_voice.domain.errors import TaskNotFound
from smartdo_voice.domain.models import DetectedTask, Priority, Reminder, SubTask, Task
from smartdo_voice.ports.storage import TaskStorePort
from smartdo_voice.services.companion import CompanionService

logger = get_logger("services.tasks")

_UPDATABLE_FIELDS = {f.name for f in fields(Task)} - {"id", "created_at", "subtasks"}


def _now_ms() -> int:
	return int(time.time() * 1000)


def _new_id() -> str:
	return uuid.uuid4().hex


@dataclass(slots=True)
class TaskService:
	"""Task bookkeeping behind both the voice session and the HTTP API."""

	store: TaskStorePort
	companion: CompanionService
	reminder_minutes: int = 15
	nudge_after_hours: float = 2.0
	now_ms: Callable[[], int] = _now_ms

	def list_tasks(self) -> list[Task]:
		return sorted(self.store.list_tasks(), key=lambda t: t.created_at, reverse=True)

	def get_task(self, task_id: str) -> Task:
		task = self.store.get_task(task_id)
		if task is None:
			raise TaskNotFound(f"Task '{task_id}' not found")
		return task

	def add_task(self, title: str, due_date: str | None = None, priority: Priority | None = None) -> Task:
		if not title or not title.strip():
			raise ValueError("Task title must be non-empty")

		zone, energy = self.companion.categorize(title.strip())
		task = Task(
			id=_new_id(),
			title=title.strip(),
			created_at=self.now_ms(),
			priority=priority or "medium",
			energy_level=energy,
			zone=zone,
			due_date=due_date,
			reminder_minutes=self.reminder_minutes if due_date else None,
		)
		logger.info("Adding task id=%s title=%r due=%s", task.id, task.title, task.due_date)
		return self.store.save_task(task)

	def add_detected_task(self, detected: DetectedTask) -> Task:
		return self.add_task(detected.title, detected.due_date, detected.priority)

	def update_task(self, task_id: str, updates: dict[str, Any]) -> Task:
		unknown = set(updates) - _UPDATABLE_FIELDS
		if unknown:
			raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
		task = replace(self.get_task(task_id), **updates)
		return self.store.save_task(task)

	def toggle_task(self, task_id: str) -> Task:
		task = self.get_task(task_id)
		task.completed = not task.completed
		return self.store.save_task(task)

	def delete_task(self, task_id: str) -> None:
		if not self.store.delete_task(task_id):
			raise TaskNotFound(f"Task '{task_id}' not found")

	def add_subtasks(self, task_id: str, steps: list[str]) -> Task:
		task = self.get_task(task_id)
		task.subtasks.extend(SubTask(id=_new_id()[:9], title=step) for step in steps if step.strip())
		return self.store.save_task(task)

	def breakdown_task(self, task_id: str) -> Task:
		task = self.get_task(task_id)
		steps = self.companion.breakdown(task.title)
		return self.add_subtasks(task_id, steps)

	def toggle_subtask(self, task_id: str, subtask_id: str) -> Task:
		task = self.get_task(task_id)
		for subtask in task.subtasks:
			if subtask.id == subtask_id:
				subtask.completed = not subtask.completed
				return self.store.save_task(task)
		raise TaskNotFound(f"Subtask '{subtask_id}' not found on task '{task_id}'")

	def collect_due_reminders(self, now: datetime | None = None) -> list[Reminder]:
		"""Select tasks whose reminder window is open and mark them notified.

		Tasks with a due date and reminder fire inside [due - reminder, due).
		Undated tasks get a single nudge once they are older than the nudge age.
		"""
		now = now or datetime.now(timezone.utc)
		now_ms = int(now.timestamp() * 1000)
		nudge_after_ms = int(self.nudge_after_hours * 3600 * 1000)
		reminders: list[Reminder] = []

		for task in self.store.list_tasks():
			if task.completed or task.notified:
				continue

			body: str | None = None
			if task.due_date and task.reminder_minutes is not None:
				due = _parse_due(task.due_date)
				if due is None:
					continue
				if due - timedelta(minutes=task.reminder_minutes) <= now < due:
					body = f"Reminder: {task.title} is coming up!"
			elif not task.due_date:
				if now_ms - task.created_at > nudge_after_ms:
					body = f'SmartDo nudge: "{task.title}" is still waiting.'

			if body is not None:
				task.notified = True
				self.store.save_task(task)
				reminders.append(Reminder(task_id=task.id, title=task.title, body=body))

		if reminders:
			logger.info("Collected %d reminder(s)", len(reminders))
		return reminders

	def reflect(self) -> str:
		tasks = self.store.list_tasks()
		return self.companion.reflect(
			[t.title for t in tasks if t.completed],
			[t.title for t in tasks if not t.completed],
		)

	def suggest(self) -> str:
		return self.companion.suggest([t.title for t in self.store.list_tasks() if not t.completed])

	def watering_tip(self, task_id: str) -> str:
		return self.companion.watering_tip(self.get_task(task_id).title)


def _parse_due(value: str) -> datetime | None:
	try:
		due = datetime.fromisoformat(value.replace("Z", "+00:00"))
	except ValueError:
		logger.warning("Ignoring unparseable due date %r", value)
		return None
	if due.tzinfo is None:
		due = due.astimezone()
	return due
