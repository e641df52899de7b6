from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from smartdo_voice.domain.models import DetectedTask, Reminder, Task
from smartdo_voice.services.session import SessionStatus


class SubTaskResponse(BaseModel):
	model_config = ConfigDict(extra="forbid")

	id: str
	title: str
	completed: bool


class TaskResponse(BaseModel):
	model_config = ConfigDict(extra="forbid")

	id: str
	title: str
	description: str | None = None
	completed: bool
	created_at: int
	priority: Literal["low", "medium", "high"]
	energy_level: Literal["low", "high"]
	zone: Literal["self", "work", "home", "social", "other"]
	subtasks: list[SubTaskResponse]
	due_date: str | None = None
	reminder_minutes: int | None = None
	notified: bool

	@classmethod
	def from_task(cls, task: Task) -> "TaskResponse":
		return cls(
			id=task.id,
			title=task.title,
			description=task.description,
			completed=task.completed,
			created_at=task.created_at,
			priority=task.priority,
			energy_level=task.energy_level,
			zone=task.zone,
			subtasks=[SubTaskResponse(id=s.id, title=s.title, completed=s.completed) for s in task.subtasks],
			due_date=task.due_date,
			reminder_minutes=task.reminder_minutes,
			notified=task.notified,
		)


class CreateTaskRequest(BaseModel):
	model_config = ConfigDict(extra="forbid")

	title: str = Field(..., min_length=1)
	due_date: datetime | None = Field(default=None, description="ISO-8601 due instant")
	priority: Literal["high", "medium"] | None = None


class UpdateTaskRequest(BaseModel):
	model_config = ConfigDict(extra="forbid")

	title: str | None = Field(default=None, min_length=1)
	description: str | None = None
	completed: bool | None = None
	priority: Literal["low", "medium", "high"] | None = None
	energy_level: Literal["low", "high"] | None = None
	zone: Literal["self", "work", "home", "social", "other"] | None = None
	due_date: datetime | None = None
	reminder_minutes: int | None = Field(default=None, ge=0)


class ReminderResponse(BaseModel):
	model_config = ConfigDict(extra="forbid")

	task_id: str
	title: str
	body: str

	@classmethod
	def from_reminder(cls, reminder: Reminder) -> "ReminderResponse":
		return cls(task_id=reminder.task_id, title=reminder.title, body=reminder.body)


class CompanionTextResponse(BaseModel):
	model_config = ConfigDict(extra="forbid")

	text: str


class VoiceStatusResponse(BaseModel):
	model_config = ConfigDict(extra="forbid")

	active: bool
	state: str
	active_sources: int
	started_at: datetime | None
	tasks_detected: int
	last_error: str | None

	@classmethod
	def from_status(cls, active: bool, status: SessionStatus) -> "VoiceStatusResponse":
		return cls(
			active=active,
			state=status.state.value,
			active_sources=status.active_sources,
			started_at=status.started_at,
			tasks_detected=status.tasks_detected,
			last_error=status.last_error,
		)


# WebSocket message models for the voice session

class WsCommand(BaseModel):
	"""Incoming WebSocket command from client."""
	model_config = ConfigDict(extra="forbid")

	action: Literal["start", "stop"]


class WsStateEvent(BaseModel):
	"""WebSocket event for state changes."""
	model_config = ConfigDict(extra="forbid")

	type: Literal["state_change"] = "state_change"
	state: str
	timestamp: datetime


class WsTaskEvent(BaseModel):
	"""WebSocket event when a spoken task has been detected."""
	model_config = ConfigDict(extra="forbid")

	type: Literal["task_detected"] = "task_detected"
	title: str
	due_date: str | None
	priority: Literal["high", "medium"] | None
	timestamp: datetime

	@classmethod
	def from_task(cls, task: DetectedTask, timestamp: datetime) -> "WsTaskEvent":
		return cls(
			title=task.title,
			due_date=task.due_date,
			priority=task.priority,  # type: ignore[arg-type]
			timestamp=timestamp,
		)


class WsErrorEvent(BaseModel):
	"""WebSocket event for errors."""
	model_config = ConfigDict(extra="forbid")

	type: Literal["error"] = "error"
	message: str
	timestamp: datetime


class WsConnectedEvent(BaseModel):
	"""WebSocket event sent on successful connection."""
	model_config = ConfigDict(extra="forbid")

	type: Literal["connected"] = "connected"
	message: str = "WebSocket connected. Send {\"action\": \"start\"} to talk to SmartDo."
