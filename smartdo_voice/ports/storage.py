"""Port for task persistence."""

from typing import Protocol

from smartdo_voice.domain.models import Task


class TaskStorePort(Protocol):
    """Key-value store of tasks keyed by task id."""

    def list_tasks(self) -> list[Task]:
        ...

    def get_task(self, task_id: str) -> Task | None:
        ...

    def save_task(self, task: Task) -> Task:
        """Insert or replace the task stored under `task.id`."""
        ...

    def delete_task(self, task_id: str) -> bool:
        ...
