import json
import os
import tempfile
from dataclasses import asdict
from pathlib import Path
from threading import Lock
from typing import Any

from smartdo_voice.core.logger import get_logger
from smartdo_voice.domain.models import SubTask, Task

logger = get_logger("adapters.storage.jsonstore")


class JsonTaskStore:
    """Tasks kept in a single JSON file, keyed by task id.

    Every write replaces the file atomically.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    def list_tasks(self) -> list[Task]:
        with self._lock:
            return [_task_from_dict(raw) for raw in self._read().values()]

    def get_task(self, task_id: str) -> Task | None:
        with self._lock:
            raw = self._read().get(task_id)
        return _task_from_dict(raw) if raw is not None else None

    def save_task(self, task: Task) -> Task:
        with self._lock:
            data = self._read()
            data[task.id] = asdict(task)
            self._write(data)
        return task

    def delete_task(self, task_id: str) -> bool:
        with self._lock:
            data = self._read()
            if data.pop(task_id, None) is None:
                return False
            self._write(data)
        return True

    def _read(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"Task store {self.path} must contain a JSON object")
        return data

    def _write(self, data: dict[str, dict[str, Any]]) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".tasks-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except Exception:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %d task(s) to %s", len(data), self.path)


def _task_from_dict(raw: dict[str, Any]) -> Task:
    fields = dict(raw)
    fields["subtasks"] = [SubTask(**sub) for sub in raw.get("subtasks", [])]
    return Task(**fields)
