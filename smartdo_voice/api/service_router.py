from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status

from smartdo_voice.api.response_models import (
    CompanionTextResponse,
    CreateTaskRequest,
    ReminderResponse,
    TaskResponse,
    UpdateTaskRequest,
)
from smartdo_voice.core.di import get_task_service
from smartdo_voice.domain.errors import TaskNotFound
from smartdo_voice.services.tasks import TaskService

router = APIRouter(tags=["tasks"])


@router.get("/tasks", response_model=list[TaskResponse])
def list_tasks(tasks: TaskService = Depends(get_task_service)) -> list[TaskResponse]:
    """List tasks, newest first."""
    return [TaskResponse.from_task(task) for task in tasks.list_tasks()]


@router.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    payload: CreateTaskRequest,
    tasks: TaskService = Depends(get_task_service),
) -> TaskResponse:
    """Create a task; zone and energy are filled in by the companion model."""
    due_date = payload.due_date.isoformat() if payload.due_date else None
    try:
        task = tasks.add_task(payload.title, due_date=due_date, priority=payload.priority)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return TaskResponse.from_task(task)


@router.get("/tasks/reminders", response_model=list[ReminderResponse])
def collect_reminders(tasks: TaskService = Depends(get_task_service)) -> list[ReminderResponse]:
    """Return reminders that are due now. Each task is reported once."""
    reminders = tasks.collect_due_reminders(datetime.now(timezone.utc))
    return [ReminderResponse.from_reminder(r) for r in reminders]


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(task_id: str, tasks: TaskService = Depends(get_task_service)) -> TaskResponse:
    try:
        return TaskResponse.from_task(tasks.get_task(task_id))
    except TaskNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: str,
    payload: UpdateTaskRequest,
    tasks: TaskService = Depends(get_task_service),
) -> TaskResponse:
    updates = payload.model_dump(exclude_unset=True)
    if isinstance(updates.get("due_date"), datetime):
        updates["due_date"] = updates["due_date"].isoformat()
    try:
        task = tasks.update_task(task_id, updates)
    except TaskNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return TaskResponse.from_task(task)


@router.post("/tasks/{task_id}/toggle", response_model=TaskResponse)
def toggle_task(task_id: str, tasks: TaskService = Depends(get_task_service)) -> TaskResponse:
    try:
        return TaskResponse.from_task(tasks.toggle_task(task_id))
    except TaskNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post("/tasks/{task_id}/subtasks/{subtask_id}/toggle", response_model=TaskResponse)
def toggle_subtask(
    task_id: str,
    subtask_id: str,
    tasks: TaskService = Depends(get_task_service),
) -> TaskResponse:
    try:
        return TaskResponse.from_task(tasks.toggle_subtask(task_id, subtask_id))
    except TaskNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: str, tasks: TaskService = Depends(get_task_service)) -> None:
    try:
        tasks.delete_task(task_id)
    except TaskNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post("/tasks/{task_id}/breakdown", response_model=TaskResponse)
def breakdown_task(task_id: str, tasks: TaskService = Depends(get_task_service)) -> TaskResponse:
    """Ask the companion for 3-5 small steps and attach them as subtasks."""
    try:
        return TaskResponse.from_task(tasks.breakdown_task(task_id))
    except TaskNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/tasks/{task_id}/tip", response_model=CompanionTextResponse)
def watering_tip(task_id: str, tasks: TaskService = Depends(get_task_service)) -> CompanionTextResponse:
    try:
        return CompanionTextResponse(text=tasks.watering_tip(task_id))
    except TaskNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/companion/suggestion", response_model=CompanionTextResponse)
def suggestion(tasks: TaskService = Depends(get_task_service)) -> CompanionTextResponse:
    return CompanionTextResponse(text=tasks.suggest())


@router.get("/companion/reflection", response_model=CompanionTextResponse)
def reflection(tasks: TaskService = Depends(get_task_service)) -> CompanionTextResponse:
    return CompanionTextResponse(text=tasks.reflect())


@router.get("/health")
def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
