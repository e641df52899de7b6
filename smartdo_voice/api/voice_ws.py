import asyncio
from datetime import UTC, datetime

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from smartdo_voice.api.response_models import (
    WsCommand,
    WsConnectedEvent,
    WsErrorEvent,
    WsStateEvent,
    WsTaskEvent,
)
from smartdo_voice.core.di import get_voice_session
from smartdo_voice.core.logger import get_logger
from smartdo_voice.domain.errors import VoiceSessionError
from smartdo_voice.services.session import SessionEvent, StreamingSession

router = APIRouter(prefix="/voice", tags=["voice"])

logger = get_logger("api.voice_ws")


def _utcnow() -> datetime:
    return datetime.now(UTC)


@router.websocket("/ws")
async def websocket_voice(websocket: WebSocket) -> None:
    """WebSocket endpoint for the live voice session.

    Connection lifecycle:
    1. Client connects to /voice/ws
    2. Server sends 'connected' event
    3. Client sends {"action": "start"} to open the voice session
    4. Server pushes state_change events (CONNECTING -> OPEN <-> SPEAKING)
    5. Every spoken task the assistant files is pushed as task_detected
    6. Client sends {"action": "stop"} or disconnects to end the session

    Incoming messages:
        {"action": "start"} - Open the voice session
        {"action": "stop"}  - Close the voice session

    Outgoing events:
        {"type": "connected", "message": "..."}
        {"type": "state_change", "state": "IDLE|CONNECTING|OPEN|SPEAKING|CLOSING", "timestamp": "..."}
        {"type": "task_detected", "title": "...", "due_date": "...", "priority": "...", "timestamp": "..."}
        {"type": "error", "message": "...", "timestamp": "..."}
    """
    await websocket.accept()
    session = get_voice_session()
    pump: asyncio.Task | None = None

    await websocket.send_json(WsConnectedEvent().model_dump(mode="json"))

    try:
        while True:
            data = await websocket.receive_json()

            try:
                command = WsCommand.model_validate(data)
            except ValidationError as e:
                await _send_error(websocket, f"Invalid command: {e.errors()}")
                continue

            if command.action == "start":
                try:
                    started = await session.start()
                except VoiceSessionError as e:
                    await _send_error(websocket, str(e))
                    continue

                if not started:
                    await _send_error(websocket, "Voice session already active")
                    continue

                # Events are pumped in the background so stop commands still arrive
                if pump is None or pump.done():
                    pump = asyncio.create_task(_pump_events(websocket, session))

            elif command.action == "stop":
                if not session.is_active:
                    await _send_error(websocket, "No voice session active")
                    continue

                await session.stop()
                if pump is not None:
                    await pump
                    pump = None

    except WebSocketDisconnect:
        logger.info("Voice WebSocket disconnected")
        if session.is_active:
            await session.stop()
    finally:
        if pump is not None and not pump.done():
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass


async def _pump_events(websocket: WebSocket, session: StreamingSession) -> None:
    try:
        async for event in session.events():
            await _send_event(websocket, event)
    except (WebSocketDisconnect, RuntimeError) as exc:
        # Socket went away mid-send; the receive side handles cleanup
        logger.debug("Stopped pushing voice events: %s", exc)


async def _send_error(websocket: WebSocket, message: str) -> None:
    error = WsErrorEvent(message=message, timestamp=_utcnow())
    await websocket.send_json(error.model_dump(mode="json"))


async def _send_event(websocket: WebSocket, event: SessionEvent) -> None:
    """Convert SessionEvent to WebSocket message and send."""
    if event.type == "state_change" and event.state is not None:
        ws_event = WsStateEvent(state=event.state.value, timestamp=_utcnow())
        await websocket.send_json(ws_event.model_dump(mode="json"))

    elif event.type == "task_detected" and event.task is not None:
        task_event = WsTaskEvent.from_task(event.task, timestamp=_utcnow())
        await websocket.send_json(task_event.model_dump(mode="json"))

    elif event.type == "error" and event.error is not None:
        await _send_error(websocket, event.error)
