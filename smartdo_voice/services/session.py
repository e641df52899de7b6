import asyncio
import inspect
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable

from smartdo_voice.core.config import DEFAULT_SYSTEM_INSTRUCTION
from smartdo_voice.core.logger import get_logger, session_context
from smartdo_voice.domain.errors import CodecError, MalformedToolArguments, RemoteError
from smartdo_voice.domain.messages import (
    AudioChunkMessage,
    FunctionCallsMessage,
    InboundMessage,
    InterruptedMessage,
    OutboundAudio,
    ToolResponse,
)
from smartdo_voice.domain.models import AudioFormat, AudioFrame, DetectedTask, SessionState
from smartdo_voice.ports.audiostream import AudioCapturePort
from smartdo_voice.ports.live import LiveChannelPort, LiveConnectorPort
from smartdo_voice.ports.playback import AudioOutputPort
from smartdo_voice.services import codec
from smartdo_voice.services.intents import (
    ADD_TASK_TOOL,
    ADD_TASK_TOOL_NAME,
    TASK_ADDED_RESULT,
    detect_task,
    parse_task_intent,
)
from smartdo_voice.services.playback import PlaybackScheduler

logger = get_logger("services.session")

TaskCallback = Callable[[DetectedTask], Awaitable[None] | None]

_EVENT_BACKLOG = 256


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionEvent:
    """Event emitted by the voice session."""

    type: str  # "state_change", "task_detected", "error"
    state: SessionState | None = None
    task: DetectedTask | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class SessionStatus:
    state: SessionState
    active_sources: int
    started_at: datetime | None
    tasks_detected: int
    last_error: str | None


@dataclass(slots=True)
class StreamingSession:
    """Live voice session that turns spoken requests into detected tasks.

    State machine:
    - IDLE: No devices held, no channel open
    - CONNECTING: Devices acquired, waiting for the remote side to accept
    - OPEN: Microphone frames stream out, tool calls and audio stream in
    - SPEAKING: OPEN while remote audio is still queued for playback
    - CLOSING: Tearing down, returns to IDLE

    Only one session is live at a time; start() outside IDLE does nothing.
    There is no automatic reconnect: after an error the caller starts again.
    """

    capture: AudioCapturePort
    output: AudioOutputPort
    connector: LiveConnectorPort
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION
    on_task_detected: TaskCallback | None = None
    clock: Callable[[], datetime] = datetime.now
    playback_sample_rate: int = 24000
    playback_channels: int = 1

    _state: SessionState = field(default=SessionState.IDLE, init=False)
    _speaking: bool = field(default=False, init=False)
    _generation: int = field(default=0, init=False)
    _scheduler: PlaybackScheduler = field(init=False)
    _loop: asyncio.AbstractEventLoop | None = field(default=None, init=False)
    _channel: LiveChannelPort | None = field(default=None, init=False)
    _capture_format: AudioFormat | None = field(default=None, init=False)
    _outbound: asyncio.Queue[AudioFrame] | None = field(default=None, init=False)
    _sender: asyncio.Task | None = field(default=None, init=False)
    _receiver: asyncio.Task | None = field(default=None, init=False)
    _callbacks: set[asyncio.Task] = field(default_factory=set, init=False)
    _event_queue: asyncio.Queue[SessionEvent] = field(
        default_factory=lambda: asyncio.Queue(maxsize=_EVENT_BACKLOG), init=False
    )
    _started_at: datetime | None = field(default=None, init=False)
    _tasks_detected: int = field(default=0, init=False)
    _last_error: str | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        self._scheduler = PlaybackScheduler(output=self.output, on_quiet=self._on_quiet)

    @property
    def state(self) -> SessionState:
        """Current state, reporting SPEAKING while remote audio is playing."""
        if self._state is SessionState.OPEN and self._speaking:
            return SessionState.SPEAKING
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state in (SessionState.CONNECTING, SessionState.OPEN)

    @property
    def scheduler(self) -> PlaybackScheduler:
        return self._scheduler

    def status(self) -> SessionStatus:
        return SessionStatus(
            state=self.state,
            active_sources=self._scheduler.active_count,
            started_at=self._started_at,
            tasks_detected=self._tasks_detected,
            last_error=self._last_error,
        )

    async def start(self) -> bool:
        """Acquire devices, open the live channel and begin streaming.

        Returns:
            True if a new session was opened, False if one is already
            connecting or open (nothing is changed in that case).

        Raises:
            DeviceUnavailable: If the microphone or speaker cannot be opened.
            ChannelOpenFailed: If the remote side refuses the session.
        """
        if self._state is not SessionState.IDLE:
            logger.info("Ignoring start request while session is %s", self._state.value)
            return False

        self._loop = asyncio.get_running_loop()
        self._event_queue = asyncio.Queue(maxsize=_EVENT_BACKLOG)
        self._last_error = None
        self._tasks_detected = 0
        self._generation += 1
        generation = self._generation
        self._set_state(SessionState.CONNECTING)

        try:
            self._capture_format = await asyncio.to_thread(self.capture.open)
            await asyncio.to_thread(self.output.open)
            if generation != self._generation:
                # stop() ran while the devices were opening
                self._release_superseded_attempt()
                return False
            # The output clock restarts at zero on open
            self._scheduler.reset()
            channel = await self.connector.connect(ADD_TASK_TOOL, self.system_instruction)
        except Exception as exc:
            if generation != self._generation:
                # A later stop() or start() owns the session now; leave its state alone
                logger.warning("Superseded start attempt failed: %s", exc)
                self._release_superseded_attempt()
                raise
            logger.error(
                "Voice session failed to start: %s",
                exc,
                extra=session_context(session_state=self._state),
            )
            self._last_error = str(exc)
            self._emit(SessionEvent(type="error", error=str(exc)))
            await self._teardown()
            raise

        if generation != self._generation or self._state is not SessionState.CONNECTING:
            # stop() won the race while we were connecting
            await channel.close()
            return False

        self._channel = channel
        outbound: asyncio.Queue[AudioFrame] = asyncio.Queue()
        self._outbound = outbound
        self._started_at = _utcnow()
        self._set_state(SessionState.OPEN)

        self._sender = asyncio.create_task(self._send_loop(channel, outbound), name="voice-sender")
        self._receiver = asyncio.create_task(self._receive_loop(channel), name="voice-receiver")
        self.capture.start(self._on_frame)
        logger.info("Voice session open", extra=session_context(session_state=self._state))
        return True

    async def stop(self) -> None:
        """End the session from any state. Safe to call repeatedly."""
        await self._teardown()

    def _release_superseded_attempt(self) -> None:
        """Close devices a stopped start() may have re-opened after teardown.

        Devices are shared with any newer session, so they are only closed
        while no other attempt is using them.
        """
        if self._state is SessionState.IDLE:
            self.capture.close()
            self.output.close()

    async def events(self) -> AsyncIterator[SessionEvent]:
        """Async iterator that yields events until the session is idle and drained."""
        while True:
            if self._state is SessionState.IDLE and self._event_queue.empty():
                return
            try:
                event = await asyncio.wait_for(self._event_queue.get(), timeout=0.5)
            except asyncio.TimeoutError:
                continue
            yield event

    def _emit(self, event: SessionEvent) -> None:
        if self._event_queue.full():
            # Nobody is listening; keep the newest events
            self._event_queue.get_nowait()
        self._event_queue.put_nowait(event)

    def _set_state(self, new_state: SessionState) -> None:
        if self._state is not new_state:
            logger.debug(
                "Session state %s -> %s",
                self._state.value,
                new_state.value,
                extra=session_context(session_state=new_state),
            )
            self._state = new_state
            self._emit(SessionEvent(type="state_change", state=new_state))

    def _on_frame(self, frame: AudioFrame) -> None:
        """Capture-thread callback: hand the frame to the sender and return."""
        loop, outbound = self._loop, self._outbound
        if loop is None or outbound is None:
            return
        try:
            loop.call_soon_threadsafe(outbound.put_nowait, frame)
        except RuntimeError:
            logger.debug("Dropping captured frame, event loop is closed")

    def _on_quiet(self) -> None:
        """Playback-thread callback fired when the last active source ends."""
        loop = self._loop
        if loop is None:
            return
        try:
            loop.call_soon_threadsafe(self._refresh_speaking)
        except RuntimeError:
            logger.debug("Playback finished after event loop closed")

    def _refresh_speaking(self) -> None:
        if self._speaking and self._scheduler.active_count == 0:
            self._speaking = False
            if self._state is SessionState.OPEN:
                self._emit(SessionEvent(type="state_change", state=SessionState.OPEN))

    async def _send_loop(self, channel: LiveChannelPort, outbound: asyncio.Queue[AudioFrame]) -> None:
        try:
            while True:
                frame = await outbound.get()
                payload = OutboundAudio(
                    data=codec.encode(codec.encode_frame(frame)),
                    mime_type=f"audio/pcm;rate={frame.format.sample_rate}",
                )
                await channel.send_audio(payload)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._fail(exc)

    async def _receive_loop(self, channel: LiveChannelPort) -> None:
        try:
            async for message in channel.messages():
                await self._handle_message(channel, message)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._fail(exc)
            return

        logger.info("Live channel closed by remote side")
        await self._teardown()

    async def _fail(self, exc: Exception) -> None:
        error = exc if isinstance(exc, RemoteError) else RemoteError(str(exc) or type(exc).__name__)
        logger.error(
            "Voice session error: %s",
            error,
            exc_info=exc,
            extra=session_context(session_state=self._state),
        )
        self._last_error = str(error)
        self._emit(SessionEvent(type="error", error=str(error)))
        await self._teardown()

    async def _handle_message(self, channel: LiveChannelPort, message: InboundMessage) -> None:
        if isinstance(message, InterruptedMessage):
            self._handle_interrupted()
        elif isinstance(message, FunctionCallsMessage):
            await self._handle_function_calls(channel, message)
        elif isinstance(message, AudioChunkMessage):
            self._handle_audio(message)
        else:
            logger.warning("Ignoring unexpected inbound message: %r", message)

    def _handle_interrupted(self) -> None:
        stopped = self._scheduler.flush_all()
        logger.info("Remote interrupted playback, stopped %d source(s)", stopped)
        self._refresh_speaking()

    async def _handle_function_calls(self, channel: LiveChannelPort, message: FunctionCallsMessage) -> None:
        for call in message.calls:
            context = session_context(call_id=call.id, tool=call.name)
            if call.name != ADD_TASK_TOOL_NAME:
                logger.warning("Unknown tool call '%s'", call.name, extra=context)
                await channel.send_tool_response(
                    ToolResponse(id=call.id, name=call.name, result={"error": f"Unknown tool '{call.name}'"})
                )
                continue

            try:
                intent = parse_task_intent(call.args)
            except MalformedToolArguments as exc:
                logger.warning("Dropping tool call: %s", exc, extra=context)
                await channel.send_tool_response(
                    ToolResponse(id=call.id, name=call.name, result={"error": str(exc)})
                )
                continue

            detected = detect_task(intent, self.clock(), call_id=call.id)
            self._tasks_detected += 1
            logger.info(
                "Task detected: title=%r due=%s priority=%s",
                detected.title,
                detected.due_date,
                detected.priority,
                extra=context,
            )
            self._emit(SessionEvent(type="task_detected", task=detected))
            self._dispatch_task(detected)

            await channel.send_tool_response(
                ToolResponse(id=call.id, name=call.name, result={"result": TASK_ADDED_RESULT})
            )

    def _dispatch_task(self, detected: DetectedTask) -> None:
        """Hand the task to the host without holding up inbound processing."""
        if self.on_task_detected is None:
            return
        try:
            result = self.on_task_detected(detected)
        except Exception:
            logger.exception("Task callback failed for %r", detected.title)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._callbacks.add(task)
            task.add_done_callback(self._callback_done)

    def _callback_done(self, task: asyncio.Task) -> None:
        self._callbacks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Task callback failed: %s", exc, exc_info=exc)

    def _handle_audio(self, message: AudioChunkMessage) -> None:
        try:
            raw = codec.decode(message.data)
        except CodecError as exc:
            logger.error("Discarding inbound audio chunk: %s", exc)
            return

        rate = codec.pcm_rate(message.mime_type)
        if rate is not None and rate != self.playback_sample_rate:
            # No resampling; the output stream runs at one fixed rate
            logger.error(
                "Discarding inbound audio at %d Hz, playback runs at %d Hz",
                rate,
                self.playback_sample_rate,
            )
            return

        buffer = codec.decode_audio_frame(raw, self.playback_sample_rate, self.playback_channels)
        if buffer.is_empty:
            return

        self._scheduler.schedule(buffer)
        if not self._speaking:
            self._speaking = True
            if self._state is SessionState.OPEN:
                self._emit(SessionEvent(type="state_change", state=SessionState.SPEAKING))

    async def _teardown(self) -> None:
        if self._state in (SessionState.IDLE, SessionState.CLOSING):
            return
        self._set_state(SessionState.CLOSING)
        self._generation += 1

        # Silence and release devices before anything that can suspend
        self._scheduler.flush_all()
        self._speaking = False
        self.capture.close()
        self.output.close()

        channel, self._channel = self._channel, None
        self._outbound = None
        current = asyncio.current_task()
        workers = [t for t in (self._sender, self._receiver) if t is not None and t is not current]
        self._sender = None
        self._receiver = None

        for worker in workers:
            worker.cancel()
        for worker in workers:
            try:
                await worker
            except asyncio.CancelledError:
                pass

        if channel is not None:
            try:
                await channel.close()
            except Exception as exc:
                logger.warning("Error while closing live channel: %s", exc)

        self._started_at = None
        self._set_state(SessionState.IDLE)
        logger.info("Voice session closed", extra=session_context(session_state=self._state))
