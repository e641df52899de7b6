"""Shared fakes for the voice session and task service tests.

The fakes stand in for the microphone, the speaker and the remote live
service so the session can be driven deterministically from a test.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable

import numpy as np
import pytest

from smartdo_voice.domain.messages import OutboundAudio, ToolDeclaration, ToolResponse
from smartdo_voice.domain.models import AudioFormat, AudioFrame, PlayableBuffer

# Wednesday 2024-01-03 10:30 UTC
WEDNESDAY = datetime(2024, 1, 3, 10, 30, tzinfo=timezone.utc)

CAPTURE_FORMAT = AudioFormat(sample_rate=16000, channels=1, blocksize=1600, dtype="float32")


class FakeCapture:
    def __init__(self) -> None:
        self.open_error: Exception | None = None
        self.on_frame: Callable[[AudioFrame], None] | None = None
        self.opened = 0
        self.closed = 0

    def open(self) -> AudioFormat:
        if self.open_error is not None:
            raise self.open_error
        self.opened += 1
        return CAPTURE_FORMAT

    def start(self, on_frame: Callable[[AudioFrame], None]) -> None:
        self.on_frame = on_frame

    def close(self) -> None:
        self.closed += 1
        self.on_frame = None

    def is_open(self) -> bool:
        return self.on_frame is not None

    def emit(self, samples: np.ndarray) -> None:
        assert self.on_frame is not None, "capture was not started"
        self.on_frame(AudioFrame(data=samples, format=CAPTURE_FORMAT))


class FakeHandle:
    def __init__(self, start_time: float, buffer: PlayableBuffer, on_ended: Callable[[], None]) -> None:
        self.start_time = start_time
        self.buffer = buffer
        self._on_ended = on_ended
        self.stopped = False
        self.ended = False

    def stop(self) -> None:
        self.stopped = True
        self.finish()

    def finish(self) -> None:
        if not self.ended:
            self.ended = True
            self._on_ended()


class FakeOutput:
    """Speaker with a hand-driven clock; nothing ends until told to."""

    def __init__(self) -> None:
        self.now = 0.0
        self.open_error: Exception | None = None
        self.handles: list[FakeHandle] = []
        self.opened = 0
        self.closed = 0

    def open(self) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.opened += 1
        # A freshly opened stream starts its clock at zero
        self.now = 0.0

    def close(self) -> None:
        self.closed += 1

    def current_time(self) -> float:
        return self.now

    def play(self, buffer: PlayableBuffer, start_time: float, on_ended: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(start_time, buffer, on_ended)
        self.handles.append(handle)
        return handle


class FakeChannel:
    """Live channel whose inbound side is fed through `push`.

    Push None to close from the remote side, or an exception to fail.
    """

    def __init__(self) -> None:
        self.inbound: asyncio.Queue[Any] = asyncio.Queue()
        self.sent_audio: list[OutboundAudio] = []
        self.tool_responses: list[ToolResponse] = []
        self.closed = 0

    def push(self, item: Any) -> None:
        self.inbound.put_nowait(item)

    async def send_audio(self, audio: OutboundAudio) -> None:
        self.sent_audio.append(audio)

    async def send_tool_response(self, response: ToolResponse) -> None:
        self.tool_responses.append(response)

    async def messages(self):
        while True:
            item = await self.inbound.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self) -> None:
        self.closed += 1


class FakeConnector:
    def __init__(self) -> None:
        self.channel = FakeChannel()
        self.connect_error: Exception | None = None
        self.tools: list[ToolDeclaration] = []
        self.instructions: list[str] = []

    async def connect(self, tool: ToolDeclaration, system_instruction: str) -> FakeChannel:
        if self.connect_error is not None:
            raise self.connect_error
        self.tools.append(tool)
        self.instructions.append(system_instruction)
        return self.channel


class FakeCompanionAdapter:
    """Companion text port returning canned answers, or raising when `fail` is set."""

    def __init__(self) -> None:
        self.fail = False
        self.steps = ["Open the doc", "Write one line"]
        self.category: tuple[str, str] = ("work", "high")
        self.text = "You are doing great."

    def _check(self) -> None:
        if self.fail:
            raise RuntimeError("model unavailable")

    def breakdown(self, title: str) -> list[str]:
        self._check()
        return list(self.steps)

    def categorize(self, title: str):
        self._check()
        return self.category

    def reflect(self, completed: list[str], pending: list[str]) -> str:
        self._check()
        return self.text

    def watering_tip(self, title: str) -> str:
        self._check()
        return self.text

    def suggest(self, pending: list[str]) -> str:
        self._check()
        return self.text


async def eventually(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the loop until `predicate` holds, failing after `timeout` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


def pcm_chunk(frames: int, value: int = 1000) -> bytes:
    return np.full(frames, value, dtype="<i2").tobytes()


@pytest.fixture
def fake_capture() -> FakeCapture:
    return FakeCapture()


@pytest.fixture
def fake_output() -> FakeOutput:
    return FakeOutput()


@pytest.fixture
def fake_connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def companion_adapter() -> FakeCompanionAdapter:
    return FakeCompanionAdapter()
