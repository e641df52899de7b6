from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal
import time

import numpy as np

from smartdo_voice.domain.errors import MalformedToolArguments


AudioDtype = Literal["float32", "int16", "float64"]
Priority = Literal["low", "medium", "high"]
EnergyLevel = Literal["low", "high"]
Zone = Literal["self", "work", "home", "social", "other"]

ZONES: tuple[Zone, ...] = ("self", "work", "home", "social", "other")
ENERGY_LEVELS: tuple[EnergyLevel, ...] = ("low", "high")


@dataclass(frozen=True, slots=True)
class AudioFormat:
    """Describes audio stream parameters. Single source of truth for frame config."""

    sample_rate: int
    channels: int
    blocksize: int
    dtype: AudioDtype

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.channels <= 0:
            raise ValueError(f"channels must be positive, got {self.channels}")
        if self.blocksize <= 0:
            raise ValueError(f"blocksize must be positive, got {self.blocksize}")


@dataclass(slots=True)
class AudioFrame:
    """A fixed-size block of captured samples, as delivered by the capture device."""

    data: np.ndarray
    format: AudioFormat
    timestamp_ns: int = field(default_factory=lambda: time.monotonic_ns())
    sequence: int = 0

    def to_mono_float32(self) -> np.ndarray:
        """Collapse to mono float32 in [-1.0, 1.0].

        This is the single conversion point for captured audio.
        """
        arr = self.data
        if arr.ndim == 2:
            arr = arr.mean(axis=1)
        if arr.dtype == np.int16:
            arr = arr.astype(np.float32) / 32768.0
        elif arr.dtype != np.float32:
            arr = arr.astype(np.float32, copy=False)
        return arr

    @property
    def num_samples(self) -> int:
        return self.data.shape[0]

    @property
    def duration_seconds(self) -> float:
        return self.num_samples / self.format.sample_rate


@dataclass(frozen=True, slots=True)
class PlayableBuffer:
    """Decoded audio ready for playback: float32 samples shaped (frames, channels)."""

    samples: np.ndarray
    sample_rate: int
    channels: int

    @property
    def frames(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate

    @property
    def is_empty(self) -> bool:
        return self.frames == 0


class Importance(str, Enum):
    MAJOR = "major"
    MINOR = "minor"

    @property
    def priority(self) -> Priority:
        return "high" if self is Importance.MAJOR else "medium"


@dataclass(frozen=True, slots=True)
class TaskIntent:
    """A task-creation request detected in a tool call, before it is committed."""

    title: str
    day_phrase: str | None = None
    time_phrase: str | None = None
    importance: Importance = Importance.MINOR

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise MalformedToolArguments("Task intent requires a non-empty title")


@dataclass(frozen=True, slots=True)
class ResolvedSchedule:
    timestamp: datetime
    day_was_explicit: bool
    time_was_explicit: bool


@dataclass(frozen=True, slots=True)
class DetectedTask:
    """What the voice session hands to the host application for each resolved call."""

    title: str
    due_date: str | None
    priority: Priority | None
    call_id: str | None = None


class SessionState(str, Enum):
    """Voice session lifecycle states."""

    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    SPEAKING = "SPEAKING"
    CLOSING = "CLOSING"


@dataclass(slots=True)
class SubTask:
    id: str
    title: str
    completed: bool = False


@dataclass(slots=True)
class Task:
    """A persisted to-do item."""

    id: str
    title: str
    created_at: int
    completed: bool = False
    priority: Priority = "medium"
    energy_level: EnergyLevel = "low"
    zone: Zone = "other"
    subtasks: list[SubTask] = field(default_factory=list)
    description: str | None = None
    due_date: str | None = None
    reminder_minutes: int | None = None
    notified: bool = False


@dataclass(frozen=True, slots=True)
class Reminder:
    task_id: str
    title: str
    body: str
