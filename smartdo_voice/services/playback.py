from dataclasses import dataclass, field
from itertools import count
from threading import RLock
from typing import Callable

from smartdo_voice.core.logger import get_logger
from smartdo_voice.domain.models import PlayableBuffer
from smartdo_voice.ports.playback import AudioOutputPort, PlaybackHandle

logger = get_logger("services.playback")


@dataclass(slots=True)
class PlaybackScheduler:
    """Queues decoded buffers back to back on the output clock.

    Sole owner of the set of in-flight sources. Completion callbacks arrive on
    the audio thread, so every mutation of the set happens under the lock.
    """

    output: AudioOutputPort
    on_quiet: Callable[[], None] | None = None

    _lock: RLock = field(default_factory=RLock, init=False)
    _active: dict[int, PlaybackHandle] = field(default_factory=dict, init=False)
    _ids: count = field(default_factory=count, init=False)
    _next_start: float = field(default=0.0, init=False)

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    @property
    def is_playing(self) -> bool:
        return self.active_count > 0

    @property
    def next_start(self) -> float:
        with self._lock:
            return self._next_start

    def schedule(self, buffer: PlayableBuffer) -> float:
        """Queue `buffer` right after everything already scheduled.

        Returns:
            The output-clock time the buffer starts at.
        """
        with self._lock:
            start_time = max(self._next_start, self.output.current_time())
            source_id = next(self._ids)
            # Registered before play() so a source ending immediately still finds itself
            self._active[source_id] = _PendingHandle()
            handle = self.output.play(buffer, start_time, lambda: self._finished(source_id))
            if source_id in self._active:
                self._active[source_id] = handle
            self._next_start = start_time + buffer.duration
            return start_time

    def flush_all(self) -> int:
        """Stop every active source now and restart the queue at the current clock.

        Returns:
            How many sources were stopped.
        """
        with self._lock:
            handles = list(self._active.values())
            self._active.clear()
            self._next_start = self.output.current_time()

        for handle in handles:
            handle.stop()

        if handles:
            logger.debug("Flushed %d playback source(s)", len(handles))
            self._notify_quiet()
        return len(handles)

    def reset(self) -> None:
        """Forget old sources and line the queue up with a freshly opened output clock."""
        with self._lock:
            self._active.clear()
            self._next_start = self.output.current_time()

    def _finished(self, source_id: int) -> None:
        with self._lock:
            if self._active.pop(source_id, None) is None:
                return
            quiet = not self._active
        if quiet:
            self._notify_quiet()

    def _notify_quiet(self) -> None:
        if self.on_quiet is not None:
            self.on_quiet()


class _PendingHandle:
    def stop(self) -> None:
        return None
