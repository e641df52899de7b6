from dataclasses import dataclass
from threading import Lock
from typing import Callable

import numpy as np

from smartdo_voice.domain.models import PlayableBuffer


@dataclass(slots=True, eq=False)
class _Source:
    samples: np.ndarray
    start_frame: int
    on_ended: Callable[[], None]
    ended: bool = False


class SourceHandle:
    def __init__(self, mixer: "SourceMixer", source: _Source) -> None:
        self._mixer = mixer
        self._source = source

    def stop(self) -> None:
        self._mixer.stop(self._source)


class SourceMixer:
    """Frame-clocked mixer behind the speaker stream.

    The clock counts rendered frames from zero, so current_time() is the
    position of the next block to be written. Sources are placed on that
    clock and summed into each block; on_ended fires exactly once per
    source, outside the lock.
    """

    def __init__(self, sample_rate: int, channels: int) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self._lock = Lock()
        self._sources: list[_Source] = []
        self._frames_rendered = 0

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._sources)

    def reset(self) -> None:
        """Restart the clock at zero, ending whatever is still queued."""
        with self._lock:
            pending, self._sources = self._sources, []
            self._frames_rendered = 0
        for source in pending:
            _finish(source)

    def current_time(self) -> float:
        with self._lock:
            return self._frames_rendered / self.sample_rate

    def add(self, buffer: PlayableBuffer, start_time: float, on_ended: Callable[[], None]) -> SourceHandle:
        if buffer.sample_rate != self.sample_rate:
            raise ValueError(f"Buffer rate {buffer.sample_rate} does not match output rate {self.sample_rate}")
        samples = buffer.samples
        if samples.shape[1] != self.channels:
            samples = np.repeat(samples.mean(axis=1, keepdims=True), self.channels, axis=1)

        source = _Source(
            samples=samples.astype(np.float32, copy=False),
            start_frame=int(round(start_time * self.sample_rate)),
            on_ended=on_ended,
        )
        with self._lock:
            self._sources.append(source)
        return SourceHandle(self, source)

    def stop(self, source: _Source) -> None:
        with self._lock:
            if source in self._sources:
                self._sources.remove(source)
        _finish(source)

    def render(self, outdata: np.ndarray, frames: int) -> None:
        """Fill `outdata` (frames, channels) with the next block and advance the clock."""
        outdata.fill(0)
        finished: list[_Source] = []

        with self._lock:
            block_start = self._frames_rendered
            block_end = block_start + frames
            for source in self._sources:
                source_end = source.start_frame + source.samples.shape[0]
                lo = max(block_start, source.start_frame)
                hi = min(block_end, source_end)
                if hi > lo:
                    outdata[lo - block_start:hi - block_start] += source.samples[lo - source.start_frame:hi - source.start_frame]
                if source_end <= block_end:
                    finished.append(source)
            for source in finished:
                self._sources.remove(source)
            self._frames_rendered = block_end

        np.clip(outdata, -1.0, 1.0, out=outdata)
        for source in finished:
            _finish(source)


def _finish(source: _Source) -> None:
    if source.ended:
        return
    source.ended = True
    source.on_ended()
