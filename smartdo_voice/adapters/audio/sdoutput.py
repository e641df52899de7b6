from threading import Lock
from typing import Any, Callable

import numpy as np
import sounddevice as sd  # type: ignore

from smartdo_voice.adapters.audio.mixer import SourceHandle, SourceMixer
from smartdo_voice.core.logger import get_logger
from smartdo_voice.domain.errors import DeviceUnavailable
from smartdo_voice.domain.models import PlayableBuffer

logger = get_logger("adapters.audio.sdoutput")


class SoundDeviceOutputAdapter:
    """Speaker output; scheduled buffers are mixed inside the stream callback."""

    def __init__(
        self,
        *,
        sample_rate: int = 24000,
        channels: int = 1,
        blocksize: int = 1024,
        device: int | str | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.blocksize = blocksize
        self._device = device
        self._lock = Lock()
        self._stream: sd.OutputStream | None = None
        self.mixer = SourceMixer(sample_rate, channels)

    def open(self) -> None:
        with self._lock:
            if self._stream is not None:
                return
            self.mixer.reset()
            try:
                stream = sd.OutputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    blocksize=self.blocksize,
                    dtype="float32",
                    device=self._device,
                    callback=self._callback,
                )
                stream.start()
            except (sd.PortAudioError, ValueError) as exc:
                raise DeviceUnavailable(f"Speaker unavailable: {exc}") from exc
            self._stream = stream
        logger.info("Playback device open: rate=%d channels=%d", self.sample_rate, self.channels)

    def close(self) -> None:
        with self._lock:
            stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.stop()
                stream.close()
            except sd.PortAudioError as exc:
                logger.warning("Error closing playback stream: %s", exc)
        # Anything still queued will never play
        self.mixer.reset()

    def current_time(self) -> float:
        return self.mixer.current_time()

    def play(self, buffer: PlayableBuffer, start_time: float, on_ended: Callable[[], None]) -> SourceHandle:
        return self.mixer.add(buffer, start_time, on_ended)

    def _callback(self, outdata: np.ndarray, frames: int, time: Any, status: Any) -> None:
        if status:
            logger.warning("sounddevice output status: %s", status)
        self.mixer.render(outdata, frames)
