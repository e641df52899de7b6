from itertools import count
from threading import Lock
from typing import Any

import numpy as np
import sounddevice as sd  # type: ignore

from smartdo_voice.core.logger import get_logger
from smartdo_voice.domain.errors import DeviceUnavailable
from smartdo_voice.domain.models import AudioFormat, AudioFrame
from smartdo_voice.ports.audiostream import FrameCallback

logger = get_logger("adapters.audio.sddevice")


class SoundDeviceCaptureAdapter:
    """Microphone capture through a sounddevice InputStream.

    The stream is created on open() but frames are only forwarded once
    start() has installed a callback.
    """

    def __init__(self, *, audio_format: AudioFormat, device: int | str | None = None) -> None:
        self._format = audio_format
        self._requested_device = device
        self._lock = Lock()
        self._stream: sd.InputStream | None = None
        self._on_frame: FrameCallback | None = None
        self._sequence = count()

    def open(self) -> AudioFormat:
        with self._lock:
            if self._stream is not None:
                return self._format
            try:
                stream = sd.InputStream(
                    samplerate=self._format.sample_rate,
                    channels=self._format.channels,
                    blocksize=self._format.blocksize,
                    dtype=self._format.dtype,
                    device=self._requested_device,
                    callback=self._callback,
                )
                stream.start()
            except (sd.PortAudioError, ValueError) as exc:
                raise DeviceUnavailable(f"Microphone unavailable: {exc}") from exc
            self._stream = stream
            self._sequence = count()
        logger.info(
            "Capture device open: device=%s rate=%d blocksize=%d",
            self._requested_device,
            self._format.sample_rate,
            self._format.blocksize,
        )
        return self._format

    def start(self, on_frame: FrameCallback) -> None:
        with self._lock:
            if self._stream is None:
                raise DeviceUnavailable("Capture device is not open")
            self._on_frame = on_frame

    def close(self) -> None:
        with self._lock:
            stream, self._stream = self._stream, None
            self._on_frame = None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as exc:
            logger.warning("Error closing capture stream: %s", exc)
        logger.info("Capture device released")

    def is_open(self) -> bool:
        return self._stream is not None

    def _callback(self, indata: np.ndarray, frames: int, time: Any, status: Any) -> None:
        if status:
            logger.warning("sounddevice input status: %s", status)
        on_frame = self._on_frame
        if on_frame is None:
            return
        frame = AudioFrame(data=indata.copy(), format=self._format, sequence=next(self._sequence))
        on_frame(frame)
