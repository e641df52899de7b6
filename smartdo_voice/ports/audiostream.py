from typing import Callable, Protocol

from smartdo_voice.domain.models import AudioFormat, AudioFrame


FrameCallback = Callable[[AudioFrame], None]


class AudioCapturePort(Protocol):
    """Abstract microphone source for a single voice session.

    Frames are delivered on the device's own thread at a fixed cadence.
    The callback must not block: it should only hand the frame off.
    """

    def open(self) -> AudioFormat:
        """Acquire the capture device without delivering frames yet.

        Returns:
            The format frames will be delivered in.

        Raises:
            DeviceUnavailable: If no input device can be opened.
        """
        ...

    def start(self, on_frame: FrameCallback) -> None:
        """Begin delivering frames to `on_frame`."""
        ...

    def close(self) -> None:
        """Stop delivery and release the device. Safe to call repeatedly."""
        ...

    def is_open(self) -> bool:
        ...
