from typing import Callable, Protocol

from smartdo_voice.domain.models import PlayableBuffer


class PlaybackHandle(Protocol):
    """One scheduled source on the output device."""

    def stop(self) -> None:
        """Silence the source immediately. Fires its end callback once."""
        ...


class AudioOutputPort(Protocol):
    """Speaker output with its own monotonically increasing clock (seconds)."""

    def open(self) -> None:
        """Acquire the output device and start the clock.

        Raises:
            DeviceUnavailable: If no output device can be opened.
        """
        ...

    def close(self) -> None:
        """Release the device. Safe to call repeatedly."""
        ...

    def current_time(self) -> float:
        ...

    def play(
        self,
        buffer: PlayableBuffer,
        start_time: float,
        on_ended: Callable[[], None],
    ) -> PlaybackHandle:
        """Schedule `buffer` to start at `start_time` on the output clock.

        `on_ended` may be invoked from the audio thread, either when the
        buffer has been fully rendered or when the handle is stopped.
        """
        ...
