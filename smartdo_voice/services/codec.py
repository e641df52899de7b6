import base64
import binascii
import re

import numpy as np

from smartdo_voice.core.logger import get_logger
from smartdo_voice.domain.errors import CodecError
from smartdo_voice.domain.models import AudioFrame, PlayableBuffer

logger = get_logger("services.codec")

_PCM16 = np.dtype("<i2")
_PCM16_SCALE = 32768.0
_RATE_PARAM = re.compile(r"(?:^|;)\s*rate\s*=\s*(\d+)", re.IGNORECASE)


def encode(raw: bytes) -> str:
    """Encode bytes as transport-safe base64 text."""
    return base64.b64encode(raw).decode("ascii")


def decode(text: str) -> bytes:
    """Exact inverse of `encode`.

    Raises:
        CodecError: If `text` is not strictly valid base64.
    """
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CodecError(f"Invalid base64 audio payload: {exc}") from exc


def encode_frame(frame: AudioFrame) -> bytes:
    """Convert a captured frame to mono little-endian 16-bit PCM bytes."""
    mono = frame.to_mono_float32()
    scaled = np.clip(mono.astype(np.float64) * _PCM16_SCALE, -32768, 32767)
    return scaled.astype(_PCM16).tobytes()


def pcm_rate(mime_type: str) -> int | None:
    """Sample rate named by an `audio/pcm;rate=N` mime type, or None if it names none."""
    match = _RATE_PARAM.search(mime_type or "")
    return int(match.group(1)) if match else None


def decode_audio_frame(raw: bytes, sample_rate: int, channels: int) -> PlayableBuffer:
    """Interpret interleaved little-endian int16 PCM as a playable float32 buffer.

    Samples are normalized into [-1.0, 1.0). A trailing partial frame is dropped.
    """
    if channels <= 0:
        raise ValueError(f"channels must be positive, got {channels}")
    if sample_rate <= 0:
        raise ValueError(f"sample_rate must be positive, got {sample_rate}")

    frame_bytes = _PCM16.itemsize * channels
    usable = len(raw) - (len(raw) % frame_bytes)
    if usable != len(raw):
        logger.debug("Dropping %d trailing bytes of partial PCM frame", len(raw) - usable)

    pcm = np.frombuffer(raw[:usable], dtype=_PCM16)
    samples = (pcm.astype(np.float32) / _PCM16_SCALE).reshape(-1, channels)
    return PlayableBuffer(samples=samples, sample_rate=sample_rate, channels=channels)
