import asyncio
from datetime import datetime
from functools import lru_cache
from typing import Callable
from zoneinfo import ZoneInfo

from smartdo_voice.adapters.live.gemini import GeminiLiveConnector
from smartdo_voice.adapters.storage.jsonstore import JsonTaskStore
from smartdo_voice.adapters.text_to_text.localllm import LangchainCompanionAdapter
from smartdo_voice.core.config import AppConfig, load_config
from smartdo_voice.domain.models import AudioFormat, DetectedTask
from smartdo_voice.ports.audiostream import AudioCapturePort
from smartdo_voice.ports.playback import AudioOutputPort
from smartdo_voice.services.companion import CompanionService
from smartdo_voice.services.session import StreamingSession
from smartdo_voice.services.tasks import TaskService


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get singleton AppConfig instance."""
    return load_config()


@lru_cache(maxsize=1)
def get_capture_format() -> AudioFormat:
    """Get the microphone AudioFormat from config."""
    cfg = get_config()
    return AudioFormat(
        sample_rate=cfg.capture.samplerate,
        channels=cfg.capture.channels,
        blocksize=cfg.capture.blocksize,
        dtype=cfg.capture.dtype,  # type: ignore[arg-type]
    )


@lru_cache(maxsize=1)
def get_capture_adapter() -> AudioCapturePort:
    """Get singleton microphone adapter."""
    # PortAudio is loaded on first use, not when the app is imported
    from smartdo_voice.adapters.audio.sddevice import SoundDeviceCaptureAdapter

    return SoundDeviceCaptureAdapter(audio_format=get_capture_format(), device=get_config().capture.device)


@lru_cache(maxsize=1)
def get_output_adapter() -> AudioOutputPort:
    """Get singleton speaker adapter."""
    from smartdo_voice.adapters.audio.sdoutput import SoundDeviceOutputAdapter

    cfg = get_config()
    return SoundDeviceOutputAdapter(
        sample_rate=cfg.playback.samplerate,
        channels=cfg.playback.channels,
        blocksize=cfg.playback.blocksize,
    )


@lru_cache(maxsize=1)
def get_live_connector() -> GeminiLiveConnector:
    """Get singleton Gemini Live connector."""
    cfg = get_config()
    return GeminiLiveConnector(api_key=cfg.live.api_key, model=cfg.live.model, voice=cfg.live.voice)


@lru_cache(maxsize=1)
def get_task_store() -> JsonTaskStore:
    """Get singleton JSON task store."""
    return JsonTaskStore(get_config().paths.tasks_file)


@lru_cache(maxsize=1)
def get_companion_service() -> CompanionService:
    """Get singleton CompanionService backed by the configured chat model."""
    return CompanionService(adapter=LangchainCompanionAdapter(get_config().llm))


@lru_cache(maxsize=1)
def get_task_service() -> TaskService:
    """Get singleton TaskService."""
    cfg = get_config()
    return TaskService(
        store=get_task_store(),
        companion=get_companion_service(),
        reminder_minutes=cfg.scheduling.reminder_minutes,
        nudge_after_hours=cfg.scheduling.nudge_after_hours,
    )


def get_clock() -> Callable[[], datetime]:
    """Reference clock for resolving spoken days and times."""
    tz_name = get_config().scheduling.timezone
    if not tz_name:
        return datetime.now
    tz = ZoneInfo(tz_name)
    return lambda: datetime.now(tz)


@lru_cache(maxsize=1)
def get_voice_session() -> StreamingSession:
    """Get singleton StreamingSession wired to the task service."""
    cfg = get_config()
    tasks = get_task_service()

    async def add_detected(detected: DetectedTask) -> None:
        # Categorization calls the chat model, keep it off the event loop
        await asyncio.to_thread(tasks.add_detected_task, detected)

    return StreamingSession(
        capture=get_capture_adapter(),
        output=get_output_adapter(),
        connector=get_live_connector(),
        system_instruction=cfg.live.system_instruction,
        on_task_detected=add_detected,
        clock=get_clock(),
        playback_sample_rate=cfg.playback.samplerate,
        playback_channels=cfg.playback.channels,
    )
