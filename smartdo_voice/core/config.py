import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, cast

import dotenv
import yaml


DEFAULT_SYSTEM_INSTRUCTION = (
    "You are SmartDo, a warm and gentle productivity companion. When users mention "
    "something they need to do, acknowledge it supportively. Use \"add_calendar_task\" "
    "to capture details. If they sound urgent or say it is important, mark it as \"major\"."
)


# Remote speech always arrives as 24 kHz PCM
LIVE_OUTPUT_RATE = 24000


@dataclass(frozen=True, slots=True)
class CaptureConfig:
    samplerate: int = 16000
    channels: int = 1
    blocksize: int = 4096
    dtype: str = "float32"
    device: int | str | None = None


@dataclass(frozen=True, slots=True)
class PlaybackConfig:
    samplerate: int = LIVE_OUTPUT_RATE
    channels: int = 1
    blocksize: int = 1024


@dataclass(frozen=True, slots=True)
class LiveConfig:
    api_key: str | None = None
    model: str = "gemini-2.5-flash-native-audio-preview-12-2025"
    voice: str = "Kore"
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION


@dataclass(frozen=True, slots=True)
class LlmConfig:
    model: str = "gemini-2.5-flash"
    provider: str = "google_genai"
    temperature: float = 0.4
    timeout: int = 30
    base_url: str | None = None


@dataclass(frozen=True, slots=True)
class SchedulingConfig:
    timezone: str | None = None
    reminder_minutes: int = 15
    nudge_after_hours: float = 2.0


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    json_output: bool = False
    rotate_max_bytes: int = 5 * 1024 * 1024
    rotate_backup_count: int = 3


@dataclass(frozen=True, slots=True)
class PathsConfig:
    config_path: Path
    fs_dir: Path

    @property
    def tasks_file(self) -> Path:
        return self.fs_dir / "tasks.json"


@dataclass(frozen=True, slots=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Typed application settings assembled from .env and the YAML config file."""

    paths: PathsConfig
    server: ServerConfig = field(default_factory=ServerConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    live: LiveConfig = field(default_factory=LiveConfig)
    llm: LlmConfig = field(default_factory=LlmConfig)
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(env_file: Path | None = None) -> AppConfig:
    """Load .env values and the YAML file named by CONFIG_PATH into an AppConfig."""
    repo_root = Path(__file__).resolve().parents[2]
    dotenv.load_dotenv(env_file or repo_root / ".env")

    config_path = Path(_require_env("CONFIG_PATH")).expanduser()
    raw = _load_yaml(config_path)

    fs_dir = Path(_require_env("FS_DIR")).expanduser()
    fs_dir.mkdir(parents=True, exist_ok=True)

    return AppConfig(
        paths=PathsConfig(config_path=config_path, fs_dir=fs_dir),
        server=ServerConfig(
            host=os.getenv("SERVER_ADDR") or "127.0.0.1",
            port=int(os.getenv("SERVER_PORT") or 8000),
        ),
        capture=_load_capture(raw),
        playback=_load_playback(raw),
        live=_load_live(raw),
        llm=_load_llm(raw),
        scheduling=_load_scheduling(raw),
        logging=_load_logging(raw),
    )


def _load_capture(raw: Mapping[str, Any]) -> CaptureConfig:
    capture = _get_optional_mapping(raw, "capture")
    device = capture.get("device")
    cfg = CaptureConfig(
        samplerate=int(capture.get("samplerate", 16000)),
        channels=int(capture.get("channels", 1)),
        blocksize=int(capture.get("blocksize", 4096)),
        dtype=str(capture.get("dtype", "float32")),
        device=device if isinstance(device, (int, str)) else None,
    )
    if cfg.channels != 1:
        raise ValueError("capture.channels must be 1, the live channel only accepts mono PCM")
    return cfg


def _load_playback(raw: Mapping[str, Any]) -> PlaybackConfig:
    playback = _get_optional_mapping(raw, "playback")
    cfg = PlaybackConfig(
        samplerate=int(playback.get("samplerate", LIVE_OUTPUT_RATE)),
        channels=int(playback.get("channels", 1)),
        blocksize=int(playback.get("blocksize", 1024)),
    )
    if cfg.samplerate != LIVE_OUTPUT_RATE:
        raise ValueError(
            f"playback.samplerate must be {LIVE_OUTPUT_RATE}, the live channel always sends {LIVE_OUTPUT_RATE} Hz PCM"
        )
    return cfg


def _load_live(raw: Mapping[str, Any]) -> LiveConfig:
    live = _require_mapping(raw, "live")
    return LiveConfig(
        api_key=os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or None,
        model=str(_require_value(live, "model")),
        voice=str(live.get("voice", "Kore")),
        system_instruction=str(live.get("system_instruction") or DEFAULT_SYSTEM_INSTRUCTION),
    )


def _load_llm(raw: Mapping[str, Any]) -> LlmConfig:
    llm = _require_mapping(raw, "llm")
    base_url = llm.get("base_url")
    return LlmConfig(
        model=str(_require_value(llm, "model")),
        provider=str(llm.get("provider", "google_genai")),
        temperature=float(llm.get("temperature", 0.4)),
        timeout=int(llm.get("timeout", 30)),
        base_url=str(base_url) if base_url else None,
    )


def _load_scheduling(raw: Mapping[str, Any]) -> SchedulingConfig:
    scheduling = _get_optional_mapping(raw, "scheduling")
    tz = scheduling.get("timezone")
    return SchedulingConfig(
        timezone=str(tz) if tz else None,
        reminder_minutes=int(scheduling.get("reminder_minutes", 15)),
        nudge_after_hours=float(scheduling.get("nudge_after_hours", 2.0)),
    )


def _load_logging(raw: Mapping[str, Any]) -> LoggingConfig:
    logging_raw = _get_optional_mapping(raw, "logging")
    defaults = LoggingConfig()
    return LoggingConfig(
        level=str(logging_raw.get("level", defaults.level)).upper(),
        format=str(logging_raw.get("format", defaults.format)),
        json_output=bool(logging_raw.get("json_output", defaults.json_output)),
        rotate_max_bytes=int(logging_raw.get("rotate_max_bytes", defaults.rotate_max_bytes)),
        rotate_backup_count=int(logging_raw.get("rotate_backup_count", defaults.rotate_backup_count)),
    )


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping")
    return cast(dict[str, Any], data)


def _require_mapping(raw: Mapping[str, Any], key: str) -> dict[str, Any]:
    if key not in raw:
        raise ValueError(f"Missing required section '{key}' in config")
    value = raw[key]
    if not isinstance(value, Mapping):
        raise ValueError(f"Section '{key}' must be a mapping")
    return dict(cast(Mapping[str, Any], value))


def _require_value(raw: Mapping[str, Any], key: str) -> Any:
    if key not in raw:
        raise ValueError(f"Missing required value '{key}' in config")
    return raw[key]


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or value == "":
        raise ValueError(f"Missing required env var: {name}")
    return value


def _get_optional_mapping(raw: Mapping[str, Any], key: str) -> dict[str, Any]:
    v = raw.get(key, {})
    if v is None:
        return {}
    if not isinstance(v, Mapping):
        raise ValueError(f"Section '{key}' must be a mapping")
    return dict(cast(Mapping[str, Any], v))
