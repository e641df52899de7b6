import textwrap

import pytest

from smartdo_voice.core.config import DEFAULT_SYSTEM_INSTRUCTION, load_config

MINIMAL_YAML = """\
live:
  model: live-model
llm:
  model: chat-model
"""


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Point CONFIG_PATH and FS_DIR at temp locations and clear optional vars."""
    for name in ("SERVER_ADDR", "SERVER_PORT", "GEMINI_API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(name, raising=False)

    config_path = tmp_path / "config.yaml"
    monkeypatch.setenv("CONFIG_PATH", str(config_path))
    monkeypatch.setenv("FS_DIR", str(tmp_path / "data"))
    return config_path


def _load(tmp_path):
    return load_config(env_file=tmp_path / "missing.env")


class TestLoadConfig:

    def test_minimal_config_uses_defaults(self, tmp_path, env):
        env.write_text(MINIMAL_YAML, encoding="utf-8")

        cfg = _load(tmp_path)

        assert cfg.live.model == "live-model"
        assert cfg.live.voice == "Kore"
        assert cfg.live.system_instruction == DEFAULT_SYSTEM_INSTRUCTION
        assert cfg.live.api_key is None
        assert cfg.llm.model == "chat-model"
        assert cfg.llm.provider == "google_genai"
        assert cfg.capture.samplerate == 16000
        assert cfg.capture.channels == 1
        assert cfg.playback.samplerate == 24000
        assert cfg.scheduling.timezone is None
        assert cfg.scheduling.reminder_minutes == 15
        assert cfg.server.host == "127.0.0.1"
        assert cfg.server.port == 8000
        assert cfg.logging.level == "INFO"

    def test_fs_dir_is_created(self, tmp_path, env):
        env.write_text(MINIMAL_YAML, encoding="utf-8")
        cfg = _load(tmp_path)
        assert cfg.paths.fs_dir.is_dir()
        assert cfg.paths.tasks_file == tmp_path / "data" / "tasks.json"

    def test_environment_overrides(self, tmp_path, env, monkeypatch):
        env.write_text(MINIMAL_YAML, encoding="utf-8")
        monkeypatch.setenv("SERVER_ADDR", "0.0.0.0")
        monkeypatch.setenv("SERVER_PORT", "9001")
        monkeypatch.setenv("GEMINI_API_KEY", "secret")

        cfg = _load(tmp_path)

        assert cfg.server.host == "0.0.0.0"
        assert cfg.server.port == 9001
        assert cfg.live.api_key == "secret"

    def test_full_sections(self, tmp_path, env):
        env.write_text(
            textwrap.dedent("""\
                capture:
                  samplerate: 48000
                  blocksize: 2048
                  device: 3
                playback:
                  blocksize: 512
                live:
                  model: live-model
                  voice: Puck
                llm:
                  model: chat-model
                  provider: ollama
                  base_url: http://localhost:11434
                scheduling:
                  timezone: Europe/Berlin
                  reminder_minutes: 30
                logging:
                  level: debug
                  json_output: true
            """),
            encoding="utf-8",
        )

        cfg = _load(tmp_path)

        assert cfg.capture.samplerate == 48000
        assert cfg.capture.device == 3
        assert cfg.playback.samplerate == 24000
        assert cfg.playback.blocksize == 512
        assert cfg.live.voice == "Puck"
        assert cfg.llm.provider == "ollama"
        assert cfg.llm.base_url == "http://localhost:11434"
        assert cfg.scheduling.timezone == "Europe/Berlin"
        assert cfg.scheduling.reminder_minutes == 30
        assert cfg.logging.level == "DEBUG"
        assert cfg.logging.json_output is True

    def test_missing_config_path_env(self, tmp_path, env, monkeypatch):
        monkeypatch.delenv("CONFIG_PATH")
        with pytest.raises(ValueError, match="CONFIG_PATH"):
            _load(tmp_path)

    def test_missing_config_file(self, tmp_path, env):
        with pytest.raises(FileNotFoundError):
            _load(tmp_path)

    @pytest.mark.parametrize("missing", ["live", "llm"])
    def test_required_sections(self, tmp_path, env, missing):
        sections = {"live": "live:\n  model: a\n", "llm": "llm:\n  model: b\n"}
        sections.pop(missing)
        env.write_text("".join(sections.values()), encoding="utf-8")
        with pytest.raises(ValueError, match=missing):
            _load(tmp_path)

    def test_live_model_is_required(self, tmp_path, env):
        env.write_text("live:\n  voice: Kore\nllm:\n  model: b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="model"):
            _load(tmp_path)

    def test_stereo_capture_is_rejected(self, tmp_path, env):
        env.write_text(MINIMAL_YAML + "capture:\n  channels: 2\n", encoding="utf-8")
        with pytest.raises(ValueError, match="channels"):
            _load(tmp_path)

    def test_non_mapping_root_is_rejected(self, tmp_path, env):
        env.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ValueError):
            _load(tmp_path)

    def test_playback_rate_other_than_live_output_is_rejected(self, tmp_path, env):
        env.write_text(MINIMAL_YAML + "playback:\n  samplerate: 48000\n", encoding="utf-8")
        with pytest.raises(ValueError, match="playback.samplerate must be 24000"):
            _load(tmp_path)
